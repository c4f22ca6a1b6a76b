# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <http://www.gnu.org/licenses/>.
#
# Copyright(C) 2013-2024 Max-Planck-Society
#
# autometric is being developed at the Max-Planck-Institut fuer Astrophysik.

import autometric as am
import numpy as np
import pytest
from numpy.testing import assert_allclose, assert_equal

from .common import ScriptedAllgather, setup_function, teardown_function

pmp = pytest.mark.parametrize


def _balanced_draws(n_iter):
    """Draws of four chains with variances close to 4 and 1 whose sample
    covariance over any set of whole iterations is exactly diagonal."""
    corners = np.array([[2., 1.], [2., -1.], [-2., 1.], [-2., -1.]])
    res = np.empty((n_iter, 4, 2))
    for ii in range(n_iter):
        res[ii] = np.roll(corners, ii, axis=0)
    return res


def _make(draws, window_size=20, init_buffer=5, num_iterations=None,
          cov=(4., 1.), **kwargs):
    num_chains, n_params = draws.shape[1:]
    if num_iterations is None:
        num_iterations = draws.shape[0]
    model = am.GaussianLogDensity(np.zeros(n_params), np.diag(cov))
    return am.AutoMetricAdaptation(
        model, n_params, num_chains, num_iterations, window_size, init_buffer,
        comm=ScriptedAllgather(draws), **kwargs)


def _feed(adapt, draws):
    for dd in draws:
        adapt.add_sample(dd[0], 0)


def test_diagonal_target_prefers_diagonal():
    draws = _balanced_draws(20)
    adapt = _make(draws)
    _feed(adapt, draws)
    metric = adapt.learn_metric(0, 20)
    assert metric.is_diagonal
    assert adapt.is_diagonal
    n = 80
    expected = n/(n + 5.)*np.diag([4.*n/(n - 1), n/(n - 1)]) \
        + 1e-3*5./(n + 5.)*np.eye(2)
    assert_allclose(metric.covariance, expected, rtol=1e-12)
    assert_allclose(np.diag(metric.covariance), [4., 1.], rtol=0.1)


def test_normal_draws():
    draws = am.random.current_rng().normal(size=(20, 4, 2))*np.sqrt([4., 1.])
    adapt = _make(draws)
    _feed(adapt, draws)
    metric = adapt.learn_metric(0, 20)
    cov = metric.covariance
    assert_equal(cov.shape, (2, 2))
    assert_allclose(cov, cov.T)
    assert_allclose(np.diag(cov), [4., 1.], rtol=0.5)
    if metric.is_diagonal:
        assert_equal(cov, np.diag(np.diag(cov)))
    assert np.min(np.linalg.eigvalsh(cov)) > 0


def test_symmetrized_normal_draws_prefer_diagonal():
    # Normal draws on a dyadic grid, with the signs mirrored across the four
    # chains, so that every sum in the covariance estimate is exact and the
    # cross covariance vanishes.
    rng = am.random.current_rng()
    signs = np.array([[1., 1.], [1., -1.], [-1., 1.], [-1., -1.]])
    draws = np.empty((20, 4, 2))
    for ii in range(20):
        ab = np.round(rng.normal(size=2)*[2., 1.]*64.)/64.
        draws[ii] = np.roll(signs, ii, axis=0)*ab
    adapt = _make(draws)
    _feed(adapt, draws)
    metric = adapt.learn_metric(0, 20)
    assert metric.is_diagonal
    n = 80
    var = np.sum(draws.reshape(n, 2)**2, axis=0)/(n - 1)
    expected = n/(n + 5.)*np.diag(var) + 1e-3*5./(n + 5.)*np.eye(2)
    assert_allclose(metric.covariance, expected, rtol=1e-12)


def test_correlated_target_prefers_dense():
    C = np.array([[1., 0.99], [0.99, 1.]])
    rng = am.random.current_rng()
    draws = rng.multivariate_normal(np.zeros(2), C, size=(50, 4))
    adapt = _make(draws, window_size=50, cov=C)
    _feed(adapt, draws)
    metric = adapt.learn_metric(0, 50)
    assert not metric.is_diagonal
    assert not adapt.is_diagonal
    assert abs(metric.covariance[0, 1]) > 0.5


@pmp("n_iter", [1, 2])
def test_too_few_draws_fall_back(n_iter):
    draws = am.random.current_rng().normal(size=(n_iter, 4, 2))
    adapt = _make(draws, num_iterations=20)
    _feed(adapt, draws)
    metric = adapt.learn_metric(0, n_iter)
    n = 4*n_iter
    assert metric.is_diagonal
    assert_equal(metric.covariance, np.diag(np.full(2, 1e-3*(5./(n + 5.)))))


def test_no_draws_fall_back():
    adapt = _make(np.zeros((3, 2, 3)), window_size=3, init_buffer=1,
                  cov=(1., 1., 1.))
    metric = adapt.learn_metric(0)
    assert_equal(metric.covariance, np.diag(np.full(3, 1e-3)))
    assert metric.is_diagonal


def test_non_finite_ratio_falls_back():
    draws = am.random.current_rng().normal(size=(10, 2, 2))

    def value_and_grad(q):
        return 0.5*q.dot(q), q

    model = am.CallableLogDensity(value_and_grad, 2)
    adapt = am.AutoMetricAdaptation(model, 2, 2, 10, 10, 0,
                                    comm=ScriptedAllgather(draws))
    _feed(adapt, draws)
    metric = adapt.learn_metric(0)
    assert metric.is_diagonal
    assert_equal(metric.covariance, np.diag(np.full(2, 1e-3*(5./25.))))


@pmp("exc", [ValueError, FloatingPointError, ZeroDivisionError])
def test_model_failure_falls_back(exc):
    draws = am.random.current_rng().normal(size=(20, 4, 2))
    draws[-1, 0] = [-10., 0.]
    precision = np.diag([1/4., 1.])

    def value_and_grad(q):
        if np.any(q < -9.5):
            raise exc("log density undefined")
        return -0.5*q.dot(precision.dot(q)), -precision.dot(q)

    model = am.CallableLogDensity(value_and_grad, 2)
    adapt = am.AutoMetricAdaptation(model, 2, 4, 20, 20, 5,
                                    comm=ScriptedAllgather(draws))
    _feed(adapt, draws)
    metric = adapt.learn_metric(0, 20)
    assert metric.is_diagonal
    assert adapt.is_diagonal
    assert_equal(metric.covariance, np.diag(np.full(2, 1e-3*(5./85.))))


def test_idempotent():
    draws = am.random.current_rng().normal(size=(20, 4, 3))
    adapt = _make(draws, cov=(3., 2., 1.))
    _feed(adapt, draws)
    m0 = adapt.learn_metric(0)
    m1 = adapt.learn_metric(0)
    assert_equal(m0.covariance, m1.covariance)
    assert_equal(m0.is_diagonal, m1.is_diagonal)


def test_deterministic_across_instances():
    draws = am.random.current_rng().normal(size=(20, 4, 3))
    results = []
    for _ in range(2):
        adapt = _make(draws, cov=(3., 2., 1.), seed=17)
        _feed(adapt, draws)
        results.append(adapt.learn_metric(0))
    assert_equal(results[0].covariance, results[1].covariance)
    assert_equal(results[0].is_diagonal, results[1].is_diagonal)


def test_window_bounds():
    draws = am.random.current_rng().normal(size=(60, 2, 2))
    adapt = _make(draws, window_size=20, init_buffer=5)
    assert_equal(adapt.window_bounds(0), (0, 0))
    _feed(adapt, draws[:20])
    adapt.learn_metric(0)
    assert_equal(adapt.window_bounds(0), (0, 40))
    assert_equal(adapt.window_bounds(1), (30, 10))
    _feed(adapt, draws[20:40])
    adapt.learn_metric(1)
    assert_equal(adapt.window_bounds(1), (30, 50))
    assert_equal(adapt.window_bounds(2), (70, 10))
    assert_equal(adapt.draws_collected, 40)
    with pytest.raises(ValueError):
        adapt.window_bounds(-1)


def test_later_window_uses_window_draws():
    draws = am.random.current_rng().normal(size=(40, 2, 2))
    draws[:20] *= 100.
    adapt = _make(draws, window_size=20, init_buffer=0)
    _feed(adapt, draws[:20])
    adapt.learn_metric(0)
    _feed(adapt, draws[20:])
    metric = adapt.learn_metric(1)
    first, num = adapt.window_bounds(1)
    assert_equal((first, num), (40, 40))
    assert np.max(np.diag(metric.covariance)) < 10.


def test_recent_positions():
    draws = am.random.current_rng().normal(size=(7, 1, 2))
    adapt = _make(draws, window_size=7, init_buffer=0)
    _feed(adapt, draws)
    recent = np.array(list(adapt.collector.recent_positions))
    assert_equal(recent, draws[2:, 0])


def test_restart_is_noop():
    draws = am.random.current_rng().normal(size=(20, 4, 2))
    adapt = _make(draws)
    _feed(adapt, draws)
    adapt.restart()
    assert_equal(adapt.collector.num_pending, 20)


def test_serial_chain():
    rng = am.random.current_rng()
    model = am.GaussianLogDensity(np.zeros(2), [4., 1.])
    adapt = am.AutoMetricAdaptation(model, 2, 1, 50, 50, 0)
    for _ in range(50):
        adapt.add_sample(rng.normal(size=2)*[2., 1.])
    metric = adapt.learn_metric(0)
    assert_allclose(np.diag(metric.covariance), [4., 1.], rtol=0.6)


@pmp("args", [(0, 1, 10, 5, 0), (2, 0, 10, 5, 0), (2, 1, 0, 5, 0),
              (2, 1, 10, 0, 0), (2, 1, 10, 5, -1)])
def test_invalid_configuration(args):
    model = am.GaussianLogDensity(np.zeros(2), [1., 1.])
    with pytest.raises(ValueError):
        am.AutoMetricAdaptation(model, *args)


def test_invalid_types():
    model = am.GaussianLogDensity(np.zeros(2), [1., 1.])
    with pytest.raises(TypeError):
        am.AutoMetricAdaptation(model, 2., 1, 10, 5, 0)
    with pytest.raises(TypeError):
        am.AutoMetricAdaptation(object(), 2, 1, 10, 5, 0)
    with pytest.raises(ValueError):
        am.AutoMetricAdaptation(model, 3, 1, 10, 5, 0)


def test_chain_count_must_match_group():
    model = am.GaussianLogDensity(np.zeros(2), [1., 1.])
    with pytest.raises(ValueError):
        am.AutoMetricAdaptation(model, 2, 3, 10, 5, 0)


def test_precondition_violations_propagate():
    draws = am.random.current_rng().normal(size=(20, 4, 2))
    adapt = _make(draws)
    with pytest.raises(ValueError):
        adapt.add_sample(np.zeros(3))
