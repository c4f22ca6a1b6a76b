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

from typing import NamedTuple

import numpy as np

from . import config
from .collector import DrawCollector
from .covariance import (covariance, diagonal_cholesky, diagonal_fallback,
                         regularize)
from .curvature import (conditioning_ratio, eigenvalue_scaled_covariance,
                        eigenvalue_scaled_hessian)
from .gather import make_allgather
from .logger import logger
from .random import Context, spawn_sseq, uniform_guess
from .utilities import (AdaptationError, InsufficientDrawsError,
                        NumericalAdaptationError, check_MPI_equality)


class Metric(NamedTuple):
    covariance: np.ndarray
    is_diagonal: bool


def _check_count(name, val, minimum):
    if isinstance(val, bool) or not isinstance(val, (int, np.integer)):
        raise TypeError(f"{name} must be an integer; got {val!r}")
    if val < minimum:
        raise ValueError(f"{name} must be at least {minimum}; got {val}")
    return int(val)


class AutoMetricAdaptation:
    """Learns a dense or diagonal metric from the pooled warmup draws of a
    group of chains.

    Every chain of the group runs in its own MPI task and owns one instance.
    The draws of all chains are exchanged with non-blocking collectives while
    sampling continues; at the end of each warmup window all of them enter a
    regularized covariance estimate. Whether this estimate is used as a dense
    metric or only its diagonal is decided by comparing, for both choices,
    the ratio of the largest curvature of the target to the smallest
    curvature implied by held out draws. The metric with the smaller ratio
    conditions the sampler better.

    Parameters
    ----------
    model : LogDensityModel
        Provides `gradient(q) -> (log_density, gradient)`.
    n_params : int
        Number of free parameters.
    num_chains : int
        Number of chains in the group.
    num_iterations : int
        Number of warmup iterations, bounds the number of stored draws.
    window_size : int
        Number of draws per chain in a warmup window.
    init_buffer : int
        Number of draws of the initial fast warmup phase that precede the
        first window. They are excluded from every estimate except the one
        of the window with index 0.
    comm : None, Allgather or mpi4py.MPI.Intracomm, optional
        The chain group. `None` stands for a single chain.
    seed : int or numpy.random.SeedSequence, optional
        Seeds the starting vectors of the power iterations. Defaults to a
        child of the current seed sequence of :mod:`autometric.random`.
    """
    def __init__(self, model, n_params, num_chains, num_iterations,
                 window_size, init_buffer, comm=None, seed=None):
        n_params = _check_count("n_params", n_params, 1)
        num_chains = _check_count("num_chains", num_chains, 1)
        num_iterations = _check_count("num_iterations", num_iterations, 1)
        window_size = _check_count("window_size", window_size, 1)
        init_buffer = _check_count("init_buffer", init_buffer, 0)
        if not hasattr(model, "gradient"):
            raise TypeError("model must provide gradient(q)")
        if getattr(model, "n_params", None) not in (None, n_params):
            raise ValueError(
                f"model has {model.n_params} parameters, expected {n_params}")

        gather = make_allgather(comm)
        check_MPI_equality(
            (n_params, num_chains, num_iterations, window_size, init_buffer),
            getattr(gather, "comm", None))
        self._model = model
        self._n_params = n_params
        self._num_chains = num_chains
        self._num_iterations = num_iterations
        self._window_size = window_size
        self._init_buffer = init_buffer
        self._collector = DrawCollector(num_chains, n_params, num_iterations,
                                        window_size, gather)
        if seed is None:
            seed = spawn_sseq(1)[0]
        elif not isinstance(seed, np.random.SeedSequence):
            seed = np.random.SeedSequence(seed)
        self._sseq = seed
        self._is_diagonal = False
        logger.info(f"AutoMetricAdaptation: chains {num_chains}, "
                    f"parameters {n_params}, iterations {num_iterations}, "
                    f"window size {window_size}, init buffer {init_buffer}")

    @property
    def n_params(self):
        return self._n_params

    @property
    def num_chains(self):
        return self._num_chains

    @property
    def is_diagonal(self):
        """bool : whether the last learned metric is diagonal"""
        return self._is_diagonal

    @property
    def draws_collected(self):
        """int : number of draws per chain collected so far"""
        return self._collector.draws_collected

    @property
    def collector(self):
        return self._collector

    def add_sample(self, q, current_window_count=None):
        """Hands the local draw `q` to the group and returns immediately.

        `current_window_count` is accepted for compatibility with the
        sampler's adaptation interface and not used.
        """
        self._collector.add_sample(q)

    def window_bounds(self, window):
        """Returns the first archive row and the number of rows used for the
        metric of the warmup window with index `window`."""
        window = _check_count("window", window, 0)
        N, W = self._num_chains, self._window_size
        first = N*(max(window - 1, 0)*W + (window > 0)*(W - self._init_buffer))
        num = max(N*self._collector.draws_collected - first, 0)
        return first, num

    def learn_metric(self, window, current_window_count=None):
        """Collects the pending draws of the group and learns a new metric.

        Parameters
        ----------
        window : int
            Index of the warmup window which just ended.
        current_window_count : int, optional
            Accepted for compatibility with the sampler's adaptation interface
            and not used.

        Returns
        -------
        Metric
            Covariance of shape `(n_params, n_params)` and whether it is
            diagonal. If no metric can be learned, a diagonal metric
            regularized towards a small multiple of the identity is returned.
        """
        self._collector.collect_draws()
        first, num = self.window_bounds(window)
        try:
            with Context(self._sseq):
                metric = self._select_and_refine(first, num)
        except AdaptationError as e:
            logger.warning(f"{e}\nException while using auto adaptation, "
                           "falling back to diagonal")
            metric = Metric(diagonal_fallback(num, self._n_params), True)
        self._is_diagonal = metric.is_diagonal
        return metric

    def restart(self):
        """Hook for resets between warmup segments. Does nothing."""

    def _select_and_refine(self, first, num):
        min_draws = config.get("min_window_draws")
        if num < min_draws:
            raise InsufficientDrawsError(
                f"Each warmup stage must have at least {min_draws} samples; "
                f"got {num}")
        n_test = max(config.get("min_test_draws"),
                     int(config.get("test_fraction")*num))
        if n_test >= num:
            raise InsufficientDrawsError(
                f"{num} samples do not leave any for training after holding "
                f"out {n_test}")
        use_dense = self._select(first, num, n_test)
        dense = regularize(covariance(self._collector.archive(first, num)), num)
        if use_dense:
            return Metric(dense, False)
        return Metric(np.diag(np.diag(dense)), True)

    def _select(self, first, num, n_test):
        n_train = num - n_test
        cov_train = covariance(self._collector.archive(first, n_train))
        cov_test = covariance(self._collector.archive(first + n_train, n_test))
        dense = regularize(cov_train, n_train)
        try:
            L_dense = np.linalg.cholesky(dense)
        except np.linalg.LinAlgError as e:
            raise NumericalAdaptationError(
                f"regularized covariance is not positive definite: {e}")
        L_diag = diagonal_cholesky(dense)

        guess = uniform_guess(self._n_params)
        low_dense = self._low_curvature(L_dense, cov_test, guess)
        low_diag = self._low_curvature(L_diag, cov_test, guess)

        c_dense, c_diag = 0., 0.
        for q in self._collector.recent_positions:
            high_dense = eigenvalue_scaled_hessian(self._model, L_dense, q, guess)
            high_diag = eigenvalue_scaled_hessian(self._model, L_diag, q, guess)
            c_dense = max(c_dense, conditioning_ratio(high_dense, low_dense))
            c_diag = max(c_diag, conditioning_ratio(high_diag, low_diag))

        logger.info(f"adapt dense, max: {c_dense}")
        logger.info(f"adapt diag, max: {c_diag}")
        return c_dense < c_diag

    @staticmethod
    def _low_curvature(L, cov_test, guess):
        evl = eigenvalue_scaled_covariance(L, cov_test, guess)
        if evl == 0:
            raise NumericalAdaptationError(
                "held out draws have vanishing covariance")
        return -1./evl
