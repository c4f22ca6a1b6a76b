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

import numpy as np
from scipy.linalg import solve_triangular

from . import config
from .linear_operator import LinearOperator
from .power_method import power_method
from .random import uniform_guess
from .utilities import NumericalAdaptationError


def _check_factor(L):
    L = np.asarray(L, dtype=np.float64)
    if L.ndim != 2 or L.shape[0] != L.shape[1]:
        raise ValueError(f"Cholesky factor must be quadratic; got {L.shape}")
    return L


class ScaledCovarianceOperator(LinearOperator):
    """The covariance `Sigma` seen through a metric with Cholesky factor `L`,
    `S = L^{-1} Sigma L^{-T}`.

    `S` is obtained from two triangular solves, the inverse of `L` is never
    formed.

    Parameters
    ----------
    L : numpy.ndarray
        Lower triangular Cholesky factor of the metric, shape `(P, P)`.
    Sigma : numpy.ndarray
        Symmetric matrix of shape `(P, P)`.
    """
    def __init__(self, L, Sigma):
        L = _check_factor(L)
        Sigma = np.asarray(Sigma, dtype=np.float64)
        if Sigma.shape != L.shape:
            raise ValueError(
                f"shapes of factor {L.shape} and covariance {Sigma.shape} "
                "do not match")
        tmp = solve_triangular(L, Sigma, lower=True)
        self._mat = solve_triangular(L, tmp.T, lower=True).T
        self._size = L.shape[0]

    def apply(self, x):
        return self._mat.dot(x)


class ScaledHessianOperator(LinearOperator):
    """The Hessian of the log density at `q` seen through a metric with
    Cholesky factor `L`, `L^T H(q) L`.

    Hessian-vector products are approximated by central differences of the
    gradient along `L x`, so only two gradient evaluations are needed per
    application.

    Errors of the model during a gradient evaluation are raised as
    :class:`NumericalAdaptationError`.

    Parameters
    ----------
    model : LogDensityModel
        Provides `gradient(q) -> (log_density, gradient)`.
    L : numpy.ndarray
        Cholesky factor of the metric, shape `(P, P)`.
    q : numpy.ndarray
        Position of shape `(P,)`.
    dx : float, optional
        Finite difference step. Defaults to the configuration option
        "finite_difference_step".
    """
    def __init__(self, model, L, q, dx=None):
        self._model = model
        self._L = _check_factor(L)
        self._q = np.asarray(q, dtype=np.float64)
        if self._q.shape != (self._L.shape[0],):
            raise ValueError(
                f"position of shape {self._q.shape} does not match factor "
                f"of shape {self._L.shape}")
        self._dx = config.get("finite_difference_step") if dx is None else dx
        if self._dx <= 0:
            raise ValueError(f"dx must be positive; got {self._dx}")
        self._size = self._q.size

    def apply(self, x):
        dr = self._L.dot(x)*self._dx
        try:
            _, grad1 = self._model.gradient(self._q + dr/2.)
            _, grad2 = self._model.gradient(self._q - dr/2.)
        except (ValueError, ArithmeticError) as e:
            raise NumericalAdaptationError(
                f"gradient evaluation failed near {self._q}: {e}") from e
        return self._L.T.dot(np.asarray(grad1) - np.asarray(grad2))/self._dx


def eigenvalue_scaled_covariance(L, Sigma, initial_guess=None):
    """Largest eigenvalue of `L^{-1} Sigma L^{-T}`, see
    :class:`ScaledCovarianceOperator`."""
    op = ScaledCovarianceOperator(L, Sigma)
    if initial_guess is None:
        initial_guess = uniform_guess(op.size)
    return power_method(op, initial_guess).eigenvalue


def eigenvalue_scaled_hessian(model, L, q, initial_guess=None):
    """Eigenvalue of largest magnitude of `L^T H(q) L`, see
    :class:`ScaledHessianOperator`.

    For a log-concave density the result is negative."""
    op = ScaledHessianOperator(model, L, q)
    if initial_guess is None:
        initial_guess = uniform_guess(op.size)
    return power_method(op, initial_guess).eigenvalue


def conditioning_ratio(high, low):
    """Square root of the ratio of the extreme curvatures of the target seen
    through a metric.

    Raises
    ------
    NumericalAdaptationError
        If the ratio is negative or not finite.
    """
    with np.errstate(divide="ignore", invalid="ignore"):
        res = np.sqrt(np.float64(high)/np.float64(low))
    if not np.isfinite(res):
        raise NumericalAdaptationError(
            f"conditioning ratio is not finite (high curvature {high}, "
            f"low curvature {low})")
    return float(res)
