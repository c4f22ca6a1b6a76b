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


class LogDensityModel:
    """Target density as seen by the metric adaptation.

    The adaptation only ever evaluates the gradient of the log density, at
    positions slightly displaced from recent draws. Models are never mutated.

    Derived classes implement :meth:`gradient`.
    """

    @property
    def n_params(self):
        """int : number of free parameters, or `None` if unknown"""
        return getattr(self, "_n_params", None)

    def gradient(self, q):
        """Evaluates the log density and its gradient.

        Parameters
        ----------
        q : numpy.ndarray
            Position of shape `(P,)`.

        Returns
        -------
        tuple(float, numpy.ndarray)
            Log density at `q` and its gradient of shape `(P,)`.
        """
        raise NotImplementedError


class CallableLogDensity(LogDensityModel):
    """Wraps a function `q -> (log_density, gradient)`.

    Parameters
    ----------
    value_and_grad : callable
        Returns the log density and its gradient at a position.
    n_params : int, optional
        Number of free parameters, used for consistency checks only.
    """
    def __init__(self, value_and_grad, n_params=None):
        if not callable(value_and_grad):
            raise TypeError("value_and_grad must be callable")
        self._func = value_and_grad
        self._n_params = n_params

    def gradient(self, q):
        lp, grad = self._func(q)
        return float(lp), np.asarray(grad, dtype=np.float64)


class GaussianLogDensity(LogDensityModel):
    """Log density of a multivariate normal distribution, up to a constant.

    Parameters
    ----------
    mean : numpy.ndarray
        Mean of shape `(P,)`.
    covariance : numpy.ndarray
        Positive definite covariance of shape `(P, P)`, or its diagonal of
        shape `(P,)`.
    """
    def __init__(self, mean, covariance):
        self._mean = np.asarray(mean, dtype=np.float64)
        covariance = np.asarray(covariance, dtype=np.float64)
        if self._mean.ndim != 1:
            raise ValueError("mean must be a vector")
        self._n_params = self._mean.size
        if covariance.ndim == 1:
            covariance = np.diag(covariance)
        if covariance.shape != 2*(self._n_params,):
            raise ValueError(
                f"covariance of shape {covariance.shape} does not match mean "
                f"of shape {self._mean.shape}")
        self._precision = np.linalg.inv(covariance)

    @property
    def precision(self):
        return self._precision

    def gradient(self, q):
        r = np.asarray(q, dtype=np.float64) - self._mean
        grad = -self._precision.dot(r)
        return 0.5*r.dot(grad), grad
