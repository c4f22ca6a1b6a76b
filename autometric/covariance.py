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

from . import config


def covariance(Y):
    """Computes the sample covariance of the rows of `Y`.

    Columns of `Y` are different variables, rows are different draws. The
    unbiased estimator with a `1/(n-1)` prefactor is used. For a single row
    the result is the zero matrix of the expected size.

    Parameters
    ----------
    Y : numpy.ndarray
        Draws of shape `(n, P)` with `n > 0`.

    Returns
    -------
    numpy.ndarray
        Covariance of shape `(P, P)`.
    """
    Y = np.asarray(Y, dtype=np.float64)
    if Y.ndim != 2:
        raise ValueError(f"covariance: Y must be two-dimensional; got {Y.ndim}")
    if Y.size == 0:
        raise ValueError(f"covariance: Y must not be empty; got shape {Y.shape}")
    centered = Y - Y.mean(axis=0)
    return centered.T.dot(centered)/max(Y.shape[0] - 1., 1.)


def _shrinkage_weights(n):
    prior = config.get("shrinkage_prior")
    return n/(n + prior), config.get("shrinkage_target")*(prior/(n + prior))


def regularize(cov, n):
    """Shrinks a sample covariance estimated from `n` draws towards a small
    multiple of the identity.

    The result is `n/(n+5) cov + 1e-3 5/(n+5) 1` for the default
    configuration, which makes it positive definite for any `n`.
    """
    cov = np.asarray(cov, dtype=np.float64)
    if n < 0:
        raise ValueError(f"number of draws must not be negative; got {n}")
    w_sample, w_target = _shrinkage_weights(n)
    return w_sample*cov + w_target*np.eye(cov.shape[0])


def diagonal_fallback(n, n_params):
    """Diagonal metric used when no metric can be learned from `n` draws.

    Only the shrinkage target survives: a sample covariance of zero is
    regularized with the weight of `n` draws.
    """
    if n < 0:
        raise ValueError(f"number of draws must not be negative; got {n}")
    w_sample, w_target = _shrinkage_weights(n)
    return np.diag(w_sample*np.zeros(n_params) + w_target*np.ones(n_params))


def diagonal_cholesky(cov):
    """Cholesky factor of the diagonal projection of `cov`."""
    return np.diag(np.sqrt(np.diag(cov)))
