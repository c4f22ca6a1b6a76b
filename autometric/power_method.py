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
from .logger import logger


class PowerMethodResult(NamedTuple):
    eigenvalue: float
    nit: int
    relerr: float
    converged: bool


def power_method(op, initial_guess, max_iterations=None, tol=None):
    """Estimates the eigenvalue of largest magnitude of a symmetric operator.

    If the `k`-th Rayleigh quotient is `e_k`, the iteration stops as soon as
    `abs(e_{k+1} - e_k) <= tol * abs(e_k)` or after `max_iterations`
    iterations. The estimate is therefore cheap and in general not accurate to
    machine precision.

    Parameters
    ----------
    op : callable
        Maps a vector of shape `(n,)` onto its image under a symmetric matrix,
        e.g. a :class:`~autometric.linear_operator.LinearOperator`.
    initial_guess : numpy.ndarray
        Starting vector of shape `(n,)`, must not vanish.
    max_iterations : int, optional
        Maximum number of iterations. Defaults to the configuration option
        "power_iterations".
    tol : float, optional
        Relative tolerance of the eigenvalue. Defaults to the configuration
        option "power_tolerance".

    Returns
    -------
    PowerMethodResult
        The eigenvalue estimate, the number of iterations actually used, the
        relative change of the estimate in the last iteration and whether it
        is within `tol`.
    """
    max_iterations = (config.get("power_iterations") if max_iterations is None
                      else max_iterations)
    tol = config.get("power_tolerance") if tol is None else tol
    if max_iterations < 1:
        raise ValueError(f"max_iterations must be positive; got {max_iterations}")
    if tol < 0:
        raise ValueError(f"tol must not be negative; got {tol}")

    v = np.array(initial_guess, dtype=np.float64)
    if v.ndim != 1:
        raise ValueError("initial guess must be a vector")
    if not np.any(v):
        raise ValueError("initial guess must not vanish")
    Av = np.asarray(op(v))
    if Av.shape != v.shape:
        raise ValueError(
            f"power_method: size of matrix vector product {Av.shape} does not "
            f"match size of vector {v.shape}")

    evl, relerr, nit = 0., np.inf, max_iterations
    for i in range(max_iterations):
        new_evl = v.dot(Av)/v.dot(v)
        delta = abs(new_evl - evl)
        if (i == max_iterations - 1 or delta <= tol*abs(evl)
                or not np.any(Av)):
            if evl != 0:
                relerr = delta/abs(evl)
            elif delta == 0:
                relerr = 0.
            evl = new_evl
            nit = i + 1
            break
        evl = new_evl
        v = Av/np.linalg.norm(Av)
        Av = np.asarray(op(v))

    logger.debug(f"power_method: eigenvalue {evl:.6e} after {nit} "
                 f"iterations, relative error {relerr:.2e}")
    return PowerMethodResult(eigenvalue=float(evl), nit=nit,
                             relerr=float(relerr), converged=bool(relerr <= tol))
