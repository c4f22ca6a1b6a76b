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

import pickle

__all__ = ["get_MPI_params_from_comm", "check_MPI_equality", "myassert",
           "AdaptationError", "InsufficientDrawsError",
           "NumericalAdaptationError"]


class AdaptationError(RuntimeError):
    """A metric could not be estimated from the draws of a window.

    The adaptation recovers from this error by falling back to a diagonal
    metric; it never reaches the sampler."""


class InsufficientDrawsError(AdaptationError):
    """Too few draws were pooled in the current window."""


class NumericalAdaptationError(AdaptationError):
    """A factorization failed or a conditioning estimate is not finite."""


def get_MPI_params_from_comm(comm):
    """Returns size, rank and master flag of a communicator.

    `None` stands for a single task."""
    if comm is None:
        return 1, 0, True
    size = comm.Get_size()
    rank = comm.Get_rank()
    return size, rank, rank == 0


def myassert(val):
    """Safe alternative to python's assert statement which is active even if
    `__debug__` is False."""
    if not val:
        raise AssertionError


def check_MPI_equality(obj, comm):
    """Check that object is the same on all MPI tasks associated to a given
    communicator.

    Raises a RuntimeError if it differs.

    Parameters
    ----------
    obj :
        Any picklable Python object.
    comm : MPI communicator or None
        If comm is None, no check will be performed
    """
    if comm is None:
        return
    if not _MPI_unique(obj, comm):
        raise RuntimeError("MPI tasks are not in sync")


def _MPI_unique(obj, comm):
    obj = pickle.dumps(obj)
    return len(set(comm.allgather(obj))) == 1
