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

from .utilities import get_MPI_params_from_comm

UNDEFINED = -1


class Allgather:
    """Non-blocking all-gather of one vector per chain.

    `issue` starts the collective and returns a request handle immediately.
    `test_any` checks a list of handles for a completed one without blocking;
    handles of completed collectives are replaced by `None` in that list, so
    that each completion is reported exactly once.
    """

    @property
    def num_chains(self):
        return self._size

    @property
    def rank(self):
        return self._rank

    def issue(self, sendbuf, recvbuf):
        """Starts gathering `sendbuf` of every chain into `recvbuf`.

        Parameters
        ----------
        sendbuf : numpy.ndarray
            Local vector of shape `(P,)`. Must not be modified before the
            request has completed.
        recvbuf : numpy.ndarray
            Array of shape `(num_chains, P)`, row `c` receives the vector of
            chain `c`.

        Returns
        -------
        request handle
        """
        raise NotImplementedError

    def test_any(self, requests):
        """Returns `(index, flag)`. `flag` is True if the request at `index`
        has completed, `index` is `UNDEFINED` if no request is active."""
        raise NotImplementedError

    def _check_buffers(self, sendbuf, recvbuf):
        if recvbuf.shape != (self._size,) + sendbuf.shape:
            raise ValueError(
                f"receive buffer of shape {recvbuf.shape} cannot hold "
                f"{self._size} vectors of shape {sendbuf.shape}")


class SerialAllgather(Allgather):
    """The all-gather of a single chain, which completes immediately."""
    def __init__(self):
        self._size, self._rank = 1, 0

    def issue(self, sendbuf, recvbuf):
        self._check_buffers(sendbuf, recvbuf)
        recvbuf[0] = sendbuf
        return True

    def test_any(self, requests):
        for ii, req in enumerate(requests):
            if req is not None:
                requests[ii] = None
                return ii, True
        return UNDEFINED, True


class MPIAllgather(Allgather):
    """All-gather over an mpi4py intra-communicator, one task per chain.

    Parameters
    ----------
    comm : mpi4py.MPI.Intracomm
    """
    def __init__(self, comm):
        from mpi4py import MPI
        self._MPI = MPI
        self._comm = comm
        self._size, self._rank, _ = get_MPI_params_from_comm(comm)

    @property
    def comm(self):
        return self._comm

    def issue(self, sendbuf, recvbuf):
        self._check_buffers(sendbuf, recvbuf)
        MPI = self._MPI
        return self._comm.Iallgather([sendbuf, MPI.DOUBLE],
                                     [recvbuf, MPI.DOUBLE])

    def test_any(self, requests):
        MPI = self._MPI
        active = [MPI.REQUEST_NULL if rr is None else rr for rr in requests]
        index, flag = MPI.Request.Testany(active)
        if not flag or index == MPI.UNDEFINED:
            return UNDEFINED, flag
        requests[index] = None
        return index, flag


def make_allgather(comm):
    """Returns the :class:`Allgather` for a chain group.

    Parameters
    ----------
    comm : None, Allgather or mpi4py.MPI.Intracomm
        `None` stands for a single serial chain. :class:`Allgather` instances
        are returned unchanged.
    """
    if comm is None:
        return SerialAllgather()
    if isinstance(comm, Allgather):
        return comm
    return MPIAllgather(comm)
