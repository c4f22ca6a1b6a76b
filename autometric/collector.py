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

from collections import deque

import numpy as np

from . import config
from .gather import UNDEFINED
from .utilities import myassert


class RecentPositions:
    """Bounded FIFO of the most recent local draws.

    Parameters
    ----------
    capacity : int, optional
        Maximum number of stored positions, the oldest one is evicted first.
        Defaults to the configuration option "recent_positions".
    """
    def __init__(self, capacity=None):
        capacity = config.get("recent_positions") if capacity is None else capacity
        if capacity < 1:
            raise ValueError(f"capacity must be positive; got {capacity}")
        self._queue = deque(maxlen=capacity)

    @property
    def capacity(self):
        return self._queue.maxlen

    def push(self, q):
        self._queue.append(np.array(q, dtype=np.float64))

    def __len__(self):
        return len(self._queue)

    def __iter__(self):
        return iter(self._queue)

    def __getitem__(self, i):
        return self._queue[i]


class DrawCollector:
    """Pools the draws of all chains of a group without blocking the sampler.

    Every call to :meth:`add_sample` starts a non-blocking all-gather of the
    local draw into the next free slot of a pool of `window_size` slots.
    :meth:`collect_draws` waits for all of them and appends their contents to
    an archive of shape `(num_chains*num_iterations, n_params)`. The draw of
    chain `c` gathered into the `k`-th slot after `n` previously collected
    slots ends up in row `(n + k)*num_chains + c`, independent of the order in
    which the collectives complete.

    Parameters
    ----------
    num_chains : int
        Number of chains in the group.
    n_params : int
        Number of free parameters.
    num_iterations : int
        Maximum number of draws per chain the archive can hold.
    window_size : int
        Maximum number of draws between two calls to :meth:`collect_draws`.
    gather : Allgather
        The collective substrate, see :mod:`autometric.gather`.
    capacity : int, optional
        Capacity of the queue of recent positions.
    """
    def __init__(self, num_chains, n_params, num_iterations, window_size,
                 gather, capacity=None):
        if gather.num_chains != num_chains:
            raise ValueError(
                f"chain group has {gather.num_chains} members, expected "
                f"{num_chains}")
        self._num_chains = num_chains
        self._n_params = n_params
        self._window_size = window_size
        self._gather = gather
        self._slots = np.empty((window_size, num_chains, n_params))
        self._sendbufs = np.empty((window_size, n_params))
        self._archive = np.empty((num_chains*num_iterations, n_params))
        self._draws_collected = 0
        self._recent = RecentPositions(capacity)
        self._reset_requests()

    def _reset_requests(self):
        self._num_issued = 0
        self._requests = [None]*self._window_size

    @property
    def num_chains(self):
        return self._num_chains

    @property
    def n_params(self):
        return self._n_params

    @property
    def draws_collected(self):
        """int : number of draws per chain in the archive"""
        return self._draws_collected

    @property
    def num_pending(self):
        """int : number of gathers issued since the last collection"""
        return self._num_issued

    @property
    def recent_positions(self):
        return self._recent

    def add_sample(self, q):
        """Starts pooling the local draw `q` and returns immediately.

        `q` is also pushed onto the queue of recent positions.
        """
        q = np.asarray(q, dtype=np.float64)
        if q.shape != (self._n_params,):
            raise ValueError(
                f"draw of shape {q.shape} does not match number of "
                f"parameters {self._n_params}")
        if self._num_issued == self._window_size:
            raise RuntimeError(
                f"all {self._window_size} slots are in use; "
                "collect_draws() has to be called first")
        if self._draws_collected + self._num_issued + 1 > \
                self._archive.shape[0]//self._num_chains:
            raise RuntimeError("draw archive is full")
        k = self._num_issued
        self._sendbufs[k] = q
        self._requests[k] = self._gather.issue(self._sendbufs[k],
                                               self._slots[k])
        self._num_issued += 1
        self._recent.push(q)

    def collect_draws(self):
        """Waits for all pending gathers and moves their results into the
        archive.

        Returns
        -------
        int
            Number of draws per chain added to the archive.
        """
        n, N = self._num_issued, self._num_chains
        finished = 0
        while finished < n:
            index, flag = self._gather.test_any(self._requests)
            if flag and index == UNDEFINED:
                raise RuntimeError(
                    f"only {finished} of {n} gathers completed")
            if flag:
                finished += 1
                row = (self._draws_collected + index)*N
                self._archive[row:row + N] = self._slots[index]
        myassert(all(rr is None for rr in self._requests[:n]))
        self._draws_collected += n
        self._reset_requests()
        return n

    def archive(self, first=0, count=None):
        """Returns rows `first` to `first + count` of the archive.

        Only rows filled by :meth:`collect_draws` can be accessed.
        """
        filled = self._draws_collected*self._num_chains
        count = filled - first if count is None else count
        if first < 0 or count < 0 or first + count > filled:
            raise ValueError(
                f"rows {first} to {first + count} requested, but only "
                f"{filled} rows are filled")
        return self._archive[first:first + count]
