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


def list2fixture(lst):
    @pytest.fixture(params=lst)
    def myfixture(request):
        return request.param

    return myfixture


def setup_function():
    am.random.push_sseq_from_seed(42)
    am.config.reset()


def teardown_function():
    am.random.pop_sseq()
    am.config.reset()


class ScriptedAllgather(am.Allgather):
    """Stands in for the other chains of a group within a single process.

    `draws[i]` holds the draws of all chains, shape `(num_chains, P)`, that
    the `i`-th issued gather delivers; the local draw replaces row `rank`.
    Completions are reported in the order given by `completion_order` within
    each batch of issued gathers.
    """
    def __init__(self, draws, rank=0, completion_order=None):
        self._draws = np.asarray(draws, dtype=np.float64)
        self._size = self._draws.shape[1]
        self._rank = rank
        self._order = completion_order
        self._issued = 0
        self._pending = []

    def issue(self, sendbuf, recvbuf):
        res = self._draws[self._issued].copy()
        res[self._rank] = sendbuf
        self._pending.append((recvbuf, res))
        self._issued += 1
        return len(self._pending) - 1

    def test_any(self, requests):
        active = [ii for ii, rr in enumerate(requests) if rr is not None]
        if not active:
            return -1, True
        order = range(len(requests)) if self._order is None else self._order
        for ii in order:
            if ii in active:
                recvbuf, res = self._pending[requests[ii]]
                recvbuf[...] = res
                requests[ii] = None
                if len(active) == 1:
                    self._pending = []
                return ii, True
        return -1, False

