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

"""
Random numbers in autometric

The only random quantity of the metric adaptation is the starting vector of
the power iterations. It is drawn from the `Generator` on top of a stack of
`numpy.random.SeedSequence` objects, exactly one of which (seeded with 42)
exists after import. The adaptation is therefore reproducible across runs and
insensitive to `numpy.random.seed`.

A different seed can be used by pushing a seed sequence via
:func:`push_sseq_from_seed` or :func:`push_sseq` and popping it again via
:func:`pop_sseq`; :class:`Context` does both for the scope of a `with`
statement. :class:`~autometric.adaptation.AutoMetricAdaptation` enters a
`Context` built from its own seed sequence every time it selects a metric, so
that repeated selections on the same draws start from the same vectors.
"""

import numpy as np


# Stack of SeedSequence objects. Will always start out with a well-defined
# default.
_sseq = [np.random.SeedSequence(42)]
# Stack of random number generators associated with _sseq.
_rng = [np.random.default_rng(_sseq[-1])]


def spawn_sseq(n, parent=None):
    """Returns a list of `n` SeedSequence objects which are children of `parent`

    Parameters
    ----------
    n : int
        number of requested SeedSequence objects
    parent : SeedSequence
        the object from which the returned objects will be derived
        If `None`, the top of the current SeedSequence stack will be used

    Returns
    -------
    list(SeedSequence)
        the requested SeedSequence objects
    """
    if parent is None:
        parent = _sseq[-1]
    return parent.spawn(n)


def current_rng():
    """Returns the Generator currently on top of the generator stack."""
    return _rng[-1]


def push_sseq(sseq):
    """Pushes a SeedSequence and a Generator built from it onto the stacks.

    Every call has to be matched by a call to :func:`pop_sseq`. Prefer
    :class:`Context` where possible.
    """
    _sseq.append(sseq)
    _rng.append(np.random.default_rng(_sseq[-1]))


def push_sseq_from_seed(seed):
    """Pushes a SeedSequence built from an integer seed, see :func:`push_sseq`.
    """
    push_sseq(np.random.SeedSequence(seed))


def pop_sseq():
    """Pops the top of the SeedSequence and generator stacks."""
    _sseq.pop()
    _rng.pop()


def uniform_guess(size):
    """Draws a vector with entries uniform in `[-1, 1)` from the current
    generator, the starting point of a power iteration."""
    return _rng[-1].uniform(-1., 1., size)


class Context:
    """Convenience class for easy management of the RNG state.
    Usage: ::

        with autometric.random.Context(seed|sseq):
            code using the new RNG state

    At the end of the scope, the original RNG state will be restored
    automatically. Entering a `Context` built from the same `SeedSequence`
    twice yields the same random numbers twice.

    Parameters
    ----------
    inp : int or numpy.random.SeedSequence
        The starting information for the new RNG state.
        If it is an integer, a new `SeedSequence` will be generated from it.
    """

    def __init__(self, inp):
        if not isinstance(inp, np.random.SeedSequence):
            inp = np.random.SeedSequence(inp)
        self._sseq = inp

    def __enter__(self):
        self._depth = len(_sseq)
        push_sseq(self._sseq)

    def __exit__(self, exc_type, exc_value, tb):
        pop_sseq()
        if self._depth != len(_sseq):
            raise RuntimeError("inconsistent RNG usage detected")
        return exc_type is None
