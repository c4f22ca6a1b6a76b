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


class LinearOperator:
    """Symmetric linear map of vectors of length :attr:`size` onto themselves.

    Derived classes implement :meth:`apply`. Calling the operator checks the
    input and forwards to :meth:`apply`, so that instances can be passed to
    :func:`~autometric.power_method.power_method` wherever a plain function
    mapping a vector onto its image is accepted.
    """

    @property
    def size(self):
        """int : length of the vectors the operator acts on"""
        return self._size

    def apply(self, x):
        """Applies the operator to a vector.

        Parameters
        ----------
        x : numpy.ndarray
            Vector of shape `(size,)`.

        Returns
        -------
        numpy.ndarray
            The image of `x`.
        """
        raise NotImplementedError

    def __call__(self, x):
        return self.apply(self._check_input(x))

    def to_matrix(self):
        """Materializes the operator column by column. Meant for tests and
        small problems only."""
        return np.column_stack([self(e) for e in np.eye(self._size)])

    def _check_input(self, x):
        x = np.asarray(x, dtype=np.float64)
        if x.shape != (self._size,):
            raise ValueError(
                f"{self.__class__.__name__}: expected vector of shape "
                f"{(self._size,)}, got {x.shape}")
        return x

    def __repr__(self):
        return f"{self.__class__.__name__}(size={self._size})"


class MatrixProductOperator(LinearOperator):
    """Multiplication with an explicit square matrix.

    Parameters
    ----------
    matrix : numpy.ndarray
        Square matrix of shape `(n, n)`.
    """
    def __init__(self, matrix):
        matrix = np.asarray(matrix, dtype=np.float64)
        if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
            raise ValueError("Matrix must be quadratic.")
        self._mat = matrix
        self._size = matrix.shape[0]

    def apply(self, x):
        return self._mat.dot(x)
