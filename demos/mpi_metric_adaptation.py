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

# Every MPI task runs one chain. The "sampler" draws exact samples of a
# strongly correlated Gaussian; after every window the chains jointly decide
# between a dense and a diagonal metric.
#
#   mpiexec -n 4 python demos/mpi_metric_adaptation.py

import numpy as np

import autometric as am

try:
    from mpi4py import MPI
    comm = MPI.COMM_WORLD
    ntask, rank = comm.Get_size(), comm.Get_rank()
except ImportError:
    comm = None
    ntask, rank = 1, 0
master = rank == 0


def main():
    n_params, window_size, init_buffer, n_windows = 3, 50, 10, 4
    cov = np.array([[4., 1.8, 0.], [1.8, 1., 0.], [0., 0., 0.25]])
    model = am.GaussianLogDensity(np.zeros(n_params), cov)
    adapt = am.AutoMetricAdaptation(model, n_params, ntask,
                                    n_windows*window_size, window_size,
                                    init_buffer, comm=comm, seed=42)
    sqrt_cov = np.linalg.cholesky(cov)

    with am.random.Context(rank):
        rng = am.random.current_rng()
        for window in range(n_windows):
            for ii in range(window_size):
                q = sqrt_cov.dot(rng.normal(size=n_params))
                adapt.add_sample(q, ii + 1)
            metric = adapt.learn_metric(window, window_size)
            if master:
                first, num = adapt.window_bounds(window)
                kind = "diagonal" if metric.is_diagonal else "dense"
                print(f"window {window}: {num} draws from row {first}, "
                      f"{kind} metric")
                print(metric.covariance)


if __name__ == "__main__":
    main()
