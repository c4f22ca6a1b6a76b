from .version import __version__

from . import config
from . import random
from . import utilities

from .logger import logger

from .utilities import (AdaptationError, InsufficientDrawsError,
                        NumericalAdaptationError)

from .linear_operator import LinearOperator, MatrixProductOperator
from .power_method import power_method, PowerMethodResult
from .covariance import (covariance, regularize, diagonal_fallback,
                         diagonal_cholesky)
from .model import LogDensityModel, CallableLogDensity, GaussianLogDensity
from .curvature import (ScaledCovarianceOperator, ScaledHessianOperator,
                        eigenvalue_scaled_covariance,
                        eigenvalue_scaled_hessian, conditioning_ratio)

from .gather import Allgather, SerialAllgather, MPIAllgather, make_allgather
from .collector import RecentPositions, DrawCollector
from .adaptation import AutoMetricAdaptation, Metric
