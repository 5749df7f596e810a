from importlib import metadata

try:
    __version__ = metadata.version("fdapfit")
except Exception:
    __version__ = "unknown"

from .errors import FDAPError, ConfigurationError, NumericalDegeneracy
from .models import ModelRegime, Selector, PhysicalConstants, ParameterVector
from .inversion import InversionConfig, invert_transform
from .opt import (
    Observation,
    FitStatus,
    FitResult,
    FitReport,
    SolverConfig,
    fit_model,
    build_report,
)
from .utils.logger import LoggerManager
