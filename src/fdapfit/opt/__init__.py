#########################################################################################
##
##                          FDAP FITTING TOOLKIT, PUBLIC API
##                                 (opt/__init__.py)
##
#########################################################################################

from .observation import Observation, ZERO_TIME_NUDGE, time_grid
from .objective import FDAPObjective
from .solver import (
    FitStatus,
    IterationRecord,
    LevenbergMarquardt,
    SolverConfig,
    SolverOutcome,
)
from .uncertainty import UncertaintyResult, bound_fraction
from .fitting import (
    FitResult,
    FitReport,
    build_report,
    fit_model,
    plot_fit,
)
