#########################################################################################
##
##                          FDAP MODEL LIBRARY, PUBLIC API
##                               (models/__init__.py)
##
#########################################################################################

from .laplace import (
    full_model,
    full_model_kon,
    full_model_koff,
    hybrid_model,
    hybrid_model_kon,
    hybrid_model_koff,
    reaction_dominant_pure,
    reaction_dominant_pure_kon,
    reaction_dominant_pure_koff,
    effective_diffusion,
    effective_diffusion_x,
)
from .parameters import PhysicalConstants, ParameterVector
from .registry import (
    ModelRegime,
    Selector,
    TRANSFER_FUNCTIONS,
    get_transfer_function,
    transfer_function,
)
