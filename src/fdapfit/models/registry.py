#########################################################################################
##
##                     MODEL REGIMES AND TRANSFER FUNCTION DISPATCH
##                               (models/registry.py)
##
#########################################################################################

# IMPORTS ===============================================================================

from __future__ import annotations

from enum import Enum, IntEnum
from typing import Callable

import numpy as np

from ..errors import ConfigurationError
from . import laplace
from .parameters import ParameterVector, PhysicalConstants


# ENUMS =================================================================================

class ModelRegime(Enum):
    """Reaction-diffusion regime, named as on the command line."""

    FULL_MODEL = "fullModel"
    HYBRID_MODEL = "hybridModel"
    REACTION_DOMINANT_PURE = "reactionDominantPure"
    EFFECTIVE_DIFFUSION = "effectiveDiffusion"


    @classmethod
    def from_name(cls, name: "str | ModelRegime") -> "ModelRegime":
        """Parse a regime from its name (``"fullModel"``) or member name
        (``"FULL_MODEL"``)."""
        if isinstance(name, cls):
            return name
        for regime in cls:
            if name == regime.value or name == regime.name:
                return regime
        raise ConfigurationError(f"Unknown model '{name}'")


    @property
    def is_fittable(self) -> bool:
        """Whether :func:`fit_model` accepts this regime."""
        return self is not ModelRegime.EFFECTIVE_DIFFUSION


class Selector(IntEnum):
    """What the inverse transform evaluates: the model or one of its derivatives.

    For :attr:`ModelRegime.EFFECTIVE_DIFFUSION` the ``D_KON`` slot holds the
    derivative with respect to the lumped ratio ``x = kon/koff``.
    """

    VALUE = 0
    D_KON = 1
    D_KOFF = 2


# DISPATCH TABLE ========================================================================

TRANSFER_FUNCTIONS: dict[tuple[ModelRegime, Selector], Callable] = {
    (ModelRegime.FULL_MODEL, Selector.VALUE): laplace.full_model,
    (ModelRegime.FULL_MODEL, Selector.D_KON): laplace.full_model_kon,
    (ModelRegime.FULL_MODEL, Selector.D_KOFF): laplace.full_model_koff,
    (ModelRegime.HYBRID_MODEL, Selector.VALUE): laplace.hybrid_model,
    (ModelRegime.HYBRID_MODEL, Selector.D_KON): laplace.hybrid_model_kon,
    (ModelRegime.HYBRID_MODEL, Selector.D_KOFF): laplace.hybrid_model_koff,
    (ModelRegime.REACTION_DOMINANT_PURE, Selector.VALUE): laplace.reaction_dominant_pure,
    (ModelRegime.REACTION_DOMINANT_PURE, Selector.D_KON): laplace.reaction_dominant_pure_kon,
    (ModelRegime.REACTION_DOMINANT_PURE, Selector.D_KOFF): laplace.reaction_dominant_pure_koff,
    (ModelRegime.EFFECTIVE_DIFFUSION, Selector.VALUE): laplace.effective_diffusion,
    (ModelRegime.EFFECTIVE_DIFFUSION, Selector.D_KON): laplace.effective_diffusion_x,
}


def _resolve(regime, selector) -> tuple[ModelRegime, Selector]:
    regime = ModelRegime.from_name(regime)
    try:
        selector = Selector(selector)
    except ValueError:
        raise ConfigurationError(
            f"Selector must be 0, 1 or 2 for the model and its derivatives, got {selector!r}"
        ) from None
    return regime, selector


def get_transfer_function(regime: "ModelRegime | str", selector: "Selector | int") -> Callable:
    """Look up the closed-form Laplace image for ``(regime, selector)``.

    Raises
    ------
    ConfigurationError
        Unknown regime, selector outside ``0..2``, or a combination the regime
        does not define (the effective-diffusion model has a single fit
        parameter, so it has no ``D_KOFF`` entry).
    """
    regime, selector = _resolve(regime, selector)
    try:
        return TRANSFER_FUNCTIONS[(regime, selector)]
    except KeyError:
        raise ConfigurationError(
            f"'{regime.value}' model has only one fit parameter x, "
            f"selector {selector.name} is undefined"
        ) from None


def transfer_function(
    regime: "ModelRegime | str",
    selector: "Selector | int",
    parameters: ParameterVector,
    constants: PhysicalConstants,
) -> Callable:
    """Return ``F(s)`` with rates and physical constants bound.

    For the effective-diffusion family the ratio ``x = kon/koff`` is bound.
    """
    func = get_transfer_function(regime, selector)
    regime = ModelRegime.from_name(regime)

    kon, koff = parameters.kon, parameters.koff
    Df, R = constants.Df, constants.R

    if regime is ModelRegime.EFFECTIVE_DIFFUSION:
        x = np.divide(kon, koff)
        return lambda s: func(s, x, Df, R)

    return lambda s: func(s, kon, koff, Df, R)
