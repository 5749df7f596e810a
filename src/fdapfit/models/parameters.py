#########################################################################################
##
##                       PHYSICAL CONSTANTS AND RATE PARAMETERS
##                              (models/parameters.py)
##
#########################################################################################

# IMPORTS ===============================================================================

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np


# DEFAULTS ==============================================================================

DEFAULT_DF = 11.0
DEFAULT_R = 3.0
DEFAULT_KON = 0.5
DEFAULT_KOFF = 0.5


# CLASSES ===============================================================================

@dataclass(frozen=True)
class PhysicalConstants:
    """Fixed physical setup of one FDAP experiment.

    Parameters
    ----------
    Df : float
        Diffusion coefficient of the unbound species (um^2/s).
    R : float
        Half length of the activation region (um).
    """

    Df: float = DEFAULT_DF
    R: float = DEFAULT_R


    def __post_init__(self) -> None:
        for name in ("Df", "R"):
            value = float(getattr(self, name))
            if not np.isfinite(value) or value <= 0.0:
                raise ValueError(f"PhysicalConstants: {name} must be > 0, got {value}")
            object.__setattr__(self, name, value)


@dataclass(frozen=True)
class ParameterVector:
    """The two fitted rate constants ``(kon, koff)``."""

    kon: float = DEFAULT_KON
    koff: float = DEFAULT_KOFF


    def __post_init__(self) -> None:
        object.__setattr__(self, "kon", float(self.kon))
        object.__setattr__(self, "koff", float(self.koff))


    @classmethod
    def from_array(cls, x: Sequence[float]) -> "ParameterVector":
        x_arr = np.asarray(x, dtype=float).reshape(-1)
        if x_arr.size != 2:
            raise ValueError(f"Expected x of length 2, got {x_arr.size}")
        return cls(kon=x_arr[0], koff=x_arr[1])


    def as_array(self) -> np.ndarray:
        return np.array([self.kon, self.koff], dtype=float)


    @property
    def names(self) -> tuple[str, str]:
        return ("kon", "koff")
