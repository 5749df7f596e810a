#########################################################################################
##
##                      LAPLACE IMAGES OF FDAP RECOVERY CURVES
##                               (models/laplace.py)
##
##      Closed-form Laplace-domain transfer functions of the mean fluorescence in a
##      photoactivated region of half length R, for one dimensional diffusion
##      (coefficient Df) coupled to a two-state binding reaction (kon, koff), and
##      their analytic partial derivatives with respect to the rate constants.
##
#########################################################################################

# IMPORTS ===============================================================================

import numpy as np


# NOTES =================================================================================
#
# All functions are vectorised over the complex frequency ``s`` and evaluate with
# principal branches (``np.sqrt``). With ``q`` the diffusion propagator argument
# and ``e = exp(-2q)`` every family shares the free-diffusion image
#
#     G(s, q) = 1/s - (1 - e) / (2 s q)
#
# and its q-derivative numerator ``1 - (1 + 2q) e``.
#
# Nothing here raises on degenerate input, NaN and Inf propagate as usual.


# HELPERS ===============================================================================

def _as_complex(s):
    return np.asarray(s, dtype=np.complex128)


def _free_diffusion(s, q, e):
    return 1.0 / s - (1.0 - e) / (2.0 * s * q)


def _slope(q, e):
    return 1.0 - (1.0 + 2.0 * q) * e


# FULL MODEL ============================================================================

def full_model(s, kon, koff, Df, R):
    """Full reaction-diffusion coupling over the activation region.

    The free fraction diffuses with an effective rate that depends on the
    binding kinetics, ``q = sqrt(R^2 s (1 + kon/(s + koff)) / Df)``, while the
    bound fraction ``kon/(kon + koff)`` decays with ``koff``.

    Parameters
    ----------
    s : complex or array_like of complex
        Laplace frequency.
    kon, koff : float
        Pseudo first order binding and unbinding rates.
    Df : float
        Diffusion coefficient of the unbound species.
    R : float
        Half length of the activation region.

    Returns
    -------
    complex or np.ndarray
    """
    s = _as_complex(s)
    u = 1.0 + kon / (s + koff)
    q = np.sqrt(R * R * s * u / Df)
    e = np.exp(-2.0 * q)
    ratio = np.divide(kon, koff)
    free = 1.0 / (1.0 + ratio)
    bound = ratio / (1.0 + ratio)
    return free * u * _free_diffusion(s, q, e) + bound / (s + koff)


def full_model_kon(s, kon, koff, Df, R):
    """Partial derivative of :func:`full_model` with respect to ``kon``."""
    s = _as_complex(s)
    k = kon + koff
    p = s + koff
    q = np.sqrt(R * R * s * (1.0 + kon / p) / Df)
    e = np.exp(-2.0 * q)
    return koff * (k * _slope(q, e) + 2.0 * s * (1.0 - e)) / (4.0 * s * q * p * k * k)


def full_model_koff(s, kon, koff, Df, R):
    """Partial derivative of :func:`full_model` with respect to ``koff``."""
    s = _as_complex(s)
    k = kon + koff
    p = s + koff
    q = np.sqrt(R * R * s * (1.0 + kon / p) / Df)
    e = np.exp(-2.0 * q)
    numer = 2.0 * s * (p + k) * (1.0 - e) + koff * k * _slope(q, e)
    return -kon * numer / (4.0 * s * q * p * p * k * k)


# EFFECTIVE DIFFUSION ===================================================================

def effective_diffusion(s, x, Df, R):
    """Fast-reaction limit: free diffusion slowed down by ``1 + x``.

    Here ``x = kon/koff`` is the only fit parameter of the family.
    """
    s = _as_complex(s)
    q = np.sqrt(R * R * s * (1.0 + x) / Df)
    e = np.exp(-2.0 * q)
    return _free_diffusion(s, q, e)


def effective_diffusion_x(s, x, Df, R):
    """Partial derivative of :func:`effective_diffusion` with respect to ``x``."""
    s = _as_complex(s)
    q = np.sqrt(R * R * s * (1.0 + x) / Df)
    e = np.exp(-2.0 * q)
    return _slope(q, e) / (4.0 * s * (1.0 + x) * q)


# REACTION DOMINANT (PURE) ==============================================================

def reaction_dominant_pure(s, kon, koff, Df, R):
    """Reaction-limited regime.

    Diffusion of the free fraction ``koff/(kon + koff)`` is decoupled from the
    binding kinetics, the bound fraction decays with ``koff``.
    """
    s = _as_complex(s)
    k = kon + koff
    q = np.sqrt(R * R * s / Df)
    e = np.exp(-2.0 * q)
    return koff * _free_diffusion(s, q, e) / k + kon / (k * (s + koff))


def reaction_dominant_pure_kon(s, kon, koff, Df, R):
    s = _as_complex(s)
    k = kon + koff
    q = np.sqrt(R * R * s / Df)
    e = np.exp(-2.0 * q)
    return koff * (1.0 / (s + koff) - _free_diffusion(s, q, e)) / (k * k)


def reaction_dominant_pure_koff(s, kon, koff, Df, R):
    s = _as_complex(s)
    k = kon + koff
    p = s + koff
    q = np.sqrt(R * R * s / Df)
    e = np.exp(-2.0 * q)
    return kon * (_free_diffusion(s, q, e) - (p + k) / (p * p)) / (k * k)


# HYBRID MODEL ==========================================================================

def hybrid_model(s, kon, koff, Df, R):
    """Diffusion rate scaled by the bound/unbound partition.

    ``q = sqrt(R^2 kon s / (Df (s + koff)))``
    """
    s = _as_complex(s)
    p = s + koff
    q = np.sqrt(R * R * kon * s / Df / p)
    e = np.exp(-2.0 * q)
    return (koff / p) * _free_diffusion(s, q, e) + 1.0 / p


def hybrid_model_kon(s, kon, koff, Df, R):
    s = _as_complex(s)
    p = s + koff
    q = np.sqrt(R * R * kon * s / Df / p)
    e = np.exp(-2.0 * q)
    return koff * _slope(q, e) / (4.0 * s * q * kon * p)


def hybrid_model_koff(s, kon, koff, Df, R):
    s = _as_complex(s)
    p = s + koff
    q = np.sqrt(R * R * kon * s / Df / p)
    e = np.exp(-2.0 * q)
    numer = (koff + 2.0 * s) * (1.0 - e) - 2.0 * koff * q * e
    return -numer / (4.0 * s * q * p * p)
