#########################################################################################
##
##                          READING CURVES, WRITING FIT RESULTS
##                                      (io.py)
##
#########################################################################################

# IMPORTS ===============================================================================

from __future__ import annotations

import os

import numpy as np

from .opt.fitting import FitReport
from .opt.observation import Observation


# READING ===============================================================================

def _read_values(path: str | os.PathLike, n: int, what: str) -> np.ndarray:
    values = np.loadtxt(path, dtype=float, ndmin=1).reshape(-1)
    if values.size < n:
        raise ValueError(f"{what} file '{path}' holds {values.size} values, expected {n}")
    return values[:n]


def load_observation(
    curve_path: str | os.PathLike,
    sd_path: str | os.PathLike,
    t_ini: float,
    t_end: float,
    n: int,
    name: str | None = None,
) -> Observation:
    """Read an FDAP curve and its standard deviations.

    Both files hold whitespace separated numbers; the first ``n`` of each are
    used. Sample times are evenly spaced over ``[t_ini, t_end]``, a first
    sample at ``t = 0`` is moved to ``0.01``.

    Parameters
    ----------
    curve_path : path
        File with the measured curve.
    sd_path : path
        File with the standard deviation of every sample.
    t_ini, t_end : float
        Time range of the curve.
    n : int
        Number of samples.
    name : str, optional
        Curve name, defaults to the curve file name.

    Returns
    -------
    Observation
    """
    value = _read_values(curve_path, n, "curve")
    sigma = _read_values(sd_path, n, "SD")
    if name is None:
        name = os.path.splitext(os.path.basename(os.fspath(curve_path)))[0]
    return Observation.from_range(value, sigma, t_ini, t_end, name=name)


# WRITING ===============================================================================

def write_best_fit(path: str | os.PathLike, values: np.ndarray) -> None:
    """Write the best-fit curve, one value per line."""
    np.savetxt(path, np.asarray(values, dtype=float).reshape(-1), fmt="%f")


def write_parameters(path: str | os.PathLike, report: FitReport) -> None:
    """Write the report values as ``name value error`` lines."""
    rows = [
        ("kon", report.kon, report.kon_error),
        ("koff", report.koff, report.koff_error),
        ("bound", report.bound, report.bound_error),
    ]
    with open(path, "w") as fh:
        fh.write(f"# model {report.regime.value}\n")
        for name, value, error in rows:
            fh.write(f"{name} {value:.5f} {error:.5f}\n")
        fh.write(f"chisq_dof {report.chi_square_reduced:g}\n")
        fh.write(f"iterations {report.iterations}\n")
        fh.write(f"status {report.status.value}\n")
