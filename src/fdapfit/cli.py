#########################################################################################
##
##                             COMMAND LINE FRONT END
##                                     (cli.py)
##
##      fdapfit -m fullModel -i curve.dat -sd curve_sd.dat -o tau441wt
##
#########################################################################################

# IMPORTS ===============================================================================

from __future__ import annotations

import argparse
import logging
import math

from .errors import ConfigurationError
from .inversion.bromwich import invert_transform
from .io import load_observation, write_best_fit, write_parameters
from .models.parameters import (
    DEFAULT_DF,
    DEFAULT_KOFF,
    DEFAULT_KON,
    DEFAULT_R,
    ParameterVector,
    PhysicalConstants,
)
from .models.registry import ModelRegime, Selector
from .opt.fitting import build_report, fit_model
from .utils.logger import LoggerManager


LOGGER = LoggerManager().get_logger("cli")

DEFAULT_T_INI = 0.0
DEFAULT_T_END = 112.0
DEFAULT_N = 113


# ARGUMENTS =============================================================================

def _finite_float(text: str) -> float:
    value = float(text)
    if not math.isfinite(value):
        raise argparse.ArgumentTypeError(f"must be finite, got {text}")
    return value


def _positive_float(text: str) -> float:
    value = _finite_float(text)
    if value <= 0.0:
        raise argparse.ArgumentTypeError(f"must be > 0, got {text}")
    return value


def _non_negative_float(text: str) -> float:
    value = _finite_float(text)
    if value < 0.0:
        raise argparse.ArgumentTypeError(f"must be >= 0, got {text}")
    return value


def _sample_count(text: str) -> int:
    value = int(text)
    if value < 3:
        raise argparse.ArgumentTypeError(f"a curve needs at least 3 points, got {text}")
    return value


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fdapfit",
        description="Fit kon and koff of a reaction-diffusion model to an FDAP curve.",
        allow_abbrev=False,
    )
    parser.add_argument(
        "-m", "--model", required=True,
        help="reaction-diffusion model: fullModel, hybridModel, reactionDominantPure",
    )
    parser.add_argument(
        "-d", "--diffusion", type=_positive_float, default=DEFAULT_DF,
        help=f"diffusion constant of unbound proteins (default: {DEFAULT_DF} um2/s)",
    )
    parser.add_argument(
        "-r2", "--half-length", dest="half_length", type=_positive_float, default=DEFAULT_R,
        help=f"half length of the activation area (default: {DEFAULT_R} um)",
    )
    parser.add_argument(
        "-tini", "--t-ini", dest="t_ini", type=_non_negative_float, default=DEFAULT_T_INI,
        help=f"initial time of the curve (default: {DEFAULT_T_INI} s)",
    )
    parser.add_argument(
        "-tend", "--t-end", dest="t_end", type=_finite_float, default=DEFAULT_T_END,
        help=f"end time of the curve (default: {DEFAULT_T_END} s)",
    )
    parser.add_argument(
        "-n", "--numsteps", type=_sample_count, default=DEFAULT_N,
        help=f"number of points in the curve (default: {DEFAULT_N})",
    )
    parser.add_argument(
        "-kon0", "--kon0", type=_non_negative_float, default=DEFAULT_KON,
        help=f"starting value for kon (default: {DEFAULT_KON})",
    )
    parser.add_argument(
        "-koff0", "--koff0", type=_non_negative_float, default=DEFAULT_KOFF,
        help=f"starting value for koff (default: {DEFAULT_KOFF})",
    )
    parser.add_argument("-i", "--input", required=True, help="input curve file")
    parser.add_argument("-sd", "--sd", required=True, help="input standard deviation file")
    parser.add_argument(
        "-o", "--output", required=True,
        help="output prefix, writes '<prefix>_best_fit.dat' and '<prefix>_fit_parameters.dat'",
    )
    parser.add_argument(
        "-q", "--quiet", action="store_true",
        help="do not log the solver iterations",
    )
    return parser


# MAIN ==================================================================================

def main(argv=None) -> int:
    parser = _build_arg_parser()
    args = parser.parse_args(argv)

    if args.t_end <= args.t_ini:
        parser.error(f"t_end ({args.t_end}) must be greater than t_ini ({args.t_ini})")

    LoggerManager().configure(
        enabled=True,
        level=logging.WARNING if args.quiet else logging.INFO,
        format="%(message)s",
    )

    try:
        regime = ModelRegime.from_name(args.model)
        if not regime.is_fittable:
            raise ConfigurationError(f"'{regime.value}' model is not supported so far")
    except ConfigurationError as exc:
        LOGGER.error("ERROR: %s", exc)
        return 1

    constants = PhysicalConstants(Df=args.diffusion, R=args.half_length)

    try:
        observation = load_observation(args.input, args.sd, args.t_ini, args.t_end, args.numsteps)
    except (OSError, ValueError) as exc:
        LOGGER.error("ERROR: %s", exc)
        return 1

    result = fit_model(
        regime, constants, ParameterVector(args.kon0, args.koff0), observation,
    )
    report = build_report(result)
    report.display()

    best_fit = invert_transform(
        regime, Selector.VALUE, observation.time, result.parameters, constants,
    )
    write_best_fit(f"{args.output}_best_fit.dat", best_fit)
    write_parameters(f"{args.output}_fit_parameters.dat", report)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
