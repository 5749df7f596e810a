########################################################################################
##
##                                  TESTS FOR
##                             'inversion/bromwich.py'
##
########################################################################################

# IMPORTS ==============================================================================

import unittest
import warnings

import numpy as np
import pytest
from scipy.special import erf

from fdapfit.errors import ConfigurationError
from fdapfit.inversion import (
    DEFAULT_INVERSION,
    InversionConfig,
    LaplaceInverter,
    invert_laplace,
    invert_transform,
)
from fdapfit.inversion import bromwich
from fdapfit.models import ModelRegime, ParameterVector, PhysicalConstants, Selector


# HELPERS ==============================================================================

T = np.linspace(1.0, 20.0, 20)


# TESTS ================================================================================

class TestInversionConfig(unittest.TestCase):

    def test_defaults(self):
        cfg = InversionConfig()
        self.assertEqual(cfg.sigma, 0.05)
        self.assertEqual(cfg.omega, 200.0)
        self.assertEqual(cfg.n_int, 10000)
        self.assertEqual(DEFAULT_INVERSION, cfg)

    def test_grid(self):
        cfg = InversionConfig(sigma=0.1, omega=10.0, n_int=500)
        self.assertAlmostEqual(cfg.delta, 0.02)
        self.assertEqual(cfg.frequencies.size, 501)
        self.assertAlmostEqual(cfg.frequencies[-1], 10.0)
        self.assertAlmostEqual(cfg.weights.sum(), 10.0)
        np.testing.assert_allclose(cfg.contour.real, 0.1)

    def test_invalid_omega(self):
        with self.assertRaises(ValueError):
            InversionConfig(omega=0.0)

    def test_invalid_n_int(self):
        with self.assertRaises(ValueError):
            InversionConfig(n_int=0)
        with self.assertRaises(ValueError):
            InversionConfig(n_int=2.5)

    def test_invalid_sigma(self):
        with self.assertRaises(ValueError):
            InversionConfig(sigma=float("nan"))

    def test_coarse_grid_warns(self):
        with self.assertWarns(UserWarning):
            InversionConfig(omega=200.0, n_int=1000)

    def test_recommended_grid_does_not_warn(self):
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            InversionConfig(omega=100.0, n_int=5000)


class TestKnownInverses(unittest.TestCase):
    """Transforms with closed-form inverses."""

    def test_unit_step(self):
        y = invert_laplace(lambda s: 1.0 / s, T)
        np.testing.assert_allclose(y, 1.0, atol=1e-2)

    def test_exponential_decay(self):
        y = invert_laplace(lambda s: 1.0 / (s + 0.5), T)
        np.testing.assert_allclose(y, np.exp(-0.5 * T), atol=1e-2)

    def test_ramp(self):
        y = invert_laplace(lambda s: 1.0 / s ** 2, T)
        np.testing.assert_allclose(y, T, atol=1e-2)

    def test_accuracy_improves_with_omega(self):
        t = np.array([1.0, 2.0])
        coarse = invert_laplace(lambda s: 1.0 / s, t, InversionConfig(omega=20.0, n_int=1000))
        fine = invert_laplace(lambda s: 1.0 / s, t, InversionConfig(omega=200.0, n_int=10000))
        self.assertTrue(np.all(np.abs(fine - 1.0) < np.abs(coarse - 1.0)))

    def test_linearity(self):
        f = lambda s: 1.0 / (s + 0.2)
        g = lambda s: 1.0 / (s + 1.5)
        lhs = invert_laplace(lambda s: 2.0 * f(s) - g(s), T)
        rhs = 2.0 * invert_laplace(f, T) - invert_laplace(g, T)
        np.testing.assert_allclose(lhs, rhs, atol=1e-10)


class TestLaplaceInverter(unittest.TestCase):

    def test_matches_functional_api(self):
        inv = LaplaceInverter(T)
        f = lambda s: 1.0 / (s + 0.3)
        np.testing.assert_allclose(inv.invert(f), invert_laplace(f, T), rtol=1e-12)
        self.assertEqual(len(inv), T.size)

    def test_blocked_kernel_matches_cached_kernel(self):
        f = lambda s: 1.0 / (s + 0.3)
        cached = LaplaceInverter(T)
        saved = bromwich._MAX_CACHED_KERNEL
        try:
            bromwich._MAX_CACHED_KERNEL = 0
            blocked = LaplaceInverter(T)
        finally:
            bromwich._MAX_CACHED_KERNEL = saved
        self.assertIsNone(blocked._kernel)
        np.testing.assert_allclose(blocked.invert(f), cached.invert(f), rtol=1e-10, atol=1e-12)

    def test_nan_propagates_silently(self):
        inv = LaplaceInverter(T[:3])
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            y = inv.invert(lambda s: np.full(s.shape, np.nan + 0j))
        self.assertTrue(np.all(np.isnan(y)))

    def test_constant_function_is_broadcast(self):
        inv = LaplaceInverter(T[:3])
        y = inv.invert(lambda s: 0.0)
        np.testing.assert_array_equal(y, 0.0)


class TestOutputShapes(unittest.TestCase):

    def test_scalar_time_gives_float(self):
        y = invert_laplace(lambda s: 1.0 / s, 2.0)
        self.assertIsInstance(y, float)

    def test_array_shape_preserved(self):
        t = np.linspace(1.0, 6.0, 6).reshape(2, 3)
        y = invert_laplace(lambda s: 1.0 / s, t)
        self.assertEqual(y.shape, (2, 3))


# ═══════════════════════════════════════════════════════════════════════════
# invert_transform
# ═══════════════════════════════════════════════════════════════════════════

CONSTANTS = PhysicalConstants(Df=11.0, R=3.0)
PARAMS = ParameterVector(kon=0.6, koff=0.4)


class TestInvertTransform:

    @pytest.mark.parametrize("regime", [
        ModelRegime.FULL_MODEL,
        ModelRegime.HYBRID_MODEL,
        ModelRegime.REACTION_DOMINANT_PURE,
    ])
    def test_curve_decays_from_one(self, regime):
        t = np.array([1.0, 5.0, 20.0, 100.0])
        y = invert_transform(regime, Selector.VALUE, t, PARAMS, CONSTANTS)
        assert np.all(y < 1.05)
        assert np.all(y > -0.05)
        assert y[0] > y[-1]

    def test_rdp_matches_closed_form(self):
        # free diffusion out of [-R, R] plus exponential unbinding of the bound fraction
        t = np.linspace(1.0, 20.0, 12)
        b = CONSTANTS.R / np.sqrt(CONSTANTS.Df * t)
        free = erf(b) - (1.0 - np.exp(-b ** 2)) / (b * np.sqrt(np.pi))
        kon, koff = PARAMS.kon, PARAMS.koff
        expected = (koff * free + kon * np.exp(-koff * t)) / (kon + koff)
        y = invert_transform(ModelRegime.REACTION_DOMINANT_PURE, 0, t, PARAMS, CONSTANTS)
        np.testing.assert_allclose(y, expected, atol=1e-2)

    def test_accepts_sequence_parameters(self):
        a = invert_transform("fullModel", 0, 3.0, [0.6, 0.4], CONSTANTS)
        b = invert_transform(ModelRegime.FULL_MODEL, Selector.VALUE, 3.0, PARAMS, CONSTANTS)
        assert a == b

    def test_effective_diffusion_value_and_ratio_derivative(self):
        # free diffusion slowed down by 1 + kon/koff
        D_eff = CONSTANTS.Df / (1.0 + PARAMS.kon / PARAMS.koff)
        b = CONSTANTS.R / np.sqrt(D_eff * T)
        expected = erf(b) - (1.0 - np.exp(-b ** 2)) / (b * np.sqrt(np.pi))

        y = invert_transform(ModelRegime.EFFECTIVE_DIFFUSION, 0, T, PARAMS, CONSTANTS)
        dy = invert_transform(ModelRegime.EFFECTIVE_DIFFUSION, 1, T, PARAMS, CONSTANTS)
        np.testing.assert_allclose(y, expected, atol=1e-2)
        # a larger ratio slows the loss of fluorescence
        assert np.all(dy > 0.0)

    def test_effective_diffusion_koff_selector_rejected(self):
        with pytest.raises(ConfigurationError):
            invert_transform(ModelRegime.EFFECTIVE_DIFFUSION, 2, T, PARAMS, CONSTANTS)

    def test_selector_out_of_range_rejected(self):
        with pytest.raises(ConfigurationError):
            invert_transform(ModelRegime.FULL_MODEL, 3, T, PARAMS, CONSTANTS)

    def test_unknown_model_rejected(self):
        with pytest.raises(ConfigurationError):
            invert_transform("pureDiffusion", 0, T, PARAMS, CONSTANTS)

    def test_zero_koff_gives_non_finite_values(self):
        y = invert_transform(ModelRegime.FULL_MODEL, 0, T[:3], [0.6, 0.0], CONSTANTS)
        assert not np.all(np.isfinite(y))


# RUN TESTS LOCALLY ====================================================================

if __name__ == "__main__":
    unittest.main(verbosity=2)
