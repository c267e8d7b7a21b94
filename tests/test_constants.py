"""Tests for the ZH-L16C tables, gradient factors and tissue loading helpers."""

import math

import numpy as np
import pytest

from divecomputer.constants import (
    SEALEVEL_PRESSURE,
    WATER_VAPOR_PRESSURE,
    ZH_L16C_HE_A,
    ZH_L16C_HE_B,
    ZH_L16C_N2_A,
    ZH_L16C_N2_B,
    ZH_L16C_N2_HALFTIMES,
    GradientFactors,
    alveolar_pressure,
    ceiling_pressure_gf,
    combined_coefficients,
    haldane_vec,
    m_value_gf,
    schreiner_vec,
    surface_pressure_at,
)

K = np.log(2) / np.array(ZH_L16C_N2_HALFTIMES)


class TestTables:
    """Sanity checks on the compartment tables."""

    def test_sixteen_compartments(self):
        """All coefficient tuples cover the same 16 compartments."""
        for table in (ZH_L16C_N2_A, ZH_L16C_N2_B, ZH_L16C_HE_A, ZH_L16C_HE_B, ZH_L16C_N2_HALFTIMES):
            assert len(table) == 16

    def test_halftimes_increase(self):
        """Compartments are ordered fast to slow."""
        assert list(ZH_L16C_N2_HALFTIMES) == sorted(ZH_L16C_N2_HALFTIMES)


class TestAlveolarPressure:
    """Verify ventilation formula against hand-computed values."""

    def test_air_at_surface(self):
        """N2 alveolar pressure in air at sea level."""
        result = alveolar_pressure(SEALEVEL_PRESSURE, 0.79)
        assert abs(result - (1.013 - WATER_VAPOR_PRESSURE) * 0.79) < 1e-10
        assert abs(result - 0.7507) < 0.001

    def test_zero_fraction(self):
        """Zero gas fraction gives zero alveolar pressure."""
        assert alveolar_pressure(4.0, 0.0) == 0.0


class TestSurfacePressure:
    def test_sea_level(self):
        assert surface_pressure_at(0) == pytest.approx(SEALEVEL_PRESSURE)

    def test_altitude_lowers_pressure(self):
        """Barometric formula with a 7800 m scale height."""
        assert surface_pressure_at(1000) == pytest.approx(1.013 * math.exp(-1000 / 7800))

    def test_negative_altitude_clamps(self):
        assert surface_pressure_at(-200) == pytest.approx(SEALEVEL_PRESSURE)


class TestSchreinerEquation:
    """Schreiner and Haldane equations across all compartments."""

    def test_zero_rate_matches_haldane(self):
        """With no pressure change Schreiner reduces to Haldane."""
        pt0 = np.full(16, 0.75)
        np.testing.assert_allclose(
            schreiner_vec(pt0, 2.2, 0.0, 10.0, K),
            haldane_vec(pt0, 2.2, 10.0, K),
        )

    def test_zero_time_is_identity(self):
        pt0 = np.linspace(0.7, 1.5, 16)
        np.testing.assert_allclose(schreiner_vec(pt0, 2.0, 1.5, 0.0, K), pt0)

    def test_haldane_half_time(self):
        """After one half-time a compartment covers half the gradient."""
        pt0 = np.zeros(16)
        result = haldane_vec(pt0, 1.0, ZH_L16C_N2_HALFTIMES[0], K)
        assert result[0] == pytest.approx(0.5)

    def test_descent_loads_less_than_instant_step(self):
        """Ramping to depth loads less than arriving there instantly."""
        pt0 = np.full(16, 0.75)
        palv_surface = alveolar_pressure(1.013, 0.79)
        palv_bottom = alveolar_pressure(4.0, 0.79)
        rate = (palv_bottom - palv_surface) / 2.0
        ramp = schreiner_vec(pt0, palv_surface, rate, 2.0, K)
        step = haldane_vec(pt0, palv_bottom, 2.0, K)
        assert np.all(ramp < step)
        assert np.all(ramp > pt0)


class TestCeiling:
    def test_full_gf_matches_buhlmann(self):
        """At gf=1.0 the ceiling is the plain Bühlmann tolerated pressure."""
        load = np.full(16, 2.0)
        a = np.array(ZH_L16C_N2_A)
        b = np.array(ZH_L16C_N2_B)
        expected = float(np.max((load - a) * b))
        assert ceiling_pressure_gf(load, a, b, 1.0) == pytest.approx(expected)

    def test_lower_gf_is_deeper(self):
        load = np.full(16, 2.0)
        a = np.array(ZH_L16C_N2_A)
        b = np.array(ZH_L16C_N2_B)
        assert ceiling_pressure_gf(load, a, b, 0.3) > ceiling_pressure_gf(load, a, b, 1.0)

    def test_m_value_at_full_gf(self):
        a = np.array(ZH_L16C_N2_A)
        b = np.array(ZH_L16C_N2_B)
        np.testing.assert_allclose(m_value_gf(a, b, 2.0, 1.0), a + 2.0 / b)

    def test_m_value_at_zero_gf_is_ambient(self):
        a = np.array(ZH_L16C_N2_A)
        b = np.array(ZH_L16C_N2_B)
        np.testing.assert_allclose(m_value_gf(a, b, 2.0, 0.0), np.full(16, 2.0))


class TestCombinedCoefficients:
    def test_pure_nitrogen(self):
        a, b = combined_coefficients(np.full(16, 1.0), np.zeros(16))
        np.testing.assert_allclose(a, ZH_L16C_N2_A)
        np.testing.assert_allclose(b, ZH_L16C_N2_B)

    def test_pure_helium(self):
        a, b = combined_coefficients(np.zeros(16), np.full(16, 1.0))
        np.testing.assert_allclose(a, ZH_L16C_HE_A)
        np.testing.assert_allclose(b, ZH_L16C_HE_B)

    def test_weighted_by_load(self):
        """Equal loads give the mean of the two coefficient sets."""
        a, _ = combined_coefficients(np.full(16, 1.0), np.full(16, 1.0))
        expected = (np.array(ZH_L16C_N2_A) + np.array(ZH_L16C_HE_A)) / 2
        np.testing.assert_allclose(a, expected)

    def test_empty_tissue_defaults_to_nitrogen(self):
        a, b = combined_coefficients(np.zeros(16), np.zeros(16))
        np.testing.assert_allclose(a, ZH_L16C_N2_A)
        np.testing.assert_allclose(b, ZH_L16C_N2_B)


class TestGradientFactors:
    """Validation of gradient factor pairs."""

    def test_valid(self):
        gf = GradientFactors(0.3, 0.85)
        assert gf.gf_low == 0.3
        assert gf.gf_high == 0.85

    def test_description(self):
        assert GradientFactors(0.3, 0.85).description == "GF 30/85"
        assert GradientFactors(0.4, 1.0).description == "GF 40/100"

    def test_gf_low_too_high(self):
        with pytest.raises(ValueError, match="gf_low"):
            GradientFactors(0.95, 1.0)

    def test_gf_high_above_one(self):
        with pytest.raises(ValueError, match="gf_high"):
            GradientFactors(0.3, 1.1)

    def test_gf_high_zero(self):
        with pytest.raises(ValueError):
            GradientFactors(0.0, 0.0)

    def test_low_above_high(self):
        with pytest.raises(ValueError, match="must be <="):
            GradientFactors(0.8, 0.7)

    def test_frozen(self):
        gf = GradientFactors(0.3, 0.85)
        with pytest.raises(AttributeError):
            gf.gf_low = 0.5
