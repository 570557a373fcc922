"""Tests for the ready-made term structures."""

import numpy as np
import pytest

from autocall_engine.curves import BlackVarianceSurface, ConstantVol, FlatCurve, ZeroCurve
from autocall_engine.errors import ConfigurationError, DomainError


class TestYieldCurves:
    def test_flat_discount(self):
        """Flat curve discounts at exp(-r t)."""
        curve = FlatCurve(0.03)
        assert curve.discount(2.0) == pytest.approx(np.exp(-0.06), rel=1e-14)
        assert curve.discount(0.0) == 1.0

    def test_flat_forward_equals_rate(self):
        assert FlatCurve(0.025).forward_rate(1.0, 1.5) == pytest.approx(0.025, rel=1e-12)

    def test_zero_curve_interpolates_linearly(self):
        curve = ZeroCurve([1.0, 3.0], [0.01, 0.03])
        assert float(curve.zero_rate(2.0)) == pytest.approx(0.02)
        # Flat before the first pillar
        assert float(curve.zero_rate(0.5)) == pytest.approx(0.01)

    def test_zero_curve_forward_rate(self):
        curve = ZeroCurve([1.0, 2.0], [0.01, 0.02])
        # r(2)*2 - r(1)*1 over one year
        assert curve.forward_rate(1.0, 2.0) == pytest.approx(0.03, rel=1e-12)

    def test_zero_curve_beyond_last_pillar_raises(self):
        curve = ZeroCurve([1.0, 2.0], [0.01, 0.02])
        with pytest.raises(DomainError, match="beyond"):
            curve.discount(2.5)

    def test_zero_curve_extrapolation_allowed(self):
        curve = ZeroCurve([1.0, 2.0], [0.01, 0.02], allow_extrapolation=True)
        assert curve.discount(10.0) == pytest.approx(np.exp(-0.2))

    def test_negative_time_raises(self):
        with pytest.raises(DomainError):
            FlatCurve(0.01).discount(-0.1)

    def test_empty_forward_period_raises(self):
        with pytest.raises(DomainError):
            FlatCurve(0.01).forward_rate(1.0, 1.0)

    def test_invalid_pillars(self):
        with pytest.raises(ConfigurationError):
            ZeroCurve([2.0, 1.0], [0.01, 0.02])


class TestVolatility:
    @pytest.fixture
    def surface(self):
        return BlackVarianceSurface(
            maturities=[1.0, 2.0],
            strikes=[10.0, 20.0],
            vols=[[0.30, 0.20], [0.30, 0.20]],
        )

    def test_constant_vol(self):
        assert ConstantVol(0.2).black_vol(3.0, 100.0) == 0.2

    def test_negative_constant_vol_rejected(self):
        with pytest.raises(ConfigurationError):
            ConstantVol(-0.1)

    def test_surface_on_node(self, surface):
        assert surface.black_vol(1.0, 10.0) == pytest.approx(0.30)
        assert surface.black_vol(2.0, 20.0) == pytest.approx(0.20)

    def test_surface_interpolates_total_variance(self, surface):
        """Midway in strike, total variance is the average of the neighbours."""
        expected = np.sqrt((0.30**2 + 0.20**2) / 2.0)
        assert surface.black_vol(1.0, 15.0) == pytest.approx(expected)

    def test_surface_before_first_expiry(self, surface):
        """Variance scales linearly from zero, so the vol stays flat."""
        assert surface.black_vol(0.5, 10.0) == pytest.approx(0.30)

    @pytest.mark.parametrize("t, strike", [(2.5, 15.0), (1.0, 5.0), (1.0, 25.0), (0.0, 15.0)])
    def test_surface_outside_domain(self, surface, t, strike):
        with pytest.raises(DomainError):
            surface.black_vol(t, strike)

    def test_surface_shape_mismatch(self):
        with pytest.raises(ConfigurationError, match="shape"):
            BlackVarianceSurface([1.0, 2.0], [10.0, 20.0], [[0.2, 0.2]])
