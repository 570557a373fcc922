"""Tests for random streams and the multi-factor path generator."""

import numpy as np
import pytest

from autocall_engine.base import TimeGrid
from autocall_engine.errors import ConfigurationError
from autocall_engine.generator import PathGenerator
from autocall_engine.random_streams import PseudoRandomStream, SobolStream
from autocall_engine.sde import DEFAULT_HESTON, HestonParams, HestonProcess, LognormalProcess


def make_generator(process, steps=50, end=2.0, seed=42, batch_size=16, stream_type=PseudoRandomStream):
    grid = TimeGrid.regular(end, steps)
    stream = stream_type(process.factors * grid.steps, seed)
    return PathGenerator(process, grid, stream, batch_size=batch_size)


@pytest.fixture
def lognormal(standard_market):
    return LognormalProcess(standard_market, maturity=2.0, strike=15.0)


@pytest.fixture
def heston(standard_market):
    return HestonProcess(standard_market, HestonParams(v0=0.04, kappa=2.0, theta=0.04, sigma=0.3, rho=-0.7))


class TestRandomStreams:
    def test_block_shape(self):
        assert PseudoRandomStream(7, seed=1).next_block(5).shape == (5, 7)

    def test_blocks_are_sequential(self):
        """Drawing 4 then 6 vectors equals drawing 10 at once."""
        a = PseudoRandomStream(3, seed=9)
        b = PseudoRandomStream(3, seed=9)
        chunked = np.vstack([a.next_block(4), a.next_block(6)])
        np.testing.assert_array_equal(chunked, b.next_block(10))

    def test_sobol_is_deterministic_and_finite(self):
        a = SobolStream(6, seed=3).next_block(64)
        b = SobolStream(6, seed=3).next_block(64)
        np.testing.assert_array_equal(a, b)
        assert np.all(np.isfinite(a))

    def test_sobol_dimension_limit(self):
        with pytest.raises(ConfigurationError, match="Sobol"):
            SobolStream(SobolStream.MAX_DIMENSION + 1, seed=0)

    def test_invalid_dimension(self):
        with pytest.raises(ConfigurationError):
            PseudoRandomStream(0)


class TestPathGenerator:
    def test_path_layout(self, lognormal, standard_market):
        path = make_generator(lognormal).next()
        assert len(path) == 51
        assert path.levels[0] == pytest.approx(standard_market.spot)
        assert path.times[-1] == 2.0
        assert path.variances is None

    def test_heston_path_has_variance(self, heston):
        path = make_generator(heston).next()
        assert path.variances is not None
        assert path.variances[0] == 0.04
        assert len(path.variances) == len(path.levels)

    @pytest.mark.parametrize("kind", ["lognormal", "heston"])
    def test_same_seed_same_paths(self, request, kind):
        process = request.getfixturevalue(kind)
        a = make_generator(process, seed=7)
        b = make_generator(process, seed=7)
        for _ in range(40):
            np.testing.assert_array_equal(a.next().levels, b.next().levels)

    def test_different_seed_different_paths(self, lognormal):
        a = make_generator(lognormal, seed=1).next()
        b = make_generator(lognormal, seed=2).next()
        assert not np.array_equal(a.levels, b.levels)

    def test_batch_size_does_not_change_sequence(self, heston):
        small = make_generator(heston, batch_size=3)
        large = make_generator(heston, batch_size=64)
        for _ in range(10):
            p, q = small.next(), large.next()
            np.testing.assert_array_equal(p.levels, q.levels)
            np.testing.assert_array_equal(p.variances, q.variances)

    def test_draw_count_scales_with_factors(self, lognormal, heston):
        """Heston consumes factors x steps variates per path."""
        grid = TimeGrid.regular(2.0, 50)
        with pytest.raises(ConfigurationError, match="factors x steps"):
            PathGenerator(heston, grid, PseudoRandomStream(50, seed=1))
        PathGenerator(heston, grid, PseudoRandomStream(100, seed=1))
        PathGenerator(lognormal, grid, PseudoRandomStream(50, seed=1))

    def test_first_path_uses_first_draws(self, lognormal):
        """The path is the Euler recursion on the first stream vector."""
        steps, end = 10, 1.0
        path = make_generator(lognormal, steps=steps, end=end, seed=5).next()

        z = PseudoRandomStream(steps, seed=5).next_block(1)[0]
        dt = end / steps
        mu = 0.01 - 0.03 - 0.5 * 0.25**2
        log_levels = np.log(15.35) + np.cumsum(mu * dt + 0.25 * np.sqrt(dt) * z)
        np.testing.assert_allclose(path.levels[1:], np.exp(log_levels), rtol=1e-10)

    def test_iterator_protocol(self, lognormal):
        generator = make_generator(lognormal)
        paths = [p for _, p in zip(range(20), generator)]
        assert len(paths) == 20

    def test_antithetic_mirrors_shocks(self, lognormal):
        """log S + log S_mirror = 2 (log S0 + deterministic drift)."""
        generator = make_generator(lognormal, batch_size=4)
        for _ in range(6):
            path = generator.next()
            mirror = generator.antithetic()
            mu = 0.01 - 0.03 - 0.5 * 0.25**2
            expected = 2.0 * (np.log(15.35) + mu * path.times)
            np.testing.assert_allclose(np.log(path.levels) + np.log(mirror.levels), expected, rtol=1e-10)

    def test_antithetic_before_next(self, lognormal):
        with pytest.raises(RuntimeError):
            make_generator(lognormal).antithetic()

    def test_sobol_stream(self, lognormal):
        a = make_generator(lognormal, stream_type=SobolStream, batch_size=8, seed=11)
        b = make_generator(lognormal, stream_type=SobolStream, batch_size=8, seed=11)
        np.testing.assert_array_equal(a.next().levels, b.next().levels)


class TestVarianceFloor:
    def test_variance_never_negative(self, standard_market):
        """Feller-violating parameters hit the floor but never go below it."""
        with pytest.warns(UserWarning, match="Feller"):
            process = HestonProcess(standard_market, DEFAULT_HESTON)
        generator = make_generator(process, steps=100, end=4.0, batch_size=50)

        variances = np.array([generator.next().variances for _ in range(200)])
        assert np.all(variances >= 0.0)
        assert np.any(variances == 0.0)

    def test_levels_stay_finite_and_positive(self, standard_market):
        with pytest.warns(UserWarning):
            process = HestonProcess(standard_market, DEFAULT_HESTON)
        generator = make_generator(process, steps=100, end=4.0, batch_size=50)

        levels = np.array([generator.next().levels for _ in range(200)])
        assert np.all(np.isfinite(levels))
        assert np.all(levels > 0.0)
