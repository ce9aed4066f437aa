"""Tests for noise fields."""

import numpy as np
import pytest

from py_hexplanet.core.icosphere import generate_icosphere
from py_hexplanet.core.noise import (
    CellularReturn,
    DomainWarpOptions,
    FractalType,
    NoiseField,
    NoiseOptions,
    NoiseType,
)
from py_hexplanet.errors import ConfigurationError


class TestNoiseOptions:
    """Test option coercion and validation."""

    def test_string_values_coerced(self):
        options = NoiseOptions(noise_type="cellular", fractal_type="ridged")
        assert options.noise_type == NoiseType.CELLULAR
        assert options.fractal_type == FractalType.RIDGED

    def test_unknown_noise_type(self):
        with pytest.raises(ConfigurationError):
            NoiseOptions(noise_type="worley")

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"frequency": 0.0},
            {"octaves": 0},
            {"lacunarity": -1.0},
            {"gain": -0.5},
            {"cellular_jitter": 1.5},
        ],
    )
    def test_invalid_values(self, kwargs):
        with pytest.raises(ConfigurationError):
            NoiseField(1, NoiseOptions(**kwargs))

    def test_domain_warp_from_dict(self):
        options = NoiseOptions(domain_warp={"enabled": True, "amplitude": 0.1})
        assert isinstance(options.domain_warp, DomainWarpOptions)
        assert options.domain_warp.enabled


class TestGeneratorConfiguration:
    """Test that options reach the FastNoiseLite state."""

    def test_fractal_settings(self):
        options = NoiseOptions(octaves=4, lacunarity=3.0, gain=0.25, frequency=2.0)
        generator = NoiseField(11, options).generator

        assert generator.fractal_octaves == 4
        assert generator.fractal_lacunarity == pytest.approx(3.0)
        assert generator.fractal_gain == pytest.approx(0.25)
        assert generator.frequency == pytest.approx(2.0)

    def test_warp_generators_only_when_enabled(self):
        assert NoiseField(1).warp_generators == []
        warped = NoiseField(1, NoiseOptions(domain_warp=DomainWarpOptions(enabled=True)))
        assert len(warped.warp_generators) == 3

    def test_extreme_seed_wraps(self):
        positions = generate_icosphere(0).vertices
        values = NoiseField(2 ** 31 - 1, NoiseOptions(domain_warp={"enabled": True})).sample(positions)
        assert np.all(np.isfinite(values))


class TestNoiseField:
    """Test noise sampling."""

    @pytest.fixture
    def positions(self):
        return generate_icosphere(2).vertices

    @pytest.mark.parametrize("noise_type", list(NoiseType))
    def test_deterministic(self, positions, noise_type):
        options = NoiseOptions(noise_type=noise_type, octaves=3)
        values1 = NoiseField(42, options).sample(positions)
        values2 = NoiseField(42, options).sample(positions)
        np.testing.assert_array_equal(values1, values2)

    @pytest.mark.parametrize("noise_type", ["simplex", "value", "cellular"])
    def test_seed_changes_output(self, positions, noise_type):
        options = NoiseOptions(noise_type=noise_type, octaves=3)
        values1 = NoiseField(1, options).sample(positions)
        values2 = NoiseField(2, options).sample(positions)
        assert not np.allclose(values1, values2)

    @pytest.mark.parametrize("fractal_type", list(FractalType))
    def test_value_noise_bounded(self, positions, fractal_type):
        options = NoiseOptions(noise_type="value", fractal_type=fractal_type, octaves=4)
        values = NoiseField(7, options).sample(positions)
        assert values.shape == (len(positions),)
        assert values.dtype == np.float64
        assert np.all(np.abs(values) <= 1.0 + 1e-5)

    def test_simplex_finite(self, positions):
        values = NoiseField(7).sample(positions)
        assert np.all(np.isfinite(values))
        assert np.all(np.abs(values) <= 1.5)
        assert values.std() > 0

    @pytest.mark.parametrize("cellular_return", list(CellularReturn))
    def test_cellular_returns(self, positions, cellular_return):
        options = NoiseOptions(
            noise_type="cellular",
            fractal_type="ping_pong",
            cellular_distance="hybrid",
            cellular_return=cellular_return,
        )
        values = NoiseField(3, options).sample(positions)
        assert np.all(np.isfinite(values))

    def test_call_matches_sample(self, positions):
        field = NoiseField(5, NoiseOptions(noise_type="value"))
        assert field(positions[3]) == pytest.approx(field.sample(positions)[3])

    def test_domain_warp_changes_output(self, positions):
        plain = NoiseField(9, NoiseOptions(octaves=2)).sample(positions)
        warped = NoiseField(
            9, NoiseOptions(octaves=2, domain_warp=DomainWarpOptions(enabled=True, amplitude=0.5))
        ).sample(positions)
        assert not np.allclose(plain, warped)

    def test_offset_shifts_field(self, positions):
        options = NoiseOptions(noise_type="value", offset=(0.25, 0.0, 0.0))
        shifted = NoiseField(4, options).sample(positions)
        manual = NoiseField(4, NoiseOptions(noise_type="value")).sample(
            positions + np.array([0.25, 0.0, 0.0])
        )
        np.testing.assert_allclose(shifted, manual)

    def test_large_point_set(self):
        """Sampling is vectorised, a level-5 sphere is a single call."""
        positions = generate_icosphere(5).vertices
        values = NoiseField(13, NoiseOptions(noise_type="cellular")).sample(positions)
        assert values.shape == (10242,)

    def test_empty_positions(self):
        assert len(NoiseField(1).sample(np.zeros((0, 3)))) == 0
