"""
Per-tile scalar channels.

The sampler evaluates injected scalar fields at each tile anchor and derives
the classification channels:

- height: raw field, min-max normalised over the current generation pass
- moisture: noise blended with a bias that dries out high ground
- temperature: latitude, elevation cooling and a little noise

Every channel handed to the classifier lies within [0, 1].
"""

from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Tuple

import numpy as np
import structlog

from ..errors import ConfigurationError
from ..utils.random import channel_seed
from .dual_tiles import Tile
from .noise import NoiseField, NoiseOptions

logger = structlog.get_logger()

HEIGHT = "height"
MOISTURE = "moisture"
TEMPERATURE = "temperature"
POPULATION = "population"

CORE_CHANNELS = (HEIGHT, MOISTURE, TEMPERATURE)


class ScalarField(Protocol):
    """Anything that maps (n, 3) positions to (n,) values deterministically."""

    def sample(self, positions: np.ndarray) -> np.ndarray:
        ...


class FunctionField:
    """Wraps a per-position callable as a ScalarField."""

    def __init__(self, func: Callable[[np.ndarray], float]):
        self.func = func

    def sample(self, positions: np.ndarray) -> np.ndarray:
        return np.array([self.func(p) for p in np.asarray(positions)], dtype=np.float64)


class ConstantField:
    """The same value everywhere."""

    def __init__(self, value: float):
        self.value = float(value)

    def sample(self, positions: np.ndarray) -> np.ndarray:
        return np.full(len(positions), self.value)


@dataclass
class FieldOptions:
    """
    Weights and elevation bands used to derive composite channels.

    By default raw moisture, temperature and extra-channel noise is remapped
    from [-1, 1] to [0, 1] before weighting, so a neutral field contributes
    0.5. With ``remap_raw_noise=False`` the raw values enter the weighted sums
    unchanged. Every channel is clamped to [0, 1] afterwards either way.
    """

    # Moisture = noise weight * noise + elevation weight * elevation bias
    moisture_noise_weight: float = 0.7
    moisture_elevation_weight: float = 0.3
    moisture_band: Tuple[float, float] = (0.4, 0.9)  # Bias falls 1 -> 0 across this height band

    # Temperature = latitude + elevation + noise terms
    temperature_latitude_weight: float = 0.6
    temperature_elevation_weight: float = 0.3
    temperature_noise_weight: float = 0.1
    temperature_band: Tuple[float, float] = (0.5, 1.0)

    polar_axis: Tuple[float, float, float] = (0.0, 1.0, 0.0)

    # Map raw noise from [-1, 1] to [0, 1] before weighting
    remap_raw_noise: bool = True

    def __post_init__(self):
        self.moisture_band = tuple(float(v) for v in self.moisture_band)
        self.temperature_band = tuple(float(v) for v in self.temperature_band)
        self.polar_axis = tuple(float(v) for v in self.polar_axis)

    def validate(self) -> None:
        for name in ("moisture_band", "temperature_band"):
            band = getattr(self, name)
            if len(band) != 2 or not band[0] < band[1]:
                raise ConfigurationError(f"{name} must be an increasing (low, high) pair, got {band}")

        weights = (
            self.moisture_noise_weight,
            self.moisture_elevation_weight,
            self.temperature_latitude_weight,
            self.temperature_elevation_weight,
            self.temperature_noise_weight,
        )
        if any(w < 0 for w in weights):
            raise ConfigurationError("Channel weights must be non-negative")

        if len(self.polar_axis) != 3 or np.linalg.norm(self.polar_axis) == 0:
            raise ConfigurationError(f"Polar axis must be a non-zero 3D vector, got {self.polar_axis}")


def clamp_unit(values: np.ndarray) -> np.ndarray:
    return np.clip(values, 0.0, 1.0)


def remap_to_unit(values: np.ndarray) -> np.ndarray:
    """Map [-1, 1] noise to [0, 1]."""
    return clamp_unit((np.asarray(values, dtype=np.float64) + 1.0) * 0.5)


def normalize_min_max(values: np.ndarray) -> np.ndarray:
    """
    Scale values to [0, 1] using their observed minimum and maximum.

    A flat field (max == min) maps to 0.5 everywhere.
    """
    values = np.asarray(values, dtype=np.float64)
    if len(values) == 0:
        return values

    lo = float(np.min(values))
    hi = float(np.max(values))
    if hi - lo <= 0.0:
        return np.full(len(values), 0.5)
    return clamp_unit((values - lo) / (hi - lo))


def elevation_falloff(height: np.ndarray, band: Tuple[float, float]) -> np.ndarray:
    """1.0 below the band, 0.0 above it, linear in between."""
    lo, hi = band
    return 1.0 - clamp_unit((np.asarray(height) - lo) / (hi - lo))


def latitude_term(positions: np.ndarray, polar_axis: Sequence[float]) -> np.ndarray:
    """1.0 at the equator, 0.0 at the poles."""
    axis = np.asarray(polar_axis, dtype=np.float64)
    axis = axis / np.linalg.norm(axis)
    unit = positions / np.linalg.norm(positions, axis=1, keepdims=True)
    return clamp_unit(1.0 - np.abs(unit @ axis))


def build_noise_fields(
    seed: str,
    options: Optional[NoiseOptions] = None,
    overrides: Optional[Mapping[str, NoiseOptions]] = None,
    channels: Iterable[str] = CORE_CHANNELS,
) -> Dict[str, NoiseField]:
    """
    One NoiseField per channel, seeded from the planet seed.

    Args:
        seed: Planet seed string
        options: Noise options shared by all channels
        overrides: Per-channel noise options replacing the shared ones
        channels: Channel names to build fields for
    """
    options = options or NoiseOptions()
    overrides = overrides or {}
    return {
        name: NoiseField(channel_seed(seed, name), overrides.get(name, options))
        for name in channels
    }


class FieldSampler:
    """Populates tile channels from injected scalar fields."""

    def __init__(self, fields: Mapping[str, ScalarField], options: Optional[FieldOptions] = None):
        """
        Initialize field sampler.

        Args:
            fields: Scalar fields by channel name; "height" is required,
                "moisture" and "temperature" fall back to neutral noise,
                any other name becomes an extra channel
            options: Channel weights and bands
        """
        if HEIGHT not in fields:
            raise ConfigurationError("A height field is required")

        self.fields = dict(fields)
        self.options = options or FieldOptions()
        self.options.validate()

    def _raw(self, name: str, positions: np.ndarray) -> Optional[np.ndarray]:
        field = self.fields.get(name)
        if field is None:
            return None
        values = np.asarray(field.sample(positions), dtype=np.float64).reshape(-1)
        if len(values) != len(positions):
            raise ConfigurationError(
                f"Field {name!r} returned {len(values)} values for {len(positions)} positions"
            )
        return values

    def _noise_term(self, name: str, positions: np.ndarray) -> np.ndarray:
        raw = self._raw(name, positions)
        if raw is None:
            logger.debug("No field for channel, using neutral noise", channel=name)
            return np.full(len(positions), 0.5)
        return remap_to_unit(raw) if self.options.remap_raw_noise else raw

    def compute_channels(self, positions: np.ndarray) -> Dict[str, np.ndarray]:
        """
        Compute every channel for the given anchor positions.

        Args:
            positions: (n, 3) points on the sphere

        Returns:
            Channel name -> (n,) values within [0, 1]
        """
        positions = np.asarray(positions, dtype=np.float64).reshape(-1, 3)
        opts = self.options

        height = normalize_min_max(self._raw(HEIGHT, positions))

        moisture = clamp_unit(
            opts.moisture_noise_weight * self._noise_term(MOISTURE, positions)
            + opts.moisture_elevation_weight * elevation_falloff(height, opts.moisture_band)
        )

        temperature = clamp_unit(
            opts.temperature_latitude_weight * latitude_term(positions, opts.polar_axis)
            + opts.temperature_elevation_weight * elevation_falloff(height, opts.temperature_band)
            + opts.temperature_noise_weight * self._noise_term(TEMPERATURE, positions)
        )

        channels = {HEIGHT: height, MOISTURE: moisture, TEMPERATURE: temperature}

        for name in self.fields:
            if name not in channels:
                channels[name] = clamp_unit(self._noise_term(name, positions))

        return channels

    def sample(self, tiles: List[Tile]) -> Dict[str, np.ndarray]:
        """
        Write channel values into each tile's channel bag.

        Returns:
            The channel arrays, indexed like ``tiles``
        """
        logger.info("Sampling fields", tiles=len(tiles), fields=sorted(self.fields))

        if not tiles:
            return {}

        positions = np.array([tile.anchor for tile in tiles])
        channels = self.compute_channels(positions)

        for i, tile in enumerate(tiles):
            for name, values in channels.items():
                tile.channels[name] = float(values[i])

        logger.info(
            "Fields sampled",
            **{
                f"{name}_mean": round(float(np.mean(values)), 3)
                for name, values in channels.items()
            },
        )
        return channels
