"""
Deterministic 3D noise fields.

A NoiseField is built from an explicit integer seed and NoiseOptions and
samples positions on the sphere through FastNoiseLite (``pyfastnoiselite``).
Base noise, fractal layering and cellular settings map one to one onto the
FastNoiseLite state. Domain warp displaces sample positions with three
further FastNoiseLite fields, one per axis. Values are roughly in [-1, 1].
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Sequence, Tuple, Union

import numpy as np
import structlog
from pyfastnoiselite.pyfastnoiselite import (
    CellularDistanceFunction,
    CellularReturnType,
    FastNoiseLite,
    FractalType as FNLFractalType,
    NoiseType as FNLNoiseType,
)

from ..errors import ConfigurationError
from ..utils.random import to_int32

logger = structlog.get_logger()

# Warp displacement fields use seeds far away from the main field
_WARP_SEED_OFFSET = 7919


class NoiseType(str, Enum):
    SIMPLEX = "simplex"
    SIMPLEX_SMOOTH = "simplex_smooth"
    PERLIN = "perlin"
    VALUE = "value"
    VALUE_CUBIC = "value_cubic"
    CELLULAR = "cellular"


class FractalType(str, Enum):
    NONE = "none"
    FBM = "fbm"
    RIDGED = "ridged"
    PING_PONG = "ping_pong"


class CellularDistance(str, Enum):
    EUCLIDEAN = "euclidean"
    EUCLIDEAN_SQUARED = "euclidean_squared"
    MANHATTAN = "manhattan"
    HYBRID = "hybrid"


class CellularReturn(str, Enum):
    CELL_VALUE = "cell_value"
    DISTANCE = "distance"
    DISTANCE2 = "distance2"
    DISTANCE2_ADD = "distance2_add"
    DISTANCE2_SUB = "distance2_sub"
    DISTANCE2_MUL = "distance2_mul"
    DISTANCE2_DIV = "distance2_div"


_NOISE_TYPES = {
    NoiseType.SIMPLEX: FNLNoiseType.NoiseType_OpenSimplex2,
    NoiseType.SIMPLEX_SMOOTH: FNLNoiseType.NoiseType_OpenSimplex2S,
    NoiseType.PERLIN: FNLNoiseType.NoiseType_Perlin,
    NoiseType.VALUE: FNLNoiseType.NoiseType_Value,
    NoiseType.VALUE_CUBIC: FNLNoiseType.NoiseType_ValueCubic,
    NoiseType.CELLULAR: FNLNoiseType.NoiseType_Cellular,
}

_FRACTAL_TYPES = {
    FractalType.NONE: FNLFractalType.FractalType_None,
    FractalType.FBM: FNLFractalType.FractalType_FBm,
    FractalType.RIDGED: FNLFractalType.FractalType_Ridged,
    FractalType.PING_PONG: FNLFractalType.FractalType_PingPong,
}

_CELLULAR_DISTANCES = {
    CellularDistance.EUCLIDEAN: CellularDistanceFunction.CellularDistanceFunction_Euclidean,
    CellularDistance.EUCLIDEAN_SQUARED: CellularDistanceFunction.CellularDistanceFunction_EuclideanSq,
    CellularDistance.MANHATTAN: CellularDistanceFunction.CellularDistanceFunction_Manhattan,
    CellularDistance.HYBRID: CellularDistanceFunction.CellularDistanceFunction_Hybrid,
}

_CELLULAR_RETURNS = {
    CellularReturn.CELL_VALUE: CellularReturnType.CellularReturnType_CellValue,
    CellularReturn.DISTANCE: CellularReturnType.CellularReturnType_Distance,
    CellularReturn.DISTANCE2: CellularReturnType.CellularReturnType_Distance2,
    CellularReturn.DISTANCE2_ADD: CellularReturnType.CellularReturnType_Distance2Add,
    CellularReturn.DISTANCE2_SUB: CellularReturnType.CellularReturnType_Distance2Sub,
    CellularReturn.DISTANCE2_MUL: CellularReturnType.CellularReturnType_Distance2Mul,
    CellularReturn.DISTANCE2_DIV: CellularReturnType.CellularReturnType_Distance2Div,
}


@dataclass
class DomainWarpOptions:
    """Displacement of sample positions before the main noise is evaluated."""

    enabled: bool = False
    amplitude: float = 0.3  # Displacement in unit-sphere coordinates
    frequency: float = 1.0
    octaves: int = 3
    lacunarity: float = 2.0
    gain: float = 0.5


@dataclass
class NoiseOptions:
    """Noise generation options."""

    noise_type: NoiseType = NoiseType.SIMPLEX
    frequency: float = 1.5  # Sampled on the unit sphere, not the scaled planet
    offset: Tuple[float, float, float] = (0.0, 0.0, 0.0)

    # Fractal settings
    fractal_type: FractalType = FractalType.FBM
    octaves: int = 6
    lacunarity: float = 2.0
    gain: float = 0.5
    weighted_strength: float = 0.0
    ping_pong_strength: float = 2.0

    domain_warp: DomainWarpOptions = field(default_factory=DomainWarpOptions)

    # Cellular settings
    cellular_distance: CellularDistance = CellularDistance.EUCLIDEAN
    cellular_return: CellularReturn = CellularReturn.CELL_VALUE
    cellular_jitter: float = 1.0

    def __post_init__(self):
        self.noise_type = _coerce_enum(NoiseType, self.noise_type, "noise_type")
        self.fractal_type = _coerce_enum(FractalType, self.fractal_type, "fractal_type")
        self.cellular_distance = _coerce_enum(
            CellularDistance, self.cellular_distance, "cellular_distance"
        )
        self.cellular_return = _coerce_enum(
            CellularReturn, self.cellular_return, "cellular_return"
        )
        if isinstance(self.domain_warp, dict):
            self.domain_warp = DomainWarpOptions(**self.domain_warp)
        self.offset = tuple(float(v) for v in self.offset)

    def validate(self) -> None:
        """Raise ConfigurationError for options no noise can be built from."""
        if not self.frequency > 0:
            raise ConfigurationError(f"Noise frequency must be positive, got {self.frequency}")
        if self.octaves < 1:
            raise ConfigurationError(f"Fractal octaves must be >= 1, got {self.octaves}")
        if not self.lacunarity > 0:
            raise ConfigurationError(f"Fractal lacunarity must be positive, got {self.lacunarity}")
        if self.gain < 0:
            raise ConfigurationError(f"Fractal gain must be >= 0, got {self.gain}")
        if not 0.0 <= self.cellular_jitter <= 1.0:
            raise ConfigurationError(
                f"Cellular jitter must be within [0, 1], got {self.cellular_jitter}"
            )
        if len(self.offset) != 3:
            raise ConfigurationError("Noise offset must have three components")

        warp = self.domain_warp
        if warp.enabled:
            if not warp.frequency > 0:
                raise ConfigurationError("Domain warp frequency must be positive")
            if warp.octaves < 1:
                raise ConfigurationError("Domain warp octaves must be >= 1")


def _coerce_enum(enum_cls, value, name):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(e.value for e in enum_cls)
        raise ConfigurationError(f"Unknown {name} {value!r}, expected one of: {allowed}")


def build_generator(seed: int, options: NoiseOptions) -> FastNoiseLite:
    """FastNoiseLite configured from ``options``; frequency is applied by the generator."""
    generator = FastNoiseLite(seed=to_int32(seed))
    generator.noise_type = _NOISE_TYPES[options.noise_type]
    generator.frequency = options.frequency

    generator.fractal_type = _FRACTAL_TYPES[options.fractal_type]
    generator.fractal_octaves = options.octaves
    generator.fractal_lacunarity = options.lacunarity
    generator.fractal_gain = options.gain
    generator.fractal_weighted_strength = options.weighted_strength
    generator.fractal_ping_pong_strength = options.ping_pong_strength

    generator.cellular_distance_function = _CELLULAR_DISTANCES[options.cellular_distance]
    generator.cellular_return_type = _CELLULAR_RETURNS[options.cellular_return]
    generator.cellular_jitter = options.cellular_jitter
    return generator


def build_warp_generators(seed: int, warp: DomainWarpOptions) -> List[FastNoiseLite]:
    """One fbm simplex displacement field per axis."""
    generators = []
    for axis in range(3):
        generator = FastNoiseLite(seed=to_int32(seed + _WARP_SEED_OFFSET + axis))
        generator.noise_type = FNLNoiseType.NoiseType_OpenSimplex2
        generator.frequency = warp.frequency
        generator.fractal_type = FNLFractalType.FractalType_FBm
        generator.fractal_octaves = warp.octaves
        generator.fractal_lacunarity = warp.lacunarity
        generator.fractal_gain = warp.gain
        generators.append(generator)
    return generators


class NoiseField:
    """Seeded scalar field over 3D positions; the same input always gives the same output."""

    def __init__(self, seed: int, options: NoiseOptions = None):
        """
        Initialize noise field.

        Args:
            seed: Integer seed (see utils.random.string_to_seed)
            options: Noise options, defaults to fbm simplex noise
        """
        self.seed = int(seed)
        self.options = options or NoiseOptions()
        self.options.validate()

        self.generator = build_generator(self.seed, self.options)
        self.warp_generators: List[FastNoiseLite] = []
        if self.options.domain_warp.enabled:
            self.warp_generators = build_warp_generators(self.seed, self.options.domain_warp)

        logger.debug(
            "Noise field created",
            seed=self.seed,
            noise_type=self.options.noise_type.value,
            fractal_type=self.options.fractal_type.value,
            domain_warp=self.options.domain_warp.enabled,
        )

    def __call__(self, position: Sequence[float]) -> float:
        return float(self.sample(np.asarray(position, dtype=np.float64).reshape(1, 3))[0])

    def sample(self, positions: Union[np.ndarray, Sequence[Sequence[float]]]) -> np.ndarray:
        """
        Evaluate the field at each position.

        Args:
            positions: (n, 3) array of points

        Returns:
            (n,) array of noise values
        """
        points = np.asarray(positions, dtype=np.float64).reshape(-1, 3)
        if len(points) == 0:
            return np.zeros(0)

        points = points + np.asarray(self.options.offset)
        if self.warp_generators:
            coords = _coords(points)
            amplitude = self.options.domain_warp.amplitude
            displacement = np.stack(
                [generator.gen_from_coords(coords) for generator in self.warp_generators],
                axis=1,
            )
            points = points + amplitude * displacement.astype(np.float64)

        return np.asarray(self.generator.gen_from_coords(_coords(points)), dtype=np.float64)


def _coords(points: np.ndarray) -> np.ndarray:
    """(n, 3) points to the (3, n) float32 layout FastNoiseLite samples."""
    return np.ascontiguousarray(points.T, dtype=np.float32)
