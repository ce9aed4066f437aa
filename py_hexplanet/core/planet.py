"""
Planet generation pipeline.

Runs icosphere -> dual tiles -> field sampling -> biome classification as
one synchronous pass and publishes the finished Planet in a single step.
"""

import math
import threading
import time
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import structlog
from sklearn.neighbors import KDTree

from ..errors import ConfigurationError, MissingCollaboratorError
from .biomes import BiomeClassifier, BiomeRegion, BiomeSet, default_biome_set
from .dual_tiles import Tile, extract_dual_tiles
from .fields import CORE_CHANNELS, FieldOptions, FieldSampler, ScalarField, build_noise_fields
from .icosphere import IcosphereMesh, generate_icosphere
from .noise import NoiseOptions
from .presentation import PresentationAdapter

logger = structlog.get_logger()


@dataclass
class PlanetConfig:
    """Everything that determines a generated planet."""

    subdivisions: int = 4
    radius: float = 18.0
    seed: str = "Earth42"

    noise: NoiseOptions = field(default_factory=NoiseOptions)
    channel_noise: Dict[str, NoiseOptions] = field(default_factory=dict)  # Per-channel overrides
    fields: FieldOptions = field(default_factory=FieldOptions)
    biomes: BiomeSet = field(default_factory=default_biome_set)

    # Channels sampled in addition to height, moisture and temperature
    extra_channels: Tuple[str, ...] = ()

    def __post_init__(self):
        if isinstance(self.noise, dict):
            self.noise = NoiseOptions(**self.noise)
        self.channel_noise = {
            name: opts if isinstance(opts, NoiseOptions) else NoiseOptions(**opts)
            for name, opts in self.channel_noise.items()
        }
        if isinstance(self.fields, dict):
            self.fields = FieldOptions(**self.fields)
        if isinstance(self.biomes, (list, tuple)):
            self.biomes = BiomeSet(list(self.biomes))
        self.extra_channels = tuple(self.extra_channels)

    @property
    def channel_names(self) -> Tuple[str, ...]:
        return CORE_CHANNELS + tuple(c for c in self.extra_channels if c not in CORE_CHANNELS)

    def validate(self) -> None:
        """
        Reject configurations that cannot be generated.

        Raises:
            ConfigurationError: On a negative subdivision level, a non-positive
                radius, an empty biome set or invalid noise/field options
        """
        if isinstance(self.subdivisions, bool) or not isinstance(self.subdivisions, (int, np.integer)):
            raise ConfigurationError(f"Subdivision level must be an integer, got {self.subdivisions!r}")
        if self.subdivisions < 0:
            raise ConfigurationError(f"Subdivision level must be >= 0, got {self.subdivisions}")
        numeric = (int, float, np.integer, np.floating)
        if not (isinstance(self.radius, numeric) and math.isfinite(self.radius) and self.radius > 0):
            raise ConfigurationError(f"Radius must be a positive number, got {self.radius!r}")
        if not isinstance(self.seed, str):
            raise ConfigurationError(f"Seed must be a string, got {type(self.seed).__name__}")

        self.noise.validate()
        for opts in self.channel_noise.values():
            opts.validate()
        self.fields.validate()
        self.biomes.validate()


@dataclass
class Planet:
    """Result of one generation pass."""

    config: PlanetConfig
    mesh: IcosphereMesh
    tiles: List[Tile]
    channels: Dict[str, np.ndarray]
    generation_time_seconds: float = 0.0
    _tree: Optional[KDTree] = field(default=None, init=False, repr=False)

    @property
    def radius(self) -> float:
        return self.config.radius

    @property
    def tile_count(self) -> int:
        return len(self.tiles)

    @property
    def pentagon_count(self) -> int:
        return sum(1 for tile in self.tiles if tile.is_pentagon)

    @property
    def hexagon_count(self) -> int:
        return sum(1 for tile in self.tiles if tile.is_hexagon)

    def tile_at(self, direction: Sequence[float]) -> Tile:
        """Tile whose anchor is nearest to the given direction from the planet centre."""
        if not self.tiles:
            raise ValueError("Planet has no tiles")

        vector = np.asarray(direction, dtype=np.float64).reshape(3)
        norm = np.linalg.norm(vector)
        if norm == 0 or not np.isfinite(norm):
            raise ValueError(f"Direction must be a non-zero finite vector, got {vector.tolist()}")

        if self._tree is None:
            self._tree = KDTree(np.array([tile.anchor for tile in self.tiles]))
        _, index = self._tree.query([vector / norm], k=1)
        return self.tiles[int(index[0][0])]

    def biome_statistics(self) -> Dict[str, int]:
        return BiomeClassifier(self.config.biomes).get_biome_statistics(self.tiles)

    def biome_regions(self) -> List[BiomeRegion]:
        return BiomeClassifier(self.config.biomes).generate_biome_regions(self.tiles)


class PlanetGenerator:
    """
    Owns the current planet and regenerates it on demand.

    Regeneration always rebuilds everything; concurrent calls are serialised
    and the previous planet stays published until a new pass succeeds.
    """

    def __init__(
        self,
        config: Optional[PlanetConfig] = None,
        fields: Optional[Mapping[str, ScalarField]] = None,
    ):
        """
        Initialize planet generator.

        Args:
            config: Planet configuration
            fields: Scalar fields by channel name; built from the configured
                noise options and seed when omitted
        """
        self.config = config or PlanetConfig()
        self.fields = fields
        self.planet: Optional[Planet] = None
        self._lock = threading.Lock()

    def generate(self) -> Planet:
        """Run a full generation pass and publish its result."""
        with self._lock:
            planet = self._run()
            self.planet = planet
            return planet

    def build(self, adapter: Optional[PresentationAdapter]) -> Planet:
        """
        Generate and hand the planet to a presentation adapter.

        Raises:
            MissingCollaboratorError: If no adapter is given; nothing is generated
        """
        if adapter is None:
            raise MissingCollaboratorError("A presentation adapter is required to build a planet")

        planet = self.generate()
        adapter.present(planet)
        return planet

    def _run(self) -> Planet:
        config = self.config
        config.validate()

        gaps = config.biomes.find_coverage_gaps()
        if gaps:
            logger.warning(
                "Biome rules leave part of the channel space uncovered",
                gap_points=len(gaps),
                fallback=config.biomes.fallback.name,
            )

        logger.info(
            "Starting planet generation",
            subdivisions=config.subdivisions,
            radius=config.radius,
            seed=config.seed,
        )
        start = time.perf_counter()

        mesh = generate_icosphere(config.subdivisions)
        tiles = extract_dual_tiles(mesh.vertices, mesh.faces, config.radius)

        fields = self.fields
        if fields is None:
            fields = build_noise_fields(
                config.seed, config.noise, config.channel_noise, config.channel_names
            )
        channels = FieldSampler(fields, config.fields).sample(tiles)

        BiomeClassifier(config.biomes).classify_tiles(tiles)

        elapsed = time.perf_counter() - start
        logger.info("Planet generation completed", tiles=len(tiles), seconds=round(elapsed, 3))

        return Planet(
            config=config,
            mesh=mesh,
            tiles=tiles,
            channels=channels,
            generation_time_seconds=elapsed,
        )


def generate_planet(
    config: Optional[PlanetConfig] = None,
    fields: Optional[Mapping[str, ScalarField]] = None,
) -> Planet:
    """Generate a planet without keeping a generator around."""
    return PlanetGenerator(config, fields).generate()
