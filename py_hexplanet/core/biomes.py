"""
Biome classification over normalised tile channels.

This module implements:
- Biome rules as inclusive per-channel range predicates
- Ordered biome sets with first-match-wins classification
- Coverage gap detection for rule authoring
- Biome statistics and contiguous biome regions over tile adjacency
"""

import itertools
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Mapping, Optional, Sequence, Set, Tuple

import numpy as np
import structlog
from scipy.sparse import coo_matrix
from scipy.sparse.csgraph import connected_components

from ..errors import ConfigurationError
from .dual_tiles import Tile
from .fields import CORE_CHANNELS, HEIGHT, MOISTURE, TEMPERATURE

logger = structlog.get_logger()


@dataclass
class BiomeRule:
    """A named range predicate over tile channels with a presentation payload."""

    name: str
    color: str = "#33cc33"

    min_height: float = 0.0
    max_height: float = 1.0
    min_moisture: float = 0.0
    max_moisture: float = 1.0
    min_temperature: float = 0.0
    max_temperature: float = 1.0

    # Further channels, e.g. {"population": (0.0, 0.3)}
    extra_ranges: Dict[str, Tuple[float, float]] = field(default_factory=dict)

    material: Optional[str] = None

    def __post_init__(self):
        self.extra_ranges = {
            name: (float(bounds[0]), float(bounds[1]))
            for name, bounds in self.extra_ranges.items()
        }

    def ranges(self) -> Dict[str, Tuple[float, float]]:
        ranges = {
            HEIGHT: (self.min_height, self.max_height),
            MOISTURE: (self.min_moisture, self.max_moisture),
            TEMPERATURE: (self.min_temperature, self.max_temperature),
        }
        ranges.update(self.extra_ranges)
        return ranges

    def matches(self, channels: Mapping[str, float]) -> bool:
        """True when every constrained channel lies within its inclusive range."""
        for name, (lo, hi) in self.ranges().items():
            value = channels.get(name)
            if value is None or not lo <= value <= hi:
                return False
        return True

    def to_dict(self) -> Dict:
        return {
            "name": self.name,
            "color": self.color,
            "material": self.material,
            "ranges": {name: list(bounds) for name, bounds in self.ranges().items()},
        }


@dataclass
class BiomeSet:
    """Ordered biome rules; earlier rules take priority."""

    rules: List[BiomeRule] = field(default_factory=list)

    def __post_init__(self):
        self.rules = [
            rule if isinstance(rule, BiomeRule) else BiomeRule(**rule)
            for rule in self.rules
        ]

    def __len__(self) -> int:
        return len(self.rules)

    def __iter__(self) -> Iterator[BiomeRule]:
        return iter(self.rules)

    @property
    def fallback(self) -> BiomeRule:
        return self.rules[-1]

    def validate(self) -> None:
        """Raise ConfigurationError for an empty set or inverted ranges."""
        if not self.rules:
            raise ConfigurationError("Biome set must contain at least one rule")

        for rule in self.rules:
            for name, (lo, hi) in rule.ranges().items():
                if lo > hi:
                    raise ConfigurationError(
                        f"Biome {rule.name!r} has an inverted {name} range [{lo}, {hi}]"
                    )

    def find_coverage_gaps(
        self, resolution: int = 11, channels: Sequence[str] = CORE_CHANNELS
    ) -> List[Dict[str, float]]:
        """
        Grid points of the channel cube that no rule matches.

        Such points fall through to the last rule. Only the given channels are
        sampled, so rules constraining extra channels never match here.

        Args:
            resolution: Samples per channel across [0, 1]
            channels: Channels spanning the sampled cube

        Returns:
            Unmatched channel points, in grid order
        """
        axis = np.linspace(0.0, 1.0, resolution)
        gaps = []
        for values in itertools.product(axis, repeat=len(channels)):
            point = {name: float(v) for name, v in zip(channels, values)}
            if not any(rule.matches(point) for rule in self.rules):
                gaps.append(point)
        return gaps

    def to_list(self) -> List[Dict]:
        return [rule.to_dict() for rule in self.rules]


def default_biome_set() -> BiomeSet:
    """Earth-like rule set that covers the whole channel cube."""
    return BiomeSet(
        [
            BiomeRule("Deep Ocean", "#000080", min_height=0.0, max_height=0.2),
            BiomeRule("Shallow Ocean", "#1a66b3", min_height=0.2, max_height=0.3),
            BiomeRule("Beach", "#f0de9e", min_height=0.3, max_height=0.35),
            BiomeRule("Ice Cap", "#d5e7eb", min_height=0.35, max_height=1.0,
                      max_temperature=0.15),
            BiomeRule("Tundra", "#96784b", min_height=0.35, max_height=0.7,
                      min_temperature=0.15, max_temperature=0.3),
            BiomeRule("Taiga", "#4b6b32", min_height=0.35, max_height=0.7,
                      min_temperature=0.3, max_temperature=0.45, min_moisture=0.45),
            BiomeRule("Hot Desert", "#fbe79f", min_height=0.35, max_height=0.7,
                      min_temperature=0.65, max_moisture=0.3),
            BiomeRule("Tropical Rainforest", "#7dcb35", min_height=0.35, max_height=0.7,
                      min_temperature=0.65, min_moisture=0.55),
            BiomeRule("Savanna", "#d2d082", min_height=0.35, max_height=0.7,
                      min_temperature=0.65),
            BiomeRule("Desert", "#b5b887", min_height=0.35, max_height=0.7,
                      max_moisture=0.25),
            BiomeRule("Forest", "#008000", min_height=0.35, max_height=0.7,
                      min_moisture=0.5),
            BiomeRule("Grassland", "#33cc33", min_height=0.35, max_height=0.7),
            BiomeRule("Mountain", "#808080", min_height=0.7, max_height=0.99),
            BiomeRule("Snow", "#e6e6e6", min_height=0.99, max_height=1.0),
        ]
    )


@dataclass
class BiomeRegion:
    """Represents a contiguous biome region."""

    id: int
    biome: str
    tiles: Set[int]
    area: float
    center_tile: int


class BiomeClassifier:
    """Assigns the first matching biome rule to each tile."""

    def __init__(self, biome_set: BiomeSet):
        """
        Initialize biome classifier.

        Args:
            biome_set: Ordered rules; referenced, not copied

        Raises:
            ConfigurationError: If the set is empty or has inverted ranges
        """
        biome_set.validate()
        self.biome_set = biome_set

    def match(self, channels: Mapping[str, float]) -> Optional[BiomeRule]:
        """First rule whose ranges contain ``channels``, or None."""
        for rule in self.biome_set.rules:
            if rule.matches(channels):
                return rule
        return None

    def classify(self, channels: Mapping[str, float]) -> BiomeRule:
        """First matching rule, else the last rule of the set."""
        rule = self.match(channels)
        return rule if rule is not None else self.biome_set.fallback

    def classify_tiles(self, tiles: List[Tile]) -> List[BiomeRule]:
        """Classify every tile and store the rule on it."""
        logger.info("Classifying biomes", tiles=len(tiles), rules=len(self.biome_set))

        unmatched = 0
        assigned = []
        for tile in tiles:
            rule = self.match(tile.channels)
            if rule is None:
                unmatched += 1
                rule = self.biome_set.fallback
            tile.biome = rule
            assigned.append(rule)

        if unmatched:
            logger.warning(
                "Tiles fell back to the last biome rule",
                count=unmatched,
                fallback=self.biome_set.fallback.name,
            )

        logger.info(
            "Biome classification completed",
            unique_biomes=len({rule.name for rule in assigned}),
        )
        return assigned

    def get_biome_statistics(self, tiles: List[Tile]) -> Dict[str, int]:
        """
        Tile count per biome name, in rule order.

        Returns:
            Dictionary with biome names and tile counts (biomes with no tiles omitted)
        """
        counts: Dict[str, int] = {}
        for rule in self.biome_set.rules:
            counts.setdefault(rule.name, 0)
        for tile in tiles:
            if tile.biome is not None:
                counts[tile.biome.name] = counts.get(tile.biome.name, 0) + 1
        return {name: count for name, count in counts.items() if count > 0}

    def generate_biome_regions(self, tiles: List[Tile]) -> List[BiomeRegion]:
        """
        Group adjacent tiles of the same biome into regions.

        Returns:
            Regions ordered by their lowest tile index
        """
        if any(tile.biome is None for tile in tiles):
            raise ValueError("Tiles must be classified before generating biome regions")
        if not tiles:
            return []

        logger.info("Generating biome regions")

        rows, cols = [], []
        for tile in tiles:
            for neighbor in tile.neighbors:
                if tiles[neighbor].biome is tile.biome:
                    rows.append(tile.index)
                    cols.append(neighbor)

        n = len(tiles)
        adjacency = coo_matrix((np.ones(len(rows)), (rows, cols)), shape=(n, n)).tocsr()
        _, labels = connected_components(adjacency, directed=False)

        members: Dict[int, List[int]] = {}
        for tile_idx, label in enumerate(labels):
            members.setdefault(int(label), []).append(tile_idx)

        regions = []
        for region_id, tile_ids in enumerate(sorted(members.values(), key=min)):
            regions.append(
                BiomeRegion(
                    id=region_id,
                    biome=tiles[tile_ids[0]].biome.name,
                    tiles=set(tile_ids),
                    area=float(sum(tiles[i].area for i in tile_ids)),
                    center_tile=self._find_region_center(tiles, tile_ids),
                )
            )

        logger.info("Biome regions generated", count=len(regions))
        return regions

    @staticmethod
    def _find_region_center(tiles: List[Tile], tile_ids: List[int]) -> int:
        """Tile whose anchor is closest to the region's mean direction."""
        anchors = np.array([tiles[i].anchor for i in tile_ids])
        centroid = anchors.mean(axis=0)
        distances = np.sum((anchors - centroid) ** 2, axis=1)
        return tile_ids[int(np.argmin(distances))]
