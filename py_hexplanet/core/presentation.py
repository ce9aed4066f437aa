"""
Presentation hand-off.

Rendering and physics live outside this package. What they need is plain
geometry: every tile expressed in its own local frame (for per-tile meshes
and convex collision shapes) or the whole planet merged into a single
triangle buffer with per-vertex colours.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional, Protocol

import numpy as np
import structlog

from .dual_tiles import Tile
from .fields import HEIGHT
from .palette import hex_to_rgb, height_gradient_color, rgb_to_hex

if TYPE_CHECKING:
    from .planet import Planet

logger = structlog.get_logger()

UP = np.array([0.0, 1.0, 0.0])
RIGHT = np.array([1.0, 0.0, 0.0])
POLE_THRESHOLD = 0.999

COLOR_MODES = ("biome", "gradient")


class PresentationAdapter(Protocol):
    """Receives the finished planet in one call."""

    def present(self, planet: "Planet") -> None:
        ...


@dataclass
class TileGeometry:
    """One tile in its local frame, ready for mesh and collision construction."""

    tile_index: int
    origin: np.ndarray  # tile position on the planet
    basis: np.ndarray  # rows: local x, local y, outward normal
    vertices: np.ndarray  # local; row 0 is the centroid, then the corners
    triangles: np.ndarray  # (n_corners, 3) fan around the centroid
    color: str

    @property
    def collision_points(self) -> np.ndarray:
        """Corner points of the convex collision polygon."""
        return self.vertices[1:]


@dataclass
class PlanetSurface:
    """All tiles merged into one indexed triangle buffer in planet space."""

    vertices: np.ndarray  # (n, 3)
    triangles: np.ndarray  # (m, 3)
    colors: np.ndarray  # (n, 3) RGB in [0, 1]
    triangle_tiles: np.ndarray  # (m,) tile index of every triangle


def tile_frame(anchor: np.ndarray) -> np.ndarray:
    """
    Right-handed orientation frame for a tile.

    x lies in the tangent plane (perpendicular to world up, or to world right
    near the poles), z is the outward anchor direction.
    """
    normal = anchor / np.linalg.norm(anchor)
    up = RIGHT if abs(float(np.dot(normal, UP))) > POLE_THRESHOLD else UP
    x_axis = np.cross(normal, up)
    x_axis /= np.linalg.norm(x_axis)
    y_axis = np.cross(normal, x_axis)
    y_axis /= np.linalg.norm(y_axis)
    return np.array([x_axis, y_axis, normal])


def to_local(points: np.ndarray, origin: np.ndarray, basis: np.ndarray) -> np.ndarray:
    return (np.asarray(points) - origin) @ basis.T


def fan_triangles(corner_count: int) -> np.ndarray:
    """Triangles (centroid, corner i, corner i + 1) with the centroid at index 0."""
    return np.array(
        [(0, i + 1, (i + 1) % corner_count + 1) for i in range(corner_count)],
        dtype=np.int64,
    )


def tile_color(tile: Tile, color_mode: str = "biome") -> str:
    """
    Hex colour of a tile.

    Args:
        tile: Classified tile
        color_mode: "biome" for the rule colour, "gradient" for the blended
            height gradient
    """
    if color_mode == "gradient":
        return rgb_to_hex(height_gradient_color(tile.get_channel(HEIGHT, 0.0)))
    if color_mode != "biome":
        raise ValueError(f"Unknown colour mode {color_mode!r}, expected one of {COLOR_MODES}")
    if tile.biome is None:
        raise ValueError(f"Tile {tile.index} has not been classified")
    return tile.biome.color


def build_tile_geometry(tile: Tile, color_mode: str = "biome") -> TileGeometry:
    origin = tile.position
    basis = tile_frame(tile.anchor)
    corners = to_local(tile.corners, origin, basis)
    vertices = np.vstack([corners.mean(axis=0), corners])

    return TileGeometry(
        tile_index=tile.index,
        origin=origin,
        basis=basis,
        vertices=vertices,
        triangles=fan_triangles(len(corners)),
        color=tile_color(tile, color_mode),
    )


def build_planet_surface(tiles: List[Tile], color_mode: str = "biome") -> PlanetSurface:
    """Merge every tile's fan into a single planet-space buffer."""
    vertices, triangles, colors, triangle_tiles = [], [], [], []
    offset = 0

    for tile in tiles:
        n = tile.corner_count
        rgb = hex_to_rgb(tile_color(tile, color_mode))

        vertices.append(tile.centroid)
        vertices.extend(tile.corners)
        colors.extend([rgb] * (n + 1))
        triangles.append(fan_triangles(n) + offset)
        triangle_tiles.extend([tile.index] * n)
        offset += n + 1

    if not tiles:
        return PlanetSurface(
            vertices=np.zeros((0, 3)),
            triangles=np.zeros((0, 3), dtype=np.int64),
            colors=np.zeros((0, 3)),
            triangle_tiles=np.zeros(0, dtype=np.int64),
        )

    return PlanetSurface(
        vertices=np.array(vertices),
        triangles=np.vstack(triangles),
        colors=np.array(colors),
        triangle_tiles=np.array(triangle_tiles, dtype=np.int64),
    )


class GeometryCollector:
    """Presentation adapter that keeps the built geometry as plain data."""

    def __init__(self, color_mode: str = "biome"):
        if color_mode not in COLOR_MODES:
            raise ValueError(f"Unknown colour mode {color_mode!r}, expected one of {COLOR_MODES}")
        self.color_mode = color_mode
        self.tiles: List[TileGeometry] = []
        self.surface: Optional[PlanetSurface] = None

    def present(self, planet: "Planet") -> None:
        logger.info("Building tile geometry", tiles=len(planet.tiles), color_mode=self.color_mode)
        self.tiles = [build_tile_geometry(tile, self.color_mode) for tile in planet.tiles]
        self.surface = build_planet_surface(planet.tiles, self.color_mode)
