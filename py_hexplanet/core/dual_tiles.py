"""
Dual tile extraction.

Every vertex of the triangulated icosphere becomes one tile: the polygon
through the centres of the faces around it. Corners are ordered by angle in
the vertex's tangent plane, giving pentagons at the 12 original icosahedron
vertices and hexagons everywhere else.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence, Set, Tuple

import numpy as np
import structlog

from ..errors import ConfigurationError, InvariantViolation

if TYPE_CHECKING:
    from .biomes import BiomeRule

logger = structlog.get_logger()

# Any fixed vector off the cardinal axes works as tangent reference
PRIMARY_REFERENCE = np.array([0.41, 1.0, 0.73])
FALLBACK_REFERENCE = np.array([1.0, 0.0, 0.0])
PARALLEL_EPSILON = 1e-6

MIN_TILE_CORNERS = 3


@dataclass
class Tile:
    """One pentagonal or hexagonal cell of the planet surface."""

    index: int
    vertex_index: int
    anchor: np.ndarray  # unit vector
    radius: float
    corners: np.ndarray  # (n_corners, 3), counter-clockwise seen from outside
    neighbors: List[int] = field(default_factory=list)
    channels: Dict[str, float] = field(default_factory=dict)
    biome: Optional["BiomeRule"] = None

    @property
    def position(self) -> np.ndarray:
        """Anchor scaled to the planet radius."""
        return self.anchor * self.radius

    @property
    def corner_count(self) -> int:
        return len(self.corners)

    @property
    def is_pentagon(self) -> bool:
        return self.corner_count == 5

    @property
    def is_hexagon(self) -> bool:
        return self.corner_count == 6

    @property
    def centroid(self) -> np.ndarray:
        return self.corners.mean(axis=0)

    @property
    def area(self) -> float:
        """Planar area of the tile, summed over its fan triangles."""
        centroid = self.centroid
        nxt = np.roll(self.corners, -1, axis=0)
        cross = np.cross(self.corners - centroid, nxt - centroid)
        return float(0.5 * np.linalg.norm(cross, axis=1).sum())

    def get_channel(self, name: str, default: Optional[float] = None) -> Optional[float]:
        return self.channels.get(name, default)


def build_vertex_face_map(faces: Sequence[Sequence[int]]) -> Dict[int, List[int]]:
    """
    Map each vertex index to the faces that reference it.

    Keys are inserted in order of first appearance while walking the faces,
    which fixes the tile ordering.
    """
    vertex_faces: Dict[int, List[int]] = {}
    for face_idx, face in enumerate(faces):
        for vertex in face:
            vertex_faces.setdefault(int(vertex), []).append(face_idx)
    return vertex_faces


def build_vertex_neighbors(faces: Sequence[Sequence[int]]) -> Dict[int, Set[int]]:
    """Map each vertex index to the vertices it shares an edge with."""
    neighbors: Dict[int, Set[int]] = {}
    for a, b, c in faces:
        a, b, c = int(a), int(b), int(c)
        for p, q in ((a, b), (b, c), (c, a)):
            neighbors.setdefault(p, set()).add(q)
            neighbors.setdefault(q, set()).add(p)
    return neighbors


def compute_face_centers(vertices: np.ndarray, faces: np.ndarray, radius: float) -> np.ndarray:
    """Centroid of every face, projected onto the sphere of the given radius."""
    if len(faces) == 0:
        return np.zeros((0, 3))
    centers = vertices[faces].mean(axis=1)
    centers /= np.linalg.norm(centers, axis=1, keepdims=True)
    return centers * radius


def tangent_basis(
    normal: np.ndarray,
    reference: np.ndarray = PRIMARY_REFERENCE,
    fallback: np.ndarray = FALLBACK_REFERENCE,
    epsilon: float = PARALLEL_EPSILON,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Two orthonormal axes spanning the plane perpendicular to ``normal``.

    ``u = normal x reference``; when the reference is (numerically) parallel
    to the normal the fallback axis is used instead. ``w = normal x u`` so
    that (u, w, normal) is right-handed.

    Raises:
        InvariantViolation: If neither reference yields a usable axis
    """
    u = np.cross(normal, reference)
    if np.dot(u, u) < epsilon:
        u = np.cross(normal, fallback)
        if np.dot(u, u) < epsilon:
            logger.error("Degenerate tangent basis", normal=normal.tolist())
            raise InvariantViolation(f"Cannot build a tangent basis for normal {normal.tolist()}")

    u = u / np.linalg.norm(u)
    w = np.cross(normal, u)
    w = w / np.linalg.norm(w)
    return u, w


def corner_angles(normal: np.ndarray, points: np.ndarray) -> np.ndarray:
    """Signed angle of each point around ``normal`` in its tangent plane."""
    u, w = tangent_basis(normal)
    directions = points / np.linalg.norm(points, axis=1, keepdims=True)
    return np.arctan2(directions @ w, directions @ u)


def order_corners(normal: np.ndarray, points: np.ndarray) -> np.ndarray:
    """
    Sort polygon corners counter-clockwise as seen from outside the sphere.

    Args:
        normal: Unit vector at the tile anchor
        points: (n, 3) corner positions

    Returns:
        Index array that orders ``points`` by ascending tangent-plane angle
    """
    angles = corner_angles(normal, points)
    order = np.argsort(angles, kind="stable")

    sorted_angles = angles[order]
    if len(sorted_angles) > 1 and np.any(np.diff(sorted_angles) <= 0.0):
        logger.error("Coincident tile corners", normal=np.asarray(normal).tolist(), corners=len(points))
        raise InvariantViolation("Coincident tile corners, polygon would be degenerate")

    return order


def extract_dual_tiles(
    vertices: np.ndarray, faces: np.ndarray, radius: float = 1.0
) -> List[Tile]:
    """
    Build the dual polygon of every vertex referenced by at least one face.

    Args:
        vertices: (n, 3) unit vectors
        faces: (m, 3) vertex index triples
        radius: Sphere radius of the tile corners

    Returns:
        Tiles in order of first vertex appearance in ``faces``; empty when
        there are no faces

    Raises:
        ConfigurationError: If radius is not positive
        InvariantViolation: If a vertex cannot form a valid polygon
    """
    if not radius > 0:
        raise ConfigurationError(f"Radius must be positive, got {radius}")

    vertices = np.asarray(vertices, dtype=np.float64)
    faces = np.asarray(faces, dtype=np.int64).reshape(-1, 3)

    if len(faces) == 0:
        logger.info("No faces, no tiles")
        return []

    logger.info("Extracting dual tiles", faces=len(faces), radius=radius)

    face_list = faces.tolist()
    vertex_faces = build_vertex_face_map(face_list)
    vertex_neighbors = build_vertex_neighbors(face_list)
    face_centers = compute_face_centers(vertices, faces, radius)

    tile_of_vertex = {vertex: i for i, vertex in enumerate(vertex_faces)}

    tiles: List[Tile] = []
    for tile_idx, (vertex, adjacent_faces) in enumerate(vertex_faces.items()):
        if len(adjacent_faces) < MIN_TILE_CORNERS:
            logger.error(
                "Vertex has too few adjacent faces",
                vertex=vertex,
                faces=len(adjacent_faces),
            )
            raise InvariantViolation(
                f"Vertex {vertex} has {len(adjacent_faces)} adjacent faces, "
                f"at least {MIN_TILE_CORNERS} are required"
            )

        anchor = vertices[vertex] / np.linalg.norm(vertices[vertex])
        points = face_centers[adjacent_faces]
        corners = points[order_corners(anchor, points)]

        if not np.all(np.isfinite(corners)):
            logger.error("Non-finite tile corners", vertex=vertex)
            raise InvariantViolation(f"Tile for vertex {vertex} has non-finite corners")

        neighbors = sorted(tile_of_vertex[n] for n in vertex_neighbors[vertex])

        tiles.append(
            Tile(
                index=tile_idx,
                vertex_index=vertex,
                anchor=anchor,
                radius=float(radius),
                corners=corners,
                neighbors=neighbors,
            )
        )

    pentagons = sum(1 for t in tiles if t.is_pentagon)
    logger.info(
        "Dual tiles extracted",
        tiles=len(tiles),
        pentagons=pentagons,
        hexagons=len(tiles) - pentagons,
    )
    return tiles
