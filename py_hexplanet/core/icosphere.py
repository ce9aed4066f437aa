"""
Geodesic mesh generation.

Builds an icosphere by recursively splitting every triangle of a regular
icosahedron into four and pushing the new vertices onto the unit sphere.
Midpoints are shared between the two faces of an edge through a per-pass
cache keyed by the unordered vertex pair.
"""

import math
from dataclasses import dataclass
from typing import Dict, List, Tuple

import numpy as np
import structlog

from ..errors import ConfigurationError

logger = structlog.get_logger()

Face = Tuple[int, int, int]

# Canonical icosahedron faces; the order drives vertex and tile ordering downstream
ICOSAHEDRON_FACES: List[Face] = [
    (0, 11, 5), (0, 5, 1), (0, 1, 7), (0, 7, 10), (0, 10, 11),
    (1, 5, 9), (5, 11, 4), (11, 10, 2), (10, 7, 6), (7, 1, 8),
    (3, 9, 4), (3, 4, 2), (3, 2, 6), (3, 6, 8), (3, 8, 9),
    (4, 9, 5), (2, 4, 11), (6, 2, 10), (8, 6, 7), (9, 8, 1),
]


@dataclass
class IcosphereMesh:
    """Vertices on the unit sphere and the triangles that connect them."""

    subdivisions: int
    vertices: np.ndarray  # (n_vertices, 3) float64 unit vectors
    faces: np.ndarray  # (n_faces, 3) int vertex indices

    @property
    def vertex_count(self) -> int:
        return len(self.vertices)

    @property
    def face_count(self) -> int:
        return len(self.faces)


def icosahedron_vertices() -> List[np.ndarray]:
    """The 12 icosahedron vertices built from the golden ratio, normalised."""
    t = (1.0 + math.sqrt(5.0)) / 2.0
    raw = [
        (-1, t, 0), (1, t, 0), (-1, -t, 0), (1, -t, 0),
        (0, -1, t), (0, 1, t), (0, -1, -t), (0, 1, -t),
        (t, 0, -1), (t, 0, 1), (-t, 0, -1), (-t, 0, 1),
    ]
    return [_normalize(np.array(v, dtype=np.float64)) for v in raw]


def expected_vertex_count(subdivisions: int) -> int:
    """Vertex count of an icosphere at the given level (10 * 4^L + 2)."""
    return 10 * 4 ** subdivisions + 2


def expected_face_count(subdivisions: int) -> int:
    """Face count of an icosphere at the given level (20 * 4^L)."""
    return 20 * 4 ** subdivisions


def generate_icosphere(subdivisions: int) -> IcosphereMesh:
    """
    Generate a subdivided icosahedron projected on the unit sphere.

    Args:
        subdivisions: Number of subdivision passes (0 returns the icosahedron)

    Returns:
        IcosphereMesh with deterministic vertex and face ordering

    Raises:
        ConfigurationError: If subdivisions is negative or not an integer
    """
    if isinstance(subdivisions, bool) or not isinstance(subdivisions, (int, np.integer)):
        raise ConfigurationError(f"Subdivision level must be an integer, got {subdivisions!r}")
    if subdivisions < 0:
        raise ConfigurationError(f"Subdivision level must be >= 0, got {subdivisions}")

    logger.info("Generating icosphere", subdivisions=int(subdivisions))

    vertices = icosahedron_vertices()
    faces = list(ICOSAHEDRON_FACES)

    for _ in range(int(subdivisions)):
        faces = _subdivide(vertices, faces)

    # Midpoints are normalised on creation; this guards against accumulated drift
    vertex_array = np.array(vertices, dtype=np.float64)
    vertex_array /= np.linalg.norm(vertex_array, axis=1, keepdims=True)

    mesh = IcosphereMesh(
        subdivisions=int(subdivisions),
        vertices=vertex_array,
        faces=np.array(faces, dtype=np.int64).reshape(-1, 3),
    )

    logger.info(
        "Icosphere generated",
        vertices=mesh.vertex_count,
        faces=mesh.face_count,
    )
    return mesh


def _subdivide(vertices: List[np.ndarray], faces: List[Face]) -> List[Face]:
    """
    Run one subdivision pass.

    New midpoint vertices are appended to ``vertices`` in face traversal order.
    Each face (a, b, c) becomes three corner triangles and one centre triangle.
    """
    midpoint_cache: Dict[Tuple[int, int], int] = {}

    def midpoint(i1: int, i2: int) -> int:
        key = (i1, i2) if i1 < i2 else (i2, i1)
        cached = midpoint_cache.get(key)
        if cached is not None:
            return cached

        vertices.append(_normalize((vertices[i1] + vertices[i2]) * 0.5))
        index = len(vertices) - 1
        midpoint_cache[key] = index
        return index

    new_faces: List[Face] = []
    for a, b, c in faces:
        ab = midpoint(a, b)
        bc = midpoint(b, c)
        ca = midpoint(c, a)

        new_faces.append((a, ab, ca))
        new_faces.append((b, bc, ab))
        new_faces.append((c, ca, bc))
        new_faces.append((ab, bc, ca))

    return new_faces


def _normalize(v: np.ndarray) -> np.ndarray:
    return v / np.linalg.norm(v)
