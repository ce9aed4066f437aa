"""Tests for the presentation hand-off."""

import numpy as np
import pytest

from py_hexplanet.core.biomes import BiomeClassifier, BiomeRule, BiomeSet
from py_hexplanet.core.dual_tiles import extract_dual_tiles
from py_hexplanet.core.icosphere import generate_icosphere
from py_hexplanet.core.presentation import (
    GeometryCollector,
    build_planet_surface,
    build_tile_geometry,
    fan_triangles,
    tile_color,
    tile_frame,
)


@pytest.fixture
def tiles():
    mesh = generate_icosphere(1)
    tiles = extract_dual_tiles(mesh.vertices, mesh.faces, radius=5.0)
    for tile in tiles:
        tile.channels = {"height": 0.0, "moisture": 0.5, "temperature": 0.5}
    BiomeClassifier(BiomeSet([BiomeRule("Sea", "#0000ff")])).classify_tiles(tiles)
    return tiles


class TestTileFrame:
    """Test per-tile orientation frames."""

    @pytest.mark.parametrize(
        "anchor",
        [(1.0, 0.0, 0.0), (0.3, 0.5, -0.8), (0.0, 1.0, 0.0), (0.0, -1.0, 0.0)],
    )
    def test_orthonormal_right_handed(self, anchor):
        anchor = np.array(anchor) / np.linalg.norm(anchor)
        basis = tile_frame(anchor)

        np.testing.assert_allclose(basis @ basis.T, np.eye(3), atol=1e-12)
        assert np.linalg.det(basis) == pytest.approx(1.0)
        np.testing.assert_allclose(basis[2], anchor)


class TestFanTriangles:
    def test_pentagon_fan(self):
        expected = [(0, 1, 2), (0, 2, 3), (0, 3, 4), (0, 4, 5), (0, 5, 1)]
        np.testing.assert_array_equal(fan_triangles(5), np.array(expected))


class TestTileGeometry:
    """Test local tile meshes."""

    def test_vertices_and_triangles(self, tiles):
        for tile in tiles:
            geometry = build_tile_geometry(tile)
            assert geometry.tile_index == tile.index
            assert len(geometry.vertices) == tile.corner_count + 1
            assert len(geometry.triangles) == tile.corner_count
            assert len(geometry.collision_points) == tile.corner_count
            np.testing.assert_allclose(geometry.vertices[0], geometry.vertices[1:].mean(axis=0))

    def test_local_round_trip(self, tiles):
        tile = tiles[7]
        geometry = build_tile_geometry(tile)
        world = geometry.collision_points @ geometry.basis + geometry.origin
        np.testing.assert_allclose(world, tile.corners, atol=1e-9)

    def test_colors(self, tiles):
        assert build_tile_geometry(tiles[0]).color == "#0000ff"
        assert build_tile_geometry(tiles[0], "gradient").color == "#000080"

    def test_unclassified_tile(self):
        mesh = generate_icosphere(0)
        tile = extract_dual_tiles(mesh.vertices, mesh.faces)[0]
        with pytest.raises(ValueError):
            tile_color(tile)

    def test_unknown_color_mode(self, tiles):
        with pytest.raises(ValueError):
            tile_color(tiles[0], "rainbow")


class TestPlanetSurface:
    """Test the merged surface buffer."""

    def test_buffer_sizes(self, tiles):
        surface = build_planet_surface(tiles)

        assert len(surface.vertices) == sum(t.corner_count + 1 for t in tiles)
        assert len(surface.triangles) == sum(t.corner_count for t in tiles)
        assert len(surface.colors) == len(surface.vertices)
        assert len(surface.triangle_tiles) == len(surface.triangles)
        assert surface.triangles.max() < len(surface.vertices)
        np.testing.assert_allclose(surface.colors, np.tile([0.0, 0.0, 1.0], (len(surface.vertices), 1)))

    def test_triangles_face_outward(self, tiles):
        surface = build_planet_surface(tiles)
        a, b, c = (surface.vertices[surface.triangles[:, i]] for i in range(3))
        normals = np.cross(b - a, c - a)
        assert np.all(np.sum(normals * a, axis=1) > 0)

    def test_empty(self):
        surface = build_planet_surface([])
        assert surface.vertices.shape == (0, 3)
        assert surface.triangles.shape == (0, 3)


class TestGeometryCollector:
    def test_invalid_color_mode(self):
        with pytest.raises(ValueError):
            GeometryCollector("rainbow")
