"""Tests for icosphere generation."""

import numpy as np
import pytest

from py_hexplanet.core.icosphere import (
    ICOSAHEDRON_FACES,
    expected_face_count,
    expected_vertex_count,
    generate_icosphere,
    icosahedron_vertices,
)
from py_hexplanet.errors import ConfigurationError


class TestIcosahedron:
    """Test the base icosahedron."""

    def test_level_zero(self):
        mesh = generate_icosphere(0)
        assert mesh.vertex_count == 12
        assert mesh.face_count == 20
        np.testing.assert_array_equal(mesh.faces, np.array(ICOSAHEDRON_FACES))

    def test_base_vertices_are_unit(self):
        for v in icosahedron_vertices():
            assert np.linalg.norm(v) == pytest.approx(1.0)


class TestSubdivision:
    """Test recursive subdivision."""

    @pytest.mark.parametrize("level", [0, 1, 2, 3])
    def test_counts(self, level):
        mesh = generate_icosphere(level)
        assert mesh.vertex_count == expected_vertex_count(level)
        assert mesh.face_count == expected_face_count(level)

    def test_level_one_shares_midpoints(self):
        """Shared edges must not duplicate their midpoint."""
        mesh = generate_icosphere(1)
        assert mesh.vertex_count == 42

        unique = np.unique(np.round(mesh.vertices, 9), axis=0)
        assert len(unique) == 42

    def test_vertices_on_unit_sphere(self):
        mesh = generate_icosphere(3)
        norms = np.linalg.norm(mesh.vertices, axis=1)
        np.testing.assert_allclose(norms, 1.0, atol=1e-12)

    def test_face_indices_valid(self):
        mesh = generate_icosphere(2)
        assert mesh.faces.min() >= 0
        assert mesh.faces.max() < mesh.vertex_count
        # No degenerate triangles
        assert np.all(mesh.faces[:, 0] != mesh.faces[:, 1])
        assert np.all(mesh.faces[:, 1] != mesh.faces[:, 2])
        assert np.all(mesh.faces[:, 2] != mesh.faces[:, 0])

    def test_every_edge_shared_by_two_faces(self):
        mesh = generate_icosphere(2)
        edges = {}
        for a, b, c in mesh.faces.tolist():
            for p, q in ((a, b), (b, c), (c, a)):
                key = (min(p, q), max(p, q))
                edges[key] = edges.get(key, 0) + 1
        assert set(edges.values()) == {2}

    def test_deterministic(self):
        mesh1 = generate_icosphere(2)
        mesh2 = generate_icosphere(2)
        np.testing.assert_array_equal(mesh1.vertices, mesh2.vertices)
        np.testing.assert_array_equal(mesh1.faces, mesh2.faces)

    def test_original_vertices_kept_first(self):
        mesh = generate_icosphere(2)
        np.testing.assert_allclose(mesh.vertices[:12], np.array(icosahedron_vertices()))


class TestInvalidLevels:
    """Test rejection of invalid subdivision levels."""

    def test_negative_level(self):
        with pytest.raises(ConfigurationError):
            generate_icosphere(-1)

    def test_non_integer_level(self):
        with pytest.raises(ConfigurationError):
            generate_icosphere(1.5)
