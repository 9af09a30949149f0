"""Tests for ground queries against the terrain mesh."""

import numpy as np
import pytest

from lowpoly.terrain.ground import MeshGroundQuery, face_normals
from lowpoly.terrain.mesh import TriangleMesh


class TestFaceNormals:
    """Tests for per-triangle normals."""

    def test_flat_mesh_points_up(self, square_mesh: TriangleMesh) -> None:
        """A flat surface has vertical normals."""
        normals = face_normals(square_mesh, np.zeros(square_mesh.vertex_count))
        np.testing.assert_allclose(normals, np.broadcast_to((0.0, 1.0, 0.0), normals.shape), atol=1e-12)

    def test_slope_tilts_downhill(
        self, square_mesh: TriangleMesh, sloped_elevations: np.ndarray
    ) -> None:
        """Terrain falling towards +x tilts its normals towards +x."""
        normals = face_normals(square_mesh, sloped_elevations)
        np.testing.assert_allclose(np.linalg.norm(normals, axis=1), 1.0)
        assert np.all(normals[:, 0] > 0)
        assert np.all(normals[:, 1] > 0)


class TestMeshGroundQuery:
    """Tests for height and normal lookups."""

    def test_plane_height(
        self, square_mesh: TriangleMesh, sloped_elevations: np.ndarray
    ) -> None:
        """Barycentric height reproduces a planar surface exactly."""
        ground = MeshGroundQuery(square_mesh, sloped_elevations)
        for x, z in [(12.3, 45.6), (50.0, 50.0), (87.5, 3.2)]:
            hit = ground.query(x, z)
            assert hit is not None
            assert hit.point == pytest.approx((x, 100.0 - x, z))
            assert hit.normal == pytest.approx((1 / np.sqrt(2), 1 / np.sqrt(2), 0.0))

    def test_vertex_height(
        self, square_mesh: TriangleMesh, sloped_elevations: np.ndarray
    ) -> None:
        """Querying at a vertex returns its elevation."""
        ground = MeshGroundQuery(square_mesh, sloped_elevations)
        x, z = square_mesh.vertices[5]
        assert ground.query(x, z).point[1] == pytest.approx(sloped_elevations[5])

    def test_miss_outside(self, square_mesh: TriangleMesh) -> None:
        """Points off the tile have no ground."""
        ground = MeshGroundQuery(square_mesh, np.zeros(square_mesh.vertex_count))
        assert ground.query(-1.0, 50.0) is None
        assert ground.query(50.0, 101.0) is None

    def test_elevation_count_checked(self, square_mesh: TriangleMesh) -> None:
        """Elevations must match the vertices."""
        with pytest.raises(ValueError):
            MeshGroundQuery(square_mesh, np.zeros(3))
