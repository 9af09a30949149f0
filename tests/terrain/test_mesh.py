"""Tests for the Delaunay triangle mesh."""

import numpy as np
import pytest

from lowpoly.exceptions import DegenerateInputError
from lowpoly.terrain.mesh import BOUNDARY_LABEL, TriangleMesh, triangulate

CORNERS_100 = [(0.0, 0.0), (100.0, 0.0), (100.0, 100.0), (0.0, 100.0)]


def _signed_area(mesh: TriangleMesh, triangle: int) -> float:
    a, b, c = mesh.vertices[mesh.triangles[triangle]]
    return (b[0] - a[0]) * (c[1] - a[1]) - (b[1] - a[1]) * (c[0] - a[0])


class TestTriangleMesh:
    """Tests for the mesh built from a point set."""

    def test_unit_square(self) -> None:
        """Four corners give two adjacent triangles."""
        mesh = TriangleMesh([(0.0, 0.0), (1.0, 0.0), (1.0, 1.0), (0.0, 1.0)])
        assert mesh.vertex_count == 4
        assert mesh.triangle_count == 2
        assert mesh.adjacent(0) == [1]
        assert mesh.adjacent(1) == [0]

    def test_counter_clockwise_winding(self, square_mesh: TriangleMesh) -> None:
        """Every triangle is counter-clockwise."""
        for triangle in range(square_mesh.triangle_count):
            assert _signed_area(square_mesh, triangle) > 0

    def test_neighbors_opposite_vertices(self, square_mesh: TriangleMesh) -> None:
        """Neighbor k shares the side opposite vertex k."""
        for tri in square_mesh.iter_triangles():
            for k, neighbor in enumerate(tri.neighbors):
                if neighbor is None:
                    continue
                side = set(tri.vertices) - {tri.vertices[k]}
                assert side <= set(square_mesh.triangle(neighbor).vertices)

    def test_collinear_raises(self) -> None:
        """Collinear input cannot be triangulated."""
        with pytest.raises(DegenerateInputError):
            TriangleMesh([(0.0, 0.0), (1.0, 1.0), (2.0, 2.0), (3.0, 3.0)])

    def test_too_few_points_raises(self) -> None:
        """Two points cannot be triangulated."""
        with pytest.raises(DegenerateInputError):
            TriangleMesh([(0.0, 0.0), (1.0, 0.0)])

    def test_arrays_read_only(self, square_mesh: TriangleMesh) -> None:
        """Mesh arrays cannot be modified in place."""
        with pytest.raises(ValueError):
            square_mesh.vertices[0, 0] = 5.0
        with pytest.raises(ValueError):
            square_mesh.triangles[0, 0] = 1

    def test_label_count_mismatch_raises(self) -> None:
        """Labels must match the vertex count."""
        with pytest.raises(ValueError):
            TriangleMesh([(0.0, 0.0), (1.0, 0.0), (0.0, 1.0)], labels=[1, 0])


class TestQueries:
    """Tests for point location and derived data."""

    def test_locate_shared_side_lowest_id(self) -> None:
        """A point on the shared diagonal matches the lowest triangle id."""
        mesh = TriangleMesh([(0.0, 0.0), (1.0, 0.0), (1.0, 1.0), (0.0, 1.0)])
        assert mesh.locate_linear((0.5, 0.5)) == 0

    def test_locate_outside(self) -> None:
        """Points outside the mesh are not found."""
        mesh = TriangleMesh([(0.0, 0.0), (1.0, 0.0), (1.0, 1.0), (0.0, 1.0)])
        assert mesh.locate_linear((2.0, 2.0)) is None
        assert mesh.find_triangles([(2.0, 2.0)])[0] == -1

    def test_locate_agrees_with_find(self, square_mesh: TriangleMesh) -> None:
        """Linear scan and bulk lookup agree for triangle centroids."""
        centres = square_mesh.triangle_centers()
        found = square_mesh.find_triangles(centres)
        for index in range(0, square_mesh.triangle_count, 7):
            assert square_mesh.locate_linear(centres[index]) == index
            assert found[index] == index

    def test_triangle_centers_with_elevation(self, square_mesh: TriangleMesh) -> None:
        """Centres with elevations are (x, elevation, z)."""
        elevations = np.full(square_mesh.vertex_count, 7.0)
        centres = square_mesh.triangle_centers(elevations)
        assert centres.shape == (square_mesh.triangle_count, 3)
        np.testing.assert_allclose(centres[:, 1], 7.0)
        np.testing.assert_allclose(centres[:, [0, 2]], square_mesh.triangle_centers())

    def test_vertex_record(self, square_mesh: TriangleMesh) -> None:
        """Vertex records carry position and label."""
        corner = square_mesh.boundary_vertex_ids()[0]
        vertex = square_mesh.vertex(corner)
        assert vertex.id == corner
        assert vertex.is_boundary


class TestTriangulate:
    """Tests for triangulating interior points plus a boundary."""

    def test_edge_sharing(self, square_mesh: TriangleMesh) -> None:
        """Interior edges are shared by 2 triangles, boundary edges by 1."""
        counts = square_mesh.edge_counts()
        assert set(counts.values()) <= {1, 2}
        boundary_edges = [edge for edge, count in counts.items() if count == 1]
        assert len(boundary_edges) == len(square_mesh.boundary_vertex_ids())
        for a, b in boundary_edges:
            assert square_mesh.labels[a] == BOUNDARY_LABEL
            assert square_mesh.labels[b] == BOUNDARY_LABEL

    def test_corners_are_boundary(self, square_mesh: TriangleMesh) -> None:
        """All four corners are boundary-labelled vertices."""
        for corner in CORNERS_100:
            matches = np.flatnonzero(np.all(square_mesh.vertices == corner, axis=1))
            assert len(matches) == 1
            assert square_mesh.labels[matches[0]] == BOUNDARY_LABEL

    def test_boundary_splits(self) -> None:
        """Long boundary sides get labelled Steiner points."""
        mesh = triangulate(np.empty((0, 2)), CORNERS_100, max_segment_length=40.0)
        # Each 100-long side is cut into 3 pieces
        assert mesh.vertex_count == 4 + 4 * 2
        assert np.all(mesh.labels == BOUNDARY_LABEL)

    def test_points_on_ring_labelled(self) -> None:
        """Input points lying on the boundary ring become boundary vertices."""
        mesh = triangulate([(50.0, 0.0), (50.0, 50.0)], CORNERS_100)
        assert mesh.labels[0] == BOUNDARY_LABEL
        assert mesh.labels[1] != BOUNDARY_LABEL

    def test_duplicates_keep_first_id_and_label(self) -> None:
        """A duplicate keeps its first id and the highest label."""
        mesh = triangulate([(0.0, 0.0), (50.0, 50.0)], CORNERS_100, conforming=False)
        assert mesh.vertex_count == 5
        np.testing.assert_array_equal(mesh.vertices[0], (0.0, 0.0))
        assert mesh.labels[0] == BOUNDARY_LABEL

    def test_vertex_order(self) -> None:
        """Vertex ids follow points, then boundary points."""
        points = [(20.0, 30.0), (60.0, 70.0)]
        mesh = triangulate(points, CORNERS_100)
        np.testing.assert_array_equal(mesh.vertices[:2], points)
        np.testing.assert_array_equal(mesh.vertices[2:6], CORNERS_100)

    def test_deterministic(self) -> None:
        """Identical input gives identical triangles."""
        points = np.random.default_rng(0).uniform(0, 100, size=(60, 2))
        a = triangulate(points, CORNERS_100, max_segment_length=25.0)
        b = triangulate(points, CORNERS_100, max_segment_length=25.0)
        np.testing.assert_array_equal(a.triangles, b.triangles)
        np.testing.assert_array_equal(a.neighbors, b.neighbors)
