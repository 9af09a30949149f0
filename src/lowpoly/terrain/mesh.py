"""Delaunay triangle mesh with boundary labels and triangle adjacency.

The triangulation itself is delegated to scipy's Qhull wrapper; this module
prepares the point set (boundary labelling, conforming boundary splits,
duplicate removal) and builds the query layer the generator needs.
"""

import logging
from dataclasses import dataclass
from typing import Iterator

import numpy as np
from numpy.typing import ArrayLike, NDArray
from scipy.spatial import Delaunay, QhullError

from ..exceptions import DegenerateInputError

logger = logging.getLogger(__name__)

INTERIOR_LABEL = 0
BOUNDARY_LABEL = 1

# Neighbor value for triangle sides on the mesh boundary
NO_NEIGHBOR = -1


@dataclass(frozen=True)
class Vertex:
    """A mesh vertex. Elevation is stored separately, keyed by id."""

    id: int
    x: float
    y: float
    label: int = INTERIOR_LABEL

    @property
    def is_boundary(self) -> bool:
        return self.label == BOUNDARY_LABEL


@dataclass(frozen=True)
class Triangle:
    """A mesh triangle.

    Vertices are in counter-clockwise planar order. ``neighbors[k]`` is the
    triangle across the side opposite ``vertices[k]``, or None.
    """

    id: int
    vertices: tuple[int, int, int]
    neighbors: tuple[int | None, int | None, int | None]


class TriangleMesh:
    """Immutable Delaunay triangulation of a labelled point set."""

    def __init__(self, vertices: ArrayLike, labels: ArrayLike | None = None):
        """Triangulate ``vertices`` as given (ids follow array order).

        Args:
            vertices: Planar points, shape (N, 2).
            labels: Per-vertex boundary labels (0 or 1). Defaults to all 0.

        Raises:
            DegenerateInputError: If fewer than 3 points or all collinear.
        """
        points = np.asarray(vertices, dtype=np.float64).reshape(-1, 2)
        if len(points) < 3:
            raise DegenerateInputError(
                f"Need at least 3 points to triangulate, got {len(points)}"
            )
        if _is_collinear(points):
            raise DegenerateInputError("All input points are collinear")

        try:
            delaunay = Delaunay(points)
        except QhullError as e:
            raise DegenerateInputError(f"Triangulation failed: {e}") from e

        if len(delaunay.coplanar):
            logger.warning(
                f"{len(delaunay.coplanar)} near-duplicate points were left out "
                "of the triangulation"
            )

        simplices = delaunay.simplices.astype(np.int64)
        neighbors = delaunay.neighbors.astype(np.int64)

        # Normalize to counter-clockwise winding, keeping neighbor k opposite
        # vertex k
        clockwise = _signed_areas(points, simplices) < 0
        simplices[clockwise] = simplices[clockwise][:, [0, 2, 1]]
        neighbors[clockwise] = neighbors[clockwise][:, [0, 2, 1]]

        if labels is None:
            label_array = np.zeros(len(points), dtype=np.uint8)
        else:
            label_array = np.asarray(labels, dtype=np.uint8).reshape(-1)
            if len(label_array) != len(points):
                raise ValueError(
                    f"Got {len(label_array)} labels for {len(points)} vertices"
                )

        self._delaunay = delaunay
        self._vertices = _read_only(points)
        self._labels = _read_only(label_array)
        self._triangles = _read_only(simplices)
        self._neighbors = _read_only(neighbors)

    @property
    def vertex_count(self) -> int:
        return len(self._vertices)

    @property
    def triangle_count(self) -> int:
        return len(self._triangles)

    @property
    def vertices(self) -> NDArray[np.float64]:
        """Planar vertex positions, shape (N, 2)."""
        return self._vertices

    @property
    def labels(self) -> NDArray[np.uint8]:
        """Boundary label per vertex."""
        return self._labels

    @property
    def triangles(self) -> NDArray[np.int64]:
        """Vertex ids per triangle (CCW), shape (T, 3)."""
        return self._triangles

    @property
    def neighbors(self) -> NDArray[np.int64]:
        """Neighbor triangle ids, shape (T, 3), ``NO_NEIGHBOR`` on the boundary."""
        return self._neighbors

    def vertex(self, index: int) -> Vertex:
        x, y = self._vertices[index]
        return Vertex(id=int(index), x=float(x), y=float(y), label=int(self._labels[index]))

    def triangle(self, index: int) -> Triangle:
        a, b, c = (int(v) for v in self._triangles[index])
        neighbors = tuple(
            None if n == NO_NEIGHBOR else int(n) for n in self._neighbors[index]
        )
        return Triangle(id=int(index), vertices=(a, b, c), neighbors=neighbors)

    def iter_triangles(self) -> Iterator[Triangle]:
        """Iterate all triangles in id order (stable for identical input)."""
        for index in range(self.triangle_count):
            yield self.triangle(index)

    def adjacent(self, index: int) -> list[int]:
        """Ids of the triangles sharing a side with triangle ``index``."""
        return [int(n) for n in self._neighbors[index] if n != NO_NEIGHBOR]

    def boundary_vertex_ids(self) -> NDArray[np.int64]:
        """Ids of all boundary-labelled vertices, ascending."""
        return np.flatnonzero(self._labels == BOUNDARY_LABEL)

    def triangle_centers(
        self, elevations: NDArray[np.float64] | None = None
    ) -> NDArray[np.float64]:
        """Centroid of every triangle.

        Without elevations the result is planar, shape (T, 2). With them it
        is (x, elevation, z), shape (T, 3).
        """
        planar = self._vertices[self._triangles].mean(axis=1)
        if elevations is None:
            return planar
        heights = np.asarray(elevations, dtype=np.float64)[self._triangles].mean(axis=1)
        return np.column_stack([planar[:, 0], heights, planar[:, 1]])

    def edge_counts(self) -> dict[tuple[int, int], int]:
        """Number of triangles using each undirected edge."""
        counts: dict[tuple[int, int], int] = {}
        for a, b, c in self._triangles:
            for u, v in ((a, b), (b, c), (c, a)):
                key = (int(min(u, v)), int(max(u, v)))
                counts[key] = counts.get(key, 0) + 1
        return counts

    def locate_linear(
        self, point: tuple[float, float], tolerance: float = 1e-9
    ) -> int | None:
        """Find a triangle containing ``point`` by scanning every triangle.

        Points on a shared side or vertex match the lowest triangle id.
        """
        corners = self._vertices[self._triangles]
        a, b, c = corners[:, 0], corners[:, 1], corners[:, 2]
        p = np.asarray(point, dtype=np.float64)[:2]

        d1 = _cross(a, b, p)
        d2 = _cross(b, c, p)
        d3 = _cross(c, a, p)
        inside = (d1 >= -tolerance) & (d2 >= -tolerance) & (d3 >= -tolerance)

        hits = np.flatnonzero(inside)
        if len(hits) == 0:
            return None
        return int(hits[0])

    def find_triangles(self, points: ArrayLike) -> NDArray[np.int64]:
        """Locate many points at once; -1 for points outside the mesh."""
        query = np.asarray(points, dtype=np.float64).reshape(-1, 2)
        return self._delaunay.find_simplex(query).astype(np.int64)


def triangulate(
    points: ArrayLike,
    boundary_points: ArrayLike,
    conforming: bool = True,
    max_segment_length: float | None = None,
) -> TriangleMesh:
    """Triangulate interior points plus a labelled boundary.

    Vertex ids follow the order: ``points``, ``boundary_points``, then any
    Steiner points inserted on the boundary. Exact duplicates keep the first
    id and the highest label.

    With ``conforming`` the boundary points are treated as a closed ring
    (ordered around their centroid). Input points lying on the ring are
    labelled as boundary, and ring segments longer than
    ``max_segment_length`` are split by labelled Steiner points. When the
    ring is convex and encloses every point its segments are hull edges, so
    each one appears in the mesh as real edges.

    Raises:
        DegenerateInputError: If fewer than 3 distinct non-collinear points.
    """
    interior = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    boundary = np.asarray(boundary_points, dtype=np.float64).reshape(-1, 2)

    labels = [
        np.zeros(len(interior), dtype=np.uint8),
        np.full(len(boundary), BOUNDARY_LABEL, dtype=np.uint8),
    ]
    parts = [interior, boundary]

    if conforming and len(boundary) >= 2:
        ring = _order_ring(boundary)
        labels[0][_on_ring(interior, ring)] = BOUNDARY_LABEL
        if max_segment_length is not None:
            steiner = _split_ring(ring, max_segment_length)
            parts.append(steiner)
            labels.append(np.full(len(steiner), BOUNDARY_LABEL, dtype=np.uint8))

    all_points = np.concatenate(parts)
    all_labels = np.concatenate(labels)

    if len(all_points) == 0:
        raise DegenerateInputError("Need at least 3 points to triangulate, got 0")

    unique, first, inverse = np.unique(
        all_points, axis=0, return_index=True, return_inverse=True
    )
    inverse = inverse.reshape(-1)
    merged_labels = np.zeros(len(unique), dtype=np.uint8)
    np.maximum.at(merged_labels, inverse, all_labels)

    order = np.sort(first)
    vertices = all_points[order]
    vertex_labels = merged_labels[inverse[order]]

    dropped = len(all_points) - len(vertices)
    if dropped:
        logger.debug(f"Dropped {dropped} duplicate points before triangulation")

    mesh = TriangleMesh(vertices, vertex_labels)
    logger.debug(
        f"Triangulated {mesh.vertex_count} vertices into {mesh.triangle_count} triangles"
    )
    return mesh


def _read_only(array: NDArray) -> NDArray:
    array.setflags(write=False)
    return array


def _is_collinear(points: NDArray[np.float64]) -> bool:
    centered = points - points.mean(axis=0)
    return np.linalg.matrix_rank(centered) < 2


def _signed_areas(points: NDArray[np.float64], simplices: NDArray[np.int64]) -> NDArray[np.float64]:
    a = points[simplices[:, 0]]
    b = points[simplices[:, 1]]
    c = points[simplices[:, 2]]
    return _cross(a, b, c)


def _cross(a: NDArray, b: NDArray, c: NDArray) -> NDArray:
    """Z component of (b - a) x (c - a); positive when a, b, c turn left."""
    return (b[..., 0] - a[..., 0]) * (c[..., 1] - a[..., 1]) - (
        b[..., 1] - a[..., 1]
    ) * (c[..., 0] - a[..., 0])


def _order_ring(points: NDArray[np.float64]) -> NDArray[np.float64]:
    """Order points counter-clockwise around their centroid."""
    centre = points.mean(axis=0)
    angles = np.arctan2(points[:, 1] - centre[1], points[:, 0] - centre[0])
    return points[np.argsort(angles, kind="stable")]


def _ring_segments(ring: NDArray[np.float64]) -> list[tuple[NDArray, NDArray]]:
    if len(ring) == 2:
        return [(ring[0], ring[1])]
    return [(ring[i], ring[(i + 1) % len(ring)]) for i in range(len(ring))]


def _split_ring(ring: NDArray[np.float64], max_length: float) -> NDArray[np.float64]:
    """Steiner points splitting every ring segment to at most ``max_length``."""
    if max_length <= 0:
        raise ValueError(f"max_segment_length must be positive, got {max_length}")

    inserted: list[NDArray] = []
    for start, end in _ring_segments(ring):
        length = float(np.linalg.norm(end - start))
        pieces = int(np.ceil(length / max_length))
        for k in range(1, pieces):
            inserted.append(start + (end - start) * (k / pieces))

    if not inserted:
        return np.empty((0, 2), dtype=np.float64)
    return np.array(inserted, dtype=np.float64)


def _on_ring(points: NDArray[np.float64], ring: NDArray[np.float64]) -> NDArray[np.bool_]:
    """Mask of points lying on any ring segment."""
    on = np.zeros(len(points), dtype=bool)
    if len(points) == 0:
        return on

    scale = max(float(np.ptp(ring, axis=0).max()), 1.0)
    tolerance = 1e-9 * scale
    for start, end in _ring_segments(ring):
        direction = end - start
        length_sq = float(direction @ direction)
        if length_sq == 0.0:
            continue
        t = np.clip(((points - start) @ direction) / length_sq, 0.0, 1.0)
        closest = start + t[:, None] * direction
        on |= np.linalg.norm(points - closest, axis=1) <= tolerance
    return on
