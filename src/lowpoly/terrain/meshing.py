"""Renderable buffers: terrain chunks, skirt walls and the road ribbon.

All meshes are flat shaded: every triangle owns its 3 vertices, and all
three share the triangle's unit face normal. Winding is chosen so the face
normal ``cross(v1 - v0, v2 - v0)`` points out of the solid.
"""

import logging
import math
from dataclasses import dataclass, field

import numpy as np
from numpy.typing import ArrayLike, NDArray

from ..types import RectEdge, rect_edges
from .mesh import TriangleMesh

logger = logging.getLogger(__name__)


@dataclass
class MeshChunk:
    """Vertex buffers for one renderable mesh.

    ``submeshes`` holds (first index, index count) ranges into ``indices``.
    """

    name: str
    positions: NDArray[np.float64] = field(repr=False)
    normals: NDArray[np.float64] = field(repr=False)
    uvs: NDArray[np.float64] = field(repr=False)
    indices: NDArray[np.int64] = field(repr=False)
    submeshes: list[tuple[int, int]]
    animate: bool = False

    @property
    def vertex_count(self) -> int:
        return len(self.positions)

    @property
    def triangle_count(self) -> int:
        return len(self.indices) // 3


def _flat_chunk(
    name: str,
    corners: NDArray[np.float64],
    submesh_triangles: list[int],
) -> MeshChunk:
    """Build a flat-shaded chunk from triangle corners of shape (M, 3, 3)."""
    count = len(corners)
    normals = np.cross(corners[:, 1] - corners[:, 0], corners[:, 2] - corners[:, 0])
    lengths = np.linalg.norm(normals, axis=1, keepdims=True)
    normals = normals / np.where(lengths == 0, 1.0, lengths)

    submeshes = []
    start = 0
    for triangles in submesh_triangles:
        submeshes.append((start * 3, triangles * 3))
        start += triangles

    return MeshChunk(
        name=name,
        positions=corners.reshape(-1, 3),
        normals=np.repeat(normals, 3, axis=0),
        uvs=np.zeros((count * 3, 2)),
        indices=np.arange(count * 3, dtype=np.int64),
        submeshes=submeshes,
    )


def _planar_uvs(positions: NDArray[np.float64], width: float, height: float) -> NDArray[np.float64]:
    return np.column_stack([positions[:, 0] / width, positions[:, 2] / height])


def build_terrain_chunks(
    mesh: TriangleMesh,
    elevations: NDArray[np.float64],
    triangles_per_chunk: int,
    width: float | None = None,
    height: float | None = None,
) -> list[MeshChunk]:
    """Split the terrain surface into chunks of at most ``triangles_per_chunk``.

    Triangle corners are emitted in reversed order (2, 1, 0) so the face
    normals of the counter-clockwise mesh point up. UVs are the planar
    position divided by the tile size.
    """
    if triangles_per_chunk <= 0:
        raise ValueError(f"triangles_per_chunk must be positive, got {triangles_per_chunk}")

    elevations = np.asarray(elevations, dtype=np.float64)
    if width is None or height is None:
        extent = mesh.vertices.max(axis=0)
        width = float(extent[0]) if width is None else width
        height = float(extent[1]) if height is None else height

    points = np.column_stack([mesh.vertices[:, 0], elevations, mesh.vertices[:, 1]])
    corners = points[mesh.triangles[:, ::-1]]

    chunks = []
    for number, start in enumerate(range(0, mesh.triangle_count, triangles_per_chunk)):
        part = corners[start : start + triangles_per_chunk]
        chunk = _flat_chunk(f"terrain_{number}", part, [len(part)])
        chunk.uvs = _planar_uvs(chunk.positions, width, height)
        chunks.append(chunk)

    logger.info(
        f"Built {len(chunks)} terrain chunks from {mesh.triangle_count} triangles"
    )
    return chunks


def _wall_strip(upper: NDArray[np.float64], lower: NDArray[np.float64], flip: bool) -> NDArray[np.float64]:
    """Quad strip between two rows of points ordered along an edge."""
    first = np.stack([upper[:-1], lower[:-1], upper[1:]], axis=1)
    second = np.stack([upper[1:], lower[:-1], lower[1:]], axis=1)
    strip = np.concatenate([first, second])
    if flip:
        strip = strip[:, [0, 2, 1]]
    return strip


def build_base_walls(
    mesh: TriangleMesh,
    elevations: NDArray[np.float64],
    top_layer_size: float,
    bottom_layer_size: float,
    width: float,
    height: float,
) -> list[MeshChunk]:
    """Build the skirt walls closing the four sides of the tile.

    Each edge gets one chunk with two submeshes: the top layer from the
    surface down to ``surface - top_layer_size`` and the bottom layer from
    there down to ``-bottom_layer_size``. Edges with fewer than 2 boundary
    vertices are skipped.
    """
    elevations = np.asarray(elevations, dtype=np.float64)
    boundary = mesh.boundary_vertex_ids()

    chunks = []
    for edge in RectEdge:
        ids = [
            int(v)
            for v in boundary
            if edge in rect_edges(*mesh.vertices[v], width, height, tolerance=1e-6)
        ]
        if len(ids) < 2:
            logger.warning(f"Skipping {edge.value} wall: {len(ids)} boundary vertices")
            continue

        along_axis = 0 if edge in (RectEdge.BOTTOM, RectEdge.TOP) else 1
        ids.sort(key=lambda v: mesh.vertices[v, along_axis])
        planar = mesh.vertices[ids]
        surface = elevations[ids]

        # Pin the wall exactly onto the edge line
        if edge is RectEdge.LEFT:
            planar[:, 0] = 0.0
        elif edge is RectEdge.RIGHT:
            planar[:, 0] = width
        elif edge is RectEdge.BOTTOM:
            planar[:, 1] = 0.0
        else:
            planar[:, 1] = height

        def row(levels: NDArray[np.float64]) -> NDArray[np.float64]:
            return np.column_stack([planar[:, 0], levels, planar[:, 1]])

        top_lower = surface - top_layer_size
        bottom = np.minimum(np.full_like(surface, -bottom_layer_size), top_lower)

        flip = edge in (RectEdge.BOTTOM, RectEdge.RIGHT)
        top_strip = _wall_strip(row(surface), row(top_lower), flip)
        bottom_strip = _wall_strip(row(top_lower), row(bottom), flip)

        chunk = _flat_chunk(
            f"base_{edge.value}",
            np.concatenate([top_strip, bottom_strip]),
            [len(top_strip), len(bottom_strip)],
        )
        extent = width if along_axis == 0 else height
        along = chunk.positions[:, 0 if along_axis == 0 else 2] / extent
        depth = (chunk.positions[:, 1] + bottom_layer_size) / max(
            float(surface.max()) + bottom_layer_size, 1e-9
        )
        chunk.uvs = np.column_stack([along, depth])
        chunks.append(chunk)

    logger.info(f"Built {len(chunks)} base walls")
    return chunks


def build_road_mesh(
    points: ArrayLike,
    half_width: float,
    thickness: float,
    width: float,
    height: float,
    fill: float = 1.0,
) -> MeshChunk:
    """Build the road ribbon along path samples.

    The ribbon is ``2 * half_width`` wide with its top surface at the path
    elevation. Submesh 0 is the top surface, submesh 1 the two sides. All
    vertices are clamped into the tile. Only the first ``fill`` fraction of
    the samples is used.

    Args:
        points: Path samples (x, elevation, z), shape (K, 3).
        half_width: Distance from the centre line to each side.
        thickness: Height of the side walls.
        width: Tile width.
        height: Tile height.
        fill: Built fraction of the road, in [0, 1].
    """
    samples = np.asarray(points, dtype=np.float64).reshape(-1, 3)
    keep = max(2, math.ceil(len(samples) * min(max(fill, 0.0), 1.0)))
    samples = samples[:keep]
    if len(samples) < 2:
        raise ValueError("A road mesh needs at least 2 path samples")

    tangents = np.gradient(samples[:, [0, 2]], axis=0)
    right = np.column_stack([tangents[:, 1], -tangents[:, 0]])
    lengths = np.linalg.norm(right, axis=1, keepdims=True)
    right = right / np.where(lengths == 0, 1.0, lengths)
    offset = np.column_stack([right[:, 0], np.zeros(len(right)), right[:, 1]]) * half_width

    left_top = samples - offset
    right_top = samples + offset
    for row in (left_top, right_top):
        row[:, 0] = np.clip(row[:, 0], 0.0, width)
        row[:, 2] = np.clip(row[:, 2], 0.0, height)
    down = np.array([0.0, thickness, 0.0])
    left_bottom = left_top - down
    right_bottom = right_top - down

    top = np.concatenate(
        [
            np.stack([left_top[:-1], left_top[1:], right_top[:-1]], axis=1),
            np.stack([right_top[:-1], left_top[1:], right_top[1:]], axis=1),
        ]
    )
    sides = np.concatenate(
        [
            np.stack([left_top[:-1], left_bottom[:-1], left_top[1:]], axis=1),
            np.stack([left_top[1:], left_bottom[:-1], left_bottom[1:]], axis=1),
            np.stack([right_top[:-1], right_top[1:], right_bottom[:-1]], axis=1),
            np.stack([right_top[1:], right_bottom[1:], right_bottom[:-1]], axis=1),
        ]
    )

    chunk = _flat_chunk("road", np.concatenate([top, sides]), [len(top), len(sides)])
    chunk.uvs = _planar_uvs(chunk.positions, width, height)
    return chunk
