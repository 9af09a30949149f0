"""Ground queries: surface height and slope at a planar point."""

from dataclasses import dataclass
from typing import Protocol

import numpy as np
from numpy.typing import NDArray

from ..types import Vector3
from .mesh import TriangleMesh


@dataclass(frozen=True)
class GroundHit:
    """Where a vertical ray meets the surface."""

    point: Vector3
    normal: Vector3
    triangle: int | None = None


class GroundQuery(Protocol):
    """Anything that can answer "what is the ground at (x, z)?"."""

    def query(self, x: float, z: float) -> GroundHit | None:
        """Return the surface hit, or None when there is no surface there."""
        ...


def face_normals(mesh: TriangleMesh, elevations: NDArray[np.float64]) -> NDArray[np.float64]:
    """Unit upward normal of every triangle, shape (T, 3) as (x, y, z)."""
    planar = mesh.vertices[mesh.triangles]
    heights = np.asarray(elevations, dtype=np.float64)[mesh.triangles]
    corners = np.stack([planar[..., 0], heights, planar[..., 1]], axis=-1)
    a, b, c = corners[:, 0], corners[:, 1], corners[:, 2]
    normals = np.cross(c - a, b - a)
    lengths = np.linalg.norm(normals, axis=1, keepdims=True)
    return normals / np.where(lengths == 0, 1.0, lengths)


class MeshGroundQuery:
    """Ground query answered from the finished terrain mesh.

    Height is interpolated barycentrically inside the containing triangle;
    the normal is that triangle's flat face normal.
    """

    def __init__(self, mesh: TriangleMesh, elevations: NDArray[np.float64]):
        self.mesh = mesh
        self.elevations = np.asarray(elevations, dtype=np.float64)
        if len(self.elevations) != mesh.vertex_count:
            raise ValueError(
                f"Got {len(self.elevations)} elevations for {mesh.vertex_count} vertices"
            )
        self._normals = face_normals(mesh, self.elevations)

    def query(self, x: float, z: float) -> GroundHit | None:
        triangle = int(self.mesh.find_triangles([(x, z)])[0])
        if triangle < 0:
            return None

        ids = self.mesh.triangles[triangle]
        (ax, ay), (bx, by), (cx, cy) = self.mesh.vertices[ids]
        det = (by - cy) * (ax - cx) + (cx - bx) * (ay - cy)
        if det == 0:
            return None
        w0 = ((by - cy) * (x - cx) + (cx - bx) * (z - cy)) / det
        w1 = ((cy - ay) * (x - cx) + (ax - cx) * (z - cy)) / det
        w2 = 1.0 - w0 - w1
        ea, eb, ec = self.elevations[ids]
        elevation = w0 * ea + w1 * eb + w2 * ec

        nx, ny, nz = self._normals[triangle]
        return GroundHit(
            point=(float(x), float(elevation), float(z)),
            normal=(float(nx), float(ny), float(nz)),
            triangle=triangle,
        )
