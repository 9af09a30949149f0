"""Core types shared across terrain generation."""

from enum import Enum

from pydantic import BaseModel

Vector3 = tuple[float, float, float]


class RectEdge(str, Enum):
    """Sides of the rectangular tile.

    Coordinate system: planar +X is east, planar +Y (3D +Z) is north.
    """

    LEFT = "left"
    RIGHT = "right"
    BOTTOM = "bottom"
    TOP = "top"


# Unit vectors pointing from each edge into the tile (planar x, y)
EDGE_INWARD_NORMALS: dict[RectEdge, tuple[float, float]] = {
    RectEdge.LEFT: (1.0, 0.0),
    RectEdge.RIGHT: (-1.0, 0.0),
    RectEdge.BOTTOM: (0.0, 1.0),
    RectEdge.TOP: (0.0, -1.0),
}


def rect_edges(
    x: float,
    y: float,
    width: float,
    height: float,
    tolerance: float = 1e-9,
) -> frozenset[RectEdge]:
    """Return the tile edges a planar point lies on (two for a corner)."""
    edges = set()
    if abs(x) <= tolerance:
        edges.add(RectEdge.LEFT)
    if abs(x - width) <= tolerance:
        edges.add(RectEdge.RIGHT)
    if abs(y) <= tolerance:
        edges.add(RectEdge.BOTTOM)
    if abs(y - height) <= tolerance:
        edges.add(RectEdge.TOP)
    return frozenset(edges)


class Transform(BaseModel, frozen=True):
    """World transform of a placed instance.

    Rotation is Euler angles in degrees (x, y, z).
    """

    position: Vector3
    rotation: Vector3 = (0.0, 0.0, 0.0)
    scale: Vector3 = (1.0, 1.0, 1.0)


class PlacedInstance(BaseModel, frozen=True):
    """A decoration instance handed to the instance consumer."""

    object_id: str
    object_type: str
    prefab: str
    transform: Transform
    color: Vector3 | None = None
    animate: bool = False

    @property
    def position(self) -> Vector3:
        return self.transform.position

    def planar_position(self) -> tuple[float, float]:
        """Position projected onto the tile plane (x, z)."""
        x, _, z = self.transform.position
        return (x, z)
