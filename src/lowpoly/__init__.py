"""Low-poly terrain tile generation."""

from .exceptions import (
    DegenerateInputError,
    InvalidRangeError,
    NoValidRiverEndpointsError,
    RiverRoutingError,
    SearchExhaustedError,
    TerrainError,
)
from .session import Disposable, GenerationSession, InstanceConsumer, MeshConsumer
from .types import (
    EDGE_INWARD_NORMALS,
    PlacedInstance,
    RectEdge,
    Transform,
    Vector3,
    rect_edges,
)

__all__ = [
    # Types
    "Vector3",
    "RectEdge",
    "EDGE_INWARD_NORMALS",
    "Transform",
    "PlacedInstance",
    "rect_edges",
    # Session
    "GenerationSession",
    "MeshConsumer",
    "InstanceConsumer",
    "Disposable",
    # Exceptions
    "TerrainError",
    "InvalidRangeError",
    "DegenerateInputError",
    "RiverRoutingError",
    "NoValidRiverEndpointsError",
    "SearchExhaustedError",
]
