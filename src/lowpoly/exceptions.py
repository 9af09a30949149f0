"""Custom exceptions for terrain tile generation."""


class TerrainError(Exception):
    """Base exception for terrain generation errors."""

    pass


class InvalidRangeError(TerrainError, ValueError):
    """Raised when a random range is requested with max <= min."""

    pass


class DegenerateInputError(TerrainError):
    """Raised when triangulation input has fewer than 3 non-collinear points."""

    pass


class RiverRoutingError(TerrainError):
    """Base for recoverable river routing failures."""

    pass


class NoValidRiverEndpointsError(RiverRoutingError):
    """Raised when no source/mouth pair on different edges could be drawn."""

    pass


class SearchExhaustedError(RiverRoutingError):
    """Raised when the triangle search hits its cap or runs out of nodes."""

    pass
