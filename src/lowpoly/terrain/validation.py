"""Post-generation validation."""

import logging

import numpy as np
from scipy.spatial import cKDTree

from .generator import GenerationResult
from .objects import ObjectType

logger = logging.getLogger(__name__)


class ValidationResult:
    """Result of terrain validation."""

    def __init__(self) -> None:
        self.errors: list[str] = []
        self.warnings: list[str] = []
        self.passed = True

    def add_error(self, message: str) -> None:
        """Add validation error."""
        self.errors.append(message)
        self.passed = False

    def add_warning(self, message: str) -> None:
        """Add validation warning."""
        self.warnings.append(message)


def validate_terrain(result: GenerationResult) -> ValidationResult:
    """Validate a generated tile against its structural guarantees.

    Args:
        result: Finished generation result.

    Returns:
        ValidationResult with any errors/warnings.
    """
    validation = ValidationResult()
    config = result.config

    # Check 1: One elevation per vertex
    _check_elevations(result, validation)

    # Check 2: Every edge shared by at most two triangles
    _check_edge_sharing(result, validation)

    # Check 3: Tile corners are boundary vertices
    _check_corners(result, config.width, config.height, validation)

    # Check 4: Instances inside the tile
    _check_instance_bounds(result, config.width, config.height, validation)

    # Check 5: Decorations keep clear of the road
    _check_road_exclusion(result, validation)

    # Log results
    if validation.passed:
        logger.info("Terrain validation passed")
    else:
        logger.warning(f"Terrain validation failed with {len(validation.errors)} errors")
        for error in validation.errors:
            logger.error(f"  - {error}")

    for warning in validation.warnings:
        logger.warning(f"  - {warning}")

    return validation


def _check_elevations(result: GenerationResult, validation: ValidationResult) -> None:
    count = result.mesh.vertex_count
    if len(result.elevations) != count:
        validation.add_error(
            f"Elevation array has {len(result.elevations)} entries for {count} vertices"
        )
    elif not np.all(np.isfinite(result.elevations)):
        validation.add_error("Elevation array contains non-finite values")


def _check_edge_sharing(result: GenerationResult, validation: ValidationResult) -> None:
    """Interior edges belong to 2 triangles, boundary edges to 1."""
    mesh = result.mesh
    overshared = 0
    for (a, b), count in mesh.edge_counts().items():
        if count > 2:
            overshared += 1
        elif count == 1 and not (mesh.labels[a] and mesh.labels[b]):
            validation.add_warning(f"Open edge ({a}, {b}) between non-boundary vertices")
    if overshared:
        validation.add_error(f"{overshared} edges are shared by more than two triangles")


def _check_corners(
    result: GenerationResult, width: float, height: float, validation: ValidationResult
) -> None:
    mesh = result.mesh
    for corner in ((0.0, 0.0), (0.0, height), (width, 0.0), (width, height)):
        matches = np.flatnonzero(np.all(np.isclose(mesh.vertices, corner), axis=1))
        if len(matches) == 0:
            validation.add_error(f"Corner {corner} is not a mesh vertex")
        elif not mesh.labels[matches[0]]:
            validation.add_error(f"Corner {corner} is not labelled as boundary")


def _check_instance_bounds(
    result: GenerationResult, width: float, height: float, validation: ValidationResult
) -> None:
    outside = [
        instance
        for instance in result.instances
        if not (0.0 <= instance.position[0] <= width and 0.0 <= instance.position[2] <= height)
    ]
    # Lamps follow the road and may overhang the tile near its ends
    lamps = [i.object_id for i in outside if i.object_type == ObjectType.LAMP.value]
    others = [i.object_id for i in outside if i.object_type != ObjectType.LAMP.value]
    if lamps:
        validation.add_warning(f"{len(lamps)} lamps outside the tile: {lamps[:5]}")
    if others:
        validation.add_error(f"{len(others)} instances outside the tile: {others[:5]}")


def _check_road_exclusion(result: GenerationResult, validation: ValidationResult) -> None:
    """Decoration passes never place within their exclusion radius of the road."""
    if len(result.road_samples) == 0:
        return

    tree = cKDTree(result.road_samples[:, [0, 2]])
    for object_type, feature in result.config.feature_passes():
        placed = result.instances_of(object_type)
        if not placed:
            continue
        distances, _ = tree.query([instance.planar_position() for instance in placed])
        violations = int(np.sum(distances <= feature.exclusion_radius))
        if violations:
            validation.add_error(
                f"{violations} {object_type} instances within "
                f"{feature.exclusion_radius} of the road"
            )
