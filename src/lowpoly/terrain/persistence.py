"""Tile persistence: save and load generated terrain tiles."""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

import numpy as np
from numpy.typing import NDArray

from ..types import PlacedInstance
from .generator import GenerationResult
from .mesh import TriangleMesh

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1


def save_tile(path: Path, result: GenerationResult) -> None:
    """Save a generated tile to disk.

    Uses numpy's compressed .npz format. The mesh is stored as its vertices
    and labels; triangles are rebuilt on load.

    Args:
        path: Output path (should end with .npz).
        result: Finished generation result.
    """
    config = result.config
    instances_data = [instance.model_dump(mode="json") for instance in result.instances]

    # Metadata
    metadata = {
        "version": FORMAT_VERSION,
        "seed": config.seed,
        "width": config.width,
        "height": config.height,
        "river": result.river is not None,
        "river_disabled_reason": result.river_disabled_reason,
        "config": config.model_dump(mode="json"),
        "generated_at": datetime.now(timezone.utc).isoformat(),
    }

    np.savez_compressed(
        path,
        vertices=result.mesh.vertices,
        labels=result.mesh.labels,
        elevations=result.elevations,
        road_samples=result.road_samples,
        river_samples=result.river_samples,
        instances=np.frombuffer(json.dumps(instances_data).encode("utf-8"), dtype=np.uint8),
        metadata=np.frombuffer(json.dumps(metadata).encode("utf-8"), dtype=np.uint8),
    )

    file_size = path.stat().st_size / 1024
    logger.info(f"Saved tile to {path} ({file_size:.1f} KB)")


def load_tile(
    path: Path,
) -> tuple[TriangleMesh, NDArray[np.float64], list[PlacedInstance], dict]:
    """Load a tile from disk.

    Args:
        path: Path to .npz file.

    Returns:
        Tuple of (mesh, elevations, list of PlacedInstance, metadata dict).
        The metadata also carries the ``road_samples`` and ``river_samples``
        arrays.

    Raises:
        FileNotFoundError: If file doesn't exist.
        ValueError: If file format is invalid.
    """
    if not path.exists():
        raise FileNotFoundError(f"Tile file not found: {path}")

    with np.load(path) as data:
        for key in ("vertices", "labels", "elevations"):
            if key not in data:
                raise ValueError(f"Invalid tile file: missing '{key}' array")
        vertices = data["vertices"]
        labels = data["labels"]
        elevations = data["elevations"].astype(np.float64)
        road_samples = data["road_samples"] if "road_samples" in data else np.empty((0, 3))
        river_samples = data["river_samples"] if "river_samples" in data else np.empty((0, 3))

        if "instances" in data:
            instances_data = json.loads(data["instances"].tobytes().decode("utf-8"))
            instances = [PlacedInstance.model_validate(item) for item in instances_data]
        else:
            instances = []

        # Load metadata
        if "metadata" in data:
            metadata = json.loads(data["metadata"].tobytes().decode("utf-8"))
        else:
            metadata = {}

    version = metadata.get("version", FORMAT_VERSION)
    if version != FORMAT_VERSION:
        raise ValueError(f"Unsupported tile format version: {version}")
    if len(elevations) != len(vertices):
        raise ValueError(
            f"Invalid tile file: {len(elevations)} elevations for {len(vertices)} vertices"
        )

    mesh = TriangleMesh(vertices, labels)
    metadata["road_samples"] = road_samples
    metadata["river_samples"] = river_samples

    logger.info(
        f"Loaded tile from {path}: {mesh.vertex_count} vertices, {len(instances)} instances"
    )
    return mesh, elevations, instances, metadata
