"""Height field: elevation sampling, smoothing and path flattening."""

import logging

import numpy as np
from numpy.typing import ArrayLike, NDArray
from scipy.spatial import cKDTree

from .config import NoiseConfig
from .noise import octave_elevation
from .rng import XorShiftRandom

logger = logging.getLogger(__name__)

# 9-point stencil: centre, 4 axis neighbours, 4 half-distance diagonals
_SMOOTHING_STENCIL = np.array(
    [
        (0.0, 0.0),
        (-1.0, 0.0),
        (1.0, 0.0),
        (0.0, 1.0),
        (0.0, -1.0),
        (-0.5, 0.5),
        (0.5, 0.5),
        (-0.5, -0.5),
        (0.5, -0.5),
    ],
    dtype=np.float64,
)


class HeightField:
    """Natural terrain elevation over a rectangular tile.

    The field is a pure function of the planar position once the octave
    seeds are fixed, so it can be sampled anywhere (also outside the mesh).
    """

    def __init__(
        self,
        config: NoiseConfig,
        width: float,
        height: float,
        octave_seeds: ArrayLike,
    ):
        self.config = config
        self.width = float(width)
        self.height = float(height)
        self.octave_seeds = np.asarray(octave_seeds, dtype=np.float64).reshape(-1)
        if len(self.octave_seeds) != config.octaves:
            raise ValueError(
                f"Expected {config.octaves} octave seeds, got {len(self.octave_seeds)}"
            )

        sample_scale = config.sample_scale
        self.sample_scale = (
            (1.0, 1.0)
            if sample_scale is None
            else (sample_scale / self.width, sample_scale / self.height)
        )

    @classmethod
    def from_rng(
        cls,
        rng: XorShiftRandom,
        config: NoiseConfig,
        width: float,
        height: float,
    ) -> "HeightField":
        """Draw one octave seed per octave from ``rng`` (``range(0.0, 100.0)``)."""
        seeds = [rng.range(0.0, 100.0) for _ in range(config.octaves)]
        return cls(config, width, height, seeds)

    def elevation(self, points: ArrayLike) -> NDArray[np.float64]:
        """Natural elevation at planar points, shape (N,)."""
        return octave_elevation(
            points,
            self.octave_seeds,
            persistence=self.config.persistence,
            frequency_base=self.config.frequency_base,
            elevation_scale=self.config.elevation_scale,
            sample_scale=self.sample_scale,
        )

    def elevation_at(self, x: float, y: float) -> float:
        return float(self.elevation([(x, y)])[0])

    def smoothed_elevation(self, points: ArrayLike, distance: float) -> NDArray[np.float64]:
        """Mean elevation over the 9-point stencil around each point.

        A non-positive distance returns the plain elevation.
        """
        pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
        if distance <= 0:
            return self.elevation(pts)

        offsets = _SMOOTHING_STENCIL * distance
        samples = (pts[:, None, :] + offsets[None, :, :]).reshape(-1, 2)
        values = self.elevation(samples).reshape(len(pts), len(offsets))
        return values.mean(axis=1)


def flatten_near_path(
    points: ArrayLike,
    elevations: ArrayLike,
    path_points: ArrayLike,
    width: float,
    smooth_distance: float,
    offset: float = 1.0,
) -> NDArray[np.float64]:
    """Press terrain down onto a path.

    Each point takes the closest path sample by planar distance. Within
    ``width`` of it the elevation becomes ``sample.y - offset``; between
    ``width`` and ``smooth_distance`` it blends linearly from that value
    back to the incoming elevation; further away it is left unchanged.

    Args:
        points: Planar vertex positions, shape (N, 2).
        elevations: Current elevation per point, shape (N,).
        path_points: Path samples as (x, elevation, z), shape (K, 3).
        width: Fully flattened band.
        smooth_distance: Outer edge of the blend band.
        offset: Depth of the flattened terrain below the path.

    Returns:
        New elevation array of the same length.
    """
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    result = np.array(elevations, dtype=np.float64).reshape(-1)
    if len(result) != len(pts):
        raise ValueError(f"Got {len(result)} elevations for {len(pts)} points")

    path = np.asarray(path_points, dtype=np.float64).reshape(-1, 3)
    if len(path) == 0 or len(pts) == 0:
        return result

    tree = cKDTree(path[:, [0, 2]])
    distances, nearest = tree.query(pts)
    target = path[nearest, 1] - offset

    inside = distances <= width
    result[inside] = target[inside]

    if smooth_distance > width:
        blend = (distances > width) & (distances < smooth_distance)
        t = (distances[blend] - width) / (smooth_distance - width)
        result[blend] = target[blend] + (result[blend] - target[blend]) * t

    logger.debug(
        f"Flattened {int(inside.sum())} points, blended "
        f"{int(((distances > width) & (distances < smooth_distance)).sum())}"
    )
    return result
