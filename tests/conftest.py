"""Shared test fixtures for terrain tile tests."""

import numpy as np
import pytest

from lowpoly.terrain.config import NoiseConfig, TerrainConfig
from lowpoly.terrain.ground import GroundHit
from lowpoly.terrain.mesh import TriangleMesh, triangulate
from lowpoly.terrain.sampling import poisson_disc_points

CORNERS_100 = [(0.0, 0.0), (100.0, 0.0), (100.0, 100.0), (0.0, 100.0)]


class FlatGround:
    """Ground query over a flat rectangle, no mesh needed."""

    def __init__(
        self,
        width: float,
        height: float,
        elevation: float = 5.0,
        normal: tuple[float, float, float] = (0.0, 1.0, 0.0),
    ):
        self.width = width
        self.height = height
        self.elevation = elevation
        self.normal = normal

    def query(self, x: float, z: float) -> GroundHit | None:
        if not (0.0 <= x <= self.width and 0.0 <= z <= self.height):
            return None
        return GroundHit(point=(x, self.elevation, z), normal=self.normal)


@pytest.fixture
def flat_ground() -> FlatGround:
    """100x100 flat ground at elevation 5."""
    return FlatGround(100.0, 100.0)


@pytest.fixture
def square_mesh() -> TriangleMesh:
    """100x100 tile: Poisson points, corners and boundary splits every 10 units."""
    points = poisson_disc_points(10.0, (100.0, 100.0), seed=3)
    return triangulate(points, CORNERS_100, max_segment_length=10.0)


@pytest.fixture
def sloped_elevations(square_mesh: TriangleMesh) -> np.ndarray:
    """Plane falling from 100 on the left edge to 0 on the right edge."""
    return 100.0 - square_mesh.vertices[:, 0]


@pytest.fixture
def small_config() -> TerrainConfig:
    """100x100 tile with 8 octaves, persistence 1.1 and frequency base 2."""
    return TerrainConfig(
        seed=0,
        width=100,
        height=100,
        noise=NoiseConfig(
            octaves=8,
            persistence=1.1,
            frequency_base=2.0,
            sample_scale=1.0,
        ),
    )
