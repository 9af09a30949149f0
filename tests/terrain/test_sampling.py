"""Tests for Poisson-disc sampling."""

import numpy as np
import pytest
from scipy.spatial.distance import pdist

from lowpoly.terrain.sampling import poisson_disc_points


class TestPoissonDisc:
    """Tests for blue-noise point generation."""

    def test_minimum_separation(self) -> None:
        """No two points are closer than the radius."""
        points = poisson_disc_points(8.0, (120.0, 90.0), seed=1)
        assert len(points) > 20
        assert pdist(points).min() >= 8.0 - 1e-9

    def test_points_inside_region(self) -> None:
        """All points lie in the sampled rectangle."""
        points = poisson_disc_points(5.0, (60.0, 40.0), seed=2)
        assert np.all(points[:, 0] >= 0.0)
        assert np.all(points[:, 0] <= 60.0)
        assert np.all(points[:, 1] >= 0.0)
        assert np.all(points[:, 1] <= 40.0)

    def test_deterministic_with_same_seed(self) -> None:
        """Same seed and parameters give the same array."""
        a = poisson_disc_points(6.0, (80.0, 80.0), seed=4)
        b = poisson_disc_points(6.0, (80.0, 80.0), seed=4)
        np.testing.assert_array_equal(a, b)

    def test_different_seed_different_output(self) -> None:
        """Different seeds give different point sets."""
        a = poisson_disc_points(6.0, (80.0, 80.0), seed=4)
        b = poisson_disc_points(6.0, (80.0, 80.0), seed=5)
        assert a.shape != b.shape or not np.allclose(a, b)

    def test_tiny_region(self) -> None:
        """A region smaller than the radius holds at most one point."""
        points = poisson_disc_points(5.0, (1.0, 1.0), seed=0)
        assert len(points) <= 1

    def test_empty_region(self) -> None:
        """A zero-size region returns no points."""
        points = poisson_disc_points(5.0, (0.0, 10.0), seed=0)
        assert points.shape == (0, 2)

    def test_rejects_non_positive_radius(self) -> None:
        """The radius must be positive."""
        with pytest.raises(ValueError):
            poisson_disc_points(0.0, (10.0, 10.0))

    def test_fills_region(self) -> None:
        """Sampling runs until the region is covered."""
        points = poisson_disc_points(10.0, (100.0, 100.0), seed=3)
        # A maximal 10-disc packing of 100x100 needs at least ~ area / (pi * r^2)
        assert len(points) >= 100 * 100 / (np.pi * 10.0**2)
