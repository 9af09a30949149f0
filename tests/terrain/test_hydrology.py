"""Tests for river routing."""

import numpy as np
import pytest

from lowpoly.exceptions import NoValidRiverEndpointsError, SearchExhaustedError
from lowpoly.terrain.config import RiverConfig
from lowpoly.terrain.hydrology import (
    find_triangle_route,
    route_river,
    select_river_endpoints,
    step_cost,
)
from lowpoly.terrain.mesh import TriangleMesh
from lowpoly.terrain.rng import XorShiftRandom
from lowpoly.types import RectEdge, rect_edges


class TestSelectEndpoints:
    """Tests for choosing source and mouth vertices."""

    def test_high_source_low_mouth(
        self, square_mesh: TriangleMesh, sloped_elevations: np.ndarray
    ) -> None:
        """The source is on the high edge and the mouth on the low edge."""
        endpoints = select_river_endpoints(
            square_mesh, sloped_elevations, 100, 100, XorShiftRandom(0), RiverConfig()
        )
        assert RectEdge.LEFT in endpoints.source_edges
        assert RectEdge.RIGHT in endpoints.mouth_edges
        assert not endpoints.source_edges & endpoints.mouth_edges
        assert square_mesh.labels[endpoints.source] == 1
        assert square_mesh.labels[endpoints.mouth] == 1

    def test_single_edge_boundary_fails(self) -> None:
        """No valid pair exists when every boundary vertex shares an edge."""
        mesh = TriangleMesh(
            [(0.0, 0.0), (0.0, 50.0), (0.0, 100.0), (50.0, 50.0)],
            labels=[1, 1, 1, 0],
        )
        elevations = np.array([3.0, 2.0, 1.0, 0.0])
        with pytest.raises(NoValidRiverEndpointsError):
            select_river_endpoints(
                mesh, elevations, 100, 100, XorShiftRandom(0),
                RiverConfig(max_endpoint_attempts=20),
            )


class TestStepCost:
    """Tests for the search cost function."""

    def test_downhill_cheaper_than_uphill(self) -> None:
        """Climbing is penalized, descending is not."""
        config = RiverConfig()
        here = np.array([50.0, 10.0, 50.0])
        down = np.array([55.0, 5.0, 50.0])
        up = np.array([55.0, 15.0, 50.0])
        assert step_cost(here, down, (50.0, 50.0), config) < step_cost(here, up, (50.0, 50.0), config)

    def test_flat_step_is_distance_plus_bias(self) -> None:
        """A flat step costs its length plus the centre bias."""
        config = RiverConfig(center_bias=0.0)
        cost = step_cost(np.array([0.0, 0.0, 0.0]), np.array([3.0, 0.0, 4.0]), (50.0, 50.0), config)
        assert cost == pytest.approx(5.0)


class TestTriangleRoute:
    """Tests for the A* search."""

    def test_costs_non_decreasing(
        self, square_mesh: TriangleMesh, sloped_elevations: np.ndarray
    ) -> None:
        """g costs never decrease along the route."""
        start = square_mesh.locate_linear((1.0, 50.0))
        goal = square_mesh.locate_linear((99.0, 50.0))
        route = find_triangle_route(
            square_mesh, sloped_elevations, start, goal, 100, 100, RiverConfig()
        )
        assert route[0].triangle == start
        assert route[-1].triangle == goal
        costs = [node.g_cost for node in route]
        assert costs == sorted(costs)

    def test_route_is_connected(
        self, square_mesh: TriangleMesh, sloped_elevations: np.ndarray
    ) -> None:
        """Consecutive triangles share a side."""
        start = square_mesh.locate_linear((1.0, 1.0))
        goal = square_mesh.locate_linear((99.0, 99.0))
        route = find_triangle_route(
            square_mesh, sloped_elevations, start, goal, 100, 100, RiverConfig()
        )
        for a, b in zip(route, route[1:]):
            assert b.triangle in square_mesh.adjacent(a.triangle)

    def test_iteration_cap(
        self, square_mesh: TriangleMesh, sloped_elevations: np.ndarray
    ) -> None:
        """Hitting the iteration cap raises."""
        start = square_mesh.locate_linear((1.0, 1.0))
        goal = square_mesh.locate_linear((99.0, 99.0))
        with pytest.raises(SearchExhaustedError):
            find_triangle_route(
                square_mesh, sloped_elevations, start, goal, 100, 100,
                RiverConfig(max_iterations=1),
            )


class TestRouteRiver:
    """Tests for the full river route."""

    def test_runs_edge_to_edge(
        self, square_mesh: TriangleMesh, sloped_elevations: np.ndarray
    ) -> None:
        """The river starts on the source edge and ends on the mouth edge."""
        river = route_river(
            square_mesh, sloped_elevations, 100, 100, XorShiftRandom(0), RiverConfig()
        )
        first, last = river.samples[0], river.samples[-1]
        assert rect_edges(first[0], first[2], 100, 100, 1e-6) & river.endpoints.source_edges
        assert rect_edges(last[0], last[2], 100, 100, 1e-6) & river.endpoints.mouth_edges

    def test_never_flows_uphill(
        self, square_mesh: TriangleMesh, sloped_elevations: np.ndarray
    ) -> None:
        """Sample elevations are non-increasing."""
        river = route_river(
            square_mesh, sloped_elevations, 100, 100, XorShiftRandom(0), RiverConfig()
        )
        assert np.all(np.diff(river.samples[:, 1]) <= 0)

    def test_deterministic(
        self, square_mesh: TriangleMesh, sloped_elevations: np.ndarray
    ) -> None:
        """Same inputs give the same river."""
        a = route_river(square_mesh, sloped_elevations, 100, 100, XorShiftRandom(2), RiverConfig())
        b = route_river(square_mesh, sloped_elevations, 100, 100, XorShiftRandom(2), RiverConfig())
        assert a.triangles == b.triangles
        np.testing.assert_array_equal(a.samples, b.samples)
