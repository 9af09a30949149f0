"""River routing: endpoint selection and A* search over triangle adjacency."""

import heapq
import logging
import math
from dataclasses import dataclass, field

import numpy as np
from numpy.typing import NDArray

from ..exceptions import NoValidRiverEndpointsError, SearchExhaustedError
from ..types import EDGE_INWARD_NORMALS, RectEdge, rect_edges
from .config import RiverConfig
from .mesh import TriangleMesh
from .paths import BezierPath
from .rng import XorShiftRandom

logger = logging.getLogger(__name__)

# Tolerance for deciding which tile edges a boundary vertex lies on
EDGE_TOLERANCE = 1e-6


@dataclass
class TriangleGraphNode:
    """Search state of one triangle."""

    triangle: int
    g_cost: float
    h_cost: float
    parent: int | None = None

    @property
    def f_cost(self) -> float:
        return self.g_cost + self.h_cost


@dataclass(frozen=True)
class RiverEndpoints:
    """Source and mouth vertices of a river."""

    source: int
    mouth: int
    source_edges: frozenset[RectEdge]
    mouth_edges: frozenset[RectEdge]


@dataclass
class RiverRoute:
    """A routed river."""

    endpoints: RiverEndpoints
    nodes: list[TriangleGraphNode]
    path: BezierPath
    samples: NDArray[np.float64] = field(repr=False)

    @property
    def triangles(self) -> list[int]:
        return [node.triangle for node in self.nodes]


def select_river_endpoints(
    mesh: TriangleMesh,
    elevations: NDArray[np.float64],
    width: float,
    height: float,
    rng: XorShiftRandom,
    config: RiverConfig,
) -> RiverEndpoints:
    """Pick a high source and a low mouth on different tile edges.

    Boundary vertices are sorted by elevation (descending, stable). The
    source is drawn from the highest ``source_fraction`` of them, then the
    mouth is drawn from the lowest ``mouth_fraction`` until it lies on an
    edge the source is not on.

    Raises:
        NoValidRiverEndpointsError: If no valid mouth is drawn within
            ``max_endpoint_attempts``.
    """
    boundary = mesh.boundary_vertex_ids()
    if len(boundary) < 2:
        raise NoValidRiverEndpointsError(
            f"Need at least 2 boundary vertices, got {len(boundary)}"
        )

    order = boundary[np.argsort(-elevations[boundary], kind="stable")]
    count = len(order)
    source_count = max(1, math.ceil(count * config.source_fraction))
    mouth_count = max(1, math.ceil(count * config.mouth_fraction))

    def edges_of(vertex: int) -> frozenset[RectEdge]:
        x, y = mesh.vertices[vertex]
        return rect_edges(x, y, width, height, tolerance=EDGE_TOLERANCE)

    source = int(order[rng.range(0, source_count)])
    source_edges = edges_of(source)
    if not source_edges:
        raise NoValidRiverEndpointsError(f"Source vertex {source} is not on a tile edge")

    for _ in range(config.max_endpoint_attempts):
        mouth = int(order[rng.range(count - mouth_count, count)])
        mouth_edges = edges_of(mouth)
        if mouth_edges and not (mouth_edges & source_edges):
            return RiverEndpoints(source, mouth, source_edges, mouth_edges)

    raise NoValidRiverEndpointsError(
        f"No mouth on a different edge than the source after "
        f"{config.max_endpoint_attempts} draws"
    )


def step_cost(
    current: NDArray[np.float64],
    neighbor: NDArray[np.float64],
    tile_centre: tuple[float, float],
    config: RiverConfig,
) -> float:
    """Cost of moving between two triangle centres given as (x, elevation, z).

    Distance travelled, plus the climb penalty rounded to one decimal, plus
    a bias pulling the route toward the tile centre.
    """
    planar_step = math.hypot(neighbor[0] - current[0], neighbor[2] - current[2])
    climb = max(0.0, float(neighbor[1] - current[1]))
    off_centre = math.hypot(neighbor[0] - tile_centre[0], neighbor[2] - tile_centre[1])
    return (
        config.distance_weight * planar_step
        + round(config.uphill_penalty * climb, 1)
        + config.center_bias * off_centre
    )


def find_triangle_route(
    mesh: TriangleMesh,
    elevations: NDArray[np.float64],
    start: int,
    goal: int,
    width: float,
    height: float,
    config: RiverConfig,
) -> list[TriangleGraphNode]:
    """A* search from triangle ``start`` to triangle ``goal``.

    The open set pops the lowest f cost, ties broken by the lowest h cost.

    Returns:
        Nodes from start to goal; g costs are non-decreasing.

    Raises:
        SearchExhaustedError: If the iteration cap is hit or the open set
            empties before the goal is reached.
    """
    centres = mesh.triangle_centers(elevations)
    goal_centre = centres[goal]
    tile_centre = (width / 2.0, height / 2.0)

    def heuristic(triangle: int) -> float:
        centre = centres[triangle]
        distance = math.hypot(goal_centre[0] - centre[0], goal_centre[2] - centre[2])
        return config.heuristic_weight * distance

    nodes = {start: TriangleGraphNode(start, 0.0, heuristic(start))}
    closed: set[int] = set()
    counter = 0
    open_heap = [(nodes[start].f_cost, nodes[start].h_cost, counter, start)]

    iterations = 0
    while open_heap:
        iterations += 1
        if iterations > config.max_iterations:
            raise SearchExhaustedError(
                f"River search hit the cap of {config.max_iterations} iterations"
            )

        _, _, _, current = heapq.heappop(open_heap)
        if current in closed:
            continue
        if current == goal:
            logger.debug(f"River search reached goal after {iterations} iterations")
            return _reconstruct(nodes, goal)
        closed.add(current)

        current_node = nodes[current]
        for neighbor in mesh.adjacent(current):
            if neighbor in closed:
                continue
            g_cost = current_node.g_cost + step_cost(
                centres[current], centres[neighbor], tile_centre, config
            )
            known = nodes.get(neighbor)
            if known is not None and g_cost >= known.g_cost:
                continue

            node = TriangleGraphNode(neighbor, g_cost, heuristic(neighbor), current)
            nodes[neighbor] = node
            counter += 1
            heapq.heappush(open_heap, (node.f_cost, node.h_cost, counter, neighbor))

    raise SearchExhaustedError(
        f"River search ran out of triangles after {iterations} iterations"
    )


def _reconstruct(nodes: dict[int, TriangleGraphNode], goal: int) -> list[TriangleGraphNode]:
    route = [nodes[goal]]
    while route[-1].parent is not None:
        route.append(nodes[route[-1].parent])
    route.reverse()
    return route


def _edge_distance(point: NDArray[np.float64], edge: RectEdge, width: float, height: float) -> float:
    x, z = float(point[0]), float(point[2])
    if edge is RectEdge.LEFT:
        return abs(x)
    if edge is RectEdge.RIGHT:
        return abs(width - x)
    if edge is RectEdge.BOTTOM:
        return abs(z)
    return abs(height - z)


def _snap_to_edge(point: NDArray[np.float64], edge: RectEdge, width: float, height: float) -> NDArray[np.float64]:
    snapped = point.copy()
    if edge is RectEdge.LEFT:
        snapped[0] = 0.0
    elif edge is RectEdge.RIGHT:
        snapped[0] = width
    elif edge is RectEdge.BOTTOM:
        snapped[2] = 0.0
    else:
        snapped[2] = height
    return snapped


def _closest_edge(
    point: NDArray[np.float64], edges: frozenset[RectEdge], width: float, height: float
) -> RectEdge:
    # Sorted so a corner resolves the same way on every run
    return min(
        sorted(edges, key=lambda edge: edge.value),
        key=lambda edge: _edge_distance(point, edge, width, height),
    )


def _attach_to_edge(
    points: list[NDArray[np.float64]],
    at_start: bool,
    vertex_point: NDArray[np.float64],
    edges: frozenset[RectEdge],
    width: float,
    height: float,
    tolerance: float,
) -> RectEdge:
    end = points[0] if at_start else points[-1]
    edge = _closest_edge(end, edges, width, height)
    if len(points) > 1 and _edge_distance(end, edge, width, height) <= tolerance:
        snapped = _snap_to_edge(end, edge, width, height)
        if at_start:
            points[0] = snapped
        else:
            points[-1] = snapped
    elif at_start:
        points.insert(0, vertex_point)
    else:
        points.append(vertex_point)
    return edge


def build_river_path(
    mesh: TriangleMesh,
    elevations: NDArray[np.float64],
    nodes: list[TriangleGraphNode],
    endpoints: RiverEndpoints,
    width: float,
    height: float,
    config: RiverConfig,
) -> BezierPath:
    """Turn a triangle route into a smooth path from edge to edge.

    Every ``path_stride``-th triangle centre is kept, counted from the goal,
    plus both ends. The end points are snapped onto their tile edge when
    close enough, otherwise the endpoint vertex is added. The controls next
    to both ends point straight into the tile.
    """
    centres = mesh.triangle_centers(elevations)
    backwards = [centres[node.triangle] for node in reversed(nodes)]
    kept = backwards[:: config.path_stride]
    if len(backwards) > 1 and (len(backwards) - 1) % config.path_stride:
        kept.append(backwards[-1])
    points = list(reversed(kept))

    def vertex_point(vertex: int) -> NDArray[np.float64]:
        x, y = mesh.vertices[vertex]
        return np.array([x, elevations[vertex], y], dtype=np.float64)

    source_edge = _attach_to_edge(
        points, True, vertex_point(endpoints.source), endpoints.source_edges,
        width, height, config.edge_snap_tolerance,
    )
    mouth_edge = _attach_to_edge(
        points, False, vertex_point(endpoints.mouth), endpoints.mouth_edges,
        width, height, config.edge_snap_tolerance,
    )

    path = BezierPath(np.array(points))
    polygon = path.points
    for control, anchor, edge in ((1, 0, source_edge), (-2, -1, mouth_edge)):
        length = float(np.linalg.norm(polygon[control] - polygon[anchor]))
        nx, nz = EDGE_INWARD_NORMALS[edge]
        target = polygon[anchor] + np.array([nx, 0.0, nz]) * length
        path.move_control(control % len(polygon), target, aligned=False)
    return path


def route_river(
    mesh: TriangleMesh,
    elevations: NDArray[np.float64],
    width: float,
    height: float,
    rng: XorShiftRandom,
    config: RiverConfig,
) -> RiverRoute:
    """Route a river across the tile.

    Raises:
        NoValidRiverEndpointsError: If no endpoint pair is found.
        SearchExhaustedError: If the triangle search fails.
    """
    endpoints = select_river_endpoints(mesh, elevations, width, height, rng, config)
    start = mesh.locate_linear(mesh.vertices[endpoints.source])
    goal = mesh.locate_linear(mesh.vertices[endpoints.mouth])
    if start is None or goal is None:
        raise SearchExhaustedError("River endpoint vertices are outside the mesh")

    nodes = find_triangle_route(mesh, elevations, start, goal, width, height, config)
    path = build_river_path(mesh, elevations, nodes, endpoints, width, height, config)

    samples = path.points_along_path(config.sample_spacing)
    # Water never flows uphill
    samples[:, 1] = np.minimum.accumulate(samples[:, 1])

    logger.info(
        f"River: {len(nodes)} triangles from vertex {endpoints.source} "
        f"to vertex {endpoints.mouth}, length {path.length:.1f}"
    )
    return RiverRoute(endpoints=endpoints, nodes=nodes, path=path, samples=samples)
