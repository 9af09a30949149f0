"""Poisson-disc point sampling (Bridson-style dart throwing)."""

import math

import numpy as np
from numpy.typing import NDArray

from .rng import XorShiftRandom

# Candidates tried around an active point before it is retired
DEFAULT_ATTEMPTS = 30


def poisson_disc_points(
    min_radius: float,
    region_size: tuple[float, float],
    seed: int = 0,
    attempts: int = DEFAULT_ATTEMPTS,
) -> NDArray[np.float64]:
    """Generate blue-noise points with a guaranteed minimum separation.

    A uniform grid with cell size ``min_radius / sqrt(2)`` holds at most one
    accepted point per cell, so a candidate only has to be compared with
    the points in the surrounding 5x5 cells.

    Args:
        min_radius: Minimum distance between any two points.
        region_size: (width, height) of the sampled rectangle, origin at 0.
        seed: Seed for the sampler's own random stream.
        attempts: Candidates tried per active point before retiring it.

    Returns:
        Array of shape (N, 2) in insertion order. Same seed and parameters
        always give the same array.
    """
    if min_radius <= 0:
        raise ValueError(f"min_radius must be positive, got {min_radius}")

    min_radius = float(min_radius)
    width, height = float(region_size[0]), float(region_size[1])
    if width <= 0 or height <= 0:
        return np.empty((0, 2), dtype=np.float64)

    rng = XorShiftRandom(seed)
    cell_size = min_radius / math.sqrt(2)
    cols = int(width // cell_size) + 1
    rows = int(height // cell_size) + 1
    grid = np.full((cols, rows), -1, dtype=np.int64)
    radius_sq = min_radius * min_radius

    points: list[tuple[float, float]] = []

    def add_point(x: float, y: float) -> None:
        grid[int(x // cell_size), int(y // cell_size)] = len(points)
        points.append((x, y))

    def is_valid(x: float, y: float) -> bool:
        if not (0.0 <= x < width and 0.0 <= y < height):
            return False
        cx = int(x // cell_size)
        cy = int(y // cell_size)
        for i in range(max(0, cx - 2), min(cols, cx + 3)):
            for j in range(max(0, cy - 2), min(rows, cy + 3)):
                index = grid[i, j]
                if index == -1:
                    continue
                px, py = points[index]
                if (px - x) ** 2 + (py - y) ** 2 < radius_sq:
                    return False
        return True

    add_point(rng.range(0.0, width), rng.range(0.0, height))
    active = [0]

    while active:
        active_index = rng.range(0, len(active))
        centre_x, centre_y = points[active[active_index]]

        accepted = False
        for _ in range(attempts):
            angle = rng.range(0.0, 2.0 * math.pi)
            distance = rng.range(min_radius, 2.0 * min_radius)
            x = centre_x + math.cos(angle) * distance
            y = centre_y + math.sin(angle) * distance
            if is_valid(x, y):
                add_point(x, y)
                active.append(len(points) - 1)
                accepted = True
                break

        if not accepted:
            active.pop(active_index)

    return np.asarray(points, dtype=np.float64).reshape(-1, 2)
