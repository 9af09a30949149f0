"""Road path construction."""

import logging
import math

import numpy as np
from numpy.typing import NDArray

from .config import RoadConfig
from .fields import HeightField
from .paths import BezierPath
from .rng import XorShiftRandom

logger = logging.getLogger(__name__)


def _margin(margin: int, extent: int) -> int:
    """Shrink a margin so that ``range(margin, extent - margin)`` is non-empty."""
    return max(0, min(margin, (extent - 1) // 2))


def build_road_path(
    field: HeightField,
    config: RoadConfig,
    width: int,
    height: int,
    rng: XorShiftRandom,
) -> BezierPath:
    """Build the road running from the top edge to the bottom edge.

    Three anchors are drawn (near the top edge, around the tile centre and
    near the bottom edge), then an interior handle replaces the control
    entering the middle anchor. Both segments are split in half, giving 5
    anchors, and every anchor sits at the smoothed natural elevation.

    Args:
        field: Natural elevation used for the anchor heights.
        config: Road parameters.
        width: Tile width.
        height: Tile height.
        rng: Run random stream; 6 integer draws are consumed.

    Returns:
        The road path, starting at the top edge.
    """
    edge_margin = _margin(config.edge_margin, width)
    jitter = max(1, config.middle_jitter)

    first = (rng.range(edge_margin, width - edge_margin), height - config.edge_inset)
    middle = (
        width // 2 + rng.range(-jitter, jitter),
        height // 2 + rng.range(-jitter, jitter),
    )
    last = (rng.range(edge_margin, width - edge_margin), config.edge_inset)

    side_margin = _margin(config.handle_side_margin, width)
    handle_low = min(height // 2 + config.handle_min_offset, height - 1)
    handle_high = max(height - config.handle_top_margin, handle_low + 1)
    handle_x = rng.range(side_margin, width - side_margin)
    handle_y = rng.range(handle_low, handle_high)

    planar = np.array([first, middle, last], dtype=np.float64)
    heights = field.smoothed_elevation(planar, config.height_smooth_distance)
    anchors = np.column_stack([planar[:, 0], heights, planar[:, 1]])

    path = BezierPath(anchors)
    middle_index = BezierPath.anchor_index(1)
    path.move_control(middle_index - 1, (handle_x, heights[1], handle_y), aligned=True)

    # After the first split the original second segment has index 2
    first_split = path.split_segment(0, 0.5)
    second_split = path.split_segment(2, 0.5)

    for index in (first_split, second_split):
        x, _, z = path.points[index]
        elevation = field.smoothed_elevation([(x, z)], config.height_smooth_distance)[0]
        path.move_anchor(index, (x, elevation, z))

    logger.info(
        f"Road path: {len(path.anchors)} anchors, length {path.length:.1f}"
    )
    return path


def road_samples(path: BezierPath, config: RoadConfig) -> NDArray[np.float64]:
    """Road samples used for flattening and as exclusion geometry.

    Only the built part of the road (``fill``) plus a quarter of its length
    ahead is kept, measured in samples.
    """
    samples = path.points_along_path(config.sample_spacing)
    keep = math.ceil(len(samples) * min(1.0, config.fill + 0.25))
    return samples[:keep]
