"""Object placement: rejection-sampled decoration, roadside houses and lamps."""

import logging
import math
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Sequence

import numpy as np
from numpy.typing import ArrayLike, NDArray
from scipy.spatial import cKDTree

from ..types import PlacedInstance, Transform, Vector3
from .config import FeatureConfig, HouseConfig, LampConfig
from .ground import GroundHit, GroundQuery
from .rng import XorShiftRandom
from .sampling import poisson_disc_points

logger = logging.getLogger(__name__)


class ObjectType(str, Enum):
    """Types of objects that can be placed."""

    ROCK = "rock"
    TREE = "tree"
    GRASS = "grass"
    FLOWER = "flower"
    HOUSE = "house"
    LAMP = "lamp"


class RejectionReason(str, Enum):
    """Why a candidate was not placed."""

    GROUND_MISS = "ground_miss"
    SLOPE = "slope"
    EXCLUSION = "exclusion"


class StepStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    DONE = "done"


@dataclass
class PlacementCandidate:
    """One evaluated sample of a placement pass."""

    sample: tuple[float, float]
    hit: GroundHit | None
    accepted: bool
    reason: RejectionReason | None = None
    instance: PlacedInstance | None = None


class ExclusionPoints:
    """Ordered, append-only list of 3D points that placements keep away from.

    Distances against it are planar (x, z).
    """

    def __init__(self, points: ArrayLike | None = None):
        self._points: list[Vector3] = []
        if points is not None:
            self.extend(points)

    def __len__(self) -> int:
        return len(self._points)

    def append(self, point: Sequence[float]) -> None:
        x, y, z = point
        self._points.append((float(x), float(y), float(z)))

    def extend(self, points: ArrayLike) -> None:
        for point in np.asarray(points, dtype=np.float64).reshape(-1, 3):
            self.append(point)

    def snapshot(self) -> NDArray[np.float64]:
        """Current points as an (N, 3) array."""
        if not self._points:
            return np.empty((0, 3), dtype=np.float64)
        return np.array(self._points, dtype=np.float64)


def sample_gradient(stops: Sequence[Vector3], t: float) -> Vector3:
    """Linearly interpolate evenly spaced RGB stops at ``t`` in [0, 1]."""
    if len(stops) == 1:
        return tuple(float(c) for c in stops[0])
    position = min(max(t, 0.0), 1.0) * (len(stops) - 1)
    index = min(int(position), len(stops) - 2)
    local = position - index
    a, b = stops[index], stops[index + 1]
    return tuple(float(a[k] + (b[k] - a[k]) * local) for k in range(3))


def tilt_from_normal(normal: Vector3) -> tuple[float, float]:
    """Euler X and Z angles (degrees) that tilt the up axis onto ``normal``."""
    nx, ny, nz = normal
    return (math.degrees(math.atan2(nz, ny)), -math.degrees(math.atan2(nx, ny)))


def _perpendicular(direction: NDArray[np.float64]) -> NDArray[np.float64]:
    """Unit planar perpendicular (-z, x) of an (x, z) direction."""
    perpendicular = np.array([-direction[1], direction[0]], dtype=np.float64)
    norm = np.linalg.norm(perpendicular)
    if norm == 0:
        return perpendicular
    return perpendicular / norm


def _yaw(perpendicular: NDArray[np.float64]) -> float:
    return math.degrees(math.atan2(perpendicular[0], perpendicular[1]))


class FeaturePass:
    """A resumable rejection-sampling pass for one decoration type.

    Candidates come from a Poisson-disc set inset by ``edge_margin / 2`` on
    every side. Every candidate consumes the same random draws whether it is
    accepted or not, so the output never depends on how many were rejected.

    The exclusion set is read once, when the first candidate is evaluated.
    Accepted positions are appended to it when the pass completes, if the
    feature ``records_exclusions``.
    """

    def __init__(
        self,
        object_type: ObjectType | str,
        width: float,
        height: float,
        config: FeatureConfig,
        ground: GroundQuery,
        exclusion_points: ExclusionPoints,
        seed: int,
    ):
        self.object_type = ObjectType(object_type)
        self.config = config
        self.ground = ground
        self.exclusion_points = exclusion_points

        pass_seed = seed + config.seed_offset
        self.rng = XorShiftRandom(pass_seed)

        margin = config.edge_margin
        region = (width - margin, height - margin)
        self.samples = poisson_disc_points(config.min_spacing, region, seed=pass_seed) + margin / 2

        self._index = 0
        self._accepted: list[PlacedInstance] = []
        self._exclusion_tree: cKDTree | None = None
        self._started = False
        self._done = False
        self._closed = False

    @property
    def done(self) -> bool:
        return self._done

    @property
    def processed(self) -> int:
        """Number of candidates evaluated so far."""
        return self._index

    @property
    def instances(self) -> list[PlacedInstance]:
        return list(self._accepted)

    def _start(self) -> None:
        snapshot = self.exclusion_points.snapshot()
        if len(snapshot):
            self._exclusion_tree = cKDTree(snapshot[:, [0, 2]])
        self._started = True

    def _is_excluded(self, x: float, z: float) -> bool:
        if self._exclusion_tree is None:
            return False
        distance, _ = self._exclusion_tree.query((x, z))
        return distance <= self.config.exclusion_radius

    def _evaluate(self, sample: NDArray[np.float64]) -> PlacementCandidate:
        config = self.config
        rng = self.rng

        variant = rng.choice_index(len(config.variants))
        rotation = [float(rng.range(low, high)) for low, high in config.rotation_ranges]
        checkpoint = rng.checkpoint()
        low, high = config.scale_range
        scale = tuple(config.scale_base + rng.range(low, high) for _ in range(3))
        color = sample_gradient(config.color_gradient, rng.range(0.0, 1.0))
        rng.restore(checkpoint)

        x, z = float(sample[0]), float(sample[1])
        hit = self.ground.query(x, z)
        if hit is None:
            return PlacementCandidate((x, z), None, False, RejectionReason.GROUND_MISS)
        if hit.normal[1] < config.min_normal_y:
            return PlacementCandidate((x, z), hit, False, RejectionReason.SLOPE)
        if self._is_excluded(hit.point[0], hit.point[2]):
            return PlacementCandidate((x, z), hit, False, RejectionReason.EXCLUSION)

        if config.align_to_normal:
            tilt_x, tilt_z = tilt_from_normal(hit.normal)
            rotation[0] += tilt_x
            rotation[2] += tilt_z

        hx, hy, hz = hit.point
        instance = PlacedInstance(
            object_id=f"{self.object_type.value}-{len(self._accepted):04d}",
            object_type=self.object_type.value,
            prefab=config.variants[variant],
            transform=Transform(
                position=(hx, hy + config.vertical_offset, hz),
                rotation=tuple(rotation),
                scale=scale,
            ),
            color=color,
            animate=config.animate,
        )
        self._accepted.append(instance)
        return PlacementCandidate((x, z), hit, True, None, instance)

    def _next(self) -> PlacementCandidate:
        if not self._started:
            self._start()
        candidate = self._evaluate(self.samples[self._index])
        self._index += 1
        if self._index >= len(self.samples):
            self._finish()
        return candidate

    def _finish(self) -> None:
        if self.config.records_exclusions:
            self.exclusion_points.extend(
                [instance.position for instance in self._accepted]
            )
        self._done = True
        logger.info(
            f"Placed {len(self._accepted)} {self.object_type.value} instances "
            f"from {len(self.samples)} candidates"
        )

    def candidates(self) -> Iterator[PlacementCandidate]:
        """Lazily evaluate the remaining candidates."""
        if not self._done and len(self.samples) == 0:
            self._finish()
        while not self._done and not self._closed:
            yield self._next()

    def step(
        self,
        max_candidates: int | None = None,
        time_budget: float | None = None,
    ) -> StepStatus:
        """Evaluate candidates until a budget runs out.

        Args:
            max_candidates: Most candidates to evaluate in this step.
            time_budget: Seconds to spend in this step. At least one
                candidate is always evaluated.

        Returns:
            DONE once every candidate is evaluated, else IN_PROGRESS.
        """
        if self._closed:
            raise RuntimeError("Cannot step a closed placement pass")
        if not self._done and len(self.samples) == 0:
            self._finish()

        deadline = None if time_budget is None else time.perf_counter() + time_budget
        evaluated = 0
        while not self._done:
            if max_candidates is not None and evaluated >= max_candidates:
                break
            if deadline is not None and evaluated > 0 and time.perf_counter() >= deadline:
                break
            self._next()
            evaluated += 1

        return StepStatus.DONE if self._done else StepStatus.IN_PROGRESS

    def run(self) -> list[PlacedInstance]:
        """Evaluate everything left and return the accepted instances."""
        self.step()
        return self.instances

    def close(self) -> None:
        """Abandon the pass, discarding partial results."""
        if not self._done:
            self._accepted.clear()
        self._closed = True


def place_features(
    object_type: ObjectType | str,
    width: float,
    height: float,
    config: FeatureConfig,
    ground: GroundQuery,
    exclusion_points: ExclusionPoints,
    seed: int,
) -> Iterator[PlacedInstance]:
    """Lazily yield the accepted instances of one placement pass."""
    placement = FeaturePass(
        object_type, width, height, config, ground, exclusion_points, seed
    )
    for candidate in placement.candidates():
        if candidate.accepted:
            yield candidate.instance


@dataclass
class LampPlacement:
    """Lamps along the road and the side of the road they stand on."""

    instances: list[PlacedInstance] = field(default_factory=list)
    left_side: bool = True


def place_lamps(
    path_samples: ArrayLike,
    config: LampConfig,
    seed: int,
) -> LampPlacement:
    """Place a lamp every ``every_nth`` road sample, all on one side.

    The side and the variant are drawn once. Each lamp's scale comes from a
    checkpointed sub-stream, so lamps never shift the main stream.
    """
    samples = np.asarray(path_samples, dtype=np.float64).reshape(-1, 3)
    rng = XorShiftRandom(seed)
    left_side = rng.boolean()
    variant = config.variants[rng.choice_index(len(config.variants))]

    placement = LampPlacement(left_side=left_side)
    back = config.back_offset
    for index in range(back, len(samples) - back, config.every_nth):
        point = samples[index, [0, 2]]
        perpendicular = _perpendicular(point - samples[index - back, [0, 2]])
        yaw = _yaw(perpendicular)
        if left_side:
            position = point + perpendicular * config.distance_from_road
        else:
            position = point - perpendicular * config.distance_from_road
            yaw += 180.0

        checkpoint = rng.checkpoint()
        low, high = config.scale_range
        scale = tuple(1.0 + rng.range(low, high) for _ in range(3))
        rng.restore(checkpoint)

        placement.instances.append(
            PlacedInstance(
                object_id=f"{ObjectType.LAMP.value}-{len(placement.instances):04d}",
                object_type=ObjectType.LAMP.value,
                prefab=variant,
                transform=Transform(
                    position=(float(position[0]), float(samples[index, 1] - 1.0), float(position[1])),
                    rotation=(0.0, yaw, 0.0),
                    scale=scale,
                ),
                animate=config.animate,
            )
        )

    logger.info(
        f"Placed {len(placement.instances)} lamps on the "
        f"{'left' if left_side else 'right'} side of the road"
    )
    return placement


def place_house(
    path_samples: ArrayLike,
    width: float,
    height: float,
    config: HouseConfig,
    exclusion_points: ExclusionPoints,
    seed: int,
    lamps_left_side: bool | None = None,
) -> PlacedInstance | None:
    """Place a house beside a straight stretch of road.

    A road sample is drawn and the road direction ``lookahead`` samples
    behind and ahead of it is compared; the house is placed when the road
    turns less than ``max_turn_degrees`` there and the house keeps
    ``distance_from_edge`` from every tile edge. When lamps were placed the
    house goes on the other side of the road.

    On success the house position and 5 points around it are appended to
    the exclusion list.

    Returns:
        The house, or None when the road is too short or no attempt fits.
    """
    samples = np.asarray(path_samples, dtype=np.float64).reshape(-1, 3)
    lookahead = config.lookahead
    low = max(config.min_index, lookahead)
    if len(samples) < 2 * low + 1:
        logger.info(f"Road too short for a house ({len(samples)} samples)")
        return None

    rng = XorShiftRandom(seed)
    edge = config.distance_from_edge

    for attempt in range(config.attempts):
        index = rng.range(low, len(samples) - low)
        point = samples[index, [0, 2]]
        perpendicular_back = _perpendicular(point - samples[index - lookahead, [0, 2]])
        perpendicular_front = _perpendicular(samples[index + lookahead, [0, 2]] - point)
        yaw_back = _yaw(perpendicular_back)
        yaw_front = _yaw(perpendicular_front)

        left_side = rng.boolean()
        if lamps_left_side is not None:
            left_side = not lamps_left_side

        if left_side:
            position = point + perpendicular_back * config.distance_from_path
            turn = yaw_back - yaw_front
            yaw = yaw_back
        else:
            position = point - perpendicular_back * config.distance_from_path
            turn = yaw_front - yaw_back
            yaw = yaw_back + 180.0
        turn = abs((turn + 180.0) % 360.0 - 180.0)

        x, z = float(position[0]), float(position[1])
        inside = edge < x < width - edge and edge < z < height - edge
        if turn >= config.max_turn_degrees or not inside:
            continue

        spawn = np.array([x, samples[index, 1], z])
        offset = config.exclusion_offset
        px, pz = perpendicular_back
        exclusion_points.extend(
            [
                spawn,
                spawn + np.array([px, 0.0, pz]) * offset,
                spawn + np.array([-offset, 0.0, 0.0]),
                spawn + np.array([offset, 0.0, 0.0]),
                spawn + np.array([0.0, 0.0, offset]),
                spawn + np.array([0.0, 0.0, -offset]),
            ]
        )
        variant = config.variants[rng.choice_index(len(config.variants))]
        logger.info(f"Placed house at ({x:.1f}, {z:.1f}) after {attempt + 1} attempts")
        return PlacedInstance(
            object_id=f"{ObjectType.HOUSE.value}-0000",
            object_type=ObjectType.HOUSE.value,
            prefab=variant,
            transform=Transform(
                position=(x, float(samples[index, 1]), z),
                rotation=(0.0, yaw, 0.0),
            ),
            animate=config.animate,
        )

    logger.info(f"No house placed after {config.attempts} attempts")
    return None
