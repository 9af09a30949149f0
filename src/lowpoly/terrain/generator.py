"""Main terrain tile generation orchestration."""

import logging
from collections import Counter
from pathlib import Path

import numpy as np
from numpy.typing import NDArray

from ..exceptions import RiverRoutingError
from ..types import PlacedInstance
from .config import TerrainConfig
from .fields import HeightField, flatten_near_path
from .ground import MeshGroundQuery
from .hydrology import RiverRoute, route_river
from .mesh import TriangleMesh, triangulate
from .meshing import MeshChunk, build_base_walls, build_road_mesh, build_terrain_chunks
from .objects import ExclusionPoints, FeaturePass, StepStatus, place_house, place_lamps
from .paths import BezierPath
from .roads import build_road_path, road_samples
from .rng import XorShiftRandom
from .sampling import poisson_disc_points

logger = logging.getLogger(__name__)


class GenerationContext:
    """Everything one generation run owns.

    Nothing here is shared between runs; each run builds a fresh context
    from its config.
    """

    def __init__(self, config: TerrainConfig):
        self.config = config
        self.rng = XorShiftRandom(config.seed)
        self.exclusion_points = ExclusionPoints()

        self.field: HeightField | None = None
        self.poisson_points: NDArray[np.float64] = np.empty((0, 2))
        self.mesh: TriangleMesh | None = None
        self.natural_elevations: NDArray[np.float64] | None = None
        self.elevations: NDArray[np.float64] | None = None
        self.ground: MeshGroundQuery | None = None

        self.road_path: BezierPath | None = None
        self.road_samples: NDArray[np.float64] = np.empty((0, 3))
        self.river: RiverRoute | None = None
        self.river_disabled_reason: str | None = None
        self.lamps_left_side: bool | None = None

        self.instances: list[PlacedInstance] = []
        self.terrain_chunks: list[MeshChunk] = []
        self.base_chunks: list[MeshChunk] = []
        self.road_chunk: MeshChunk | None = None


class GenerationResult:
    """Result of terrain generation with all intermediate data."""

    def __init__(self, context: GenerationContext):
        self.config = context.config
        self.mesh = context.mesh
        self.elevations = context.elevations
        self.natural_elevations = context.natural_elevations
        self.poisson_points = context.poisson_points
        self.road_path = context.road_path
        self.road_samples = context.road_samples
        self.river = context.river
        self.river_disabled_reason = context.river_disabled_reason
        self.instances = list(context.instances)
        self.exclusion_points = context.exclusion_points.snapshot()
        self.terrain_chunks = context.terrain_chunks
        self.base_chunks = context.base_chunks
        self.road_chunk = context.road_chunk

    @property
    def river_samples(self) -> NDArray[np.float64]:
        if self.river is None:
            return np.empty((0, 3))
        return self.river.samples

    @property
    def chunks(self) -> list[MeshChunk]:
        """All renderable chunks: terrain, walls, then road."""
        chunks = self.terrain_chunks + self.base_chunks
        if self.road_chunk is not None:
            chunks.append(self.road_chunk)
        return chunks

    def instances_of(self, object_type: str) -> list[PlacedInstance]:
        return [i for i in self.instances if i.object_type == object_type]


def build_geometry(context: GenerationContext) -> None:
    """Run every stage before decoration placement.

    Stages: height field seeds, vertex sampling, triangulation, road,
    lamps, house, terrain heights, river, mesh buffers.
    """
    config = context.config
    width, height = config.width, config.height
    rng = context.rng

    logger.info(f"Generating terrain {width}x{height} with seed {config.seed}")

    # Stage A: Vertices and triangulation
    logger.info("Stage A: Sampling and triangulating vertices...")
    context.field = HeightField.from_rng(rng, config.noise, width, height)

    context.poisson_points = poisson_disc_points(
        config.mesh.min_point_radius, (width, height), seed=config.seed
    )
    random_points = [
        (rng.range(0.0, float(width)), rng.range(0.0, float(height)))
        for _ in range(config.mesh.random_points)
    ]
    corners = [(0.0, 0.0), (0.0, float(height)), (float(width), 0.0), (float(width), float(height))]
    points = np.concatenate(
        [context.poisson_points, np.asarray(random_points, dtype=np.float64).reshape(-1, 2)]
    )
    context.mesh = triangulate(
        points,
        corners,
        conforming=config.mesh.conforming,
        max_segment_length=config.mesh.max_boundary_segment or config.mesh.min_point_radius,
    )
    logger.info(
        f"Mesh: {context.mesh.vertex_count} vertices, {context.mesh.triangle_count} triangles"
    )

    # Stage B: Road, lamps and house
    if config.road.enabled:
        logger.info("Stage B: Building road...")
        context.road_path = build_road_path(context.field, config.road, width, height, rng)
        context.road_samples = road_samples(context.road_path, config.road)
        context.exclusion_points.extend(context.road_samples)

    if config.lamps.enabled and len(context.road_samples):
        lamps = place_lamps(context.road_samples, config.lamps, config.seed)
        context.lamps_left_side = lamps.left_side
        context.instances.extend(lamps.instances)

    if config.house.enabled and len(context.road_samples):
        house = place_house(
            context.road_samples,
            width,
            height,
            config.house,
            context.exclusion_points,
            config.seed,
            lamps_left_side=context.lamps_left_side,
        )
        if house is not None:
            context.instances.append(house)

    # Stage C: Heights
    logger.info("Stage C: Computing heights...")
    vertices = context.mesh.vertices
    context.natural_elevations = context.field.elevation(vertices)
    road_width = config.road.width + config.mesh.min_point_radius + config.road.flatten_padding
    context.elevations = flatten_near_path(
        vertices,
        context.natural_elevations,
        context.road_samples,
        road_width,
        config.road.smooth_distance,
    )

    # Stage D: River
    if config.river.enabled:
        logger.info("Stage D: Routing river...")
        _carve_river(context)

    # Stage E: Mesh buffers
    logger.info("Stage E: Building mesh buffers...")
    context.terrain_chunks = build_terrain_chunks(
        context.mesh, context.elevations, config.mesh.triangles_per_chunk, width, height
    )
    if config.base.enabled:
        context.base_chunks = build_base_walls(
            context.mesh,
            context.elevations,
            config.base.top_layer_size,
            config.base.bottom_layer_size,
            width,
            height,
        )
        for chunk in context.base_chunks:
            chunk.animate = config.base.animate
    if context.road_path is not None:
        context.road_chunk = build_road_mesh(
            context.road_samples,
            config.road.width,
            config.road.thickness,
            width,
            height,
            fill=config.road.fill,
        )
        context.road_chunk.animate = config.road.animate

    context.ground = MeshGroundQuery(context.mesh, context.elevations)


def _carve_river(context: GenerationContext) -> None:
    config = context.config
    try:
        river = route_river(
            context.mesh,
            context.elevations,
            config.width,
            config.height,
            XorShiftRandom(config.seed),
            config.river,
        )
    except RiverRoutingError as e:
        context.river_disabled_reason = str(e)
        logger.warning(f"River disabled for this run: {e}")
        return

    context.river = river
    context.elevations = flatten_near_path(
        context.mesh.vertices,
        context.elevations,
        river.samples,
        config.river.width,
        config.river.smooth_distance,
        offset=config.river.depth,
    )
    context.exclusion_points.extend(river.samples)


class GenerationRun:
    """A generation run driven in budgeted steps.

    The first ``step`` builds all geometry. Later steps spend their budget
    on decoration candidates, one placement pass at a time, in the fixed
    order rocks, trees, grass, flowers. The result is identical whatever
    budgets are used.
    """

    def __init__(self, config: TerrainConfig):
        self.context = GenerationContext(config)
        self._geometry_done = False
        self._pending = [
            (object_type, feature)
            for object_type, feature in config.feature_passes()
            if feature.enabled
        ]
        self._current: FeaturePass | None = None
        self._done = False
        self._cancelled = False

    @property
    def done(self) -> bool:
        return self._done

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def current_pass(self) -> FeaturePass | None:
        return self._current

    def step(
        self,
        max_candidates: int | None = None,
        time_budget: float | None = None,
    ) -> StepStatus:
        """Advance the run.

        Args:
            max_candidates: Most placement candidates to evaluate.
            time_budget: Seconds to spend on placement candidates.

        Returns:
            DONE when the run is complete, else IN_PROGRESS.
        """
        if self._cancelled:
            raise RuntimeError("Cannot step a cancelled generation run")
        if self._done:
            return StepStatus.DONE

        if not self._geometry_done:
            build_geometry(self.context)
            self._geometry_done = True
            return self._advance()

        status = self._current.step(max_candidates, time_budget)
        if status is StepStatus.DONE:
            self.context.instances.extend(self._current.instances)
            self._current = None
            return self._advance()
        return StepStatus.IN_PROGRESS

    def _advance(self) -> StepStatus:
        if not self._pending:
            self._done = True
            _log_terrain_stats(self.context)
            return StepStatus.DONE

        object_type, feature = self._pending.pop(0)
        config = self.context.config
        self._current = FeaturePass(
            object_type,
            config.width,
            config.height,
            feature,
            self.context.ground,
            self.context.exclusion_points,
            config.seed,
        )
        return StepStatus.IN_PROGRESS

    def run(self) -> GenerationResult:
        """Step until done and return the result."""
        while self.step() is not StepStatus.DONE:
            pass
        return self.result()

    def result(self) -> GenerationResult:
        if not self._done:
            raise RuntimeError("Generation run is not finished")
        return GenerationResult(self.context)

    def cancel(self) -> None:
        """Stop the run and discard the in-flight pass's partial instances."""
        if self._current is not None:
            self._current.close()
            self._current = None
        self._pending = []
        self._cancelled = True
        logger.info("Generation run cancelled")


def generate_terrain(config: TerrainConfig) -> GenerationResult:
    """Generate a complete terrain tile from configuration.

    Args:
        config: Terrain generation configuration.

    Returns:
        GenerationResult with mesh, elevations, paths, instances and buffers.
    """
    result = GenerationRun(config).run()

    # Debug output if enabled
    if config.debug_output_dir:
        _dump_debug_images(Path(config.debug_output_dir), result)

    return result


def generate_and_save_terrain(config: TerrainConfig, save_path: Path) -> GenerationResult:
    """Generate a terrain tile and save it to ``save_path``."""
    from .persistence import save_tile

    result = generate_terrain(config)
    save_path.parent.mkdir(parents=True, exist_ok=True)
    save_tile(save_path, result)
    return result


def _log_terrain_stats(context: GenerationContext) -> None:
    """Log terrain generation statistics."""
    elevations = context.elevations
    logger.info(
        f"Terrain stats ({context.mesh.vertex_count:,} vertices, "
        f"{context.mesh.triangle_count:,} triangles):"
    )
    logger.info(
        f"  elevation: min {elevations.min():.2f}, max {elevations.max():.2f}, "
        f"mean {elevations.mean():.2f}"
    )
    logger.info(f"  road samples: {len(context.road_samples)}")
    if context.river is not None:
        logger.info(f"  river samples: {len(context.river.samples)}")
    else:
        logger.info("  river: none")

    counts = Counter(instance.object_type for instance in context.instances)
    for object_type, count in sorted(counts.items()):
        logger.info(f"  {object_type}: {count:,}")


def _dump_debug_images(output_dir: Path, result: GenerationResult) -> None:
    """Save elevation and placement plots for debugging."""
    try:
        import matplotlib.pyplot as plt
    except ImportError:
        logger.warning("matplotlib not available, skipping debug images")
        return

    output_dir.mkdir(parents=True, exist_ok=True)
    vertices = result.mesh.vertices
    triangles = result.mesh.triangles

    for name, values in (
        ("natural_elevation", result.natural_elevations),
        ("elevation", result.elevations),
    ):
        fig, ax = plt.subplots(figsize=(10, 10))
        ax.tripcolor(vertices[:, 0], vertices[:, 1], triangles, values, cmap="terrain")
        ax.triplot(vertices[:, 0], vertices[:, 1], triangles, color="k", linewidth=0.2)
        ax.set_title(name)
        ax.set_aspect("equal")
        fig.savefig(output_dir / f"{name}.png", dpi=150, bbox_inches="tight")
        plt.close(fig)

    fig, ax = plt.subplots(figsize=(10, 10))
    ax.tripcolor(vertices[:, 0], vertices[:, 1], triangles, result.elevations, cmap="terrain")
    if len(result.road_samples):
        ax.plot(result.road_samples[:, 0], result.road_samples[:, 2], color="saddlebrown")
    if len(result.river_samples):
        ax.plot(result.river_samples[:, 0], result.river_samples[:, 2], color="tab:blue")
    for object_type, color in (
        ("rock", "grey"),
        ("tree", "darkgreen"),
        ("grass", "yellowgreen"),
        ("flower", "magenta"),
        ("house", "red"),
        ("lamp", "orange"),
    ):
        placed = result.instances_of(object_type)
        if placed:
            xs = [i.position[0] for i in placed]
            zs = [i.position[2] for i in placed]
            ax.scatter(xs, zs, s=6, color=color, label=object_type)
    ax.legend(loc="upper right")
    ax.set_title("placements")
    ax.set_aspect("equal")
    fig.savefig(output_dir / "placements.png", dpi=150, bbox_inches="tight")
    plt.close(fig)

    logger.info(f"Debug images saved to {output_dir}")
