"""Terrain generation configuration models."""

from pydantic import BaseModel, Field, field_validator

from ..types import Vector3


class MeshConfig(BaseModel):
    """Point sampling and triangulation parameters."""

    min_point_radius: float = Field(
        default=12.0, description="Poisson-disc radius for terrain vertices"
    )
    random_points: int = Field(
        default=30, description="Extra uniformly random vertices added after sampling"
    )
    conforming: bool = Field(
        default=True, description="Split the boundary ring so it appears as mesh edges"
    )
    max_boundary_segment: float | None = Field(
        default=None,
        description="Longest boundary segment before splitting (None = min_point_radius)",
    )
    triangles_per_chunk: int = Field(
        default=20000, description="Maximum triangles per terrain mesh chunk"
    )


class NoiseConfig(BaseModel):
    """Multi-octave elevation noise parameters."""

    octaves: int = Field(default=9, description="Number of noise octaves")
    persistence: float = Field(
        default=0.5, description="Amplitude ratio between consecutive octaves"
    )
    frequency_base: float = Field(
        default=0.49, description="Frequency multiplier per octave"
    )
    elevation_scale: float = Field(default=250.0, description="Output elevation scale")
    sample_scale: float | None = Field(
        default=None,
        description="Noise-space extent of the tile at base frequency (None = tile size)",
    )

    @field_validator("persistence")
    @classmethod
    def _persistence_non_zero(cls, value: float) -> float:
        if value == 0:
            raise ValueError("persistence must be non-zero")
        return value


class RoadConfig(BaseModel):
    """Road path, flattening and ribbon mesh parameters."""

    enabled: bool = Field(default=True, description="Generate the road")
    animate: bool = Field(default=True, description="Animate road appearance")
    width: float = Field(default=4.0, description="Half width of the road ribbon")
    thickness: float = Field(default=0.15, description="Road ribbon thickness")
    fill: float = Field(
        default=1.0, ge=0.0, le=1.0, description="Fraction of the road that is built"
    )
    flatten_padding: float = Field(
        default=6.0,
        description="Added to width + min_point_radius to get the flattened band",
    )
    smooth_distance: float = Field(
        default=50.0, description="Distance over which terrain blends back to natural"
    )
    height_smooth_distance: float = Field(
        default=20.0, description="Stencil distance for smoothed anchor elevations"
    )
    sample_spacing: float = Field(
        default=6.0, description="Spacing of road samples used for flattening"
    )
    edge_margin: int = Field(
        default=30, description="Margin for the edge anchors along the tile edges"
    )
    edge_inset: float = Field(
        default=0.015, description="Distance of the edge anchors inside the tile"
    )
    middle_jitter: int = Field(
        default=15, description="Random offset range of the middle anchor"
    )
    handle_side_margin: int = Field(
        default=10, description="Horizontal margin of the interior handle"
    )
    handle_min_offset: int = Field(
        default=40, description="Minimum offset of the handle above the tile centre"
    )
    handle_top_margin: int = Field(
        default=20, description="Margin between the handle and the top edge"
    )


class RiverConfig(BaseModel):
    """River routing and carving parameters."""

    enabled: bool = Field(default=True, description="Generate a river")
    animate: bool = Field(default=True, description="Animate river appearance")
    width: float = Field(default=6.0, description="Flattened band around the river")
    smooth_distance: float = Field(
        default=25.0, description="Distance over which banks blend back to natural"
    )
    depth: float = Field(default=3.0, description="River surface depth below its bed line")
    sample_spacing: float = Field(default=4.0, description="Spacing of river samples")
    source_fraction: float = Field(
        default=0.2, gt=0.0, le=1.0, description="Highest boundary fraction for the source"
    )
    mouth_fraction: float = Field(
        default=0.1, gt=0.0, le=1.0, description="Lowest boundary fraction for the mouth"
    )
    max_endpoint_attempts: int = Field(
        default=300, description="Mouth draws before giving up"
    )
    max_iterations: int = Field(default=10000, description="Search iteration cap")
    distance_weight: float = Field(
        default=1.0, description="Cost per unit of planar distance travelled"
    )
    uphill_penalty: float = Field(default=10.0, description="Cost per unit of climb")
    center_bias: float = Field(
        default=0.05, description="Cost per unit distance from the tile centre"
    )
    heuristic_weight: float = Field(
        default=1.0, description="Multiplier on the straight-line heuristic"
    )
    path_stride: int = Field(
        default=5, ge=1, description="Keep every n-th triangle of the route"
    )
    edge_snap_tolerance: float = Field(
        default=12.0, description="Distance within which endpoints snap to the edge"
    )


class BaseConfig(BaseModel):
    """Skirt wall parameters."""

    enabled: bool = Field(default=True, description="Generate the skirt walls")
    animate: bool = Field(default=True, description="Animate wall appearance")
    top_layer_size: float = Field(default=13.0, description="Depth of the top layer")
    bottom_layer_size: float = Field(
        default=120.0, description="Depth of the bottom layer below zero"
    )


class FeatureConfig(BaseModel):
    """One rejection-sampled decoration pass."""

    enabled: bool = Field(default=True, description="Run this pass")
    animate: bool = Field(default=True, description="Animate spawned instances")
    variants: list[str] = Field(
        default_factory=lambda: ["default"], min_length=1, description="Prefab variants"
    )
    min_spacing: float = Field(default=18.0, description="Poisson radius of candidates")
    edge_margin: float = Field(default=6.0, description="Margin kept from tile edges")
    min_normal_y: float = Field(
        default=0.0, description="Minimum surface normal Y (slope limit)"
    )
    exclusion_radius: float = Field(
        default=22.0, description="Reject candidates this close to exclusion points"
    )
    rotation_ranges: list[tuple[int, int]] = Field(
        default_factory=lambda: [(-5, 5), (0, 360), (-5, 5)],
        min_length=3,
        max_length=3,
        description="Integer Euler angle draw range per axis (degrees)",
    )
    align_to_normal: bool = Field(
        default=False, description="Tilt instances onto the surface normal"
    )
    vertical_offset: float = Field(
        default=1.0, description="Offset along Y from the ground hit"
    )
    scale_base: float = Field(default=0.0, description="Added to each scale draw")
    scale_range: tuple[float, float] = Field(
        default=(1.1, 1.4), description="Per-axis scale draw range"
    )
    color_gradient: list[Vector3] = Field(
        default_factory=lambda: [(0.20, 0.45, 0.18), (0.45, 0.62, 0.22)],
        min_length=1,
        description="RGB stops sampled by the color draw",
    )
    records_exclusions: bool = Field(
        default=True, description="Append accepted positions to the exclusion list"
    )
    seed_offset: int = Field(default=0, description="Added to the run seed for this pass")


def _rock_config() -> FeatureConfig:
    return FeatureConfig(
        variants=["rock_a", "rock_b", "rock_c"],
        min_spacing=47.0,
        edge_margin=6.0,
        exclusion_radius=8.0,
        rotation_ranges=[(0, 360), (0, 360), (0, 360)],
        vertical_offset=0.0,
        scale_base=1.0,
        scale_range=(0.5, 2.0),
        color_gradient=[(0.42, 0.40, 0.38), (0.62, 0.60, 0.56)],
    )


def _tree_config() -> FeatureConfig:
    return FeatureConfig(
        variants=["pine", "oak", "birch"],
        min_spacing=18.0,
        edge_margin=6.0,
        min_normal_y=0.8,
        exclusion_radius=22.0,
    )


def _grass_config() -> FeatureConfig:
    return FeatureConfig(
        variants=["grass_a", "grass_b"],
        min_spacing=7.0,
        edge_margin=8.0,
        min_normal_y=0.7,
        exclusion_radius=14.0,
        rotation_ranges=[(0, 1), (0, 360), (0, 1)],
        align_to_normal=True,
        vertical_offset=-1.0,
        scale_range=(70.0, 80.0),
        color_gradient=[(0.35, 0.55, 0.20), (0.60, 0.70, 0.30)],
    )


def _flower_config() -> FeatureConfig:
    return FeatureConfig(
        variants=["daisy", "poppy"],
        min_spacing=11.0,
        edge_margin=8.0,
        min_normal_y=0.75,
        exclusion_radius=14.0,
        rotation_ranges=[(0, 1), (0, 360), (0, 1)],
        align_to_normal=True,
        vertical_offset=0.0,
        scale_range=(0.8, 1.2),
        color_gradient=[(0.90, 0.85, 0.30), (0.85, 0.30, 0.35)],
        seed_offset=1,
    )


class HouseConfig(BaseModel):
    """Roadside house placement."""

    enabled: bool = Field(default=True, description="Place a house")
    animate: bool = Field(default=True, description="Animate the house appearance")
    variants: list[str] = Field(default_factory=lambda: ["house"], min_length=1)
    distance_from_path: float = Field(
        default=45.0, description="Perpendicular offset from the road"
    )
    distance_from_edge: float = Field(
        default=35.0, description="Margin kept from tile edges"
    )
    lookahead: int = Field(
        default=6, description="Samples back/forward used for the straightness check"
    )
    min_index: int = Field(
        default=8, description="Samples skipped at each end of the road"
    )
    max_turn_degrees: float = Field(
        default=3.0, description="Largest road turn allowed at the house"
    )
    attempts: int = Field(default=100, description="Placement attempts")
    exclusion_offset: float = Field(
        default=23.0, description="Offset of the exclusion points around the house"
    )


class LampConfig(BaseModel):
    """Street lamps along the road."""

    enabled: bool = Field(default=True, description="Place lamps")
    animate: bool = Field(default=True, description="Animate lamp appearance")
    variants: list[str] = Field(
        default_factory=lambda: ["lamp_post", "lantern"], min_length=1
    )
    every_nth: int = Field(default=6, ge=1, description="Place a lamp every n samples")
    distance_from_road: float = Field(
        default=15.0, description="Perpendicular offset from the road"
    )
    back_offset: int = Field(
        default=3, description="Samples back used for the road direction"
    )
    scale_range: tuple[float, float] = Field(
        default=(0.1, 0.4), description="Per-axis scale draw range, added to 1"
    )


class TerrainConfig(BaseModel):
    """Complete terrain tile generation configuration."""

    seed: int = Field(default=0, description="Random seed for reproducibility")
    width: int = Field(default=300, gt=0, description="Tile width")
    height: int = Field(default=300, gt=0, description="Tile height (planar Y / 3D Z)")

    mesh: MeshConfig = Field(default_factory=MeshConfig)
    noise: NoiseConfig = Field(default_factory=NoiseConfig)
    road: RoadConfig = Field(default_factory=RoadConfig)
    river: RiverConfig = Field(default_factory=RiverConfig)
    base: BaseConfig = Field(default_factory=BaseConfig)

    rocks: FeatureConfig = Field(default_factory=_rock_config)
    trees: FeatureConfig = Field(default_factory=_tree_config)
    grass: FeatureConfig = Field(default_factory=_grass_config)
    flowers: FeatureConfig = Field(default_factory=_flower_config)
    house: HouseConfig = Field(default_factory=HouseConfig)
    lamps: LampConfig = Field(default_factory=LampConfig)

    # Debug options
    debug_output_dir: str | None = Field(
        default=None, description="Directory for debug images (None = disabled)"
    )

    def feature_passes(self) -> list[tuple[str, FeatureConfig]]:
        """Decoration passes in their fixed run order."""
        return [
            ("rock", self.rocks),
            ("tree", self.trees),
            ("grass", self.grass),
            ("flower", self.flowers),
        ]
