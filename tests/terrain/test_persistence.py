"""Tests for saving and loading tiles."""

from pathlib import Path

import numpy as np
import pytest

from lowpoly.terrain.config import TerrainConfig
from lowpoly.terrain.generator import generate_and_save_terrain, generate_terrain
from lowpoly.terrain.persistence import FORMAT_VERSION, load_tile, save_tile


class TestTilePersistence:
    """Tests for the .npz tile format."""

    def test_round_trip(self, small_config: TerrainConfig, tmp_path: Path) -> None:
        """A saved tile loads back unchanged."""
        result = generate_terrain(small_config)
        path = tmp_path / "tile.npz"
        save_tile(path, result)

        mesh, elevations, instances, metadata = load_tile(path)
        np.testing.assert_array_equal(mesh.vertices, result.mesh.vertices)
        np.testing.assert_array_equal(mesh.labels, result.mesh.labels)
        np.testing.assert_array_equal(mesh.triangles, result.mesh.triangles)
        np.testing.assert_array_equal(elevations, result.elevations)
        np.testing.assert_array_equal(metadata["road_samples"], result.road_samples)
        assert instances == result.instances
        assert metadata["version"] == FORMAT_VERSION
        assert metadata["seed"] == small_config.seed
        assert metadata["river"] == (result.river is not None)
        assert TerrainConfig.model_validate(metadata["config"]) == small_config

    def test_generate_and_save(self, small_config: TerrainConfig, tmp_path: Path) -> None:
        """Parent directories are created for the save path."""
        path = tmp_path / "saves" / "tile.npz"
        generate_and_save_terrain(small_config, path)
        assert path.exists()

    def test_missing_file(self, tmp_path: Path) -> None:
        """Loading a missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_tile(tmp_path / "missing.npz")

    def test_missing_arrays(self, tmp_path: Path) -> None:
        """Files without mesh arrays are rejected."""
        path = tmp_path / "bad.npz"
        np.savez_compressed(path, vertices=np.zeros((3, 2)))
        with pytest.raises(ValueError, match="elevations|labels"):
            load_tile(path)

    def test_elevation_count_mismatch(self, tmp_path: Path) -> None:
        """Elevations must match the vertices."""
        path = tmp_path / "bad.npz"
        np.savez_compressed(
            path,
            vertices=np.array([(0.0, 0.0), (1.0, 0.0), (0.0, 1.0)]),
            labels=np.ones(3, dtype=np.uint8),
            elevations=np.zeros(2),
        )
        with pytest.raises(ValueError, match="elevations"):
            load_tile(path)
