"""Terrain configuration loading from TOML files."""

import tomllib
from pathlib import Path

from .terrain.config import TerrainConfig

CONFIGS_DIR = Path(__file__).parent.parent.parent / "configs"


def load_config(config_path: Path) -> TerrainConfig:
    """Load terrain configuration from a TOML file.

    Tables map onto the nested models (``[noise]``, ``[road]``, ``[trees]``,
    ...). Missing keys keep their defaults.

    Args:
        config_path: Path to the TOML config file.

    Returns:
        Parsed TerrainConfig object.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        tomllib.TOMLDecodeError: If TOML is malformed.
        pydantic.ValidationError: If values fail validation.
    """
    with open(config_path, "rb") as f:
        data = tomllib.load(f)
    return TerrainConfig.model_validate(data)


def find_config(name: str) -> Path:
    """Resolve ``--config``: a ``.toml`` path as given, else a shipped tile config."""
    if name.endswith(".toml"):
        path = Path(name)
        if not path.is_file():
            raise FileNotFoundError(f"Config file not found: {name}")
        return path

    path = CONFIGS_DIR / f"{name}.toml"
    if not path.is_file():
        shipped = sorted(p.stem for p in CONFIGS_DIR.glob("*.toml"))
        raise FileNotFoundError(f"No tile config named '{name}' (shipped: {shipped})")
    return path
