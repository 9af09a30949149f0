"""Command-line interface for terrain tile generation."""

import argparse
import logging
import time
from pathlib import Path

import structlog


def main() -> None:
    """CLI entry point for terrain generation."""
    parser = argparse.ArgumentParser(description="Generate a procedural low-poly terrain tile")
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path or name of a terrain TOML config (default: built-in defaults)",
    )
    parser.add_argument(
        "--seed", type=int, default=None, help="Random seed (overrides config)"
    )
    parser.add_argument(
        "--size",
        type=int,
        default=None,
        help="Tile width and height (overrides config)",
    )
    parser.add_argument(
        "--output",
        "-o",
        type=str,
        default="saves/tile.npz",
        help="Output path (default: saves/tile.npz)",
    )
    parser.add_argument(
        "--chunk-budget",
        type=int,
        default=None,
        help="Placement candidates per step (default: run in one go)",
    )
    parser.add_argument(
        "--debug-images",
        type=str,
        default=None,
        help="Directory to save debug images (optional)",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Verbose logging"
    )

    args = parser.parse_args()

    # Configure logging
    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
    )

    # Import here to avoid slow startup for --help
    from ..config import find_config, load_config
    from .config import TerrainConfig
    from .generator import GenerationRun, _dump_debug_images
    from .persistence import save_tile
    from .validation import validate_terrain

    if args.config:
        config = load_config(find_config(args.config))
    else:
        config = TerrainConfig()

    overrides = {}
    if args.seed is not None:
        overrides["seed"] = args.seed
    if args.size is not None:
        overrides["width"] = args.size
        overrides["height"] = args.size
    if args.debug_images is not None:
        overrides["debug_output_dir"] = args.debug_images
    if overrides:
        config = TerrainConfig.model_validate({**config.model_dump(), **overrides})

    output_path = Path(args.output)

    print(f"Generating {config.width}x{config.height} tile with seed {config.seed}")
    print(f"Output: {output_path}")
    print()

    start_time = time.time()
    run = GenerationRun(config)
    steps = 0
    while not run.done:
        run.step(max_candidates=args.chunk_budget)
        steps += 1
    result = run.result()
    gen_time = time.time() - start_time

    if config.debug_output_dir:
        _dump_debug_images(Path(config.debug_output_dir), result)

    print()
    print(f"Generation complete in {gen_time:.1f}s ({steps} steps)")

    validation = validate_terrain(result)
    if not validation.passed:
        print(f"Validation failed with {len(validation.errors)} errors")

    # Save to disk
    output_path.parent.mkdir(parents=True, exist_ok=True)
    save_tile(output_path, result)

    print(f"Saved to {output_path}")


if __name__ == "__main__":
    main()
