"""Serves as the command line entry point of the tilemap generator."""

from __future__ import annotations

import argparse
import logging
import multiprocessing
import random
from pathlib import Path
import sys
from typing import TYPE_CHECKING

import numpy as np

from tilemap_wfc import constants
from tilemap_wfc.errors import WFCError
from tilemap_wfc.logging_config import get_logger, setup_logging
from tilemap_wfc.model.training_data import load_training_grid, save_tilemap_csv
from tilemap_wfc.model.wfc import WFC, generate_with_restarts
from tilemap_wfc.model.wfc_worker import WFCManager

if TYPE_CHECKING:
    from numpy.typing import NDArray

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Creates the argument parser of the tilemap-wfc command."""
    parser = argparse.ArgumentParser(
        prog="tilemap-wfc",
        description="Generate a large tilemap from a small example tilemap using Wave Function Collapse",
    )
    parser.add_argument(
        "training_file",
        type=Path,
        help="Example tilemap (.csv of tile indices or Pyxel Edit .json export)",
    )
    parser.add_argument(
        "--layer",
        type=int,
        default=0,
        help="Layer number to read from a Pyxel Edit export (default: 0)",
    )
    parser.add_argument(
        "--output-size",
        type=int,
        default=constants.OUTPUT_SIZE_DEFAULT,
        help=f"Width and height of the generated tilemap (default: {constants.OUTPUT_SIZE_DEFAULT})",
    )
    parser.add_argument(
        "--pattern-size",
        type=int,
        default=constants.PATTERN_SIZE_DEFAULT,
        choices=constants.PATTERN_SIZE_SUPPORTED,
        help=f"Edge length of the extracted patterns (default: {constants.PATTERN_SIZE_DEFAULT})",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help=f"Random seed between 0 and {constants.RANDOM_SEED_MAX} (default: drawn at random and logged)",
    )
    parser.add_argument(
        "--max-attempts",
        type=int,
        default=constants.WFC_MAX_ATTEMPTS_DEFAULT,
        help=f"Runs attempted before giving up on contradictions (default: {constants.WFC_MAX_ATTEMPTS_DEFAULT})",
    )
    parser.add_argument(
        "--stream",
        action="store_true",
        help="Generate in a worker process and receive the tiles while they are generated",
    )
    parser.add_argument(
        "--out",
        type=Path,
        default=None,
        help="Write the tilemap to this .csv file instead of stdout",
    )
    parser.add_argument(
        "--log-dir",
        type=Path,
        default=None,
        help="Directory for the debug log file (default: no log file)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging on the console",
    )
    return parser


def stream_tilemap(wfc: WFC, drain_limit: int = constants.STREAM_DRAIN_LIMIT_DEFAULT) -> NDArray[np.int_]:
    """Runs the generator in a worker process, receiving a bounded number of tiles per tick."""
    manager = WFCManager()
    listener = manager.generate_tilemap(wfc)
    total_tiles = wfc.output_shape[0] * wfc.output_shape[1]
    received_tiles = 0
    try:
        while not listener.is_finished:
            received_tiles += len(listener.drain(drain_limit, timeout=0.1))
            logger.debug(f"Received {received_tiles}/{total_tiles} tiles")
        # Raises the worker's error, if any.
        return listener.wait()
    finally:
        manager.abort_tilemap_generation()


def main(argv: list[str] | None = None) -> int:
    """Runs the tilemap-wfc command.

    Args:
        argv: Command line arguments without the program name (defaults to sys.argv).

    Returns:
        The exit status: 0 on success, 1 if the generation failed, 2 for invalid arguments.
    """
    args = build_parser().parse_args(argv)

    console_level = logging.DEBUG if args.debug else logging.WARNING
    setup_logging(args.log_dir, console_level=console_level)

    if not constants.OUTPUT_SIZE_MIN_LIMIT <= args.output_size <= constants.OUTPUT_SIZE_MAX_LIMIT:
        print(
            f"--output-size must be between {constants.OUTPUT_SIZE_MIN_LIMIT} and {constants.OUTPUT_SIZE_MAX_LIMIT}",
            file=sys.stderr,
        )
        return 2

    if args.seed is None:
        args.seed = random.randint(0, constants.RANDOM_SEED_MAX)
        logger.info(f"Using random seed {args.seed}")
    elif not 0 <= args.seed <= constants.RANDOM_SEED_MAX:
        print(f"--seed must be between 0 and {constants.RANDOM_SEED_MAX}", file=sys.stderr)
        return 2

    try:
        training_grid = load_training_grid(args.training_file, args.layer)
        if args.stream:
            # Streaming runs a single attempt, a contradiction is reported as is.
            wfc = WFC(training_grid, args.output_size, args.pattern_size, args.seed)
            tilemap = stream_tilemap(wfc)
        else:
            tilemap = generate_with_restarts(
                training_grid, args.output_size, args.pattern_size, args.seed, args.max_attempts
            )
    except WFCError as exc:
        logger.error(f"Generation failed: {exc}")
        print(f"generation failed: {exc}", file=sys.stderr)
        return 1

    if args.out is not None:
        save_tilemap_csv(args.out, tilemap)
    else:
        np.savetxt(sys.stdout, tilemap, fmt="%i", delimiter=",")
    return 0


if __name__ == "__main__":
    multiprocessing.freeze_support()
    sys.exit(main())
