"""
tcgen command line.

Usage:
    # Instrument ./src, then run a driver script; fixtures land in --destdir
    tcgen run --srcdir src --destdir fixtures scripts/exercise.py --flag

    # Show which files would be instrumented
    tcgen files --srcdir src
"""

import argparse
import logging
import runpy
import sys
from pathlib import Path
from typing import List, Optional

from .config import TcgenConfig, load_config
from .discovery import walk_sources
from .errors import ConfigError
from .session import Tcgen

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tcgen",
        description="Record function and method calls as test fixtures",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "-v", "--verbose",
        action="store_true",
        default=argparse.SUPPRESS,
        help="Enable verbose logging",
    )
    common.add_argument(
        "--srcdir",
        type=Path,
        help="Root directory to instrument (default: from config, else cwd)",
    )
    common.add_argument(
        "--config",
        type=Path,
        help="Path to tcgen.yaml or pyproject.toml",
    )
    common.add_argument(
        "--exclude",
        action="append",
        default=None,
        help="Directory or file name to skip (repeatable)",
    )

    run = subparsers.add_parser(
        "run",
        parents=[common],
        help="Instrument the source tree and run a driver script",
    )
    run.add_argument(
        "--destdir",
        type=Path,
        help="Directory to write fixtures to",
    )
    run.add_argument("script", type=Path, help="Python script to run as __main__")
    run.add_argument("script_args", nargs=argparse.REMAINDER, help="Arguments for the script")

    subparsers.add_parser(
        "files",
        parents=[common],
        help="List the files that would be instrumented",
    )
    return parser


def resolve_config(args: argparse.Namespace) -> TcgenConfig:
    """Merge the config file with command-line overrides."""
    start = args.srcdir if args.srcdir is not None else None
    config = load_config(args.config, start=start)
    config = config.with_overrides(
        srcdir=str(args.srcdir.resolve()) if args.srcdir else None,
        destdir=str(args.destdir.resolve()) if getattr(args, "destdir", None) else None,
        exclude=args.exclude,
    )
    if config.srcdir is None:
        config = config.with_overrides(srcdir=str(Path.cwd()))
    return config


def cmd_files(config: TcgenConfig) -> int:
    srcdir = config.srcdir
    if not srcdir.is_dir():
        raise ConfigError(f"srcdir is not a directory: {srcdir}")
    for path in walk_sources(srcdir, exclude=config.exclude):
        print(path)
    return 0


def cmd_run(config: TcgenConfig, script: Path, script_args: List[str]) -> int:
    if not script.is_file():
        raise ConfigError(f"Script not found: {script}")

    session = Tcgen(config).start()
    saved_argv = sys.argv
    sys.argv = [str(script), *script_args]
    status = 0
    try:
        runpy.run_path(str(script), run_name="__main__")
    except SystemExit as e:
        if isinstance(e.code, int):
            status = e.code
        elif e.code is not None:
            print(e.code, file=sys.stderr)
            status = 1
    finally:
        sys.argv = saved_argv
        session.stop()
        logger.info(f"Fixtures written to {session.destdir}")
    return status


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        config = resolve_config(args)
        if args.command == "files":
            return cmd_files(config)
        return cmd_run(config, args.script, args.script_args)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
