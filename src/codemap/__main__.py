"""Entry point for running the codemap server.

Usage:
    codemap [project_root] [--host HOST] [--port PORT] [-v...] [--no-scan]
    python -m codemap

The project root defaults to ``$PROJECT_ROOT``, else the current directory
(or its parent when started from a ``server/`` subdirectory).
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from collections.abc import Sequence

from codemap import __version__
from codemap.logging import get_logger, setup_logging

log = get_logger()


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="codemap",
        description="Live file activity and agent session server for coding agents",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "project_root",
        nargs="?",
        help="Project directory to observe (default: $PROJECT_ROOT or cwd)",
    )
    parser.add_argument("--host", help="Address to bind (default: from config, 127.0.0.1)")
    parser.add_argument("--port", type=int, help="Port to bind (default: from config, 5174)")
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (can be repeated)",
    )
    parser.add_argument(
        "--no-scan",
        action="store_true",
        help="Do not seed the graph from the project tree on startup",
    )
    return parser


def detect_project_root(cwd: str | None = None) -> str:
    """Project root when none is configured: cwd, or its parent for ``server/``."""
    cwd = cwd or os.getcwd()
    if os.path.basename(os.path.normpath(cwd)) == "server":
        return os.path.dirname(os.path.normpath(cwd))
    return cwd


def run_cli(args: Sequence[str]) -> int:
    """Run the CLI with the given arguments."""
    from codemap.config import load_config
    from codemap.server.server import serve

    parsed = create_parser().parse_args(args)

    project_root = (
        parsed.project_root or os.environ.get("PROJECT_ROOT") or detect_project_root()
    )
    project_root = os.path.abspath(project_root)

    # Load config before logging so we can use config.logging settings
    config = load_config(project_root=project_root)
    config.server.project_root = project_root
    if parsed.host:
        config.server.host = parsed.host
    if parsed.port:
        config.server.port = parsed.port
    if parsed.no_scan:
        config.graph.scan_on_start = False
    if parsed.verbose:
        # info is verbosity 2; each -v goes one step further, up to trace
        config.logging.verbose = min(2 + parsed.verbose, 4)

    setup_logging(config.logging)
    log.info("Starting codemap %s for %s", __version__, project_root)

    try:
        asyncio.run(serve(config, project_root))
    except KeyboardInterrupt:
        log.info("Interrupted, shutting down")
    return 0


def main() -> None:
    """Console script entry point."""
    sys.exit(run_cli(sys.argv[1:]))


if __name__ == "__main__":
    main()
