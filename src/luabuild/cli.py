"""Command line entry point for luabuild.

Builds every (build x target) artifact of a project:

    luabuild                      # ./project.json
    luabuild path/to/project.yaml --autoconf-script tools/wrap.lua
"""

import argparse
import logging
import sys
from typing import List, Optional

from luabuild import __version__
from luabuild.config import PipelineConfig
from luabuild.errors import LuaBuildError
from luabuild.pipeline import run_pipeline

logger = logging.getLogger("luabuild")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="luabuild",
        description="Resolve libraries and build every target of a Lua project",
    )
    parser.add_argument(
        "project",
        nargs="?",
        help="Project manifest (default: ./project.json)",
    )
    parser.add_argument("--lua", dest="lua_executable", help="Lua interpreter command (default: lua)")
    parser.add_argument(
        "--autoconf-script",
        help=(
            "Autoconf Lua script used to generate metadata sidecars; "
            "without it (or LUABUILD_AUTOCONF_SCRIPT) no sidecars are generated"
        ),
    )
    parser.add_argument(
        "--timeout",
        dest="command_timeout",
        help="Seconds before an external command is abandoned",
    )
    parser.add_argument(
        "--no-autoconf",
        action="store_true",
        help="Do not generate autoconf sidecars",
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Show debug output")
    verbosity.add_argument("-q", "--quiet", action="store_true", help="Only show warnings and errors")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def configure_logging(verbose: bool = False, quiet: bool = False) -> None:
    level = logging.INFO
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose, args.quiet)

    try:
        config = PipelineConfig.from_env(
            manifest_path=args.project,
            lua_executable=args.lua_executable,
            autoconf_script=args.autoconf_script,
            command_timeout=args.command_timeout,
            skip_autoconf=args.no_autoconf or None,
        )
        report = run_pipeline(config)
    except LuaBuildError as exc:
        logger.error("%s", exc)
        return 1

    for warning in report.warnings:
        logger.debug("warning: %s", warning)
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
