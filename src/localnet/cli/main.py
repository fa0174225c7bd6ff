"""
Command-line interface for the localnet devnet orchestrator.

Subcommands map one-to-one onto orchestrator operations:

    localnet dist [--force] [contracts...]
    localnet start-local
    localnet clean-local-state
    localnet clean-local-all
    localnet test e2e [args...]
    localnet status
"""

import argparse
import logging
import os
import shlex
import sys
import tomllib
from pathlib import Path
from typing import Callable, Dict, List, Optional

from ..builder import ArtifactBuilder
from ..config import get_config, get_config_path, set_config_path
from ..errors import Interrupted, LocalnetError
from ..models.config import AppConfig
from ..orchestration import E2ERunner, NetworkController, handle_signals
from ..state import CleanScope, StateDirectoryManager
from ..validation import ValidationError, handle_cli_error

LOG_FORMAT = "%(asctime)s [%(levelname)-5.5s] %(name)s:%(filename)s:%(lineno)d\t %(message)s"
LOG_ENV_VAR = "LOCALNET_LOG"

# Conventional exit status for SIGINT
EXIT_INTERRUPTED = 130

logger = logging.getLogger(__name__)


def setup_logging(level_name: str) -> None:
    level = getattr(logging, level_name.upper(), None)
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="localnet",
        description="Build contracts and run a local multi-chain devnet.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help=f"Path to localnet.toml (default: {get_config_path()}, or $LOCALNET_CONFIG).",
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get(LOG_ENV_VAR, "INFO"),
        help=f"Logging level (default: INFO, or ${LOG_ENV_VAR}).",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    dist = subparsers.add_parser("dist", help="Build optimized contract artifacts.")
    dist.add_argument("--force", action="store_true", help="Rebuild even if sources are unchanged.")
    dist.add_argument("contracts", nargs="*", help="Contracts to build (default: all).")

    subparsers.add_parser("start-local", help="Start the local network and keep it in the foreground.")
    subparsers.add_parser("clean-local-state", help="Remove chain and relayer state.")
    subparsers.add_parser("clean-local-all", help="Remove state, artifacts and fetched binaries.")
    subparsers.add_parser("status", help="Show whether a local network is running.")

    test = subparsers.add_parser("test", help="Run tests.")
    test_kinds = test.add_subparsers(dest="test_kind", required=True)
    e2e = test_kinds.add_parser("e2e", help="Run end-to-end tests against a local network.")
    e2e.add_argument("args", nargs=argparse.REMAINDER, help="Arguments passed to the test command.")

    return parser


def cmd_dist(config: AppConfig, args: argparse.Namespace) -> int:
    builder = ArtifactBuilder(config)
    artifacts = builder.build(args.contracts or None, force=args.force)
    for name, artifact in artifacts.items():
        logger.info(f"{name}: {artifact.path} ({artifact.size} bytes, sha256 {artifact.checksum[:12]})")
    return 0


def cmd_start_local(config: AppConfig, args: argparse.Namespace) -> int:
    controller = NetworkController(config)
    with handle_signals(controller):
        result = controller.start()
        print(controller.status().describe())
        if result.attached:
            logger.info("Local network is already running; nothing to do")
            return 0

        logger.info("Local network is up. Press Ctrl-C to stop.")
        exited = controller.wait_until_interrupted()
        report = controller.stop()

    if exited is not None:
        logger.error(f"Stopped the network because {exited} exited")
        return 1
    return 0 if report.clean else 1


def _clean(config: AppConfig, scope: CleanScope) -> int:
    removed = StateDirectoryManager(config).clean(scope)
    logger.info(f"Removed {len(removed)} path(s)")
    return 0


def cmd_clean_local_state(config: AppConfig, args: argparse.Namespace) -> int:
    return _clean(config, CleanScope.STATE_ONLY)


def cmd_clean_local_all(config: AppConfig, args: argparse.Namespace) -> int:
    return _clean(config, CleanScope.STATE_AND_ARTIFACTS)


def cmd_test(config: AppConfig, args: argparse.Namespace) -> int:
    selector = shlex.join(args.args) if args.args else None
    runner = E2ERunner(config)
    with handle_signals(runner.controller):
        runner.run(selector)
    return 0


def cmd_status(config: AppConfig, args: argparse.Namespace) -> int:
    controller = NetworkController(config)
    controller.attach()
    print(controller.status().describe())
    return 0


COMMANDS: Dict[str, Callable[[AppConfig, argparse.Namespace], int]] = {
    "dist": cmd_dist,
    "start-local": cmd_start_local,
    "clean-local-state": cmd_clean_local_state,
    "clean-local-all": cmd_clean_local_all,
    "test": cmd_test,
    "status": cmd_status,
}


def main_cli(argv: Optional[List[str]] = None) -> None:
    """
    Main command-line entry point.

    Raises:
        SystemExit: Always, with 0 on success, 1 on any orchestration or
            configuration error and 130 when interrupted.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    if args.config is not None:
        set_config_path(args.config)

    try:
        config = get_config()
    except (FileNotFoundError, ValidationError, tomllib.TOMLDecodeError) as e:
        handle_cli_error(
            error=e,
            context="configuration loading",
            exit_code=1,
            logger=logger,
        )

    try:
        exit_code = COMMANDS[args.command](config, args)
    except (Interrupted, KeyboardInterrupt) as e:
        logger.warning(f"Interrupted: {e}" if str(e) else "Interrupted")
        exit_code = EXIT_INTERRUPTED
    except (LocalnetError, ValidationError) as e:
        handle_cli_error(
            error=e,
            context=f"'{args.command}' command",
            exit_code=1,
            logger=logger,
        )

    sys.exit(exit_code)


if __name__ == "__main__":
    main_cli()
