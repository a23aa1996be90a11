"""Command line entry point for migratectl."""

import argparse
import asyncio
import json
import os
import sys

from . import __version__
from .constants import EXIT_INTERNAL_ERROR, EXIT_SUCCESS, EXIT_VALIDATION_FAILED
from .core.config_loader import MigrationConfig, load_config
from .core.engine import EngineRunner
from .core.exceptions import ConfigurationError, ValidationFailure
from .core.history import RunHistoryStore
from .core.logging_config import get_logger, setup_logging
from .core.notifier import build_notifier
from .core.orchestrator import OrchestratorOptions, PhaseOrchestrator
from .core.snapshot import SnapshotFallbackManager, VssSnapshotProvider
from .models.enums import Phase


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="migratectl", description="Phase-based bulk data migration around robocopy"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--config", default=os.getenv("MIGRATECTL_CONFIG"), help="Configuration file path"
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )
    parser.add_argument(
        "--validate-config", action="store_true", help="Validate configuration and exit"
    )

    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser("run", help="Run a migration phase")
    run_parser.add_argument("phase", type=str.upper, choices=[p.value for p in Phase])
    run_parser.add_argument(
        "--preview", action="store_true", help="List-only run; nothing is copied or recorded"
    )
    run_parser.add_argument(
        "--confirm", action="store_true", help="Confirm execution of a non-preview MIRROR"
    )
    run_parser.add_argument(
        "--override-reconcile-check",
        action="store_true",
        help="Allow MIRROR without a recorded RECONCILE",
    )
    run_parser.add_argument(
        "--force-backup-mode", action="store_true", help="Use backup mode without probing"
    )
    run_parser.add_argument(
        "--append-log",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Append to the phase log instead of writing a new one",
    )
    run_parser.add_argument(
        "--snapshot-fallback",
        action="store_true",
        help="Retry failed files against a volume snapshot",
    )
    run_parser.add_argument(
        "--yes", action="store_true", help="Answer interactive confirmations with yes"
    )

    subparsers.add_parser("history", help="Print the recorded run history")

    return parser.parse_args(argv)


def prompt_operator(question: str) -> bool:
    """Ask a yes/no question on the console."""
    try:
        answer = input(f"{question} [y/N]: ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def build_orchestrator(config: MigrationConfig, args: argparse.Namespace) -> PhaseOrchestrator:
    """Wire the orchestrator and its collaborators from configuration."""
    runner = EngineRunner(config)
    fallback = None
    if args.snapshot_fallback:
        fallback = SnapshotFallbackManager(VssSnapshotProvider(config.snapshot_mount_dir), runner)

    return PhaseOrchestrator(
        config,
        runner=runner,
        history=RunHistoryStore(config.history_path),
        fallback=fallback,
        notifier=build_notifier(config.notification),
        confirm=(lambda _question: True) if args.yes else prompt_operator,
        output=print,
    )


async def _run(config: MigrationConfig, args: argparse.Namespace) -> int:
    orchestrator = build_orchestrator(config, args)
    options = OrchestratorOptions(
        preview=args.preview,
        confirm_execution=args.confirm,
        override_reconcile_gate=args.override_reconcile_check,
        force_backup_mode=args.force_backup_mode,
        append_log=args.append_log,
        snapshot_fallback=args.snapshot_fallback,
    )
    outcome = await orchestrator.run_phase(Phase(args.phase), options)

    logger = get_logger()
    if outcome.message:
        logger.warning(outcome.message, status=outcome.status.value)
    report = outcome.final_report
    if report is not None:
        logger.info(
            "Run summary",
            phase=report.phase.value,
            success=report.success,
            exit_code=report.exit_code,
            copied_files=report.copied_files,
            failed_files=report.failed_files,
            copied_bytes=report.copied_bytes,
            duration_seconds=round(report.duration_seconds, 1),
            log_path=report.log_path,
        )
    return outcome.exit_status


def main(argv: list[str] | None = None) -> int:
    """Main entry point, returning the process exit status."""
    args = parse_args(argv)
    setup_logging(log_dir=None, log_level=args.log_level)
    logger = get_logger()

    try:
        config = load_config(args.config)
    except ConfigurationError as e:
        logger.error("Configuration invalid", error=str(e))
        return EXIT_VALIDATION_FAILED

    if args.validate_config:
        logger.info("Configuration is valid", config_file=config.config_file)
        return EXIT_SUCCESS

    if args.command == "history":
        history = RunHistoryStore(config.history_path).load()
        print(json.dumps(history.model_dump(), indent=2))
        return EXIT_SUCCESS

    if args.command != "run":
        logger.error("No command given, expected 'run' or 'history'")
        return EXIT_VALIDATION_FAILED

    setup_logging(log_dir=config.log_dir, log_level=args.log_level)
    logger = get_logger()
    try:
        return asyncio.run(_run(config, args))
    except ValidationFailure as e:
        logger.error("Validation failed", error=str(e))
        return EXIT_VALIDATION_FAILED
    except KeyboardInterrupt:
        logger.warning("Interrupted by operator")
        return EXIT_INTERNAL_ERROR
    except Exception as e:
        logger.error("Unhandled failure", error=str(e), exc_info=True)
        return EXIT_INTERNAL_ERROR


if __name__ == "__main__":
    sys.exit(main())
