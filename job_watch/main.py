"""Command line entry point for Job Watch."""

import argparse
import json
import signal
import sys
import threading
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from dotenv import load_dotenv
from pydantic import ValidationError

from job_watch.adapters import detect_sources, validate_source
from job_watch.config.duration import DurationParseError, parse_duration
from job_watch.config.environment import EnvironmentConfig
from job_watch.config.exceptions import ConfigurationError
from job_watch.config.loader import load_config
from job_watch.config.models import AppConfig
from job_watch.domain.models import SourceType, Watch
from job_watch.inbox import INBOX_VIEWS, list_alerts, record_decision
from job_watch.logging import get_logger
from job_watch.logging.config import configure_logging
from job_watch.notifications.service import NotificationService
from job_watch.persistence.database import close_database, get_session, init_database
from job_watch.persistence.exceptions import PersistenceError, RecordNotFoundError
from job_watch.persistence.repositories import WatchRepository
from job_watch.pipeline import AlertCheckPipeline, CheckOptions
from job_watch.scheduler import SchedulerService
from job_watch.utils.timestamps import format_timestamp

logger = get_logger(__name__, component="cli")

SOURCE_TYPES = [source_type.value for source_type in SourceType]


def load_runtime_config(
    config_path: Optional[Path], log_level_override: Optional[str]
) -> Tuple[AppConfig, EnvironmentConfig]:
    """
    Load configuration and settle the effective log level.

    Log level priority: CLI > LOG_LEVEL environment variable > config file.

    Raises:
        ConfigurationError: If configuration is invalid
    """
    app_config, env_config = load_config(config_path)

    if log_level_override:
        env_config.log_level = log_level_override
    elif not env_config.log_level:
        env_config.log_level = app_config.logging.level or "INFO"

    return app_config, env_config


def _split_keywords(value: Optional[str]) -> Optional[List[str]]:
    """Comma-separated CLI keywords; None when the option was not given."""
    if value is None:
        return None
    return [part.strip() for part in value.split(",") if part.strip()]


def _watch_to_dict(watch: Watch) -> Dict[str, Any]:
    return {
        "id": watch.id,
        "company": watch.company,
        "sourceType": watch.source_type.value,
        "sourceId": watch.source_id,
        "titleKeywords": list(watch.title_keywords),
        "locationKeywords": list(watch.location_keywords),
        "active": watch.active,
        "lastCheckedAt": format_timestamp(watch.last_checked_at),
        "createdAt": format_timestamp(watch.created_at),
        "updatedAt": format_timestamp(watch.updated_at),
    }


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2))


def _build_pipeline(app_config: AppConfig, env_config: EnvironmentConfig) -> AlertCheckPipeline:
    notification_service = NotificationService.from_config(env_config, app_config.notifications)
    return AlertCheckPipeline(app_config=app_config, notification_service=notification_service)


def cmd_run(args, app_config: AppConfig, env_config: EnvironmentConfig) -> int:
    """Daemon mode: run a check every scan interval until interrupted."""
    start_time = time.time()
    pipeline = _build_pipeline(app_config, env_config)
    shutdown_event = threading.Event()

    scheduler_service = SchedulerService(
        check_callable=pipeline.run_once,
        interval_seconds=app_config.check.scan_interval_seconds,
        shutdown_event=shutdown_event,
    )

    def signal_handler(signum, frame):
        logger.info(
            f"Received signal {signum}, shutting down",
            extra={"event": "service.signal_received", "signal": signum},
        )
        scheduler_service.shutdown(wait=False)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    scheduler_service.start()
    logger.info(
        "Scheduler started. Press Ctrl+C to stop",
        extra={"event": "service.daemon_mode.started"},
    )

    try:
        shutdown_event.wait()
    except KeyboardInterrupt:
        logger.info(
            "Keyboard interrupt received, shutting down",
            extra={"event": "service.keyboard_interrupt"},
        )
        scheduler_service.shutdown(wait=False)

    logger.info(
        "Job Watch stopped",
        extra={"event": "service.stopping", "uptime_seconds": round(time.time() - start_time, 2)},
    )
    return 0


def cmd_check(args, app_config: AppConfig, env_config: EnvironmentConfig) -> int:
    """Run one check cycle and print its summary."""
    max_runtime_ms = app_config.check.max_runtime_ms
    if args.max_runtime:
        try:
            max_runtime_ms = parse_duration(args.max_runtime) * 1000
        except DurationParseError as e:
            raise ConfigurationError(
                f"Invalid --max-runtime: {e}",
                suggestions=["Use a duration like 30s, 2m or PT45S"],
            ) from e

    source_timeout_ms = None
    if args.source_timeout is not None:
        source_timeout_ms = int(args.source_timeout * 1000)

    try:
        options = CheckOptions(
            notify=app_config.check.notify and not args.no_notify,
            max_runtime_ms=max_runtime_ms,
            max_watches=args.max_watches,
            source_timeout_ms=source_timeout_ms,
        )
    except ValueError as e:
        raise ConfigurationError(f"Invalid check options: {e}") from e

    summary = _build_pipeline(app_config, env_config).run_once(options)
    _print_json(summary.to_dict())
    return 1 if summary.had_errors else 0


def cmd_preview(args, app_config: AppConfig, env_config: EnvironmentConfig) -> int:
    """Dry-run the match gate for one watch."""
    result = _build_pipeline(app_config, env_config).preview(
        watch_id=args.watch_id, sample_size=args.sample_size
    )
    _print_json(result.to_dict())
    return 1 if result.errors else 0


def cmd_watch_add(args, app_config: AppConfig, env_config: EnvironmentConfig) -> int:
    if args.validate:
        check = validate_source(
            args.source_type, args.source_id, app_config.advanced
        )
        if not check.valid:
            print(f"Source validation failed: {check.error}", file=sys.stderr)
            return 1

    with get_session() as session:
        watch = WatchRepository(session).create(
            company=args.company,
            source_type=args.source_type,
            source_id=args.source_id,
            title_keywords=_split_keywords(args.title_keywords) or [],
            location_keywords=_split_keywords(args.location_keywords) or [],
            active=not args.inactive,
        )
    _print_json(_watch_to_dict(watch))
    return 0


def cmd_watch_list(args, app_config: AppConfig, env_config: EnvironmentConfig) -> int:
    with get_session() as session:
        repo = WatchRepository(session)
        watches = repo.list_active() if args.active_only else repo.list_all()
    _print_json([_watch_to_dict(watch) for watch in watches])
    return 0


def cmd_watch_update(args, app_config: AppConfig, env_config: EnvironmentConfig) -> int:
    with get_session() as session:
        watch = WatchRepository(session).update(
            args.watch_id,
            company=args.company,
            source_type=args.source_type,
            source_id=args.source_id,
            title_keywords=_split_keywords(args.title_keywords),
            location_keywords=_split_keywords(args.location_keywords),
            active=args.active,
        )
    _print_json(_watch_to_dict(watch))
    return 0


def cmd_watch_remove(args, app_config: AppConfig, env_config: EnvironmentConfig) -> int:
    with get_session() as session:
        alerts_removed = WatchRepository(session).delete(args.watch_id)
    _print_json({"deleted": args.watch_id, "alertsRemoved": alerts_removed})
    return 0


def cmd_watch_validate(args, app_config: AppConfig, env_config: EnvironmentConfig) -> int:
    result = validate_source(args.source_type, args.source_id, app_config.advanced)
    _print_json(
        {
            "valid": result.valid,
            "count": result.count,
            "sampleTitles": result.sample_titles,
            "error": result.error,
        }
    )
    return 0 if result.valid else 1


def cmd_watch_detect(args, app_config: AppConfig, env_config: EnvironmentConfig) -> int:
    detections = detect_sources(
        args.url,
        fetch_page=not args.no_fetch,
        user_agent=app_config.advanced.user_agent,
    )
    _print_json({"detections": [d.to_dict() for d in detections]})
    return 0


def cmd_alerts_list(args, app_config: AppConfig, env_config: EnvironmentConfig) -> int:
    listing = list_alerts(
        view=args.view,
        include_hidden=args.include_hidden,
        query=args.query,
        limit=args.limit,
    )
    _print_json(listing.to_dict())
    return 0


def cmd_alerts_decide(args, app_config: AppConfig, env_config: EnvironmentConfig) -> int:
    alert = record_decision(args.alert_id, args.decision, args.note)
    _print_json(
        {
            "id": alert.id,
            "userDecision": alert.user_decision.value,
            "decisionNote": alert.decision_note,
            "decidedAt": format_timestamp(alert.decided_at),
        }
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="job-watch",
        description="Job Watch - monitor company job boards and alert on matching roles",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (default: config.yaml, then config/config.yaml)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (overrides config and environment)",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    run = commands.add_parser("run", help="Run checks on the configured interval")
    run.set_defaults(handler=cmd_run, needs_db=True)

    check = commands.add_parser("check", help="Run one check cycle and print the summary")
    check.add_argument("--no-notify", action="store_true", help="Record alerts without notifying")
    check.add_argument("--max-runtime", default=None, help="Run budget, e.g. 30s or PT2M")
    check.add_argument("--max-watches", type=int, default=None, help="Check at most N watches")
    check.add_argument(
        "--source-timeout", type=float, default=None, help="Per-request source timeout (seconds)"
    )
    check.set_defaults(handler=cmd_check, needs_db=True)

    preview = commands.add_parser("preview", help="Dry-run the match gate for one watch")
    preview.add_argument("--watch-id", default=None)
    preview.add_argument("--sample-size", type=int, default=None)
    preview.set_defaults(handler=cmd_preview, needs_db=True)

    watch = commands.add_parser("watch", help="Manage watches")
    watch_commands = watch.add_subparsers(dest="watch_command", required=True)

    add = watch_commands.add_parser("add", help="Create a watch")
    add.add_argument("--company", required=True)
    add.add_argument("--source-type", required=True, choices=SOURCE_TYPES)
    add.add_argument("--source-id", required=True)
    add.add_argument("--title-keywords", default=None, help="Comma-separated")
    add.add_argument("--location-keywords", default=None, help="Comma-separated")
    add.add_argument("--inactive", action="store_true")
    add.add_argument("--validate", action="store_true", help="Fetch the board before saving")
    add.set_defaults(handler=cmd_watch_add, needs_db=True)

    list_cmd = watch_commands.add_parser("list", help="List watches, most recently updated first")
    list_cmd.add_argument("--active-only", action="store_true")
    list_cmd.set_defaults(handler=cmd_watch_list, needs_db=True)

    update = watch_commands.add_parser("update", help="Change fields of a watch")
    update.add_argument("watch_id")
    update.add_argument("--company", default=None)
    update.add_argument("--source-type", default=None, choices=SOURCE_TYPES)
    update.add_argument("--source-id", default=None)
    update.add_argument("--title-keywords", default=None, help="Comma-separated; '' clears")
    update.add_argument("--location-keywords", default=None, help="Comma-separated; '' clears")
    state = update.add_mutually_exclusive_group()
    state.add_argument("--active", dest="active", action="store_true", default=None)
    state.add_argument("--inactive", dest="active", action="store_false")
    update.set_defaults(handler=cmd_watch_update, needs_db=True)

    remove = watch_commands.add_parser("remove", help="Delete a watch and its alerts")
    remove.add_argument("watch_id")
    remove.set_defaults(handler=cmd_watch_remove, needs_db=True)

    validate = watch_commands.add_parser("validate", help="Fetch a board once and report")
    validate.add_argument("--source-type", required=True, choices=SOURCE_TYPES)
    validate.add_argument("--source-id", required=True)
    validate.set_defaults(handler=cmd_watch_validate, needs_db=False)

    detect = watch_commands.add_parser("detect", help="Find job boards referenced by a careers URL")
    detect.add_argument("url")
    detect.add_argument("--no-fetch", action="store_true", help="Only inspect the URL itself")
    detect.set_defaults(handler=cmd_watch_detect, needs_db=False)

    alerts = commands.add_parser("alerts", help="Review alerts")
    alert_commands = alerts.add_subparsers(dest="alerts_command", required=True)

    alerts_list = alert_commands.add_parser("list", help="List recent alerts ranked by fit")
    alerts_list.add_argument("--view", default="all", choices=INBOX_VIEWS)
    alerts_list.add_argument("--include-hidden", action="store_true")
    alerts_list.add_argument("--query", default="")
    alerts_list.add_argument("--limit", type=int, default=50)
    alerts_list.set_defaults(handler=cmd_alerts_list, needs_db=True)

    decide = alert_commands.add_parser("decide", help="Record a decision on an alert")
    decide.add_argument("alert_id")
    decide.add_argument("decision", choices=["applied", "skip", "none"])
    decide.add_argument("--note", default="")
    decide.set_defaults(handler=cmd_alerts_decide, needs_db=True)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for Job Watch.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    load_dotenv()
    args = build_parser().parse_args(argv)
    db_opened = False

    try:
        app_config, env_config = load_runtime_config(args.config, args.log_level)

        configure_logging(
            level=env_config.log_level,
            format_type=app_config.logging.format,
            environment=env_config.environment,
        )
        logger.info(
            "Job Watch starting",
            extra={
                "event": "service.starting",
                "command": args.command,
                "config_path": str(args.config) if args.config else None,
                "log_level": env_config.log_level,
            },
        )

        if args.needs_db:
            init_database(env_config.database_url)
            db_opened = True

        return args.handler(args, app_config, env_config)

    except ConfigurationError as e:
        print(f"Configuration Error: {e}", file=sys.stderr)
        logger.error(
            f"Configuration error: {e}",
            extra={"event": "config.error", "error_type": "ConfigurationError"},
        )
        return 1
    except RecordNotFoundError as e:
        print(f"Not found: {e}", file=sys.stderr)
        return 1
    except PersistenceError as e:
        print(f"Database error: {e}", file=sys.stderr)
        logger.error(
            f"Database error: {e}",
            extra={"event": "database.error", "error_type": type(e).__name__},
        )
        return 1
    except (ValidationError, ValueError) as e:
        print(f"Invalid input: {e}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        print("\nShutdown requested by user", file=sys.stderr)
        return 0
    finally:
        if db_opened:
            close_database()


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
