"""Detection history maintenance for the locale pipeline.

Runs the expiry, duplicate and size cleanups on the detection history stored in the pipeline
database, only prints what maintenance is recommended, or reports storage health. Results are
written to stdout as JSON so schedulers can log or parse them.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any, Final, NoReturn

from config.loader import ConfigLoader, ConfigLoaderError
from core.shared_data import SharedData
from core.version import VERSION
from models.analytics_models import HealthStatus
from models.maintenance_models import MaintenanceOptions
from utils.logger_utils import LoggerUtils
from utils.time_utils import DAY_MS

if TYPE_CHECKING:
    from collections.abc import Sequence

    from core.storage.analytics import StorageAnalytics
    from models.analytics_models import IntegrityReport, StorageHealthCheck
    from models.config_models import Config
    from models.maintenance_models import MaintenanceRecommendations, MaintenanceResult
    from models.result_models import StorageOperationResult

CFG_FILE: Final[str] = "locale_pipeline.ini"


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> NoReturn:
        print(f"\n{message}\n", file=sys.stderr)
        self.print_help(sys.stderr)
        raise SystemExit(2)


def parse_arguments(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = _ArgumentParser(
        description="Maintain the locale detection history",
        epilog="Example: python locale_maintenance.py --max-age-days 14 --max-records 50",
    )
    parser.add_argument("--config", default=CFG_FILE, metavar="INI_FILE", help="Configuration file")
    parser.add_argument("--db-path", dest="db_path", metavar="DB_PATH", help="Override STORAGE.DB_PATH")
    parser.add_argument("--environment", metavar="ENV", help="Override GENERAL.ENVIRONMENT")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--max-age-days", type=int, metavar="DAYS", help="Expiry age (default: HISTORY.MAX_AGE_DAYS)")
    parser.add_argument("--max-records", type=int, metavar="N", help="Size limit (default: HISTORY.MAX_RECORDS)")
    parser.add_argument("--no-expired", action="store_true", help="Skip the expiry cleanup")
    parser.add_argument("--no-duplicates", action="store_true", help="Skip the duplicate cleanup")
    parser.add_argument("--no-limit", action="store_true", help="Skip the size limit")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only print the maintenance recommendations; change nothing",
    )
    parser.add_argument(
        "--health",
        action="store_true",
        help="Print the storage health check and integrity report instead of running maintenance",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    return parser.parse_args(argv)


def load_config(args: argparse.Namespace) -> Config:
    """Load the configuration file and apply CLI overrides.

    Raises:
        ConfigLoaderError: If the configuration file cannot be loaded.
    """
    script_name: str = Path(sys.argv[0]).name
    return ConfigLoader(
        config_filename=args.config,
        script_name=script_name,
        debug=args.debug,
        environment=args.environment,
        db_path=args.db_path,
    ).config


def build_options(args: argparse.Namespace) -> MaintenanceOptions:
    return MaintenanceOptions(
        cleanup_expired=not args.no_expired,
        max_age=args.max_age_days * DAY_MS if args.max_age_days is not None else None,
        remove_duplicates=not args.no_duplicates,
        limit_size=not args.no_limit,
        max_records=args.max_records,
    )


def configure_logging(config: Config) -> None:
    logger_utils = LoggerUtils(config.GENERAL.LOG_FILE)
    logger_utils.set_level("DEBUG" if config.GENERAL.DEBUG else "INFO")


def collect_health(analytics: StorageAnalytics) -> dict[str, Any]:
    """Health check and integrity report; ``success`` is False only for an unhealthy (error) status."""
    health: StorageOperationResult[StorageHealthCheck] = analytics.perform_health_check()
    integrity: StorageOperationResult[IntegrityReport] = analytics.validate_storage_integrity()

    outcome: dict[str, Any] = {}
    if health.success and health.data is not None:
        outcome["health"] = health.data.to_dict()
        outcome["success"] = health.data.status is not HealthStatus.ERROR
    else:
        outcome["health"] = None
        outcome["success"] = False
        outcome["error"] = health.error
    outcome["integrity"] = integrity.data.to_dict() if integrity.data is not None else None
    if integrity.data is None:
        outcome["integrity_error"] = integrity.error
    return outcome


async def run(args: argparse.Namespace, config: Config) -> dict[str, Any]:
    """Run maintenance (or only collect recommendations or health) and return the JSON-ready outcome."""
    shared = SharedData(config)
    await shared.async_init()
    try:
        if args.health:
            return collect_health(shared.analytics)

        recommendations: MaintenanceRecommendations = shared.maintenance.get_maintenance_recommendations()
        outcome: dict[str, Any] = {"recommendations": recommendations.to_dict()}
        if args.dry_run:
            return outcome

        result: StorageOperationResult[MaintenanceResult] = shared.maintenance.perform_maintenance(build_options(args))
        outcome["success"] = result.success
        if result.success and result.data is not None:
            outcome["result"] = result.data.to_dict()
        else:
            outcome["error"] = result.error
        outcome["stats"] = shared.history.get_detection_stats().to_dict()
        return outcome
    finally:
        await shared.component_teardown()


def main(argv: Sequence[str] | None = None) -> int:
    args: argparse.Namespace = parse_arguments(argv)
    try:
        config: Config = load_config(args)
    except ConfigLoaderError as err:
        print("\nError: Failed to load configuration file.", file=sys.stderr)
        print(f"Details: {err}", file=sys.stderr)
        return 1

    configure_logging(config)
    outcome: dict[str, Any] = asyncio.run(run(args, config))
    print(json.dumps(outcome, ensure_ascii=False, indent=2))
    return 0 if outcome.get("success", True) else 1


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\n\nMaintenance cancelled by user.", file=sys.stderr)
        sys.exit(130)
