# src/ocean_tracking/cli.py
from __future__ import annotations

import argparse
import json
import sys
from dataclasses import replace
from pathlib import Path

from .config.env import EnvError, get_app_env
from .config.logging_config import PACKAGE_LOGGER, get_logger
from .config.providers import provider_names
from .models import InvalidTrackingNumberError, Optimization, TrackingError, UserTier


def _common_options() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(add_help=False)
    p.add_argument(
        "--no-console",
        action="store_true",
        help="Disable console logging (file logging remains).",
    )
    p.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (DEBUG, INFO, WARNING, ERROR). Default: INFO",
    )
    p.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also log to this file (batch mode logs next to the input by default).",
    )
    p.add_argument(
        "--strict-env",
        action="store_true",
        help="Require at least one provider API key; otherwise exit 2.",
    )
    p.add_argument(
        "--env-file",
        type=Path,
        default=Path(".env"),
        help="Path to a .env file with provider API keys. Default: ./.env",
    )
    p.add_argument(
        "--replay-file",
        type=Path,
        default=None,
        help="JSON file of recorded provider responses; no network calls are made.",
    )
    return p


def build_parser() -> argparse.ArgumentParser:
    common = _common_options()
    p = argparse.ArgumentParser(
        prog="ocean-tracking",
        description="Track ocean freight across carrier and aggregator APIs.",
    )
    sub = p.add_subparsers(dest="command", required=True)

    t = sub.add_parser("track", parents=[common], help="Track one container/booking/BOL number.")
    t.add_argument("tracking_number", help="Container, booking or bill-of-lading number.")
    t.add_argument("--kind", choices=["container", "booking", "bol"], default=None)
    t.add_argument("--force-refresh", action="store_true", help="Bypass the result cache.")
    t.add_argument("--tier", choices=[u.value for u in UserTier], default=None)
    t.add_argument("--optimize", choices=[o.value for o in Optimization], default=None)
    t.add_argument("--report", action="store_true", help="Include the routing/attempt report.")

    b = sub.add_parser("batch", parents=[common],
                       help="Track every row of an .xlsx and write *_processed.xlsx next to it.")
    b.add_argument("input", type=Path, help="Path to input .xlsx file.")
    b.add_argument("--force-refresh", action="store_true")

    sub.add_parser("providers", parents=[common], help="Show configured providers and their status.")
    return p


def _build_aggregator(args, env_cfg, logger):
    from .pipelines.aggregator import TrackingAggregator

    if args.replay_file is None:
        return TrackingAggregator.from_env(env_cfg, logger=logger)

    from .api.client import ReplayTransport

    replay = ReplayTransport(args.replay_file)
    recorded = replay.providers or provider_names()
    creds = {name: "replay" for name in recorded}
    creds.update(env_cfg.credentials)
    env_cfg = replace(env_cfg, credentials=creds)
    logger.info("Replay mode enabled: %s (%d providers)", args.replay_file, len(recorded))
    return TrackingAggregator.from_env(
        env_cfg, transport_for=lambda cfg: replay.bind(cfg.name), logger=logger)


def _cmd_track(args, service, logger) -> int:
    from .pipelines.aggregator import AggregationReport

    report = AggregationReport()
    try:
        outcome = service.track(
            args.tracking_number,
            args.kind,
            force_refresh=args.force_refresh,
            user_tier=UserTier(args.tier) if args.tier else None,
            optimization=Optimization(args.optimize) if args.optimize else None,
            report=report,
        )
    except InvalidTrackingNumberError as e:
        logger.error("Invalid tracking number: %s", e.message)
        return 2
    except TrackingError as e:
        out = {"error": e.to_dict()}
        if args.report:
            out["report"] = report.to_dict()
        print(json.dumps(out, indent=2))
        return 1

    out = outcome.to_dict()
    if args.report:
        out["report"] = report.to_dict()
    print(json.dumps(out, indent=2, ensure_ascii=False))
    return 0


def _cmd_batch(args, service, logger) -> int:
    from .io.paths import derive_output_paths
    from .pipelines.workbook_processor import WorkbookProcessor

    processed_path, _ = derive_output_paths(args.input)
    logger.info("Input: %s", args.input)
    logger.info("Processed output: %s", processed_path)
    summary = WorkbookProcessor(logger, service=service, force_refresh=args.force_refresh).process(
        args.input, processed_path)
    logger.info("Tracked %d rows (%d failed)", summary["rows"], summary["failed"])
    return 0


def _cmd_providers(args, aggregator) -> int:
    from .pipelines.provider_report import dashboard_stats, provider_status_frame

    frame = provider_status_frame(aggregator)
    if frame.empty:
        print("No providers configured.")
    else:
        print(frame.to_string(index=False))
    print(json.dumps(dashboard_stats(frame), indent=2))
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    log_file = args.log_file
    if args.command == "batch":
        from .io.paths import derive_output_paths
        try:
            _, default_log = derive_output_paths(args.input)
        except FileNotFoundError:
            print(f"error: input file not found: {args.input}", file=sys.stderr)
            return 2
        except ValueError as e:
            print(f"error: {e}", file=sys.stderr)
            return 2
        log_file = log_file or default_log

    logger = get_logger(
        PACKAGE_LOGGER,
        level=args.log_level,
        console=not args.no_console,
        log_file=log_file,
    )
    logger.debug("Logger initialized.")

    try:
        env_cfg = get_app_env(args.env_file, strict=args.strict_env)
    except EnvError as e:
        logger.error("Environment error: %s", e)
        return 2
    # re-run to register the loaded keys with the masking filter
    get_logger(PACKAGE_LOGGER, level=args.log_level, console=not args.no_console,
               log_file=log_file, secrets=env_cfg.credentials.values())

    try:
        aggregator = _build_aggregator(args, env_cfg, logger)
    except ValueError as e:
        logger.error("Replay error: %s", e)
        return 2

    if args.command == "providers":
        return _cmd_providers(args, aggregator)

    if not aggregator.adapters:
        logger.error("No tracking providers configured; set at least one *_API_KEY.")
        return 2

    from .pipelines.tracking_service import TrackingService

    service = TrackingService(aggregator, logger=logger)
    try:
        if args.command == "track":
            return _cmd_track(args, service, logger)
        return _cmd_batch(args, service, logger)
    except (FileNotFoundError, ValueError) as e:
        logger.error("Input error: %s", e)
        return 2
    except Exception as e:
        logger.exception("Failed to process %s: %s", args.command, e)
        return 1
    finally:
        logger.info("Done.")


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
