"""Project CLI entrypoint.

Provides CLI commands for ORDERMINT:
- ordermint run: Poll on a fixed interval until SIGINT/SIGTERM (or --duration)
- ordermint run-once: Run one cycle and print its report as JSON
- ordermint preflight: Check ledger node and store reachability
- ordermint kyc-status ADDRESS: Query an identity's clearance
- ordermint kyc-verify ADDRESS: Clear an identity
- ordermint replay ADDRESS KIND SEQ: Re-dispatch an already recorded event
- ordermint metrics: Run one cycle and print Prometheus metrics

Exit codes: 0 ok, 2 configuration error, 3 runtime or connection error.
"""

from __future__ import annotations

import argparse
import json
import logging
import signal
import sys
from typing import TYPE_CHECKING, Any

from ordermint import __version__
from ordermint.config import load_config
from ordermint.core import EventKind
from ordermint.env_parse import parse_enum
from ordermint.errors import ConfigError, OrderMintError
from ordermint.events.types import DedupKey

if TYPE_CHECKING:
    from ordermint.service import Service

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_CONFIG = 2
EXIT_RUNTIME = 3

LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR"}
ENV_LOG_LEVEL = "ORDERMINT_LOG_LEVEL"


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, sort_keys=True))


def _cmd_run(service: Service, args: argparse.Namespace) -> int:
    loop = service.poll_loop()

    signal.signal(signal.SIGINT, lambda *_: loop.request_stop())
    signal.signal(signal.SIGTERM, lambda *_: loop.request_stop())

    loop.start()
    loop.wait(timeout_s=args.duration if args.duration > 0 else None)
    loop.stop()

    stats = loop.stats
    logger.info(
        "RUN_FINISHED",
        extra={
            "ticks_total": stats.ticks_total,
            "cycles_ok": stats.cycles_ok,
            "cycles_aborted": stats.cycles_aborted,
            "cycles_skipped": stats.cycles_skipped,
        },
    )
    return EXIT_OK


def _cmd_run_once(service: Service, args: argparse.Namespace) -> int:
    report = service.poll_loop().tick()
    _print_json(report.to_dict())
    return EXIT_OK


def _cmd_metrics(service: Service, args: argparse.Namespace) -> int:
    service.poll_loop().tick()
    if service.engine.metrics is not None:
        print("\n".join(service.engine.metrics.to_prometheus_lines()))
    return EXIT_OK


def _cmd_preflight(service: Service, args: argparse.Namespace) -> int:
    checks: dict[str, Any] = {}
    ok = True

    try:
        checks["ledger_version"] = service.source.ping()
        checks["ledger"] = "ok"
    except OrderMintError as e:
        checks["ledger"] = f"error: {e}"
        ok = False

    try:
        service.store.ping()
        checks["store"] = "ok"
        checks["records"] = service.store.count()
    except OrderMintError as e:
        checks["store"] = f"error: {e}"
        ok = False

    ping_guard = getattr(service.guard, "ping", None)
    if ping_guard is not None:
        try:
            ping_guard()
            checks["cycle_guard"] = "ok"
        except Exception as e:
            checks["cycle_guard"] = f"error: {e}"
            ok = False

    checks["dry_run"] = service.config.dry_run
    _print_json(checks)
    return EXIT_OK if ok else EXIT_RUNTIME


def _cmd_kyc_status(service: Service, args: argparse.Namespace) -> int:
    verified = service.gate.is_verified(args.address)
    _print_json({"identity": args.address, "verified": verified})
    return EXIT_OK


def _cmd_kyc_verify(service: Service, args: argparse.Namespace) -> int:
    outcome = service.gate.set_verified(args.address, True)
    _print_json({"identity": args.address, **outcome.to_dict()})
    return EXIT_OK if outcome.success else EXIT_RUNTIME


def _cmd_replay(service: Service, args: argparse.Namespace) -> int:
    try:
        key = DedupKey.of(args.address, EventKind.parse(args.kind), args.sequence_number)
    except ValueError as e:
        print(f"invalid replay key: {e}", file=sys.stderr)
        return EXIT_CONFIG

    result = service.engine.replay(key)
    _print_json(result.to_dict())
    return EXIT_OK if result.succeeded else EXIT_RUNTIME


_COMMANDS = {
    "run": _cmd_run,
    "run-once": _cmd_run_once,
    "metrics": _cmd_metrics,
    "preflight": _cmd_preflight,
    "kyc-status": _cmd_kyc_status,
    "kyc-verify": _cmd_kyc_verify,
    "replay": _cmd_replay,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ordermint", description="ORDERMINT CLI")
    parser.add_argument("--version", action="version", version=f"ordermint {__version__}")
    parser.add_argument("--config", help="YAML config file (keys are ServiceConfig fields)")
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=sorted(LOG_LEVELS),
        help=f"Log level (default: ${ENV_LOG_LEVEL} or INFO)",
    )
    parser.add_argument("--db-path", help="SQLite file for processed records")
    parser.add_argument("--node-url", help="Ledger REST base URL")
    parser.add_argument("--page-size", type=int, help="Events fetched per kind per cycle")
    parser.add_argument(
        "--live",
        action="store_true",
        help="Submit real transactions (default: dry-run unless ORDERMINT_DRY_RUN=0)",
    )

    sub = parser.add_subparsers(dest="cmd", required=True)

    p_run = sub.add_parser("run", help="Poll until SIGINT/SIGTERM")
    p_run.add_argument(
        "--duration", type=float, default=0, help="Stop after N seconds (0 = forever)"
    )
    p_run.add_argument("--poll-interval", type=int, help="Seconds between cycle starts")

    sub.add_parser("run-once", help="Run one cycle and print its report as JSON")
    sub.add_parser("metrics", help="Run one cycle and print Prometheus metrics")
    sub.add_parser("preflight", help="Check ledger node and store reachability")

    p_status = sub.add_parser("kyc-status", help="Query an identity's clearance")
    p_status.add_argument("address")

    p_verify = sub.add_parser("kyc-verify", help="Clear an identity")
    p_verify.add_argument("address")

    p_replay = sub.add_parser("replay", help="Re-dispatch an already recorded event")
    p_replay.add_argument("address")
    p_replay.add_argument("kind", help="buy | sell")
    p_replay.add_argument("sequence_number")

    return parser


def _configure_logging(level: str | None) -> None:
    if level is None:
        level = parse_enum(ENV_LOG_LEVEL, LOG_LEVELS, default="INFO", strict=False) or "INFO"
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def main(argv: list[str] | None = None, *, service: Service | None = None) -> int:
    """Parse arguments, wire the service, dispatch the command.

    ``service`` may be injected (tests); otherwise it is built from config.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.log_level)

    if service is None:
        from ordermint.service import build_service  # noqa: PLC0415 - fast CLI startup

        try:
            config = load_config(
                args.config,
                db_path=args.db_path,
                node_url=args.node_url,
                page_size=args.page_size,
                poll_interval_s=getattr(args, "poll_interval", None),
                dry_run=False if args.live else None,
            )
            service = build_service(config)
        except ConfigError as e:
            print(f"config error: {e}", file=sys.stderr)
            return EXIT_CONFIG
        except OrderMintError as e:
            logger.error("STARTUP_FAILED", extra={"cmd": args.cmd, "error": str(e)})
            print(f"error: {e}", file=sys.stderr)
            return EXIT_RUNTIME

    try:
        return _COMMANDS[args.cmd](service, args)
    except OrderMintError as e:
        logger.error("COMMAND_FAILED", extra={"cmd": args.cmd, "error": str(e)})
        print(f"error: {e}", file=sys.stderr)
        return EXIT_RUNTIME
    finally:
        service.close()
