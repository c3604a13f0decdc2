# policy_monitor/cli.py
"""
Command line entry point.

    policy-monitor [--dry-run] [--customer-id 123-456-7890] run
    policy-monitor watch [--interval-minutes 60]
    policy-monitor serve [--host 0.0.0.0 --port 8000]
    policy-monitor check-env
    policy-monitor accounts
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import List, Optional

from .logging_config import configure_logging
from .services.google_ads import AuthenticationError, build_gateway
from .services.monitor import CycleError, build_monitor
from .services.scheduling import IntervalScheduler, RunOnce
from .settings import CredentialsError, Settings, customer_id, ensure_credentials, settings

logger = logging.getLogger("policy-monitor")

EXIT_OK = 0
EXIT_CYCLE_FAILED = 1
EXIT_CONFIG = 2


def _cmd_run(args, cfg: Settings) -> int:
    monitor = build_monitor(cfg, customer_id=args.customer_id, dry_run=args.dry_run or None)
    summary = RunOnce().run(monitor.run)
    print(json.dumps(summary.to_dict(), indent=2))
    return EXIT_OK


def _cmd_watch(args, cfg: Settings) -> int:
    minutes = args.interval_minutes or cfg.MONITOR_INTERVAL_MINUTES or 60
    monitor = build_monitor(cfg, customer_id=args.customer_id, dry_run=args.dry_run or None)
    scheduler = IntervalScheduler(minutes * 60)
    try:
        scheduler.run(monitor.run)
    except KeyboardInterrupt:
        logger.info("Interrupted; stopping")
        scheduler.stop()
    return EXIT_OK


def _cmd_serve(args, cfg: Settings) -> int:
    import uvicorn

    uvicorn.run("policy_monitor.main:APP", host=args.host, port=args.port, log_level=cfg.LOG_LEVEL.lower())
    return EXIT_OK


def _cmd_check_env(args, cfg: Settings) -> int:
    check = ensure_credentials(cfg)
    for name, present in check["present"].items():
        print(f"{name}: {'ok' if present else 'MISSING'}")
    try:
        print(f"GOOGLE_ADS_CUSTOMER_ID: {customer_id(cfg)}")
    except CredentialsError:
        print("GOOGLE_ADS_CUSTOMER_ID: MISSING")
        check["missing"].append("GOOGLE_ADS_CUSTOMER_ID")
    print(f"OPENAI_API_KEY: {'ok' if cfg.OPENAI_API_KEY else 'not set (truncation fallback)'}")
    if check["missing"]:
        print("Missing: " + ", ".join(check["missing"]), file=sys.stderr)
        return EXIT_CONFIG
    return EXIT_OK


def _cmd_accounts(args, cfg: Settings) -> int:
    gateway = build_gateway(cfg, args.customer_id or "")
    for cid in gateway.list_accessible_customers():
        print(cid)
    return EXIT_OK


COMMANDS = {
    "run": _cmd_run,
    "watch": _cmd_watch,
    "serve": _cmd_serve,
    "check-env": _cmd_check_env,
    "accounts": _cmd_accounts,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="policy-monitor",
        description="Pause disapproved Google Ads and replace them with rewritten duplicates.",
    )
    parser.add_argument("--dry-run", action="store_true", help="log mutations instead of sending them")
    parser.add_argument("--customer-id", default=None, help="override GOOGLE_ADS_CUSTOMER_ID")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("run", help="run one monitoring cycle")
    watch = sub.add_parser("watch", help="run cycles on a fixed interval")
    watch.add_argument("--interval-minutes", type=int, default=None)
    serve = sub.add_parser("serve", help="start the HTTP server")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=8000)
    sub.add_parser("check-env", help="report missing credentials")
    sub.add_parser("accounts", help="list accessible customer ids")
    return parser


def main(argv: Optional[List[str]] = None, cfg: Optional[Settings] = None) -> int:
    args = build_parser().parse_args(argv)
    cfg = cfg or settings
    configure_logging(cfg.LOG_LEVEL)
    try:
        return COMMANDS[args.command](args, cfg)
    except CredentialsError as e:
        logger.error("%s", e)
        return EXIT_CONFIG
    except AuthenticationError as e:
        logger.error("Authentication failed: %s", e)
        return EXIT_CONFIG
    except CycleError as e:
        logger.error("Monitoring cycle failed: %s", e)
        return EXIT_CYCLE_FAILED


if __name__ == "__main__":
    sys.exit(main())
