#!/usr/bin/env python3
"""
pNode Network Monitor - Main Application Entry Point.

============================================================
SINGLE ENTRYPOINT
============================================================
- ``--once``   run one poll cycle and print the result as JSON
- default      poll forever on the refresh interval
- ``--serve``  poll forever and expose the HTTP API

Compatible with PM2 process management:
    pm2 start app.py --interpreter python --name pnode-monitor -- --serve

============================================================
USAGE
============================================================
    python app.py --once
    python app.py --interval 60 --log-level DEBUG
    python app.py --serve --port 8000
    python app.py --config monitor.yaml --log-format json

Environment-based configuration (.env supported):
    PUBLIC_PNODES=173.212.203.145,161.97.97.41 python app.py --once

============================================================
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

import uvicorn

from network_monitor import NetworkPoller, NetworkService, create_app
from node_sources.config import (
    MAX_REFRESH_INTERVAL,
    MIN_REFRESH_INTERVAL,
    NetworkConfig,
    set_config,
)
from node_sources.exceptions import NodeSourceError


logger = logging.getLogger("pnode_monitor")


# ============================================================
# LOGGING
# ============================================================

def setup_logging(level: str = "INFO", log_format: str = "text") -> logging.Logger:
    """
    Set up logging on stdout.

    Args:
        level: Log level
        log_format: Output format (json or text)

    Returns:
        Application logger
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_format == "json":
        formatter = logging.Formatter(
            json.dumps({
                "timestamp": "%(asctime)s",
                "level": "%(levelname)s",
                "logger": "%(name)s",
                "message": "%(message)s",
            })
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    return logging.getLogger("pnode_monitor")


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="pnode-monitor",
        description="Poll pNodes over pRPC and derive network statistics, health, events and alerts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --once                     # One cycle, JSON to stdout
  %(prog)s --interval 60              # Poll every 60 seconds
  %(prog)s --serve --port 8000        # Poll and serve the HTTP API
        """
    )

    mode_group = parser.add_mutually_exclusive_group()
    mode_group.add_argument(
        "--once",
        action="store_true",
        help="Run a single poll cycle and print the result",
    )
    mode_group.add_argument(
        "--serve",
        action="store_true",
        help="Serve the HTTP API while polling",
    )

    parser.add_argument(
        "--config", "-c",
        type=Path,
        default=None,
        help="YAML config file (default: environment variables)",
    )
    parser.add_argument(
        "--interval",
        type=int,
        default=None,
        help=f"Refresh interval in seconds ({MIN_REFRESH_INTERVAL}-{MAX_REFRESH_INTERVAL})",
    )

    server_group = parser.add_argument_group("Server Options")
    server_group.add_argument(
        "--host",
        type=str,
        default=os.getenv("MONITOR_HOST", "0.0.0.0"),
        help="API bind address (default: 0.0.0.0)",
    )
    server_group.add_argument(
        "--port",
        type=int,
        default=int(os.getenv("MONITOR_PORT", os.getenv("PORT", "8000"))),
        help="API port (default: 8000)",
    )

    log_group = parser.add_argument_group("Logging Options")
    log_group.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Log level (default: INFO)",
    )
    log_group.add_argument(
        "--log-format",
        type=str,
        choices=["json", "text"],
        default=os.getenv("LOG_FORMAT", "text"),
        help="Log format (default: text)",
    )

    return parser


def validate_args(args: argparse.Namespace) -> List[str]:
    """Validate CLI arguments."""
    errors = []
    if args.interval is not None and not MIN_REFRESH_INTERVAL <= args.interval <= MAX_REFRESH_INTERVAL:
        errors.append(f"--interval must be between {MIN_REFRESH_INTERVAL} and {MAX_REFRESH_INTERVAL}")
    if args.config is not None and not args.config.exists():
        errors.append(f"Config file not found: {args.config}")
    return errors


def build_config(args: argparse.Namespace) -> NetworkConfig:
    """Build configuration from file or environment, then CLI overrides."""
    if args.config is not None:
        config = NetworkConfig.from_yaml(args.config)
    else:
        config = NetworkConfig.from_env()
    if args.interval is not None:
        config = replace(config, refresh_interval_seconds=args.interval)
    set_config(config)
    return config


# ============================================================
# RUN MODES
# ============================================================

async def run_once(service: NetworkService) -> int:
    """Run one cycle and print overview plus events."""
    network = await service.get_network(force=True)
    if "error" in network:
        print(json.dumps(network, indent=2))
        return 1

    output = {
        "overview": network["overview"],
        "responseTime": network["responseTime"],
        "fetch": service.poller.last_result.fetch_summary.to_dict(),
        "events": (await service.get_events())["events"],
    }
    print(json.dumps(output, indent=2))
    return 0


async def run_loop(poller: NetworkPoller) -> int:
    """Poll until interrupted."""
    await poller.start()
    logger.info("Polling (press Ctrl+C to stop)...")
    while poller.is_running:
        await asyncio.sleep(1)
    return 0


async def run_server(service: NetworkService, host: str, port: int, log_level: str) -> int:
    """Serve the HTTP API; the app's lifespan owns the poller."""
    app = create_app(service, manage_poller=True)
    server = uvicorn.Server(uvicorn.Config(
        app,
        host=host,
        port=port,
        log_level=log_level.lower(),
        access_log=True,
    ))
    logger.info(f"Starting API on {host}:{port}")
    await server.serve()
    return 0


async def run_application(args: argparse.Namespace) -> int:
    """
    Run the monitor.

    Returns:
        Exit code
    """
    try:
        config = build_config(args)
    except NodeSourceError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    poller = NetworkPoller(config)
    service = NetworkService(poller)

    try:
        if args.once:
            return await run_once(service)
        if args.serve:
            return await run_server(service, args.host, args.port, args.log_level)
        return await run_loop(poller)

    except (KeyboardInterrupt, asyncio.CancelledError):
        logger.info("Interrupted by user")
        return 130
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1
    finally:
        await poller.close()


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    errors = validate_args(args)
    if errors:
        for error in errors:
            print(f"Error: {error}", file=sys.stderr)
        return 1

    setup_logging(args.log_level, args.log_format)
    return asyncio.run(run_application(args))


# ============================================================
# ENTRY POINT
# ============================================================

if __name__ == "__main__":
    sys.exit(main())
