"""
Command-line interface for the subdomain registrar.

This module provides the main CLI entry point with commands for:
- serve: Run the batch and confirmation cycles on their timers
- register: Queue a subdomain registration
- status / list: Inspect the queue
- issue-batch / check-zonefiles: Run a single cycle by hand
- init-config: Write a default configuration file
"""

import argparse
import asyncio
import json
import signal
import sys
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from . import __version__
from .chain_client import HTTPChainClient, load_transaction_builder
from .config import SystemConfig
from .config_io import (
    apply_env_overrides,
    create_default_config,
    default_config_path,
    load_config_from_file,
    save_config_to_file,
)
from .exceptions import RegistrarError
from .models import QueueRecord, SubdomainOperation
from .registrar import SubdomainRegistrar, build_logger
from .scheduler import IntervalScheduler


def resolve_config(args: argparse.Namespace) -> Optional[SystemConfig]:
    """Load the configuration named on the command line (or in the environment)."""
    config_path = Path(args.config) if args.config else default_config_path()
    config = load_config_from_file(config_path)
    if config is None:
        print(f"Error: Could not load config from {config_path}", file=sys.stderr)
        print("Use 'init-config' to create a default configuration.", file=sys.stderr)
        return None

    apply_env_overrides(config)
    if args.dry_run:
        config.chain.simulation_mode = True
    if args.verbose:
        config.logging.level = "debug"
    return config


def build_registrar(config: SystemConfig) -> SubdomainRegistrar:
    builder = None
    if config.chain.transaction_builder:
        builder = load_transaction_builder(config.chain.transaction_builder)
    logger = build_logger(config)
    chain = HTTPChainClient(config.chain, builder, config.retry, logger=logger)
    return SubdomainRegistrar(config, chain, logger=logger)


def record_to_dict(record: QueueRecord) -> dict:
    return {
        "queue_index": record.queue_index,
        "name": record.subdomain_name,
        "owner": record.operation.owner,
        "status": record.status.render(),
        "status_more": record.status.detail,
        "received_at": record.received_at,
    }


def print_json(data: object) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


def print_error(error: RegistrarError) -> None:
    print(json.dumps(error.to_dict(), ensure_ascii=False, default=str), file=sys.stderr)


async def serve(config: SystemConfig) -> int:
    async with build_registrar(config) as registrar:
        scheduler = IntervalScheduler(logger=registrar.logger)
        scheduler.schedule(
            "issue_batch",
            config.batch.batch_delay_minutes * 60,
            registrar.submit_batch,
        )
        scheduler.schedule(
            "check_zonefiles",
            config.batch.check_transaction_period_minutes * 60,
            registrar.check_zonefiles,
        )

        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, stop_event.set)
            except NotImplementedError:
                pass

        registrar.logger.info("Scheduler", "Registrar started", {
            "msg_type": "start",
            "domain_name": registrar.domain_name,
            "simulation_mode": config.chain.simulation_mode,
        })
        await scheduler.run(stop_event)
    return 0


async def register(config: SystemConfig, args: argparse.Namespace) -> int:
    zonefile = Path(args.zonefile).read_text(encoding="utf-8")
    operation = SubdomainOperation(
        subdomain_name=args.name,
        owner=args.owner,
        sequence_number=0,
        zonefile=zonefile,
    )
    async with build_registrar(config) as registrar:
        try:
            queue_index = await registrar.queue_registration(
                operation, ip_address=args.ip, auth_token=args.token
            )
        except RegistrarError as e:
            print_error(e)
            return 1
    print_json({"status": True, "queue_index": queue_index})
    return 0


async def status(config: SystemConfig, args: argparse.Namespace) -> int:
    async with build_registrar(config) as registrar:
        result = await registrar.get_subdomain_status(args.name)
    print_json(result.to_dict())
    return 0 if result.status_code == 200 else 1


async def list_queue(config: SystemConfig, args: argparse.Namespace) -> int:
    async with build_registrar(config) as registrar:
        records = registrar.list_subdomains(args.cursor)
    print_json([record_to_dict(record) for record in records])
    return 0


async def issue_batch(config: SystemConfig) -> int:
    async with build_registrar(config) as registrar:
        try:
            result = await registrar.submit_batch()
        except RegistrarError as e:
            print_error(e)
            return 1
    if result is None:
        print_json({"txid": None, "names": []})
    else:
        print_json({"txid": result.tx_hash, "names": result.included_names})
    return 0


async def check_zonefiles(config: SystemConfig) -> int:
    async with build_registrar(config) as registrar:
        try:
            checks = await registrar.check_zonefiles()
        except RegistrarError as e:
            print_error(e)
            return 1
    print_json([
        {"txHash": check.tx_hash, "status": check.confirmed, "blockHeight": check.block_height}
        for check in checks
    ])
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    """Handle the 'serve' command."""
    config = resolve_config(args)
    if config is None:
        return 1
    return asyncio.run(serve(config))


def cmd_register(args: argparse.Namespace) -> int:
    """Handle the 'register' command."""
    config = resolve_config(args)
    if config is None:
        return 1
    return asyncio.run(register(config, args))


def cmd_status(args: argparse.Namespace) -> int:
    """Handle the 'status' command."""
    config = resolve_config(args)
    if config is None:
        return 1
    return asyncio.run(status(config, args))


def cmd_list(args: argparse.Namespace) -> int:
    """Handle the 'list' command."""
    config = resolve_config(args)
    if config is None:
        return 1
    return asyncio.run(list_queue(config, args))


def cmd_issue_batch(args: argparse.Namespace) -> int:
    """Handle the 'issue-batch' command."""
    config = resolve_config(args)
    if config is None:
        return 1
    return asyncio.run(issue_batch(config))


def cmd_check_zonefiles(args: argparse.Namespace) -> int:
    """Handle the 'check-zonefiles' command."""
    config = resolve_config(args)
    if config is None:
        return 1
    return asyncio.run(check_zonefiles(config))


def cmd_init_config(args: argparse.Namespace) -> int:
    """Handle the 'init-config' command."""
    config_path = Path(args.config) if args.config else default_config_path()

    if config_path.exists() and not args.force:
        print(f"Configuration already exists at: {config_path}")
        print("Use --force to overwrite.")
        return 1

    config = create_default_config(domain_name=args.domain, simulation_mode=args.dry_run)
    if save_config_to_file(config, config_path):
        print(f"Configuration created at: {config_path}")
        return 0
    return 1


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="subdomain-registrar",
        description="Batching subdomain registrar for a blockchain naming system",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config", "-c",
        help="Path to configuration file",
    )
    common.add_argument(
        "--dry-run",
        action="store_true",
        help="Simulation mode - never broadcast transactions or zone files",
    )
    common.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = subparsers.add_parser(
        "serve",
        parents=[common],
        help="Run batch and confirmation cycles on their timers",
    )
    serve_parser.set_defaults(func=cmd_serve)

    register_parser = subparsers.add_parser(
        "register",
        parents=[common],
        help="Queue a subdomain registration",
    )
    register_parser.add_argument("name", help="Subdomain name (without the parent domain)")
    register_parser.add_argument("owner", help="Owner address")
    register_parser.add_argument("zonefile", help="Path to the registrant's zone file")
    register_parser.add_argument("--ip", help="Requesting client's IP address")
    register_parser.add_argument("--token", help="API key, optionally as 'bearer <key>'")
    register_parser.set_defaults(func=cmd_register)

    status_parser = subparsers.add_parser(
        "status",
        parents=[common],
        help="Show the status of a subdomain",
    )
    status_parser.add_argument("name", help="Subdomain name")
    status_parser.set_defaults(func=cmd_status)

    list_parser = subparsers.add_parser(
        "list",
        parents=[common],
        help="List recently queued subdomains",
    )
    list_parser.add_argument(
        "--cursor",
        type=int,
        default=0,
        help="Smallest queue index to list (default: 0)",
    )
    list_parser.set_defaults(func=cmd_list)

    batch_parser = subparsers.add_parser(
        "issue-batch",
        parents=[common],
        help="Submit one batch of queued registrations",
    )
    batch_parser.set_defaults(func=cmd_issue_batch)

    check_parser = subparsers.add_parser(
        "check-zonefiles",
        parents=[common],
        help="Check submitted batches and publish confirmed zone files",
    )
    check_parser.set_defaults(func=cmd_check_zonefiles)

    init_parser = subparsers.add_parser(
        "init-config",
        parents=[common],
        help="Create a default configuration file",
    )
    init_parser.add_argument(
        "--domain", "-d",
        default="example.id",
        help="Parent domain (default: example.id)",
    )
    init_parser.add_argument(
        "--force", "-f",
        action="store_true",
        help="Force overwrite existing configuration",
    )
    init_parser.set_defaults(func=cmd_init_config)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    load_dotenv()

    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    try:
        return args.func(args)
    except RegistrarError as e:
        print_error(e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
