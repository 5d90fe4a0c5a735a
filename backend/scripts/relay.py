#!/usr/bin/env python3
"""
CLI tool for the Game News Relay.

Usage:
    # Run one check tick over every publisher
    python scripts/relay.py check

    # Check a single publisher
    python scripts/relay.py check --publisher cs2

    # Show publisher health
    python scripts/relay.py publishers

    # Run the API server and scheduler
    python scripts/relay.py serve --port 8000
"""

import argparse
import asyncio
import sys

# Add parent directory to path for imports
sys.path.insert(0, str(__file__).rsplit("/", 2)[0])

from gamenews.config import get_settings
from gamenews.errors import StoreUnavailableError
from gamenews.main import configure_logging, create_relay
from gamenews.models.domain import PublisherStatus


async def cmd_check(args):
    """Run one polling tick."""
    settings = get_settings()
    relay = await create_relay(settings)

    targets = None
    if args.publisher:
        if args.publisher not in relay.orchestrator.sources:
            print(f"Unknown publisher: {args.publisher}")
            print(f"Enabled publishers: {list(relay.orchestrator.sources)}")
            await relay.close()
            return 1
        targets = [args.publisher]

    print("Checking publishers for news...")
    try:
        outcomes = await relay.orchestrator.check_for_updates(targets)
    except StoreUnavailableError as e:
        print(f"Store unavailable: {e}")
        return 2
    finally:
        await relay.close()

    print("\n" + "=" * 60)
    print("CHECK RESULTS")
    print("=" * 60)

    for outcome in outcomes:
        print(outcome)

    print("-" * 60)
    print(f"New items: {sum(o.inserted for o in outcomes)}")
    print(f"Deliveries: {sum(o.deliveries for o in outcomes)}")

    return 0 if all(o.ok for o in outcomes) else 1


async def cmd_publishers(args):
    """Show publisher health."""
    settings = get_settings()
    relay = await create_relay(settings)

    try:
        publishers = await relay.store.list_publishers()
    finally:
        await relay.close()

    print("\n" + "=" * 60)
    print("PUBLISHER HEALTH")
    print("=" * 60)

    for publisher in publishers:
        mark = "✓" if publisher.status == PublisherStatus.ACTIVE else "✗"
        print(f"  {mark} {publisher.icon} {publisher.name} [{publisher.status.value}]")
        print(f"    Last check: {publisher.last_check_at or 'never'}")
        print(f"    Last success: {publisher.last_success_at or 'never'}")
        if publisher.last_error:
            print(f"    Last error: {publisher.last_error}")

    return 0


def cmd_serve(args):
    """Run the API server with the scheduler."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "gamenews.main:app",
        host=args.host or settings.host,
        port=args.port or settings.port,
        log_level=settings.log_level.lower(),
    )
    return 0


def main():
    parser = argparse.ArgumentParser(
        description="Game News Relay - polling and delivery CLI"
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Check command
    check_parser = subparsers.add_parser("check", help="Run one check tick")
    check_parser.add_argument(
        "--publisher", "-p",
        help="Only check this publisher (e.g., lol, cs2)"
    )

    # Publishers command
    subparsers.add_parser("publishers", help="Show publisher health")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run API server and scheduler")
    serve_parser.add_argument("--host", help="Bind address")
    serve_parser.add_argument("--port", type=int, help="Bind port")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    settings = get_settings()
    configure_logging(settings.log_level, json=False)

    # Run command
    if args.command == "check":
        return asyncio.run(cmd_check(args))
    elif args.command == "publishers":
        return asyncio.run(cmd_publishers(args))
    elif args.command == "serve":
        return cmd_serve(args)

    return 0


if __name__ == "__main__":
    sys.exit(main())
