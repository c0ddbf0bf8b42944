#!/usr/bin/env python3
"""
SmallBasket Location Tracker - Entry Point

Runs the tracker service: adaptive-interval background polling (15 min
moving / 30 min stationary), instant foreground location, pending-queue
sync to the backend and connectivity reporting.

Usage:
    smallbasket-tracker                         # Start with default config
    smallbasket-tracker --config my.yaml        # Use custom config file
    smallbasket-tracker --simulate              # Walk the virtual device around
    smallbasket-tracker --dry-run               # Print config and exit
    smallbasket-tracker --verbose               # Enable debug logging
"""

import argparse
import asyncio
import logging
import random
import sys

from tracker import __version__
from tracker.common.config import TrackerConfig, load_tracker_config
from tracker.common.exceptions import ConfigError
from tracker.common.logging_setup import set_log_level, setup_logging
from tracker.services.location.models import ActivityType
from tracker.services.tracker.service import (
    TrackerService,
    find_config_path,
    load_config_file,
)

# Seconds between simulated motion changes
SIMULATED_ACTIVITY_PERIOD = 120


def print_startup_banner(config: TrackerConfig, config_path: str) -> None:
    """Print startup information."""
    tracking = config.tracking

    print()
    print("=" * 60)
    print("  SMALLBASKET LOCATION TRACKER")
    print("=" * 60)
    print()
    print(f"  Config: {config_path}")
    print(f"  Device ID: {config.device_id or 'not set'}")
    print(f"  Provider: {config.provider.value}")
    print(f"  State dir: {config.state_dir}")
    print()
    print(f"  Moving interval: {tracking.moving_interval_min} minutes")
    print(f"  Stationary interval: {tracking.stationary_interval_min} minutes")
    print(f"  Pending queue limit: {tracking.max_pending}")
    print()
    print(f"  Backend: {config.backend.url or 'not configured (local only)'}")
    print(f"  Control server: http://{config.server.host}:{config.server.port}/health")
    print()
    print("=" * 60)
    print()


async def simulate_activity(service: TrackerService) -> None:
    """Alternate the virtual device between walking and standing still"""
    logger = logging.getLogger("smallbasket.main")
    activities = [ActivityType.WALKING, ActivityType.RUNNING, ActivityType.STILL]

    while True:
        await asyncio.sleep(SIMULATED_ACTIVITY_PERIOD)
        activity = random.choice(activities)
        logger.info(f"Simulated activity: {activity.name}")
        service.device.emit_transition(activity)


async def main_async(service: TrackerService, simulate: bool = False) -> None:
    simulation: asyncio.Task | None = None
    if simulate:
        simulation = asyncio.create_task(simulate_activity(service))

    try:
        await service.run()
    finally:
        if simulation is not None:
            simulation.cancel()


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="SmallBasket Location Tracker",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    smallbasket-tracker                      # Start with default config
    smallbasket-tracker --config my.yaml     # Use custom config file
    smallbasket-tracker --simulate           # Simulated motion transitions
    smallbasket-tracker --dry-run            # Validate config and exit
    smallbasket-tracker -v                   # Enable debug logging
        """
    )

    parser.add_argument(
        "--config", "-c",
        type=str,
        default=None,
        help="Path to configuration file (default: /etc/smallbasket/tracker.yaml, ./tracker.yaml)"
    )

    parser.add_argument(
        "--simulate",
        action="store_true",
        help="Emit simulated motion transitions from the virtual device"
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate configuration and exit without starting"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (debug) logging"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"SmallBasket Tracker v{__version__}"
    )

    args = parser.parse_args()

    # Plain text in verbose/debug mode, JSON in production
    setup_logging("main", log_level="DEBUG" if args.verbose else "INFO", json_format=not args.verbose)
    if args.verbose:
        set_log_level("DEBUG")

    config_path = args.config or find_config_path()
    try:
        config = load_tracker_config(load_config_file(config_path))
    except ConfigError as e:
        print(f"Configuration error: {e.message}")
        sys.exit(1)

    print_startup_banner(config, config_path)

    if args.dry_run:
        print("Dry run mode - configuration valid")
        print("Exiting without starting services")
        sys.exit(0)

    service = TrackerService(config=config, config_path=config_path)

    print("Starting tracker...")
    print("Press Ctrl+C to stop")
    print()

    try:
        asyncio.run(main_async(service, simulate=args.simulate))
    except KeyboardInterrupt:
        print("\nStopped by user")
    except Exception as e:
        print(f"\nFatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
