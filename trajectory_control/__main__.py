"""
Main entry point when running the trajectory_control module with python -m.
"""

import argparse
import asyncio
import logging
import sys

from .client import main, setup_logging
from .config import SAFETY_OBSERVERS, WS_URI, ControllerConfig

if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description="Local trajectory controller connected to a robot bridge over WebSocket"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose logging with timestamps"
    )
    parser.add_argument("--uri", default=WS_URI, help=f"WebSocket server URI (default: {WS_URI})")
    parser.add_argument(
        "--output-dir", default=".", help="Base directory for telemetry results (default: .)"
    )
    parser.add_argument(
        "--observers",
        default=",".join(SAFETY_OBSERVERS),
        help="Comma-separated safety observer tags; empty string disables them "
        f"(default: {','.join(SAFETY_OBSERVERS)})",
    )
    parser.add_argument(
        "--no-record", action="store_true", help="Do not record telemetry CSV files"
    )
    args = parser.parse_args()

    setup_logging(args.verbose)

    observers = tuple(tag.strip() for tag in args.observers.split(",") if tag.strip())
    try:
        config = ControllerConfig(safety_observers=observers, verbose=args.verbose)
        asyncio.run(
            main(uri=args.uri, output_dir=args.output_dir, config=config, record=not args.no_record)
        )
    except ValueError as e:
        logging.error(f"Error: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logging.info("\nExiting...")
        sys.exit(0)
