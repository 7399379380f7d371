#!/usr/bin/env python3
"""Log Parser: entry point."""

import argparse
import logging
import queue
import signal
import sys
import threading

from logparser.accumulator import MeasurementWriter, QueueAccumulator
from logparser.config import LOG_LEVELS, SAMPLE_CONFIG, load_config, load_yaml_config
from logparser.errors import ConfigError, FileOpenError, LogParserError
from logparser.plugin import LogParserPlugin

logger = logging.getLogger(__name__)


def build_cli_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Stream and parse log file(s) with grok patterns")
    parser.add_argument(
        "--config", default=None,
        help="Path to YAML config file",
    )
    parser.add_argument(
        "--files", nargs="+", default=None,
        help="File globs to tail (overrides the config file)",
    )
    parser.add_argument(
        "--from-beginning", action="store_true",
        help="Read files from the beginning instead of only new lines",
    )
    parser.add_argument(
        "--output-dir", default=None,
        help="Directory for JSON measurement batches",
    )
    parser.add_argument(
        "--log-level", default=None, choices=LOG_LEVELS, type=str.upper,
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--sample-config", action="store_true",
        help="Print a sample config file and exit",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_cli_parser().parse_args(argv)
    if args.sample_config:
        print(SAMPLE_CONFIG)
        return 0

    logging.basicConfig(
        level=args.log_level or logging.INFO,
        format="%(asctime)s [LOGPARSER] %(levelname)s %(message)s",
        stream=sys.stderr,
    )

    try:
        config = load_config(args, load_yaml_config(args.config))
    except ConfigError as e:
        logger.error("Invalid configuration: %s", e)
        return 2
    logging.getLogger().setLevel(config.log_level)

    shutdown = threading.Event()

    def _signal_handler(signum, frame):
        logger.info("Received signal %d, shutting down...", signum)
        shutdown.set()

    q = queue.Queue()
    writer = MeasurementWriter(q, config.output.dir, config.output.batch_size,
                               config.output.flush_interval)
    plugin = LogParserPlugin.from_config(config)

    writer.start()
    try:
        plugin.start(QueueAccumulator(q))
    except FileOpenError as e:
        logger.warning("Some files could not be tailed: %s", e)
    except LogParserError as e:
        logger.error("Failed to start: %s", e)
        writer.stop()
        return 1

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    logger.info("Log Parser running. Press Ctrl+C to stop.")
    try:
        while not shutdown.is_set():
            shutdown.wait(1)
    except KeyboardInterrupt:
        pass

    logger.info("Shutting down...")
    plugin.stop()
    writer.stop()

    stats = plugin.metrics.snapshot()
    logger.info("Stats: %d lines read, %d measurements, %d parse errors, %d read errors; "
                "%d measurements written in %d batches",
                stats["lines_read"], stats["measurements"], stats["parse_errors"],
                stats["read_errors"], writer.total_entries, writer.batch_count)
    logger.info("Log Parser stopped.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
