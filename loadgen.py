import argparse
import logging
import sys
from typing import List, Optional

import config
from config import ConfigurationError, TestConfig, parse_duration
from coordinator import Coordinator
from report import write_summary, write_outcomes_csv, append_summary_csv

logger = logging.getLogger()  # root logger

EXIT_OK = 0
EXIT_CONFIG_ERROR = 1
EXIT_UNREACHABLE = 2


def setup_logging(level: int = config.LOG_LEVEL, log_file: Optional[str] = None):
    handlers: List[logging.Handler] = [logging.StreamHandler()]  # stderr, keeps stdout for the report
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode='w'))
    logging.basicConfig(level=level, format=config.LOG_FORMAT, handlers=handlers, force=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="loadgen",
        description="Run concurrent virtual users issuing HTTP GET requests against a target URL.")
    parser.add_argument("--target-url", default=config.DEFAULT_TARGET_URL)
    parser.add_argument("--virtual-users", type=int, default=config.DEFAULT_VIRTUAL_USERS)
    parser.add_argument("--duration", default=config.DEFAULT_DURATION,
                        help="e.g. 30s, 500ms, 2m, or plain seconds")
    parser.add_argument("--pacing-interval", default=config.DEFAULT_PACING_INTERVAL,
                        help="sleep between iterations of one virtual user")
    parser.add_argument("--iterations", type=int, default=None,
                        help="total iterations shared by all virtual users")
    parser.add_argument("--ramp-up", default="0s", help="spread virtual user start times over this window")
    parser.add_argument("--timeout", default=f"{config.DEFAULT_REQUEST_TIMEOUT_SECONDS}s",
                        help="per-request timeout")
    parser.add_argument("--json", action="store_true", help="print the summary as JSON")
    parser.add_argument("--results-dir", nargs="?", const=config.RESULTS_DIR, default=None,
                        help="write per-request and summary CSV files here")
    parser.add_argument("--fail-on-unreachable", action="store_true",
                        help="exit with status 2 if no request got any response")
    parser.add_argument("--log-level", default=logging.getLevelName(config.LOG_LEVEL),
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--log-file", default=None)
    return parser


def config_from_args(args: argparse.Namespace) -> TestConfig:
    return TestConfig(
        target_url=args.target_url,
        virtual_users=args.virtual_users,
        duration=parse_duration(args.duration),
        pacing_interval=parse_duration(args.pacing_interval),
        request_timeout=parse_duration(args.timeout),
        iterations=args.iterations,
        ramp_up=parse_duration(args.ramp_up),
    ).validate()


def main(argv: Optional[List[str]] = None, transport=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(getattr(logging, args.log_level), args.log_file)

    try:
        test_config = config_from_args(args)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_CONFIG_ERROR

    coordinator = Coordinator(test_config, transport=transport)
    summary = coordinator.run()

    write_summary(summary, test_config, sys.stdout, as_json=args.json)
    if args.results_dir:
        write_outcomes_csv(coordinator.aggregator.outcomes(), args.results_dir)
        append_summary_csv(summary, test_config, args.results_dir)

    if args.fail_on_unreachable and summary.total_requests and \
            summary.transport_errors == summary.total_requests:
        return EXIT_UNREACHABLE
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
