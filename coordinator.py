import logging
import threading
from typing import Optional

import httpx

from clock import RateClock, IterationBudget
from config import TestConfig
from metrics import ResultAggregator, Summary
from worker_pool import WorkerPool

logger = logging.getLogger(__name__)

POLL_INTERVAL_S = 0.1  # how often the run loop re-checks for early stop


class Coordinator:
    def __init__(self, config: TestConfig, transport: Optional[httpx.BaseTransport] = None):
        self.config = config
        self.transport = transport
        self.aggregator = ResultAggregator()
        self.clock = RateClock(config.duration)
        self.budget = IterationBudget(config.iterations)
        self.pool = WorkerPool(self.clock, self.budget, transport=transport)
        self._stop_requested = threading.Event()

    def request_stop(self):
        self._stop_requested.set()

    def _wait_for_completion(self):
        while not self._stop_requested.is_set():
            remaining = self.config.duration - self.clock.elapsed()
            if remaining <= 0:
                break
            if self.pool.wait(timeout=min(remaining, POLL_INTERVAL_S)):
                logger.info("All virtual users finished before the duration elapsed.")
                break

    def run(self) -> Summary:
        self.config.validate()
        logger.info(f"Starting load test: {self.config.virtual_users} VUs, {self.config.duration:.2f}s, "
                    f"{self.config.pacing_interval:.3f}s pacing, target {self.config.target_url}"
                    + (f", {self.config.iterations} iterations max" if self.config.iterations else ""))

        self.clock.start()
        self.aggregator.mark_started()
        self.pool.start(self.config, self.aggregator)
        try:
            self._wait_for_completion()
        except KeyboardInterrupt:
            logger.warning("Interrupted, stopping load test early...")
        finally:
            self.pool.stop()

        summary = self.aggregator.summarize()
        logger.info(f"Load test finished in {summary.elapsed_s:.2f}s: {summary.total_requests} requests, "
                    f"{summary.success_count} ok, {summary.failure_count} failed.")
        if summary.total_requests and summary.transport_errors == summary.total_requests:
            logger.warning(f"Target {self.config.target_url} was unreachable for the entire run.")
        return summary


def run_load_test(config: TestConfig, transport: Optional[httpx.BaseTransport] = None) -> Summary:
    return Coordinator(config, transport=transport).run()
