import logging
import threading
import time
from typing import List, Optional

import httpx

from clock import RateClock, IterationBudget
from config import TestConfig
from metrics import ResultAggregator
from worker import Worker

logger = logging.getLogger(__name__)


class WorkerPool:
    def __init__(self, clock: RateClock, budget: Optional[IterationBudget] = None,
                 transport: Optional[httpx.BaseTransport] = None):
        self.clock = clock
        self.budget = budget or IterationBudget()
        self.transport = transport
        self.workers: List[Worker] = []
        self._cancel_event = threading.Event()

    def start(self, config: TestConfig, sink: ResultAggregator):
        if self.workers:
            raise RuntimeError("WorkerPool already started")
        self._cancel_event.clear()

        # Spread worker start times evenly over the ramp-up window.
        stagger_s = config.ramp_up / config.virtual_users if config.ramp_up > 0 else 0.0
        for i in range(config.virtual_users):
            worker = Worker(
                worker_id=f"vu-{i}",
                config=config,
                clock=self.clock,
                sink=sink,
                cancel_event=self._cancel_event,
                budget=self.budget,
                start_delay=i * stagger_s,
                transport=self.transport,
            )
            self.workers.append(worker)

        for worker in self.workers:
            worker.start()
        logger.info(f"Started {len(self.workers)} virtual users"
                    + (f" over a {config.ramp_up:.2f}s ramp-up" if stagger_s else ""))

    def running(self) -> int:
        return sum(1 for w in self.workers if w.is_alive())

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until every worker has exited or the timeout passes. True if all exited."""
        deadline = None if timeout is None else time.perf_counter() + timeout
        for worker in self.workers:
            remaining = None if deadline is None else max(0.0, deadline - time.perf_counter())
            worker.join(remaining)
            if worker.is_alive():
                return False
        return True

    def stop(self):
        """Cancel every worker and wait for all of them to exit."""
        logger.info(f"Stopping {self.running()} running virtual users...")
        self._cancel_event.set()
        for worker in self.workers:
            worker.join()
        logger.info("All virtual users stopped.")
