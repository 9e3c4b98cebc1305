import logging
import threading
import time
from typing import Optional

import httpx

from clock import RateClock, IterationBudget
from config import TestConfig
from metrics import RequestOutcome, ResultAggregator


class RequestError(Exception):
    """A request that never produced an HTTP response (timeout, refused, DNS...)."""


class Worker:
    """One virtual user: request -> check -> pace, until told to stop."""

    def __init__(self, worker_id: str, config: TestConfig, clock: RateClock,
                 sink: ResultAggregator, cancel_event: threading.Event,
                 budget: Optional[IterationBudget] = None,
                 start_delay: float = 0.0,
                 transport: Optional[httpx.BaseTransport] = None):
        self.worker_id = worker_id
        self.config = config
        self.clock = clock
        self.sink = sink
        self.budget = budget or IterationBudget()
        self.start_delay = start_delay
        self.transport = transport

        # Shared by every worker in the pool; set once to stop them all.
        self._cancel_event = cancel_event
        self._thread: Optional[threading.Thread] = None

        self.iterations = 0
        self.logger = logging.getLogger(f"Worker-{self.worker_id}")

    def _fetch_status(self, client: httpx.Client) -> int:
        try:
            with client.stream("GET", self.config.target_url) as response:
                # Drain unparsed so the connection goes back to the pool.
                for _ in response.iter_raw():
                    pass
                return response.status_code
        except httpx.TimeoutException as e:
            raise RequestError(f"TIMEOUT: {e}") from e
        except httpx.ConnectError as e:
            raise RequestError(f"CONNECTION_ERROR: {e}") from e
        except httpx.HTTPError as e:
            raise RequestError(f"{type(e).__name__}: {e}") from e

    def _perform_request(self, client: httpx.Client) -> RequestOutcome:
        timestamp = time.time()
        send_time = time.perf_counter()
        status_code = None
        error = None
        try:
            status_code = self._fetch_status(client)
        except RequestError as e:
            error = str(e)
            self.logger.debug(f"Request failed: {error}")
        except Exception as e:
            error = f"CLIENT_EXCEPTION: {type(e).__name__}: {e}"
            self.logger.error(f"Unexpected error during request: {e}", exc_info=True)
        latency_ms = (time.perf_counter() - send_time) * 1000

        success = status_code == self.config.expected_status
        return RequestOutcome(self.worker_id, timestamp, latency_ms, status_code, success, error)

    def _should_run(self) -> bool:
        if self._cancel_event.is_set():
            return False
        if not self.clock.should_continue(self.clock.elapsed()):
            return False
        return self.budget.try_acquire()

    def run(self):
        if self.start_delay > 0 and self._cancel_event.wait(self.start_delay):
            self.logger.debug("Cancelled before first iteration.")
            return

        self.logger.debug("Started.")
        with httpx.Client(timeout=self.config.request_timeout, follow_redirects=True,
                          transport=self.transport) as client:
            while self._should_run():
                outcome = self._perform_request(client)
                self.sink.record(outcome)
                self.iterations += 1

                if self.config.pacing_interval > 0:
                    if self._cancel_event.wait(self.config.pacing_interval):
                        break
        self.logger.debug(f"Finished after {self.iterations} iterations.")

    def start(self):
        self._thread = threading.Thread(target=self.run, name=self.worker_id, daemon=True)
        self._thread.start()

    def join(self, timeout: Optional[float] = None):
        if self._thread:
            self._thread.join(timeout)

    def is_alive(self) -> bool:
        return bool(self._thread and self._thread.is_alive())
