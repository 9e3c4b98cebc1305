import logging
import threading
import time
from typing import NamedTuple, Optional, Dict, List, Tuple

from config import PERCENTILES, CHECK_NAME

logger = logging.getLogger(__name__)


class RequestOutcome(NamedTuple):
    worker_id: str
    timestamp: float  # epoch seconds when the request was sent
    latency_ms: float
    status_code: Optional[int]  # None when no response was received
    success: bool
    error: Optional[str]


class Summary(NamedTuple):
    total_requests: int
    success_count: int
    failure_count: int
    transport_errors: int
    status_counts: Tuple[Tuple[int, int], ...]
    min_ms: float
    max_ms: float
    mean_ms: float
    p50_ms: float
    p90_ms: float
    p95_ms: float
    p99_ms: float
    elapsed_s: float
    requests_per_second: float
    check_name: str = CHECK_NAME

    @property
    def success_rate(self) -> float:
        return (self.success_count / self.total_requests) * 100 if self.total_requests else 0.0

    def percentiles(self) -> Dict[str, float]:
        return {f"p{p}_ms": getattr(self, f"p{p}_ms") for p in PERCENTILES}


class AggregationError(RuntimeError):
    pass


def percentile(sorted_values: List[float], p_val: float) -> float:
    """Nearest-rank percentile over an already sorted list."""
    if not sorted_values:
        return 0.0
    idx = min(int(len(sorted_values) * (p_val / 100.0)), len(sorted_values) - 1)
    return sorted_values[idx]


class ResultAggregator:
    def __init__(self):
        self._lock = threading.Lock()
        self._outcomes: List[RequestOutcome] = []
        self._latencies_ms: List[float] = []
        self._status_counts: Dict[int, int] = {}
        self.total_requests = 0
        self.success_count = 0
        self.failure_count = 0
        self.transport_errors = 0
        self._started_at = time.perf_counter()
        self._summary: Optional[Summary] = None

    def mark_started(self):
        with self._lock:
            self._started_at = time.perf_counter()

    def record(self, outcome: RequestOutcome):
        with self._lock:
            self._outcomes.append(outcome)
            self._latencies_ms.append(outcome.latency_ms)
            self.total_requests += 1
            if outcome.success:
                self.success_count += 1
            else:
                self.failure_count += 1
            if outcome.status_code is None:
                self.transport_errors += 1
            else:
                self._status_counts[outcome.status_code] = self._status_counts.get(outcome.status_code, 0) + 1

    def count(self) -> int:
        with self._lock:
            return self.total_requests

    def outcomes(self) -> List[RequestOutcome]:
        with self._lock:
            return list(self._outcomes)

    def summarize(self) -> Summary:
        """Build the final Summary. Only valid once every worker has stopped."""
        with self._lock:
            if self._summary is not None:
                return self._summary
            self._check_consistency()

            elapsed_s = time.perf_counter() - self._started_at
            sorted_latencies = sorted(self._latencies_ms)
            mean_ms = sum(sorted_latencies) / len(sorted_latencies) if sorted_latencies else 0.0
            p = {p_val: percentile(sorted_latencies, p_val) for p_val in PERCENTILES}

            self._summary = Summary(
                total_requests=self.total_requests,
                success_count=self.success_count,
                failure_count=self.failure_count,
                transport_errors=self.transport_errors,
                status_counts=tuple(sorted(self._status_counts.items())),
                min_ms=sorted_latencies[0] if sorted_latencies else 0.0,
                max_ms=sorted_latencies[-1] if sorted_latencies else 0.0,
                mean_ms=mean_ms,
                p50_ms=p[50], p90_ms=p[90], p95_ms=p[95], p99_ms=p[99],
                elapsed_s=elapsed_s,
                requests_per_second=self.total_requests / elapsed_s if elapsed_s > 0 else 0.0,
            )
            logger.debug(f"Summary built: {self._summary}")
            return self._summary

    def _check_consistency(self):
        if self.success_count + self.failure_count != self.total_requests:
            raise AggregationError(
                f"success ({self.success_count}) + failure ({self.failure_count}) "
                f"!= total ({self.total_requests})")
        if len(self._outcomes) != self.total_requests or len(self._latencies_ms) != self.total_requests:
            raise AggregationError(
                f"{len(self._outcomes)} outcomes stored for {self.total_requests} recorded requests")
        if sum(self._status_counts.values()) + self.transport_errors != self.total_requests:
            raise AggregationError("Status code counts do not add up to total requests")
