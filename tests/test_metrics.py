import threading

import pytest

from metrics import AggregationError, RequestOutcome, ResultAggregator, percentile


def outcome(latency_ms=10.0, status_code=200, success=True, error=None, worker_id="vu-0"):
    return RequestOutcome(worker_id, 1700000000.0, latency_ms, status_code, success, error)


class TestPercentile:
    def test_empty(self):
        assert percentile([], 50) == 0.0

    def test_nearest_rank(self):
        values = [float(v) for v in range(1, 101)]
        assert percentile(values, 50) == 51.0
        assert percentile(values, 90) == 91.0
        assert percentile(values, 99) == 100.0
        assert percentile(values, 100) == 100.0


class TestResultAggregator:
    def test_counts_by_kind(self):
        agg = ResultAggregator()
        agg.record(outcome())
        agg.record(outcome(status_code=503, success=False))
        agg.record(outcome(status_code=None, success=False, error="CONNECTION_ERROR: refused"))
        agg.record(outcome(status_code=200))

        summary = agg.summarize()
        assert summary.total_requests == 4
        assert summary.success_count == 2
        assert summary.failure_count == 2
        assert summary.transport_errors == 1
        assert summary.status_counts == ((200, 2), (503, 1))
        assert summary.success_rate == 50.0

    def test_latency_distribution(self):
        agg = ResultAggregator()
        for latency in range(1, 101):
            agg.record(outcome(latency_ms=float(latency)))

        summary = agg.summarize()
        assert summary.min_ms == 1.0
        assert summary.max_ms == 100.0
        assert summary.mean_ms == pytest.approx(50.5)
        assert summary.p50_ms == 51.0
        assert summary.p95_ms == 96.0
        assert summary.percentiles() == {"p50_ms": 51.0, "p90_ms": 91.0, "p95_ms": 96.0, "p99_ms": 100.0}

    def test_empty_summary(self):
        summary = ResultAggregator().summarize()
        assert summary.total_requests == 0
        assert summary.min_ms == summary.max_ms == summary.p99_ms == 0.0
        assert summary.success_rate == 0.0

    def test_summarize_is_idempotent(self):
        agg = ResultAggregator()
        agg.record(outcome(latency_ms=3.0))
        agg.record(outcome(latency_ms=7.0, status_code=404, success=False))
        first = agg.summarize()
        second = agg.summarize()
        assert first == second
        assert repr(first) == repr(second)

    def test_outcomes_snapshot(self):
        agg = ResultAggregator()
        agg.record(outcome(worker_id="vu-1"))
        snapshot = agg.outcomes()
        agg.record(outcome(worker_id="vu-2"))
        assert [o.worker_id for o in snapshot] == ["vu-1"]
        assert agg.count() == 2

    def test_inconsistent_counters_raise(self):
        agg = ResultAggregator()
        agg.record(outcome())
        agg.success_count += 1  # simulate a lost-update bug
        with pytest.raises(AggregationError):
            agg.summarize()

    def test_concurrent_record_loses_nothing(self):
        agg = ResultAggregator()
        n_threads, per_thread = 100, 500
        barrier = threading.Barrier(n_threads)

        def hammer(i):
            barrier.wait()
            for j in range(per_thread):
                ok = j % 5 != 0
                agg.record(outcome(latency_ms=float(j), status_code=200 if ok else 500,
                                   success=ok, worker_id=f"vu-{i}"))

        threads = [threading.Thread(target=hammer, args=(i,)) for i in range(n_threads)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        summary = agg.summarize()
        assert summary.total_requests == n_threads * per_thread
        assert summary.failure_count == n_threads * (per_thread // 5)
        assert summary.success_count == summary.total_requests - summary.failure_count
        assert dict(summary.status_counts) == {200: summary.success_count, 500: summary.failure_count}
