import threading
import time

import pytest

from config import ConfigurationError, TestConfig
from coordinator import Coordinator, run_load_test


def make_config(**overrides):
    values = dict(target_url="http://test.local/", virtual_users=1, duration=1.0, pacing_interval=0.2)
    values.update(overrides)
    return TestConfig(**values)


class TestCoordinator:
    def test_single_user_paced_run(self, ok_transport):
        summary = run_load_test(make_config(), transport=ok_transport)

        assert 4 <= summary.total_requests <= 5
        assert summary.success_count == summary.total_requests
        assert summary.failure_count == 0
        assert summary.elapsed_s >= 1.0

    def test_unreachable_target_is_a_result(self, closed_port_url):
        config = make_config(target_url=closed_port_url, virtual_users=2, duration=0.5, pacing_interval=0.1)
        coordinator = Coordinator(config)
        summary = coordinator.run()

        assert summary.total_requests >= 2
        assert summary.success_count == 0
        assert summary.transport_errors == summary.total_requests
        assert all(o.error and o.status_code is None for o in coordinator.aggregator.outcomes())

    def test_zero_virtual_users_rejected_before_any_request(self, ok_transport):
        with pytest.raises(ConfigurationError):
            run_load_test(make_config(virtual_users=0), transport=ok_transport)
        assert ok_transport.requests == []

    def test_throughput_lower_bound(self, ok_transport):
        n, duration, pacing = 3, 1.0, 0.1
        coordinator = Coordinator(make_config(virtual_users=n, duration=duration, pacing_interval=pacing),
                                  transport=ok_transport)
        summary = coordinator.run()

        # Requests are near-instant, so each user should manage close to duration / pacing iterations.
        assert summary.total_requests >= n * duration / pacing / 2
        assert {o.worker_id for o in coordinator.aggregator.outcomes()} == {"vu-0", "vu-1", "vu-2"}

    def test_finishes_early_when_iterations_exhausted(self, ok_transport):
        started = time.perf_counter()
        summary = run_load_test(make_config(virtual_users=2, duration=30.0, pacing_interval=0.0, iterations=5),
                                transport=ok_transport)
        assert time.perf_counter() - started < 5.0
        assert summary.total_requests == 5

    def test_request_stop_ends_run_early(self, ok_transport):
        coordinator = Coordinator(make_config(virtual_users=2, duration=30.0, pacing_interval=0.05),
                                  transport=ok_transport)
        threading.Timer(0.3, coordinator.request_stop).start()

        started = time.perf_counter()
        summary = coordinator.run()
        assert time.perf_counter() - started < 5.0
        assert summary.total_requests == len(ok_transport.requests)

    def test_summary_stable_after_run(self, ok_transport):
        coordinator = Coordinator(make_config(duration=0.3, pacing_interval=0.05), transport=ok_transport)
        first = coordinator.run()
        time.sleep(0.1)
        assert coordinator.aggregator.summarize() == first
