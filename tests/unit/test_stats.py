"""Unit tests for UsageStats counters."""
from luxrig.core.stats import UsageStats


class FakeClock:
    def __init__(self):
        self.now = 1_700_000_000.0

    def __call__(self):
        return self.now


def test_empty_snapshot():
    snap = UsageStats(clock=FakeClock()).snapshot()
    assert snap["total_requests"] == 0
    assert snap["success_rate"] == "0%"
    assert snap["cost_savings"] == "$0.00"


def test_counts_by_destination():
    clock = FakeClock()
    stats = UsageStats(clock=clock)
    stats.record("local")
    stats.record("local")
    stats.record("cloud_recommended")
    stats.record_error()

    clock.now += 7200
    snap = stats.snapshot()
    assert snap["total_requests"] == 4
    assert snap["local_requests"] == 2
    assert snap["cloud_recommended"] == 1
    assert snap["cloud_requests"] == 0
    assert snap["error_requests"] == 1
    assert snap["cost_savings"] == "$0.04"
    assert snap["success_rate"] == "75.0%"
    assert snap["uptime_hours"] == "2.00"
    assert snap["avg_requests_per_hour"] == "2.00"
