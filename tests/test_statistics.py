from __future__ import annotations

from datetime import datetime, timedelta, timezone

from resilient_pinger.statistics import PingStatistics

START = datetime(2024, 1, 1, tzinfo=timezone.utc)


def test_empty_statistics_snapshot() -> None:
    stats = PingStatistics(start_time=START)

    snapshot = stats.snapshot(START + timedelta(minutes=90, seconds=59))

    assert snapshot["uptime"] == 90
    assert snapshot["successRate"] == "0%"
    assert "lastSuccessfulPing" not in snapshot
    assert "lastFailedPing" not in snapshot


def test_success_rate_is_per_cycle() -> None:
    stats = PingStatistics(start_time=START)
    for _ in range(3):
        stats.record_cycle()
    stats.record_success(START)
    stats.record_success(START)

    assert stats.success_rate() == "66.67%"


def test_failure_then_success_resets_consecutive() -> None:
    stats = PingStatistics(start_time=START)
    assert stats.record_failure(START) == 1
    assert stats.record_failure(START) == 2

    stats.record_success(START + timedelta(seconds=5))

    assert stats.consecutive_failures == 0
    assert stats.failed_pings == 2
    assert stats.last_successful_ping == START + timedelta(seconds=5)


def test_summary_lines_include_last_timestamps() -> None:
    stats = PingStatistics(start_time=START)
    stats.record_cycle()
    stats.record_failure(START)

    lines = stats.summary_lines(START + timedelta(hours=3))

    assert "Uptime: 180 minutes (3.0 hours)" in lines
    assert "Failed: 1" in lines
    assert f"Last Failure: {START.isoformat()}" in lines
    assert not any(line.startswith("Last Success") for line in lines)
