import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

SEPARATOR = "=" * 70


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class PingStatistics:
    """
    Counters for one pinger instance.

    ``total_pings`` counts cycles, ``successful_pings`` and ``failed_pings``
    count individual attempts. The status listener reads these from another
    thread, so every mutation and read goes through the lock. It is
    reentrant because the shutdown signal handler reads the counters on the
    same thread that may be holding it.
    """

    start_time: datetime = field(default_factory=utc_now)
    total_pings: int = 0
    successful_pings: int = 0
    failed_pings: int = 0
    consecutive_failures: int = 0
    last_successful_ping: Optional[datetime] = None
    last_failed_ping: Optional[datetime] = None
    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    def record_cycle(self) -> int:
        with self._lock:
            self.total_pings += 1
            return self.total_pings

    def record_success(self, when: datetime) -> None:
        with self._lock:
            self.successful_pings += 1
            self.consecutive_failures = 0
            self.last_successful_ping = when

    def record_failure(self, when: datetime) -> int:
        with self._lock:
            self.failed_pings += 1
            self.consecutive_failures += 1
            self.last_failed_ping = when
            return self.consecutive_failures

    def uptime_minutes(self, now: Optional[datetime] = None) -> int:
        now = now or utc_now()
        return int((now - self.start_time).total_seconds() // 60)

    def success_rate(self) -> str:
        with self._lock:
            if self.total_pings == 0:
                return "0%"
            return f"{self.successful_pings / self.total_pings * 100:.2f}%"

    def snapshot(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        uptime = self.uptime_minutes(now)
        success_rate = self.success_rate()
        with self._lock:
            data = {
                "totalPings": self.total_pings,
                "successfulPings": self.successful_pings,
                "failedPings": self.failed_pings,
                "consecutiveFailures": self.consecutive_failures,
                "startTime": self.start_time.isoformat(),
                "uptime": uptime,
                "successRate": success_rate,
            }
            if self.last_successful_ping:
                data["lastSuccessfulPing"] = self.last_successful_ping.isoformat()
            if self.last_failed_ping:
                data["lastFailedPing"] = self.last_failed_ping.isoformat()
        return data

    def summary_lines(self, now: Optional[datetime] = None) -> List[str]:
        snapshot = self.snapshot(now)
        uptime = snapshot["uptime"]
        lines = [
            SEPARATOR,
            "KEEP-ALIVE SERVICE STATISTICS",
            SEPARATOR,
            f"Uptime: {uptime} minutes ({uptime / 60:.1f} hours)",
            f"Total Pings: {snapshot['totalPings']}",
            f"Successful: {snapshot['successfulPings']} ({snapshot['successRate']})",
            f"Failed: {snapshot['failedPings']}",
            f"Consecutive Failures: {snapshot['consecutiveFailures']}",
        ]
        if "lastSuccessfulPing" in snapshot:
            lines.append(f"Last Success: {snapshot['lastSuccessfulPing']}")
        if "lastFailedPing" in snapshot:
            lines.append(f"Last Failure: {snapshot['lastFailedPing']}")
        lines.append(SEPARATOR)
        return lines


def log_statistics(stats: PingStatistics, now: Optional[datetime] = None) -> None:
    for line in stats.summary_lines(now):
        logger.info(line)
