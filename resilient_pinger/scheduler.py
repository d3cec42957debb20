import logging
import time
from typing import Callable, Optional

from resilient_pinger.pinger import ResilientPinger
from resilient_pinger.statistics import SEPARATOR, log_statistics

MIN_SLEEP_SECONDS = 1
RESTART_DELAY_SECONDS = 5

logger = logging.getLogger(__name__)


class PingScheduler:
    """
    Runs ping cycles back to back on a fixed period.

    Cycles are serialized: the next one is only started after the previous
    one finished, and ticks missed while a cycle was retrying are dropped.
    """

    def __init__(
        self,
        pinger: ResilientPinger,
        clock: Callable[[], float] = time.monotonic,
        restart_delay: float = RESTART_DELAY_SECONDS,
    ):
        self.pinger = pinger
        self.config = pinger.config
        self._clock = clock
        self._restart_delay = restart_delay
        self._last_summary: Optional[float] = None
        self.completed_cycles = 0

    def stop(self) -> None:
        self.pinger.stop()

    def log_banner(self) -> None:
        logger.info("Keep-Alive Service started (resilient mode)")
        logger.info("Mode: never stops, infinite retry on failures")
        logger.info(f"Target: {self.config.health_url}")
        logger.info(f"Ping Interval: {self.config.ping_interval_ms / 1000 / 60:g} minutes")
        logger.info("Retry Strategy: infinite with exponential backoff")
        logger.info(f"Timeout: {self.config.timeout_ms / 1000:g} seconds")
        logger.info(SEPARATOR)

    def run(self) -> None:
        self.log_banner()
        interval = self.config.ping_interval_ms / 1000
        self._last_summary = self._clock()

        while not self.pinger.stopped:
            try:
                start_time = self._clock()
                self.pinger.ping_with_infinite_retry()
                if self.pinger.stopped:
                    break
                self.completed_cycles += 1
                self._maybe_log_summary()

                next_sleep = interval - (self._clock() - start_time)
                if next_sleep < 0:
                    logger.warning(
                        f"Ping cycle overran the {interval:g}s interval by {-next_sleep:.1f}s, "
                        "skipping missed ticks."
                    )
                self.pinger.pause(max(next_sleep, MIN_SLEEP_SECONDS))
            except Exception:
                logger.exception("Unexpected error in ping cycle, continuing operation...")
                self.pinger.pause(self._restart_delay)

        logger.info("Ping scheduler stopped.")

    def _maybe_log_summary(self) -> None:
        period = self.config.stats_period_ms / 1000
        now = self._clock()
        if self.pinger.stats.total_pings % self.config.stats_every_cycles == 0:
            log_statistics(self.pinger.stats)
            self._last_summary = now
        elif self._last_summary is not None and now - self._last_summary >= period:
            log_statistics(self.pinger.stats)
            self._last_summary = now
