import logging
import threading
import time
from datetime import datetime
from typing import Callable, Optional

import httpx

from resilient_pinger.metrics import (
    CONSECUTIVE_FAILURES,
    PING_ATTEMPTS,
    PING_CYCLES,
    PING_DURATION_SECONDS,
    RETRY_DELAY_SECONDS,
    TARGET_AVAILABILITY,
)
from resilient_pinger.statistics import PingStatistics, utc_now
from resilient_pinger.types import (
    CycleResult,
    CycleState,
    FailureReason,
    PingerConfig,
    PingResult,
)

BACKOFF_FACTOR = 1.5
MAX_BACKOFF_STEPS = 5

logger = logging.getLogger(__name__)


class PingError(Exception):
    def __init__(self, reason: FailureReason, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.reason = reason
        self.status_code = status_code


def backoff_delay(attempt: int, initial_ms: float, maximum_ms: float) -> float:
    """Delay (ms) to wait after failed attempt number ``attempt`` (1-based)."""
    steps = min(max(attempt - 1, 0), MAX_BACKOFF_STEPS)
    return min(initial_ms * BACKOFF_FACTOR ** steps, maximum_ms)


class ResilientPinger:
    """
    Calls the target's health endpoint until it answers 200.

    ``sleep`` receives seconds and may return early; after every sleep the
    stop event is checked, which is how shutdown cancels a pending retry.
    ``client`` and ``now`` are injectable so tests can use a mock transport
    and a fixed clock.
    """

    def __init__(
        self,
        config: PingerConfig,
        stats: Optional[PingStatistics] = None,
        client: Optional[httpx.Client] = None,
        sleep: Optional[Callable[[float], object]] = None,
        now: Callable[[], datetime] = utc_now,
        stop_event: Optional[threading.Event] = None,
    ):
        self.config = config
        self.stats = stats if stats is not None else PingStatistics(start_time=now())
        self.stop_event = stop_event or threading.Event()
        self._sleep = sleep or self.stop_event.wait
        self._now = now
        self._owns_client = client is None
        self.client = client or httpx.Client(timeout=config.timeout_ms / 1000)
        self._target = config.server_url

    @property
    def stopped(self) -> bool:
        return self.stop_event.is_set()

    def stop(self) -> None:
        self.stop_event.set()

    def close(self) -> None:
        if self._owns_client:
            self.client.close()

    def pause(self, seconds: float) -> bool:
        """Sleep for ``seconds``; returns True if a stop was requested."""
        if not self.stopped:
            self._sleep(seconds)
        return self.stopped

    def ping_once(self) -> PingResult:
        start_time = time.monotonic()
        body_readable = True
        try:
            with self.client.stream(
                "GET",
                self.config.health_url,
                headers={"User-Agent": self.config.user_agent, "Accept": "application/json"},
                timeout=self.config.timeout_ms / 1000,
            ) as response:
                if response.status_code == 200:
                    try:
                        response.read()
                    except httpx.DecodingError:
                        body_readable = False
                        logger.debug("Health response body could not be decoded.")
        except httpx.TimeoutException as e:
            self._record_failure(FailureReason.TIMEOUT, time.monotonic() - start_time)
            raise PingError(FailureReason.TIMEOUT, f"Request timeout ({e.__class__.__name__})") from e
        except httpx.HTTPError as e:
            self._record_failure(FailureReason.NETWORK, time.monotonic() - start_time)
            raise PingError(FailureReason.NETWORK, f"Network error: {e}") from e
        duration = time.monotonic() - start_time

        if response.status_code != 200:
            self._record_failure(FailureReason.HTTP_STATUS, duration)
            logger.warning(f"Server returned status {response.status_code}")
            raise PingError(
                FailureReason.HTTP_STATUS,
                f"HTTP {response.status_code}",
                status_code=response.status_code,
            )

        data = None
        if body_readable and "json" in response.headers.get("content-type", "").lower():
            try:
                data = response.json()
            except ValueError:
                logger.debug("Health response declared JSON but could not be parsed.")

        self.stats.record_success(self._now())
        PING_ATTEMPTS.labels(target=self._target, outcome="success").inc()
        PING_DURATION_SECONDS.labels(target=self._target).observe(duration)
        CONSECUTIVE_FAILURES.labels(target=self._target).set(0)
        TARGET_AVAILABILITY.labels(target=self._target).set(1)

        message = data.get("message") if isinstance(data, dict) else None
        logger.info(f"Server alive: {message or 'OK'} ({response.status_code})")
        return PingResult(response.status_code, data, duration)

    def _record_failure(self, reason: FailureReason, duration: float) -> None:
        consecutive = self.stats.record_failure(self._now())
        PING_ATTEMPTS.labels(target=self._target, outcome=reason.value).inc()
        PING_DURATION_SECONDS.labels(target=self._target).observe(duration)
        CONSECUTIVE_FAILURES.labels(target=self._target).set(consecutive)
        TARGET_AVAILABILITY.labels(target=self._target).set(0)

    def ping_with_infinite_retry(self) -> CycleResult:
        """
        Run one cycle: attempt, back off and attempt again until a 200 arrives.

        Failures never escape; the cycle only ends on success or when a stop
        is requested while backing off.
        """
        total = self.stats.record_cycle()
        PING_CYCLES.labels(target=self._target).inc()
        logger.info(f"Pinging server... (Total pings: {total})")

        result = CycleResult(CycleState.ATTEMPTING, attempts=0)
        delay_ms = 0.0
        while True:
            if result.state is CycleState.ATTEMPTING:
                result.attempts += 1
                try:
                    ping = self.ping_once()
                except PingError as e:
                    logger.error(f"Ping failed (Attempt {result.attempts}): {e}")
                    delay_ms = backoff_delay(
                        result.attempts,
                        self.config.initial_retry_delay_ms,
                        self.config.max_retry_delay_ms,
                    )
                    result.delays_ms.append(delay_ms)
                    RETRY_DELAY_SECONDS.labels(target=self._target).set(delay_ms / 1000)
                    logger.warning(f"Retrying in {round(delay_ms / 1000)}s...")
                    if self.stats.consecutive_failures >= self.config.alert_threshold:
                        logger.critical(
                            f"ALERT: {self.stats.consecutive_failures} consecutive failures!"
                        )
                    result.state = CycleState.BACKING_OFF
                else:
                    result.data = ping.data
                    result.state = CycleState.SUCCEEDED
            elif result.state is CycleState.BACKING_OFF:
                if self.pause(delay_ms / 1000):
                    logger.info("Stop requested, abandoning retries.")
                    result.state = CycleState.CANCELLED
                else:
                    result.state = CycleState.ATTEMPTING
            else:
                return result
