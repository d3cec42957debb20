from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, List

import httpx
import pytest

from resilient_pinger.pinger import ResilientPinger
from resilient_pinger.statistics import PingStatistics
from resilient_pinger.types import PingerConfig

START = datetime(2024, 1, 1, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self) -> None:
        self.seconds = 0.0

    def monotonic(self) -> float:
        return self.seconds

    def now(self) -> datetime:
        return START + timedelta(seconds=self.seconds)

    def advance(self, seconds: float) -> None:
        self.seconds += seconds


class Responder:
    """Serves queued responses (or raises queued transport errors) in order."""

    def __init__(self, outcomes: List[object], default: object = 200) -> None:
        self.outcomes = list(outcomes)
        self.default = default
        self.requests: List[httpx.Request] = []
        self.on_request: Callable[[], None] = lambda: None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        self.on_request()
        outcome = self.outcomes.pop(0) if self.outcomes else self.default
        if isinstance(outcome, type) and issubclass(outcome, httpx.RequestError):
            raise outcome("simulated", request=request)
        if isinstance(outcome, httpx.Response):
            return outcome
        if outcome == 200:
            return httpx.Response(200, json={"message": "Server is healthy"})
        return httpx.Response(outcome, text="error")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config() -> PingerConfig:
    return PingerConfig(server_url="http://target.test")


@pytest.fixture
def make_pinger(config: PingerConfig, clock: FakeClock):
    def _make(responder: Responder, sleep=None, cfg: PingerConfig = None) -> ResilientPinger:
        client = httpx.Client(transport=httpx.MockTransport(responder))
        sleeps: List[float] = []

        def record_sleep(seconds: float) -> None:
            sleeps.append(seconds)
            clock.advance(seconds)

        pinger = ResilientPinger(
            cfg or config,
            stats=PingStatistics(start_time=clock.now()),
            client=client,
            sleep=sleep or record_sleep,
            now=clock.now,
        )
        pinger.sleeps = sleeps
        return pinger

    return _make
