from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional

DEFAULT_USER_AGENT = "Resilient-KeepAlive/2.0"


class CycleState(Enum):
    ATTEMPTING = "attempting"
    BACKING_OFF = "backing_off"
    SUCCEEDED = "succeeded"
    CANCELLED = "cancelled"


class FailureReason(Enum):
    HTTP_STATUS = "http_status"
    TIMEOUT = "timeout"
    NETWORK = "network"


@dataclass
class PingerConfig:
    server_url: str
    health_path: str = "/api/health"
    ping_interval_ms: int = 5 * 60 * 1000
    timeout_ms: int = 30000
    initial_retry_delay_ms: int = 10000
    max_retry_delay_ms: int = 60000
    http_address: str = "0.0.0.0"
    port: int = 3001
    stats_every_cycles: int = 12
    stats_period_ms: int = 6 * 60 * 60 * 1000
    alert_threshold: int = 5
    user_agent: str = DEFAULT_USER_AGENT

    def __post_init__(self):
        self.server_url = (self.server_url or "").strip()
        if not self.server_url:
            raise ValueError("server_url must not be empty")
        for name in (
            "ping_interval_ms",
            "timeout_ms",
            "initial_retry_delay_ms",
            "max_retry_delay_ms",
            "stats_every_cycles",
            "stats_period_ms",
            "alert_threshold",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        if self.max_retry_delay_ms < self.initial_retry_delay_ms:
            raise ValueError("max_retry_delay_ms must not be below initial_retry_delay_ms")
        if self.port < 0:
            raise ValueError(f"port must not be negative, got {self.port}")

    @property
    def health_url(self) -> str:
        path = self.health_path if self.health_path.startswith("/") else f"/{self.health_path}"
        return f"{self.server_url.rstrip('/')}{path}"


@dataclass
class PingResult:
    status_code: int
    data: Optional[Any]
    duration: float


@dataclass
class CycleResult:
    state: CycleState
    attempts: int
    delays_ms: List[float] = field(default_factory=list)
    data: Optional[Any] = None
