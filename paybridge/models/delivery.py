from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class CallbackAttempt:
    attempt_id: str
    order_id: str
    url: str
    attempt_number: int  # 1-based
    status_code: int | None
    timestamp: datetime
    response_time_ms: float
    response_body: str | None = None
    error: str | None = None
    next_retry_at: datetime | None = None
    delivery_id: str = ""  # shared by every attempt of one delivery run

    @property
    def succeeded(self) -> bool:
        return self.status_code == 200


@dataclass(frozen=True)
class DeliveryResult:
    """One callback delivery run: the attempts made until a 200 or the budget ran out."""

    delivery_id: str
    order_id: str
    attempts: list[CallbackAttempt] = field(default_factory=list)

    @property
    def delivered(self) -> bool:
        return bool(self.attempts) and self.attempts[-1].succeeded
