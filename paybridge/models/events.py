from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class TransactionEvent:
    """Append-only audit entry; one per lifecycle transition."""

    event_id: str
    order_id: str
    event_type: str  # "payment_initiated", "payment_processing", "payment_completed", ...
    gateway: str
    timestamp: datetime
    request_data: dict = field(default_factory=dict)
    response_data: dict = field(default_factory=dict)
