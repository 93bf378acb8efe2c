"""Data models for membership platform records and the API audit log."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional


class LogType(Enum):
    WEBHOOK = "webhook"
    API_CALL = "api_call"
    SYNC = "sync"


class LogStatus(Enum):
    SUCCESS = "success"
    ERROR = "error"
    PENDING = "pending"


@dataclass
class Member:
    """A client of the membership platform."""

    mb_client_id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    membership_status: Optional[str] = None
    merged_into: Optional[str] = None
    synced_at: Optional[datetime] = None


@dataclass
class Membership:
    """A membership contract held by a client."""

    mb_membership_id: str
    mb_client_id: str
    name: Optional[str] = None
    status: str = "Active"
    start_date: Optional[date] = None
    termination_date: Optional[date] = None
    at_risk: bool = False
    synced_at: Optional[datetime] = None


@dataclass
class Sale:
    """A sale pushed by the membership platform."""

    mb_transaction_id: str
    mb_sale_id: str
    mb_client_id: Optional[str] = None
    gross_amount: Decimal = Decimal("0")
    net_amount: Decimal = Decimal("0")
    payment_type: str = ""
    status: str = "Approved"
    description: Optional[str] = None
    transaction_date: Optional[datetime] = None
    synced_at: Optional[datetime] = None


@dataclass
class ApiLogEntry:
    """Audit record of one inbound webhook or outbound API call."""

    log_type: LogType
    source: str
    status: LogStatus
    event_type: Optional[str] = None
    user_id: Optional[str] = None
    request_data: Optional[dict[str, Any]] = None
    response_data: Optional[dict[str, Any]] = None
    error_message: Optional[str] = None
    duration_ms: Optional[int] = None
    created_at: datetime = field(default_factory=datetime.now)
    id: Optional[int] = None


@dataclass
class WebhookEvent:
    """Inbound membership platform event."""

    event_type: Optional[str]
    client_id: Optional[str] = None
    membership_id: Optional[str] = None
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "WebhookEvent":
        def text(value: Any) -> Optional[str]:
            return None if value is None else str(value)

        data = payload.get("data")
        return cls(
            event_type=payload.get("eventType"),
            client_id=text(payload.get("clientId")),
            membership_id=text(payload.get("membershipId")),
            data=data if isinstance(data, dict) else {},
            timestamp=payload.get("timestamp"),
        )


@dataclass
class WebhookResponse:
    """Acknowledgement returned to the membership platform."""

    received: bool = True
    handled: bool = False
    action: Optional[str] = None
    error: Optional[str] = None
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"received": self.received, "handled": self.handled}
        if self.action:
            body["action"] = self.action
        if self.error:
            body["error"] = self.error
        body.update(self.details)
        return body
