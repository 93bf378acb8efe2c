"""
Membership platform webhook receiver.

Events update the local copies of members, memberships and sales. The
platform retries anything that is not acknowledged, so ``handle`` always
returns an acknowledgement: validation problems and store failures are
reported in the body, never raised.
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Optional
import logging
import time

from ..models.membership import Member, Membership, Sale, WebhookEvent, WebhookResponse
from ..storage.base import ReconStore
from ..utils.exceptions import ReconciliationError
from .audit import ApiLogRecorder

logger = logging.getLogger(__name__)

TERMINATED = "Terminated"


def _first(data: dict[str, Any], *keys: str) -> Any:
    """First non-empty value among ``keys``."""
    for key in keys:
        value = data.get(key)
        if value not in (None, ""):
            return value
    return None


def _amount(value: Any) -> Decimal:
    try:
        return Decimal(str(value)) if value not in (None, "") else Decimal("0")
    except InvalidOperation:
        return Decimal("0")


def _timestamp(value: Any) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        logger.warning(f"Unparseable webhook timestamp: {value!r}")
        return None


def _date(value: Any) -> Optional[date]:
    parsed = _timestamp(value)
    return parsed.date() if parsed else None


class WebhookReceiver:
    """Routes membership platform events to their handlers."""

    def __init__(self, store: ReconStore, recorder: Optional[ApiLogRecorder] = None):
        """
        Initialize the receiver.

        Args:
            store: Store holding member, membership and sale records
            recorder: Audit log writer (one over ``store`` if omitted)
        """
        self.store = store
        self.recorder = recorder or ApiLogRecorder(store)
        self.handlers: dict[str, Callable[[WebhookEvent], WebhookResponse]] = {
            "client.created": self._client_created,
            "client.updated": self._client_updated,
            "client.merged": self._client_merged,
            "clientMembershipAssignment.created": self._membership_created,
            "clientMembershipAssignment.cancelled": self._membership_cancelled,
            "sale.created": self._sale_created,
        }

    @property
    def supported_events(self) -> list[str]:
        return list(self.handlers)

    def handle(self, payload: Any) -> dict[str, Any]:
        """
        Process one webhook payload.

        Args:
            payload: Decoded JSON body

        Returns:
            Acknowledgement body, always with ``received`` set
        """
        started = time.monotonic()
        event_type: Optional[str] = None

        try:
            if not isinstance(payload, dict):
                response = WebhookResponse(error="Payload must be a JSON object")
            else:
                event = WebhookEvent.from_payload(payload)
                event_type = event.event_type
                handler = self.handlers.get(event_type or "")
                if handler is None:
                    logger.info(f"Ignoring unsupported webhook event {event_type!r}")
                    response = WebhookResponse()
                else:
                    response = handler(event)
        except ReconciliationError as e:
            logger.error(f"Webhook {event_type} failed: {e}")
            response = WebhookResponse(error=str(e))
        except Exception as e:
            logger.exception(f"Unexpected error handling webhook {event_type}")
            response = WebhookResponse(error=f"Webhook processing failed: {e}")

        body = response.to_dict()
        self.recorder.webhook(
            event_type,
            payload,
            response_data=body,
            error_message=response.error,
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        return body

    # Handlers

    def _client_created(self, event: WebhookEvent) -> WebhookResponse:
        if not event.client_id:
            return WebhookResponse(error="Missing clientId")

        data = event.data
        self.store.upsert_member(
            Member(
                mb_client_id=event.client_id,
                first_name=_first(data, "FirstName", "firstName"),
                last_name=_first(data, "LastName", "lastName"),
                email=_first(data, "Email", "email"),
                membership_status=_first(data, "Status", "status"),
                synced_at=datetime.now(),
            )
        )
        return WebhookResponse(handled=True, action="client_created")

    def _client_updated(self, event: WebhookEvent) -> WebhookResponse:
        if not event.client_id:
            return WebhookResponse(error="Missing clientId")

        new_status = _first(event.data, "Status", "status")
        if new_status:
            self.store.update_member(
                event.client_id,
                {"membership_status": new_status, "synced_at": datetime.now()},
            )
        return WebhookResponse(handled=True, action="client_updated")

    def _client_merged(self, event: WebhookEvent) -> WebhookResponse:
        merged_into = _first(event.data, "MergedIntoClientId", "mergedIntoClientId", "NewClientId")
        if not event.client_id or not merged_into:
            return WebhookResponse(error="Missing clientId or merged client id")

        merged_into = str(merged_into)
        moved = self.store.reassign_memberships(event.client_id, merged_into)
        self.store.update_member(
            event.client_id, {"merged_into": merged_into, "synced_at": datetime.now()}
        )
        logger.info(f"Client {event.client_id} merged into {merged_into}, {moved} memberships moved")
        return WebhookResponse(
            handled=True, action="client_merged", details={"membershipsMoved": moved}
        )

    def _membership_created(self, event: WebhookEvent) -> WebhookResponse:
        if not event.client_id or not event.membership_id:
            return WebhookResponse(error="Missing clientId or membershipId")

        data = event.data
        self.store.upsert_membership(
            Membership(
                mb_membership_id=event.membership_id,
                mb_client_id=event.client_id,
                name=_first(data, "Name", "MembershipName"),
                status=_first(data, "Status", "status") or "Active",
                start_date=_date(_first(data, "StartDate", "ActiveDate")),
                synced_at=datetime.now(),
            )
        )
        return WebhookResponse(handled=True, action="membership_created")

    def _membership_cancelled(self, event: WebhookEvent) -> WebhookResponse:
        if not event.client_id or not event.membership_id:
            return WebhookResponse(error="Missing clientId or membershipId")

        now = datetime.now()
        self.store.update_membership(
            event.membership_id,
            {
                "status": TERMINATED,
                "termination_date": now.date(),
                "at_risk": False,
                "synced_at": now,
            },
        )
        self.store.update_member(
            event.client_id, {"membership_status": TERMINATED, "synced_at": now}
        )
        return WebhookResponse(handled=True, action="membership_cancelled")

    def _sale_created(self, event: WebhookEvent) -> WebhookResponse:
        data = event.data
        sale_id = _first(data, "SaleId", "Id")
        if not data or sale_id is None:
            return WebhookResponse(error="Missing sale data")

        sale_id = str(sale_id)
        transaction_id = _first(data, "TransactionId")
        amount = _first(data, "Amount")
        client_id = _first(data, "ClientId")

        self.store.upsert_sale(
            Sale(
                mb_transaction_id=str(transaction_id) if transaction_id is not None else sale_id,
                mb_sale_id=sale_id,
                mb_client_id=str(client_id) if client_id is not None else None,
                gross_amount=_amount(_first(data, "GrossAmount") or amount),
                net_amount=_amount(_first(data, "NetAmount") or amount),
                payment_type=_first(data, "PaymentType", "Method") or "",
                status=_first(data, "Status") or "Approved",
                description=_first(data, "Description", "ItemName"),
                transaction_date=_timestamp(_first(data, "SaleDateTime", "TransactionTime"))
                or datetime.now(),
                synced_at=datetime.now(),
            )
        )
        logger.info(f"Sale {sale_id} synced from webhook")
        return WebhookResponse(handled=True, action="sale_synced", details={"saleId": sale_id})
