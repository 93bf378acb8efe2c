"""Audit trail of inbound webhooks and outbound API calls."""

from typing import Any, Optional
import logging

from ..models.membership import ApiLogEntry, LogStatus, LogType
from ..storage.base import ReconStore

logger = logging.getLogger(__name__)


class ApiLogRecorder:
    """
    Writes ApiLogEntry records to the store.

    Logging must never break the call being logged, so write failures are
    reported through the application log and otherwise ignored.
    """

    def __init__(self, store: ReconStore, source: str = "mindbody"):
        self.store = store
        self.source = source

    def record(
        self,
        log_type: LogType,
        status: LogStatus,
        event_type: Optional[str] = None,
        request_data: Optional[dict[str, Any]] = None,
        response_data: Optional[dict[str, Any]] = None,
        error_message: Optional[str] = None,
        duration_ms: Optional[int] = None,
        user_id: Optional[str] = None,
    ) -> None:
        entry = ApiLogEntry(
            log_type=log_type,
            source=self.source,
            status=status,
            event_type=event_type,
            user_id=user_id,
            request_data=request_data,
            response_data=response_data,
            error_message=error_message,
            duration_ms=duration_ms,
        )
        try:
            self.store.write_api_log(entry)
        except Exception as e:
            logger.error(f"Failed to write API log for {event_type or log_type.value}: {e}")

    def webhook(self, event_type: Optional[str], payload: Any, **kwargs: Any) -> None:
        """Record an inbound webhook."""
        status = LogStatus.ERROR if kwargs.get("error_message") else LogStatus.SUCCESS
        request_data = payload if isinstance(payload, dict) else {"payload": repr(payload)}
        self.record(
            LogType.WEBHOOK,
            status,
            event_type=event_type,
            request_data=request_data,
            **kwargs,
        )
