"""Membership platform webhooks and the API audit log."""

from .audit import ApiLogRecorder
from .receiver import WebhookReceiver

__all__ = ["ApiLogRecorder", "WebhookReceiver"]
