# Overview: Fire-and-forget notification collaborator for settlement events.

from __future__ import annotations

import logging
from typing import Protocol

from flask import current_app, has_app_context

from .unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)

EVENT_RETURN_PROCESSED = "return.processed"
EVENT_SLIP_REDEEMED = "exchange_slip.redeemed"
EVENT_SLIP_CANCELLED = "exchange_slip.cancelled"
EVENT_CREDIT_USED = "credit.used"


class Notifier(Protocol):
    def notify(self, event: str, payload: dict) -> None:
        ...


class LoggingNotifier:
    """Default notifier: email/SMS delivery lives outside this service."""

    def notify(self, event: str, payload: dict) -> None:
        logger.info("notification %s %s", event, payload)


_fallback = LoggingNotifier()


def get_notifier() -> Notifier:
    if has_app_context():
        return current_app.extensions.get("notifier", _fallback)
    return _fallback


def dispatch(event: str, payload: dict) -> None:
    """Send one event; failures are logged and never reach the caller."""
    try:
        get_notifier().notify(event, payload)
    except Exception:
        logger.warning("Notification %s failed", event, exc_info=True)


def notify_after_commit(uow: UnitOfWork, event: str, payload: dict) -> None:
    uow.add_after_commit(lambda: dispatch(event, payload))
