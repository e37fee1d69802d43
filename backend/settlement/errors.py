# Overview: Error taxonomy shared by the settlement services and API routes.

from __future__ import annotations


class SettlementError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {"error": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class NotFoundError(SettlementError):
    """Sale, slip, credit, return or customer does not exist. Never retried."""

    status_code = 404


class ValidationError(SettlementError):
    """
    Policy or input violations.

    Always carries the complete list of problems so callers can react per
    failure reason; nothing is ever partially applied.
    """

    status_code = 400

    def __init__(self, errors: list[str] | str, details: dict | None = None):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__("; ".join(self.errors), details)

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["errors"] = self.errors
        return payload


class TransactionError(SettlementError):
    """
    The unit of work could not commit (contention, timeout, constraint).

    Nothing was written. Safe to retry only with an idempotency key.
    """

    status_code = 503


class ConfigurationError(SettlementError):
    """Missing sale customer for store credit, or malformed policy data."""

    status_code = 422


class ReturnsDisabledError(SettlementError):
    """Returns are switched off for this deployment."""

    status_code = 403
