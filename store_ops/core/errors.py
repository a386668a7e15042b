"""Store-operations error taxonomy, surfaced as stable reason codes."""

from __future__ import annotations


class StoreOpsError(RuntimeError):
    reason = "internal_error"
    status_code = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"error": self.message, "reason": self.reason}


class ValidationError(StoreOpsError):
    """Rejected before any read; nothing is applied."""
    reason = "validation_error"
    status_code = 400


class NotFoundError(StoreOpsError):
    reason = "store_not_found"
    status_code = 404


class TransientReadError(StoreOpsError):
    reason = "transient_read_error"
    status_code = 503


class WriteError(StoreOpsError):
    reason = "write_error"
    status_code = 500
