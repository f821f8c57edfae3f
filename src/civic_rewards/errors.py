"""Domain error taxonomy.

Every error carries an HTTP status and a stable ``code`` so the global error
handler can render it without knowing the concrete class.
"""

from __future__ import annotations

from typing import Any


class RewardsError(Exception):
    """Base class for errors raised by the rewards engine."""

    status_code = 400
    code = "rewards_error"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class NotFoundError(RewardsError):
    status_code = 404
    code = "not_found"


class ConflictError(RewardsError):
    status_code = 409
    code = "conflict"


class AlreadyCheckedInError(ConflictError):
    code = "already_checked_in"


class ForbiddenError(RewardsError):
    status_code = 403
    code = "forbidden"


class OutOfRangeError(RewardsError):
    status_code = 422
    code = "out_of_range"


class TooFarError(OutOfRangeError):
    code = "too_far"


class AtCapacityError(OutOfRangeError):
    status_code = 409
    code = "at_capacity"


class InvalidInputError(RewardsError):
    status_code = 422
    code = "invalid_input"


class InvalidCodeError(InvalidInputError):
    code = "invalid_code"


class StorageUnavailableError(RewardsError):
    """Transient storage failure; the caller may retry."""

    status_code = 503
    code = "storage_unavailable"


class CatalogError(ValueError):
    """Raised when an achievement catalog fails validation at load time."""
