"""
Table Tracking Error Taxonomy

Every error the tracking services raise on purpose derives from
TrackingError. The API layer turns them into the standard
``{"success": false, "message": ..., "error": ...}`` payload using the
status code carried by the exception.
"""

from typing import Optional


class TrackingError(Exception):
    """Base class for expected, client-facing failures."""

    code = "TRACKING_ERROR"
    status_code = 400
    default_message = "Request could not be processed"

    def __init__(
        self,
        message: Optional[str] = None,
        errors: Optional[dict[str, list[str]]] = None,
    ):
        self.message = message or self.default_message
        self.errors = errors
        super().__init__(self.message)

    def to_payload(self) -> dict:
        payload = {
            "success": False,
            "message": self.message,
            "error": self.code,
        }
        if self.errors:
            payload["errors"] = self.errors
        return payload


class ValidationError(TrackingError):
    """Malformed input."""
    code = "VALIDATION_FAILED"
    status_code = 422
    default_message = "Validation failed"


class InvalidTableError(ValidationError):
    """Table number is not numeric, P+digits or B+digits."""
    code = "INVALID_TABLE"
    default_message = "Invalid table number. Please check the number displayed at your table."


class ConflictError(TrackingError):
    """An order with this order number already exists."""
    code = "DUPLICATE_ORDER_NUMBER"
    status_code = 422
    default_message = "Order number already exists. Please enter a unique order number."


class RateLimitError(ConflictError):
    """Same table/order pair submitted again inside the throttle window."""
    code = "DUPLICATE_SUBMISSION"
    status_code = 429
    default_message = (
        "This table and order combination was just submitted. "
        "Please wait 30 seconds before submitting again."
    )


class NotFoundError(TrackingError):
    """No order or mapping matches the supplied keys."""
    code = "NOT_FOUND"
    status_code = 404
    default_message = "Order not found for the specified criteria"


class MappingNotFoundError(NotFoundError):
    """The order exists but has no table mapping."""
    code = "MAPPING_NOT_FOUND"
    default_message = "Table mapping not found for this order"


class NotificationDispatchError(TrackingError):
    """Notification records could not be stored. Never reaches a client."""
    code = "NOTIFICATION_DISPATCH_FAILED"
    status_code = 500
    default_message = "Failed to dispatch notifications"
