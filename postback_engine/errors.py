"""
Error taxonomy for postback processing.

Each error carries the HTTP status and the message returned to the caller.
"""


class PostbackError(Exception):
    """Base class for every outcome that stops a postback."""

    status_code = 500
    error = "internal processing error"
    log_status = "ERROR_INTERNAL"

    def to_dict(self) -> dict:
        return {"error": self.error}


class ValidationError(PostbackError, ValueError):
    """A required field is missing or malformed."""

    status_code = 400
    log_status = "ERROR_VALIDATION"

    def __init__(self, message: str):
        super().__init__(message)
        self.error = message

    def to_dict(self) -> dict:
        return {"error": self.error, "status": "validation_failed"}


class NotFoundError(PostbackError):
    status_code = 404

    def __init__(self, key: str):
        super().__init__(f"{self.error}: {key}")
        self.key = key


class HouseNotFoundError(NotFoundError):
    error = "house not found"
    log_status = "ERROR_HOUSE_NOT_FOUND"


class AffiliateNotFoundError(NotFoundError):
    error = "affiliate not found"
    log_status = "ERROR_AFFILIATE_NOT_FOUND"


class StorageError(PostbackError):
    """Lookup or persistence backend unavailable or timed out."""

    status_code = 503
    error = "storage unavailable"
    log_status = "ERROR_STORAGE"


class InternalError(PostbackError):
    """Unexpected fault while processing."""
