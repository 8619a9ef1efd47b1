"""Error taxonomy for the order fulfillment core.

Each error knows the HTTP status it maps to and the extra context that is
returned to the caller next to the message.
"""

from typing import Any, Dict, List, Optional


class ShopdeskError(Exception):
    """Base exception for all shopdesk errors."""

    status_code = 500

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.context = context
        super().__init__(message)

    def to_payload(self) -> Dict[str, Any]:
        payload = {"success": False, "error": self.message}
        payload.update({k: v for k, v in self.context.items() if v is not None})
        return payload


class ValidationError(ShopdeskError):
    """Missing or malformed input; always correctable by the caller."""

    status_code = 400

    def __init__(self, message: str, missing_fields: Optional[List[str]] = None, **context: Any):
        super().__init__(message, missingFields=missing_fields, **context)


class NotFoundError(ShopdeskError):
    status_code = 404


class StockError(ShopdeskError):
    """Raised when a line asks for more units than the product holds."""

    status_code = 400

    def __init__(self, product_id: int, title: str, requested: int, available: int):
        self.product_id = product_id
        self.title = title
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for {title}",
            product=product_id,
            requested=requested,
            available=available,
        )


class ConflictError(ShopdeskError):
    """Duplicate SKU."""

    status_code = 400


class AuthenticationError(ShopdeskError):
    """Courier token could not be issued."""

    status_code = 502

    def __init__(self, message: str, upstream_status: Optional[int] = None, upstream_body: Optional[str] = None):
        self.upstream_status = upstream_status
        self.upstream_body = upstream_body
        super().__init__(message, upstreamStatus=upstream_status, upstreamBody=upstream_body)


class UpstreamError(ShopdeskError):
    """Courier API answered with a non-2xx status."""

    status_code = 502

    def __init__(self, message: str, upstream_status: Optional[int] = None, upstream_body: Optional[str] = None):
        self.upstream_status = upstream_status
        self.upstream_body = upstream_body
        super().__init__(message, upstreamStatus=upstream_status, upstreamBody=upstream_body)


class InternalError(ShopdeskError):
    status_code = 500
