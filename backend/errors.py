"""
CCC Studio Errors

Exception hierarchy shared by the aggregator, storage and chat client.
Route handlers map these onto HTTP status codes.
"""


class CCCError(Exception):
    """Base class for all application errors."""


class ValidationError(CCCError):
    """Bad or missing input. Maps to 400."""


class NotFoundError(CCCError):
    """Requested record or price does not exist. Maps to 404."""


class UpstreamError(CCCError):
    """Network failure, non-2xx status or unparseable body from an upstream API."""
