from __future__ import annotations


class GatorError(Exception):
    """Base class for every error raised by gator."""


class InvalidDurationError(GatorError, ValueError):
    """Raised when an aggregation interval is not ``<integer><ms|s|m|h>``."""


class NetworkError(GatorError):
    """Raised when a feed cannot be fetched (DNS, connection, timeout, HTTP status, decoding)."""


class MalformedFeedError(GatorError):
    """Raised when fetched text is not an RSS document with a channel."""


class StoreError(GatorError):
    """Raised when the database fails. Never isolated per feed."""


class AlreadyExistsError(StoreError):
    """Raised when a unique constraint other than the post URL is violated."""


class AuthError(GatorError):
    """Raised when an operation needs a current user and there is none."""
