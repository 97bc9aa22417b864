from __future__ import annotations


class LabellyError(Exception):
    """Base class for errors raised out of :func:`labelly_agent.diagnose`."""

    def __init__(self, reason: str, message: str | None = None):
        super().__init__(message or reason)
        self.reason = reason


class InvalidUrlError(LabellyError, ValueError):
    """Input URL was malformed or uses a disallowed scheme, port or userinfo."""


class SsrfBlockedError(LabellyError):
    """Target host is private, loopback, link-local or could not be resolved."""
