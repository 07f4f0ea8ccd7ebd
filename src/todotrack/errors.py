"""Exception types shared by the tracker, the Graph client and the CLI.

The CLI is the reporting boundary: it catches these, prints a message naming
the operation and keeps the loop running.
"""
from __future__ import annotations
import asyncio
from typing import Optional


class TrackerError(Exception):
    """Base class for errors raised by tracker operations."""


class InvalidState(TrackerError):
    """Operation is not legal for the current tracker or log state."""


class IndexOutOfRange(TrackerError):
    def __init__(self, index: int, size: int):
        self.index = index
        self.size = size
        if size:
            msg = f'No task #{index}; choose 0..{size - 1}.'
        else:
            msg = f'No task #{index}; the task index is empty (run "pull").'
        super().__init__(msg)


class SourceUnavailable(TrackerError):
    """The task store could not be reached or refused the request."""

    def __init__(self, operation: str, cause: BaseException):
        self.operation = operation
        self.cause = cause
        super().__init__(f'{operation}: {describe(cause)}')


class GraphError(Exception):
    """A Graph request failed (transport error or non-2xx response)."""

    def __init__(self, message: str, status: Optional[int] = None, code: Optional[str] = None):
        self.status = status
        self.code = code
        prefix = f'HTTP {status} ' if status is not None else ''
        suffix = f' ({code})' if code else ''
        super().__init__(f'{prefix}{message}{suffix}')


class AuthError(Exception):
    """Device-code sign-in or silent token refresh failed."""


class ConfigError(Exception):
    pass


# what a store or token call may raise besides its own error types
TRANSPORT_ERRORS = (asyncio.TimeoutError, OSError)
SOURCE_ERRORS = (GraphError, AuthError) + TRANSPORT_ERRORS


def describe(exc: BaseException) -> str:
    # timeouts carry no message
    return str(exc) or type(exc).__name__
