"""Error taxonomy for the inbox session.

Backend clients raise ApiError. Each component catches it at its own
boundary and records one of the InboxError subclasses in its state, so
nothing reaches the presentation layer as an unhandled exception.
"""

from __future__ import annotations


class ApiError(Exception):
    """A backend call failed.

    status_code is the HTTP status, or 0 for transport failures
    (timeouts, refused connections).
    """

    def __init__(self, message: str, status_code: int = 0) -> None:
        super().__init__(message)
        self.status_code = status_code


class InboxError(Exception):
    """Base class for recorded inbox failures."""

    def __init__(self, message: str, status_code: int = 0) -> None:
        super().__init__(message)
        self.status_code = status_code

    @property
    def message(self) -> str:
        return str(self)

    @classmethod
    def from_api(cls, exc: ApiError, prefix: str) -> InboxError:
        return cls(f"{prefix}: {exc}", status_code=exc.status_code)


class DomainFetchError(InboxError):
    pass


class InboxCreateError(InboxError):
    pass


class InboxDeleteError(InboxError):
    pass


class MessageFetchError(InboxError):
    pass


class MessageDeleteError(InboxError):
    pass


class MalformedPayloadError(InboxError):
    """A response did not have the expected collection shape."""

    def __init__(self, message: str, payload_type: str = "") -> None:
        super().__init__(message)
        self.payload_type = payload_type
