"""Data models for the inbox session.

Backend payloads use the camelCase keys of the mail.tm-style API
(isActive, expiresAt, createdAt, ...). The from_payload constructors
are the only place those keys are read.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from .errors import MalformedPayloadError


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 string (or datetime) into an aware UTC datetime.

    Returns None for missing or unparseable values.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def _require_mapping(payload: Any, what: str) -> dict[str, Any]:
    if not isinstance(payload, dict):
        raise MalformedPayloadError(
            f"{what} is not an object: {type(payload).__name__}",
            payload_type=type(payload).__name__,
        )
    return payload


class SessionStatus(StrEnum):
    """Derived lifecycle state of the inbox session."""

    UNAUTHENTICATED = "unauthenticated"
    PROVISIONING = "provisioning"
    ACTIVE = "active"
    EXPIRED = "expired"


class CatalogStatus(StrEnum):
    IDLE = "idle"
    LOADING = "loading"
    ERROR = "error"
    READY = "ready"


class MessageView(StrEnum):
    """Render state of the message list, in priority order."""

    LOADING = "loading"
    ERROR = "error"
    MALFORMED = "malformed"
    EMPTY = "empty"
    POPULATED = "populated"


class Tier(StrEnum):
    """Countdown severity tier (display only)."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class Domain:
    """A backend email domain."""

    name: str
    is_active: bool = True
    is_private: bool = False

    @property
    def is_eligible(self) -> bool:
        """Usable for inbox creation: active and not private."""
        return self.is_active and not self.is_private

    @classmethod
    def from_payload(cls, payload: Any) -> Domain:
        data = _require_mapping(payload, "Domain")
        name = data.get("domain") or data.get("name")
        if not name:
            raise MalformedPayloadError("Domain has no name", payload_type="dict")
        return cls(
            name=str(name),
            is_active=bool(data.get("isActive", False)),
            is_private=bool(data.get("isPrivate", False)),
        )


@dataclass
class Account:
    """The inbox session's account: one disposable address."""

    id: str
    address: str
    expires_at: datetime | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> Account:
        data = _require_mapping(payload, "Account")
        if not data.get("id") or not data.get("address"):
            raise MalformedPayloadError(
                "Account is missing id or address", payload_type="dict"
            )
        return cls(
            id=str(data["id"]),
            address=str(data["address"]),
            expires_at=parse_timestamp(data.get("expiresAt")),
        )


@dataclass(frozen=True)
class MessageAddress:
    """A sender address with optional display name."""

    address: str
    name: str = ""

    def __str__(self) -> str:
        if self.name:
            return f"{self.name} <{self.address}>"
        return self.address


@dataclass
class Message:
    """A message summary as listed by the backend."""

    id: str
    from_addr: MessageAddress
    subject: str = ""
    intro: str = ""
    created_at: datetime | None = None
    seen: bool = False

    @classmethod
    def from_payload(cls, payload: Any) -> Message:
        data = _require_mapping(payload, "Message")
        sender = data.get("from")
        if isinstance(sender, dict):
            from_addr = MessageAddress(
                address=str(sender.get("address") or ""),
                name=str(sender.get("name") or ""),
            )
        else:
            from_addr = MessageAddress(address="")
        return cls(
            id=str(data.get("id", "")),
            from_addr=from_addr,
            subject=str(data.get("subject") or ""),
            intro=str(data.get("intro") or ""),
            created_at=parse_timestamp(data.get("createdAt")),
            seen=bool(data.get("seen", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "from": {"address": self.from_addr.address, "name": self.from_addr.name},
            "subject": self.subject,
            "intro": self.intro,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "seen": self.seen,
        }


@dataclass
class CountdownState:
    """Local countdown for the current session. Never persisted."""

    remaining_seconds: int = 0
    has_expired_locally: bool = False


@dataclass(frozen=True)
class Notification:
    """A user-visible notice (toast stand-in)."""

    level: str  # success | error | info
    message: str
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass
class InboxSnapshot:
    """Read-only view of the whole inbox state for the presentation layer."""

    status: SessionStatus
    catalog_status: CatalogStatus
    catalog_error: str | None
    eligible_domain_count: int
    account: Account | None
    is_creating: bool
    is_deleting: bool
    is_expired: bool
    countdown: CountdownState
    progress_percent: float
    tier: Tier | None
    message_view: MessageView
    messages: list[Message]
    messages_error: str | None
    last_error: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.account is not None

    @property
    def no_domains_available(self) -> bool:
        return (
            self.catalog_status == CatalogStatus.READY
            and self.eligible_domain_count == 0
        )

    def to_dict(self) -> dict[str, Any]:
        account = None
        if self.account is not None:
            expires = self.account.expires_at
            account = {
                "id": self.account.id,
                "address": self.account.address,
                "expires_at": expires.isoformat() if expires else None,
            }
        return {
            "status": self.status.value,
            "is_authenticated": self.is_authenticated,
            "catalog": {
                "status": self.catalog_status.value,
                "error": self.catalog_error,
                "eligible_domains": self.eligible_domain_count,
                "no_domains_available": self.no_domains_available,
            },
            "account": account,
            "is_creating": self.is_creating,
            "is_deleting": self.is_deleting,
            "is_expired": self.is_expired,
            "countdown": {
                "remaining_seconds": self.countdown.remaining_seconds,
                "has_expired_locally": self.countdown.has_expired_locally,
                "progress_percent": self.progress_percent,
                "tier": self.tier.value if self.tier else None,
            },
            "messages": {
                "view": self.message_view.value,
                "error": self.messages_error,
                "items": [m.to_dict() for m in self.messages],
            },
            "last_error": self.last_error,
        }
