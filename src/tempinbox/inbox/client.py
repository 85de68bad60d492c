"""Inbox backend client abstraction.

Provides protocols for the three backend collaborators and two
implementations:
- MemoryInboxClient: In-memory, no network calls (testing/simulator)
- MailTmClient: Real HTTP calls against a mail.tm-style API (production)

Clients return decoded JSON payloads and raise ApiError on failure.
Shape validation happens in the components that consume the payloads,
so a malformed response is reported rather than assumed iterable.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import string
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol, runtime_checkable

import httpx

from tempinbox import conventions

from .errors import ApiError

logger = logging.getLogger(__name__)


@runtime_checkable
class DomainApi(Protocol):
    """Protocol for listing email domains."""

    async def list_domains(self) -> Any:
        """Return domain objects with domain/isActive/isPrivate fields."""
        ...


@runtime_checkable
class InboxApi(Protocol):
    """Protocol for inbox (account) lifecycle calls."""

    async def create_inbox(self, domain: str | None = None) -> Any:
        """Create an inbox. Returns {id, address, expiresAt}."""
        ...

    async def delete_inbox(self, inbox_id: str) -> None:
        """Delete an inbox on the server."""
        ...

    async def get_inbox(self, inbox_id: str) -> Any:
        """Return server state for an inbox: {id, address, expiresAt, isExpired}."""
        ...


@runtime_checkable
class MessageApi(Protocol):
    """Protocol for message calls scoped to one inbox."""

    async def list_messages(self, inbox_id: str) -> Any:
        """Return the inbox's messages, newest first."""
        ...

    async def delete_message(self, inbox_id: str, message_id: str) -> None:
        """Delete one message."""
        ...


@runtime_checkable
class InboxBackend(DomainApi, InboxApi, MessageApi, Protocol):
    """All backend operations the inbox session consumes."""


class MemoryInboxClient:
    """In-memory backend for testing and simulation.

    Tracks all calls for test assertions. Failures, raw payload
    overrides and completion gates can be installed per method name.
    """

    def __init__(
        self,
        domains: list[dict[str, Any]] | None = None,
        lifetime_seconds: int | None = conventions.DEFAULT_SESSION_LIFETIME_SECONDS,
    ) -> None:
        if domains is None:
            domains = [{"domain": "example.test", "isActive": True, "isPrivate": False}]
        self.domains = domains
        self.lifetime_seconds = lifetime_seconds
        self.inboxes: dict[str, dict[str, Any]] = {}
        self.messages: dict[str, list[dict[str, Any]]] = {}
        self.calls: list[dict[str, Any]] = []
        # method name -> error raised on every call until cleared
        self.errors: dict[str, ApiError] = {}
        # method name -> raw payload returned instead of the real data
        self.overrides: dict[str, Any] = {}
        # method name -> event the call waits on before completing
        self.gates: dict[str, asyncio.Event] = {}
        self._counter = 0
        self._message_counter = 0

    # --- Test helpers ---

    def fail(self, method: str, status_code: int = 500, message: str = "") -> None:
        """Make every call to `method` raise ApiError."""
        self.errors[method] = ApiError(
            message or f"{method} failed", status_code=status_code
        )

    def recover(self, method: str | None = None) -> None:
        """Remove installed failures (all of them when method is None)."""
        if method is None:
            self.errors.clear()
        else:
            self.errors.pop(method, None)

    def hold(self, method: str) -> asyncio.Event:
        """Block calls to `method` until the returned event is set."""
        event = asyncio.Event()
        self.gates[method] = event
        return event

    def count(self, method: str) -> int:
        return sum(1 for c in self.calls if c["method"] == method)

    def inject_message(
        self,
        inbox_id: str,
        subject: str = "Hello",
        from_address: str = "sender@example.com",
        from_name: str = "",
        intro: str = "",
        created_at: str | None = None,
        seen: bool = False,
    ) -> dict[str, Any]:
        """Deliver a message to an inbox (newest first)."""
        self._message_counter += 1
        payload = {
            "id": f"msg-{self._message_counter:04d}",
            "from": {"address": from_address, "name": from_name},
            "subject": subject,
            "intro": intro,
            "createdAt": created_at or datetime.now(UTC).isoformat(),
            "seen": seen,
        }
        self.messages.setdefault(inbox_id, []).insert(0, payload)
        return payload

    def expire(self, inbox_id: str) -> None:
        """Mark an inbox as expired on the server side."""
        self.inboxes[inbox_id]["isExpired"] = True

    async def _enter(self, method: str, **kwargs: Any) -> None:
        self.calls.append({"method": method, **kwargs})
        gate = self.gates.get(method)
        if gate is not None:
            await gate.wait()
        error = self.errors.get(method)
        if error is not None:
            raise error

    # --- DomainApi ---

    async def list_domains(self) -> Any:
        await self._enter("list_domains")
        if "list_domains" in self.overrides:
            return self.overrides["list_domains"]
        return [dict(d) for d in self.domains]

    # --- InboxApi ---

    async def create_inbox(self, domain: str | None = None) -> Any:
        await self._enter("create_inbox", domain=domain)
        if "create_inbox" in self.overrides:
            return self.overrides["create_inbox"]
        if domain is None:
            eligible = [
                d["domain"]
                for d in self.domains
                if d.get("isActive") and not d.get("isPrivate")
            ]
            if not eligible:
                raise ApiError("No domain available", status_code=422)
            domain = eligible[0]

        self._counter += 1
        inbox_id = f"inbox-{self._counter:04d}"
        expires_at = None
        if self.lifetime_seconds is not None:
            expires_at = (
                datetime.now(UTC) + timedelta(seconds=self.lifetime_seconds)
            ).isoformat()
        inbox = {
            "id": inbox_id,
            "address": f"user{self._counter:04d}@{domain}",
            "expiresAt": expires_at,
            "isExpired": False,
        }
        self.inboxes[inbox_id] = inbox
        self.messages[inbox_id] = []
        return dict(inbox)

    async def delete_inbox(self, inbox_id: str) -> None:
        await self._enter("delete_inbox", inbox_id=inbox_id)
        if self.inboxes.pop(inbox_id, None) is None:
            raise ApiError(f"Unknown inbox: {inbox_id}", status_code=404)
        self.messages.pop(inbox_id, None)

    async def get_inbox(self, inbox_id: str) -> Any:
        await self._enter("get_inbox", inbox_id=inbox_id)
        if "get_inbox" in self.overrides:
            return self.overrides["get_inbox"]
        inbox = self.inboxes.get(inbox_id)
        if inbox is None:
            raise ApiError(f"Unknown inbox: {inbox_id}", status_code=404)
        return dict(inbox)

    # --- MessageApi ---

    async def list_messages(self, inbox_id: str) -> Any:
        await self._enter("list_messages", inbox_id=inbox_id)
        if "list_messages" in self.overrides:
            return self.overrides["list_messages"]
        if inbox_id not in self.messages:
            raise ApiError(f"Unknown inbox: {inbox_id}", status_code=404)
        return [dict(m) for m in self.messages[inbox_id]]

    async def delete_message(self, inbox_id: str, message_id: str) -> None:
        await self._enter("delete_message", inbox_id=inbox_id, message_id=message_id)
        items = self.messages.get(inbox_id, [])
        for i, m in enumerate(items):
            if m["id"] == message_id:
                del items[i]
                return
        raise ApiError(f"Unknown message: {message_id}", status_code=404)

    async def aclose(self) -> None:
        return None


def _random_local_part(length: int = 10) -> str:
    alphabet = string.ascii_lowercase + string.digits
    return "".join(secrets.choice(alphabet) for _ in range(length))


def _members(payload: Any) -> Any:
    """Unwrap a hydra collection; other shapes are returned untouched."""
    if isinstance(payload, dict) and "hydra:member" in payload:
        return payload["hydra:member"]
    return payload


class MailTmClient:
    """HTTP client for a mail.tm-style disposable inbox API.

    Each created inbox gets a random password and a bearer token; the
    token is kept in memory only and is required for every call scoped
    to that inbox.
    """

    def __init__(
        self,
        base_url: str = conventions.DEFAULT_API_BASE_URL,
        timeout: float = conventions.DEFAULT_REQUEST_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
        max_create_attempts: int = 5,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )
        self._tokens: dict[str, str] = {}
        self._max_create_attempts = max_create_attempts

    async def _request(
        self,
        method: str,
        path: str,
        token: str | None = None,
        **kwargs: Any,
    ) -> Any:
        headers: dict[str, str] = {}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            resp = await self._client.request(method, path, headers=headers, **kwargs)
        except httpx.TimeoutException as exc:
            raise ApiError(f"Timeout calling {method} {path}") from exc
        except httpx.HTTPError as exc:
            raise ApiError(
                f"HTTP error calling {method} {path}: {exc.__class__.__name__}"
            ) from exc

        if resp.status_code >= 400:
            logger.warning(
                "%s %s failed: %d - %s", method, path, resp.status_code, resp.text
            )
            raise ApiError(
                f"{method} {path} failed with {resp.status_code}",
                status_code=resp.status_code,
            )
        if resp.status_code == 204 or not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            raise ApiError(
                f"Invalid JSON from {method} {path}", status_code=resp.status_code
            ) from exc

    def _token_for(self, inbox_id: str) -> str:
        token = self._tokens.get(inbox_id)
        if not token:
            raise ApiError(f"No token for inbox {inbox_id}", status_code=401)
        return token

    # --- DomainApi ---

    async def list_domains(self) -> Any:
        return _members(await self._request("GET", "/domains"))

    # --- InboxApi ---

    async def _pick_domain(self) -> str:
        domains = await self.list_domains()
        if isinstance(domains, list):
            for d in domains:
                if isinstance(d, dict) and d.get("isActive") and not d.get("isPrivate"):
                    return str(d["domain"])
        raise ApiError("No active domain available", status_code=422)

    async def create_inbox(self, domain: str | None = None) -> Any:
        if domain is None:
            domain = await self._pick_domain()

        password = secrets.token_urlsafe(12)
        for attempt in range(1, self._max_create_attempts + 1):
            address = f"{_random_local_part()}@{domain}"
            try:
                data = await self._request(
                    "POST", "/accounts", json={"address": address, "password": password}
                )
            except ApiError as exc:
                # 422: address already taken, try another local part
                if exc.status_code == 422 and attempt < self._max_create_attempts:
                    logger.debug("Address %s taken (attempt %d)", address, attempt)
                    continue
                raise
            break

        if not isinstance(data, dict) or "id" not in data:
            raise ApiError("Unexpected account payload")

        token_data = await self._request(
            "POST", "/token", json={"address": data["address"], "password": password}
        )
        token = token_data.get("token") if isinstance(token_data, dict) else None
        if not token:
            raise ApiError("Token response did not include a token")
        self._tokens[str(data["id"])] = token

        logger.info("Created inbox %s", data["address"])
        return {
            "id": data["id"],
            "address": data["address"],
            "expiresAt": data.get("expiresAt"),
        }

    async def delete_inbox(self, inbox_id: str) -> None:
        token = self._token_for(inbox_id)
        await self._request("DELETE", f"/accounts/{inbox_id}", token=token)
        self._tokens.pop(inbox_id, None)

    async def get_inbox(self, inbox_id: str) -> Any:
        data = await self._request("GET", "/me", token=self._token_for(inbox_id))
        if not isinstance(data, dict):
            return data
        return {
            "id": data.get("id"),
            "address": data.get("address"),
            "expiresAt": data.get("expiresAt"),
            "isExpired": bool(data.get("isDeleted") or data.get("isDisabled")),
        }

    # --- MessageApi ---

    async def list_messages(self, inbox_id: str) -> Any:
        return _members(
            await self._request("GET", "/messages", token=self._token_for(inbox_id))
        )

    async def delete_message(self, inbox_id: str, message_id: str) -> None:
        await self._request(
            "DELETE", f"/messages/{message_id}", token=self._token_for(inbox_id)
        )

    async def aclose(self) -> None:
        await self._client.aclose()
