"""Inbox session controller.

Owns the single account slot and drives the session state machine:

    Unauthenticated -> Provisioning -> Active -> Expired
          ^                 |            |          |
          +-----------------+------------+----------+
             (create failed / inbox deleted / torn down)

Every transition is a guarded method; repeated calls while a guard
holds are no-ops. The controller wires the domain catalog, the expiry
timer, the message store and the message poller to the account slot:
once the slot is cleared, results of calls made for the old account
are discarded.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import UTC, datetime, timedelta
from typing import Any

from tempinbox import conventions
from tempinbox.schema import TempInboxConfig

from .catalog import DomainCatalog
from .client import InboxBackend
from .clipboard import copy_text
from .errors import (
    ApiError,
    InboxCreateError,
    InboxDeleteError,
    InboxError,
    MalformedPayloadError,
)
from .formatter import severity_tier
from .messages import MessageStore
from .models import Account, InboxSnapshot, SessionStatus, parse_timestamp
from .notifications import LoggingNotifier, Notifier
from .poller import MessagePoller
from .timer import ExpiryTimer

logger = logging.getLogger(__name__)

# Statuses a backend uses to say the inbox no longer exists for us.
_SESSION_GONE_STATUSES = (401, 404)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class InboxSessionController:
    """Lifecycle of one disposable inbox at a time."""

    def __init__(
        self,
        client: InboxBackend,
        config: TempInboxConfig | None = None,
        *,
        notifier: Notifier | None = None,
        clipboard: Callable[[str], bool] | None = None,
        on_message_select: Callable[[str], Any] | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._client = client
        self._config = config or TempInboxConfig()
        self._notifier = notifier or LoggingNotifier()
        self._clipboard = clipboard or copy_text
        self._on_message_select = on_message_select
        self._clock = clock

        self.catalog = DomainCatalog(client)
        self.messages = MessageStore(client)
        self.timer = ExpiryTimer(
            self._on_timer_expired,
            total_duration_seconds=self._config.session_lifetime_seconds,
            tick_interval=self._config.tick_interval_seconds,
            clock=clock,
        )
        self._poller = MessagePoller(
            self.refetch_messages, self._config.poll_interval_seconds
        )

        self._account: Account | None = None
        self._creating = False
        self._deleting = False
        self._server_expired = False
        self._closed = False
        # Bumped whenever the account slot is cleared.
        self._epoch = 0
        # Catalog generation whose auto-provisioning attempt failed.
        self._blocked_generation: int | None = None
        self._last_error: InboxError | None = None

    # --- State ---

    @property
    def account(self) -> Account | None:
        return self._account

    @property
    def is_authenticated(self) -> bool:
        return self._account is not None

    @property
    def is_creating(self) -> bool:
        return self._creating

    @property
    def is_deleting(self) -> bool:
        return self._deleting

    @property
    def is_expired(self) -> bool:
        return self._account is not None and (
            self._server_expired or self.timer.has_expired_locally
        )

    @property
    def is_polling(self) -> bool:
        return self._poller.is_running

    @property
    def status(self) -> SessionStatus:
        if self._creating:
            return SessionStatus.PROVISIONING
        if self._account is None:
            return SessionStatus.UNAUTHENTICATED
        if self.is_expired:
            return SessionStatus.EXPIRED
        return SessionStatus.ACTIVE

    @property
    def last_error(self) -> InboxError | None:
        return self._last_error

    @property
    def notifier(self) -> Notifier:
        return self._notifier

    # --- Startup / domain catalog ---

    async def start(self) -> None:
        """Load the domain catalog and provision an inbox if possible."""
        await self.reload_domains()

    async def reload_domains(self) -> bool:
        """(Re)load domains; a ready catalog may trigger auto-provisioning."""
        if not await self.catalog.load():
            return False
        await self.maybe_auto_provision()
        return True

    def should_auto_provision(self) -> bool:
        """Guard for the automatic Unauthenticated -> Provisioning transition."""
        return (
            self._config.auto_create
            and not self._closed
            and self._account is None
            and not self._creating
            and not self._deleting
            and self.catalog.is_ready
            and self.catalog.eligible_count > 0
            and self.catalog.generation != self._blocked_generation
        )

    async def maybe_auto_provision(self) -> bool:
        """Create an inbox if the guard holds. Returns True if one was created."""
        if not self.should_auto_provision():
            if self.catalog.is_ready and not self.catalog.eligible_count:
                logger.debug("Not provisioning: no eligible domains")
            return False
        logger.info("Auto-creating inbox")
        return await self.create_inbox() is not None

    def _choose_domain(self) -> str | None:
        eligible = [d.name for d in self.catalog.eligible()]
        preferred = self._config.preferred_domain
        if preferred and preferred in eligible:
            return preferred
        return eligible[0] if eligible else None

    # --- Inbox lifecycle ---

    async def create_inbox(self, domain: str | None = None) -> Account | None:
        """Provision a new inbox.

        Returns the existing account when already authenticated and None
        while another creation or a deletion is in flight, or when creation
        fails.
        """
        if self._closed:
            return None
        if self._creating:
            logger.debug("Inbox creation already in flight")
            return None
        if self._deleting:
            logger.debug("Not creating: inbox deletion in flight")
            return None
        if self._account is not None:
            return self._account

        if domain is None:
            domain = self._choose_domain()
        epoch = self._epoch
        self._creating = True
        error: InboxError | None = None
        try:
            payload = await self._client.create_inbox(domain)
            account = Account.from_payload(payload)
        except ApiError as exc:
            error = InboxCreateError.from_api(exc, "Failed to create inbox")
        except MalformedPayloadError as exc:
            error = InboxCreateError(f"Failed to create inbox: {exc}")
        finally:
            self._creating = False

        if error is not None:
            # No retry until the catalog reports a new ready state.
            self._blocked_generation = self.catalog.generation
            self._record(error)
            return None
        if self._closed or epoch != self._epoch:
            logger.info("Discarding inbox %s created after teardown", account.address)
            return None

        if account.expires_at is None and self._config.enforce_local_ttl:
            account.expires_at = self._clock() + timedelta(
                seconds=self._config.session_lifetime_seconds
            )

        self._account = account
        self._server_expired = False
        self._last_error = None
        self.messages.bind(account.id)
        self._arm_timer()
        logger.info(
            "Inbox %s active (expires %s)",
            account.address,
            account.expires_at,
            extra={"inbox_id": account.id},
        )
        return account

    async def delete_inbox(self) -> bool:
        """Delete the inbox on the server and clear the local session.

        The local session is cleared even when the backend call fails.
        A no-op (False) when there is no account or a deletion is
        already in flight. Returns True when the backend acknowledged.
        """
        account = self._account
        if account is None or self._deleting:
            return False

        self._deleting = True
        self.timer.disarm()
        self._poller.stop()
        acknowledged = True
        try:
            await self._client.delete_inbox(account.id)
        except ApiError as exc:
            acknowledged = False
            self._record(InboxDeleteError.from_api(exc, "Failed to delete inbox"))
        finally:
            self._teardown()
            self._deleting = False

        logger.info(
            "Inbox %s deleted%s",
            account.address,
            "" if acknowledged else " locally (server did not confirm)",
        )
        await self.maybe_auto_provision()
        return acknowledged

    def _teardown(self) -> None:
        self._epoch += 1
        self._account = None
        self._server_expired = False
        self.messages.unbind()
        self.timer.reset()
        self._poller.stop()

    async def _on_timer_expired(self) -> None:
        """Expiry latch callback: runs once per session."""
        if self._account is None:
            return
        logger.info(
            "Inbox %s expired locally",
            self._account.address,
            extra={"inbox_id": self._account.id},
        )
        self._notifier.notify("error", conventions.EXPIRED_NOTICE)
        await self.delete_inbox()

    # --- Server reconciliation ---

    def _arm_timer(self) -> None:
        account = self._account
        if account is None:
            return
        self.timer.arm(account.expires_at, active=not self._server_expired)
        # Polling follows the Active state in both directions.
        if self.status == SessionStatus.ACTIVE:
            self._poller.start()
        else:
            self._poller.stop()

    def reconcile(
        self,
        *,
        is_expired: bool | None = None,
        expires_at: datetime | None = None,
    ) -> None:
        """Apply server-reported expiry state to the current session."""
        account = self._account
        if account is None or self._deleting:
            return

        if expires_at is not None and expires_at != account.expires_at:
            logger.info("Server moved expiry of %s to %s", account.address, expires_at)
            account.expires_at = expires_at
            if not self._server_expired:
                self._arm_timer()

        if is_expired and not self._server_expired:
            logger.info(
                "Server reports inbox %s expired",
                account.address,
                extra={"inbox_id": account.id},
            )
            self._server_expired = True
            self.timer.disarm()
            self._poller.stop()

    async def refresh_account(self) -> bool:
        """Fetch server state for the current inbox and reconcile."""
        account = self._account
        if account is None:
            return False

        epoch = self._epoch
        try:
            payload = await self._client.get_inbox(account.id)
        except ApiError as exc:
            if epoch != self._epoch:
                return False
            if exc.status_code in _SESSION_GONE_STATUSES:
                self.reconcile(is_expired=True)
                return True
            logger.warning("Failed to refresh inbox %s: %s", account.address, exc)
            return False

        if epoch != self._epoch:
            return False
        if not isinstance(payload, dict):
            logger.warning(
                "Inbox state for %s is not an object: %s",
                account.address,
                type(payload).__name__,
            )
            return False

        self.reconcile(
            is_expired=bool(payload.get("isExpired")),
            expires_at=parse_timestamp(payload.get("expiresAt")),
        )
        return True

    # --- Messages ---

    async def refetch_messages(self) -> bool:
        """Refresh the message list for the current inbox."""
        epoch = self._epoch
        applied = await self.messages.fetch()
        error = self.messages.error
        if (
            not applied
            and error is not None
            and error.status_code in _SESSION_GONE_STATUSES
            and epoch == self._epoch
        ):
            self.reconcile(is_expired=True)
        return applied

    async def delete_message(self, message_id: str) -> bool:
        ok = await self.messages.delete_message(message_id)
        if not ok and self.messages.delete_error is not None:
            self._notifier.notify("error", self.messages.delete_error.message)
        return ok

    def select_message(self, message_id: str) -> bool:
        """Hand a message id to the caller-owned selection callback."""
        if self._on_message_select is None:
            return False
        self._on_message_select(message_id)
        return True

    # --- Misc ---

    def copy_to_clipboard(self, text: str) -> bool:
        """Copy text to the clipboard. Failure is reported, never raised."""
        try:
            ok = bool(self._clipboard(text))
        except Exception:
            logger.warning("Clipboard write failed", exc_info=True)
            ok = False
        if ok:
            self._notifier.notify("success", conventions.COPY_SUCCESS_NOTICE)
        else:
            self._notifier.notify("error", conventions.COPY_FAILURE_NOTICE)
        return ok

    def _record(self, error: InboxError) -> None:
        logger.warning("%s", error)
        self._last_error = error
        self._notifier.notify("error", error.message)

    def snapshot(self) -> InboxSnapshot:
        """Read-only state for the presentation layer."""
        status = self.status
        countdown = self.timer.state
        tier = None
        if status == SessionStatus.ACTIVE and countdown.remaining_seconds > 0:
            tier = severity_tier(countdown.remaining_seconds)
        catalog_error = self.catalog.error
        messages_error = self.messages.last_error()
        return InboxSnapshot(
            status=status,
            catalog_status=self.catalog.status,
            catalog_error=catalog_error.message if catalog_error else None,
            eligible_domain_count=self.catalog.eligible_count,
            account=replace(self._account) if self._account else None,
            is_creating=self._creating,
            is_deleting=self._deleting,
            is_expired=self.is_expired,
            countdown=countdown,
            progress_percent=self.timer.progress_percent,
            tier=tier,
            message_view=self.messages.view,
            messages=self.messages.items,
            messages_error=messages_error.message if messages_error else None,
            last_error=self._last_error.message if self._last_error else None,
        )

    async def close(self) -> None:
        """Stop the timer and poller. The remote inbox is left alone."""
        self._closed = True
        self._epoch += 1
        self.timer.reset()
        self._poller.stop()
