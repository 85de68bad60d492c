"""Disposable inbox session - wiring and HTTP routes.

Architecture:
    DomainCatalog -> InboxSessionController (auto-create decision)
        -> ExpiryTimer (countdown from the account's expiry)
        -> MessageStore + MessagePoller (messages for the account)
        -> snapshot() -> HTTP routes / CLI

Routes (mounted under /api/inbox by the server):
- GET    /status             Snapshot of session, countdown and messages
- POST   /create             Create an inbox now
- POST   /delete             Delete the current inbox
- POST   /domains/reload     Retry loading the domain catalog
- POST   /refresh-account    Reconcile with server-reported expiry
- POST   /messages/refresh   Refetch messages
- DELETE /messages/{id}      Delete one message
"""

from __future__ import annotations

import logging
import threading
from typing import Any

from fastapi import APIRouter, HTTPException

from tempinbox.config import load_config
from tempinbox.schema import TempInboxConfig

from .client import MailTmClient, MemoryInboxClient
from .formatter import countdown_badge, header_title, message_list_title
from .notifications import MemoryNotifier
from .session import InboxSessionController

logger = logging.getLogger(__name__)

router = APIRouter()

# --- Global inbox state (initialized on startup) ---

_state: dict[str, Any] = {}
_state_lock = threading.Lock()


def _get_state() -> dict[str, Any]:
    """Get the initialized inbox state."""
    with _state_lock:
        if not _state:
            raise RuntimeError("Inbox not initialized. Call on_startup() first.")
        return _state


def _controller() -> InboxSessionController:
    try:
        return _get_state()["controller"]
    except RuntimeError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc


def initialize(
    config: TempInboxConfig | None = None,
    client: Any | None = None,
    notifier: MemoryNotifier | None = None,
) -> dict[str, Any]:
    """Initialize the inbox components.

    Separated from on_startup() so tests can inject a client.
    """
    if config is None:
        config = load_config()

    if client is None:
        if config.simulator_mode:
            logger.info("Inbox starting in simulator mode")
            client = MemoryInboxClient(lifetime_seconds=config.session_lifetime_seconds)
        else:
            client = MailTmClient(
                base_url=config.api_base_url,
                timeout=config.request_timeout_seconds,
            )

    if notifier is None:
        notifier = MemoryNotifier()

    controller = InboxSessionController(client, config, notifier=notifier)
    state = {
        "config": config,
        "client": client,
        "notifier": notifier,
        "controller": controller,
    }
    with _state_lock:
        _state.clear()
        _state.update(state)
    return state


async def on_startup() -> None:
    """Initialize (if needed) and start the inbox session."""
    with _state_lock:
        initialized = bool(_state)
    if not initialized:
        initialize()
    controller: InboxSessionController = _get_state()["controller"]
    await controller.start()
    logger.info("Inbox started (status: %s)", controller.status)


async def on_shutdown() -> None:
    """Stop timers and close the backend client."""
    with _state_lock:
        controller = _state.get("controller")
        client = _state.get("client")

    if controller is not None:
        await controller.close()
    if client is not None and hasattr(client, "aclose"):
        try:
            await client.aclose()
        except (RuntimeError, OSError):
            logger.exception("Error closing inbox client")

    with _state_lock:
        _state.clear()
    logger.info("Inbox shut down")


# --- Routes ---


@router.get("/status")
async def inbox_status() -> dict[str, Any]:
    """Snapshot of the inbox session."""
    controller = _controller()
    snapshot = controller.snapshot()
    data = snapshot.to_dict()
    data["title"] = header_title(snapshot)
    data["badge"] = countdown_badge(snapshot)
    data["messages"]["title"] = message_list_title(snapshot.messages)

    notifier = _get_state()["notifier"]
    data["notifications"] = [
        {"level": n.level, "message": n.message, "created_at": n.created_at.isoformat()}
        for n in notifier.items
    ]
    return data


@router.post("/create")
async def create_inbox() -> dict[str, Any]:
    controller = _controller()
    account = await controller.create_inbox()
    if account is None:
        if controller.is_deleting:
            return {"status": "deleting", "error": None}
        error = controller.last_error
        return {
            "status": "error" if error else controller.status.value,
            "error": error.message if error else None,
        }
    return {"status": "ok", "id": account.id, "address": account.address}


@router.post("/delete")
async def delete_inbox() -> dict[str, Any]:
    controller = _controller()
    if controller.account is None:
        return {"status": "no_inbox"}
    acknowledged = await controller.delete_inbox()
    return {"status": "deleted", "acknowledged": acknowledged}


@router.post("/domains/reload")
async def reload_domains() -> dict[str, Any]:
    controller = _controller()
    ok = await controller.reload_domains()
    error = controller.catalog.error
    return {
        "status": controller.catalog.status.value,
        "ok": ok,
        "eligible_domains": controller.catalog.eligible_count,
        "error": error.message if error else None,
    }


@router.post("/refresh-account")
async def refresh_account() -> dict[str, Any]:
    controller = _controller()
    ok = await controller.refresh_account()
    return {"ok": ok, "status": controller.status.value}


@router.post("/messages/refresh")
async def refresh_messages() -> dict[str, Any]:
    controller = _controller()
    applied = await controller.refetch_messages()
    return {
        "applied": applied,
        "view": controller.messages.view.value,
        "count": len(controller.messages.items),
    }


@router.delete("/messages/{message_id}")
async def delete_message(message_id: str) -> dict[str, Any]:
    controller = _controller()
    if controller.account is None:
        raise HTTPException(status_code=409, detail="No active inbox")
    ok = await controller.delete_message(message_id)
    if not ok:
        error = controller.messages.delete_error
        return {"status": "error", "error": error.message if error else None}
    return {"status": "deleted", "id": message_id}
