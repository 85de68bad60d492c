"""Shared test fixtures for tempinbox tests."""

import asyncio
import contextlib
from datetime import UTC, datetime

import pytest

from tempinbox import conventions
from tempinbox.inbox.client import MemoryInboxClient
from tempinbox.inbox.notifications import MemoryNotifier
from tempinbox.inbox.session import InboxSessionController
from tempinbox.schema import TempInboxConfig

FIXED_NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=UTC)

_ENV_VARS = (
    "TEMPINBOX_API_URL",
    "TEMPINBOX_SESSION_LIFETIME",
    "TEMPINBOX_POLL_INTERVAL",
    "TEMPINBOX_SIMULATOR_MODE",
    "TEMPINBOX_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _isolated_home(tmp_path, monkeypatch):
    """Point ~/.tempinbox at a temp dir and clear TEMPINBOX_* overrides."""
    home = tmp_path / ".tempinbox"
    monkeypatch.setattr(conventions, "TEMPINBOX_HOME", str(home))
    for var in _ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    return home


@pytest.fixture
def now() -> datetime:
    """A fixed 'current time' for clock injection."""
    return FIXED_NOW


@pytest.fixture
def client() -> MemoryInboxClient:
    return MemoryInboxClient()


@pytest.fixture
def notifier() -> MemoryNotifier:
    return MemoryNotifier()


@pytest.fixture
def config() -> TempInboxConfig:
    """Config whose background timer and poller never fire during a test.

    Tests drive the countdown with timer.tick() directly.
    """
    return TempInboxConfig(
        simulator_mode=True,
        tick_interval_seconds=3600,
        poll_interval_seconds=3600,
    )


@pytest.fixture
async def make_controller(client, notifier, config):
    """Factory for controllers; every controller made is closed afterwards."""
    made: list[InboxSessionController] = []

    def _make(**kwargs) -> InboxSessionController:
        kwargs.setdefault("notifier", notifier)
        kwargs.setdefault("clipboard", lambda text: True)
        cfg = kwargs.pop("config", config)
        controller = InboxSessionController(kwargs.pop("client", client), cfg, **kwargs)
        made.append(controller)
        return controller

    yield _make

    for controller in made:
        await controller.close()


@pytest.fixture
async def controller(make_controller) -> InboxSessionController:
    return make_controller()


@pytest.fixture(autouse=True)
async def _cancel_stray_tasks():
    """Cancel any tasks that leaked from a test."""
    yield
    await asyncio.sleep(0)
    current = asyncio.current_task()
    for task in asyncio.all_tasks():
        if task is not current and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError, TimeoutError):
                await asyncio.wait_for(asyncio.shield(task), timeout=0.1)
