"""Tests for the tempinbox CLI (simulator backend, no network)."""

from __future__ import annotations

import json
import threading
from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import pytest
import yaml
from click.testing import CliRunner

from tempinbox.cli import main, render_snapshot
from tempinbox.inbox.models import (
    Account,
    CatalogStatus,
    CountdownState,
    InboxSnapshot,
    Message,
    MessageAddress,
    MessageView,
    SessionStatus,
)


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


def _snapshot(**overrides) -> InboxSnapshot:
    data = {
        "status": SessionStatus.ACTIVE,
        "catalog_status": CatalogStatus.READY,
        "catalog_error": None,
        "eligible_domain_count": 1,
        "account": Account("a1", "x@mail.test"),
        "is_creating": False,
        "is_deleting": False,
        "is_expired": False,
        "countdown": CountdownState(remaining_seconds=125),
        "progress_percent": 3.5,
        "tier": None,
        "message_view": MessageView.EMPTY,
        "messages": [],
        "messages_error": None,
    }
    data.update(overrides)
    return InboxSnapshot(**data)


class TestRenderSnapshot:
    def test_active_empty(self):
        text = render_snapshot(_snapshot())
        assert text.splitlines()[0] == "Your Inbox"
        assert "Address: x@mail.test" in text
        assert "02:05 left" in text
        assert "No messages yet" in text

    def test_expired_banner(self):
        text = render_snapshot(
            _snapshot(
                status=SessionStatus.EXPIRED,
                countdown=CountdownState(0, has_expired_locally=True),
            )
        )
        assert "Inbox deleted (timer expired)" in text
        assert "This inbox has expired" in text

    def test_messages(self):
        created = datetime.now(UTC) - timedelta(minutes=5)
        messages = [
            Message("m1", MessageAddress("a@b.test", "Ann"), "Hi", created_at=created),
            Message("m2", MessageAddress(""), seen=True),
        ]
        text = render_snapshot(
            _snapshot(message_view=MessageView.POPULATED, messages=messages)
        )
        assert "Messages (2)" in text
        assert "* Ann - Hi (5 minutes ago)" in text
        assert "Unknown sender - (No subject) (Unknown time)" in text

    def test_no_domains(self):
        text = render_snapshot(
            _snapshot(
                account=None,
                status=SessionStatus.UNAUTHENTICATED,
                eligible_domain_count=0,
            )
        )
        assert text == "No Domains Available"

    def test_notices(self):
        text = render_snapshot(_snapshot(), ["Copied to clipboard"])
        assert "* Copied to clipboard" in text


class TestCommands:
    def test_help(self, runner):
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        assert "tempinbox watch" in result.output

    def test_watch_once(self, runner):
        result = runner.invoke(main, ["--simulator", "watch", "--once"])
        assert result.exit_code == 0, result.output
        assert "Your Inbox" in result.output
        assert "Address: user0001@example.test" in result.output
        assert "No messages yet" in result.output

    def test_watch_copy_runs_off_event_loop_thread(self, runner):
        threads = []

        def fake_copy(text):
            threads.append((text, threading.current_thread()))
            return True

        with patch("tempinbox.inbox.session.copy_text", fake_copy):
            result = runner.invoke(main, ["--simulator", "watch", "--once", "--copy"])

        assert result.exit_code == 0, result.output
        assert "* Copied to clipboard" in result.output
        [(text, thread)] = threads
        assert text == "user0001@example.test"
        assert thread is not threading.main_thread()

    def test_domains(self, runner):
        result = runner.invoke(main, ["--simulator", "domains"])
        assert result.exit_code == 0, result.output
        assert "example.test" in result.output
        assert "1 of 1 eligible." in result.output

    def test_domains_json(self, runner):
        result = runner.invoke(main, ["--simulator", "domains", "--json"])
        assert json.loads(result.output) == [
            {
                "domain": "example.test",
                "is_active": True,
                "is_private": False,
                "eligible": True,
            }
        ]

    def test_config_show(self, runner):
        result = runner.invoke(main, ["config"])
        assert result.exit_code == 0
        assert "(not found)" in result.output
        assert "api_base_url: https://api.mail.tm" in result.output
        assert "server.port: 8410" in result.output

    def test_config_init(self, runner, tmp_path):
        path = tmp_path / "custom.yaml"
        result = runner.invoke(main, ["--config", str(path), "config", "--init"])
        assert result.exit_code == 0, result.output
        assert yaml.safe_load(path.read_text())["session_lifetime_seconds"] == 3600

    def test_config_file_is_used(self, runner, tmp_path):
        path = tmp_path / "custom.yaml"
        path.write_text(yaml.dump({"preferred_domain": "b.test"}))
        result = runner.invoke(main, ["--config", str(path), "config"])
        assert "preferred_domain: b.test" in result.output
