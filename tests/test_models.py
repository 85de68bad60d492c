"""Tests for inbox data models and payload parsing."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

import pytest

from tempinbox.inbox.errors import (
    ApiError,
    InboxCreateError,
    InboxError,
    MalformedPayloadError,
)
from tempinbox.inbox.models import (
    Account,
    CatalogStatus,
    CountdownState,
    Domain,
    InboxSnapshot,
    Message,
    MessageAddress,
    MessageView,
    SessionStatus,
    Tier,
    parse_timestamp,
)


class TestParseTimestamp:
    def test_zulu_suffix(self):
        dt = parse_timestamp("2024-05-01T12:00:00Z")
        assert dt == datetime(2024, 5, 1, 12, 0, tzinfo=UTC)

    def test_offset_is_converted_to_utc(self):
        dt = parse_timestamp("2024-05-01T14:00:00+02:00")
        assert dt == datetime(2024, 5, 1, 12, 0, tzinfo=UTC)
        assert dt.tzinfo is UTC

    def test_naive_is_assumed_utc(self):
        dt = parse_timestamp("2024-05-01T12:00:00")
        assert dt.tzinfo is UTC

    def test_datetime_passthrough(self):
        src = datetime(2024, 5, 1, 12, 0, tzinfo=timezone(timedelta(hours=1)))
        assert parse_timestamp(src) == src

    @pytest.mark.parametrize("value", [None, "", "not a date", 12345, []])
    def test_unparseable_is_none(self, value):
        assert parse_timestamp(value) is None


class TestDomain:
    def test_from_payload(self):
        d = Domain.from_payload(
            {"domain": "mail.test", "isActive": True, "isPrivate": False}
        )
        assert d == Domain(name="mail.test", is_active=True, is_private=False)
        assert d.is_eligible

    def test_private_is_not_eligible(self):
        d = Domain.from_payload({"domain": "p.test", "isActive": True, "isPrivate": True})
        assert not d.is_eligible

    def test_inactive_is_not_eligible(self):
        d = Domain.from_payload({"domain": "x.test", "isActive": False})
        assert not d.is_eligible

    def test_missing_is_active_defaults_to_inactive(self):
        assert not Domain.from_payload({"domain": "x.test"}).is_active

    def test_name_key_accepted(self):
        assert Domain.from_payload({"name": "alt.test", "isActive": True}).name == (
            "alt.test"
        )

    def test_non_mapping_is_malformed(self):
        with pytest.raises(MalformedPayloadError) as exc_info:
            Domain.from_payload("mail.test")
        assert exc_info.value.payload_type == "str"

    def test_missing_name_is_malformed(self):
        with pytest.raises(MalformedPayloadError):
            Domain.from_payload({"isActive": True})


class TestAccount:
    def test_from_payload(self):
        a = Account.from_payload(
            {"id": "a1", "address": "x@mail.test", "expiresAt": "2024-05-01T13:00:00Z"}
        )
        assert a.id == "a1"
        assert a.address == "x@mail.test"
        assert a.expires_at == datetime(2024, 5, 1, 13, 0, tzinfo=UTC)

    def test_missing_expiry(self):
        assert Account.from_payload({"id": "a1", "address": "x@t"}).expires_at is None

    def test_missing_address_is_malformed(self):
        with pytest.raises(MalformedPayloadError):
            Account.from_payload({"id": "a1"})

    def test_list_is_malformed(self):
        with pytest.raises(MalformedPayloadError):
            Account.from_payload([{"id": "a1", "address": "x@t"}])


class TestMessage:
    def test_from_payload(self):
        m = Message.from_payload(
            {
                "id": "m1",
                "from": {"address": "alice@example.com", "name": "Alice"},
                "subject": "Hi",
                "intro": "Hello there",
                "createdAt": "2024-05-01T11:00:00Z",
                "seen": True,
            }
        )
        assert m.id == "m1"
        assert m.from_addr == MessageAddress("alice@example.com", "Alice")
        assert m.subject == "Hi"
        assert m.seen is True
        assert m.created_at == datetime(2024, 5, 1, 11, 0, tzinfo=UTC)

    def test_missing_fields_default(self):
        m = Message.from_payload({"id": "m2"})
        assert m.from_addr.address == ""
        assert m.subject == ""
        assert m.created_at is None
        assert m.seen is False

    def test_to_dict(self):
        m = Message(
            id="m1",
            from_addr=MessageAddress("a@b.test"),
            created_at=datetime(2024, 5, 1, tzinfo=UTC),
        )
        d = m.to_dict()
        assert d["from"] == {"address": "a@b.test", "name": ""}
        assert d["created_at"] == "2024-05-01T00:00:00+00:00"

    def test_address_str(self):
        assert str(MessageAddress("a@b.test", "Ann")) == "Ann <a@b.test>"
        assert str(MessageAddress("a@b.test")) == "a@b.test"


class TestErrors:
    def test_from_api_keeps_status(self):
        err = InboxCreateError.from_api(
            ApiError("boom", status_code=503), "Failed to create inbox"
        )
        assert isinstance(err, InboxCreateError)
        assert err.status_code == 503
        assert err.message == "Failed to create inbox: boom"

    def test_malformed_is_inbox_error(self):
        assert issubclass(MalformedPayloadError, InboxError)


def _snapshot(**overrides) -> InboxSnapshot:
    data = {
        "status": SessionStatus.ACTIVE,
        "catalog_status": CatalogStatus.READY,
        "catalog_error": None,
        "eligible_domain_count": 1,
        "account": Account("a1", "x@mail.test", datetime(2024, 5, 1, tzinfo=UTC)),
        "is_creating": False,
        "is_deleting": False,
        "is_expired": False,
        "countdown": CountdownState(remaining_seconds=90),
        "progress_percent": 2.5,
        "tier": Tier.LOW,
        "message_view": MessageView.EMPTY,
        "messages": [],
        "messages_error": None,
    }
    data.update(overrides)
    return InboxSnapshot(**data)


class TestInboxSnapshot:
    def test_to_dict_shape(self):
        d = _snapshot().to_dict()
        assert d["status"] == "active"
        assert d["is_authenticated"] is True
        assert d["account"]["address"] == "x@mail.test"
        assert d["countdown"] == {
            "remaining_seconds": 90,
            "has_expired_locally": False,
            "progress_percent": 2.5,
            "tier": "low",
        }
        assert d["messages"] == {"view": "empty", "error": None, "items": []}
        assert d["catalog"]["no_domains_available"] is False

    def test_no_domains_available(self):
        snap = _snapshot(account=None, eligible_domain_count=0)
        assert snap.no_domains_available
        assert snap.to_dict()["account"] is None

    def test_no_domains_requires_ready_catalog(self):
        snap = _snapshot(
            account=None,
            eligible_domain_count=0,
            catalog_status=CatalogStatus.LOADING,
        )
        assert not snap.no_domains_available
