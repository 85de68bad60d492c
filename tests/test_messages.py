"""Tests for the message store."""

from __future__ import annotations

import asyncio

import pytest

from tempinbox.inbox.errors import ApiError, MessageDeleteError, MessageFetchError
from tempinbox.inbox.messages import MessageStore
from tempinbox.inbox.models import MessageView


@pytest.fixture()
async def inbox_id(client) -> str:
    inbox = await client.create_inbox()
    return inbox["id"]


@pytest.fixture()
def store(client, inbox_id) -> MessageStore:
    s = MessageStore(client)
    s.bind(inbox_id)
    return s


class TestFetch:
    @pytest.mark.asyncio()
    async def test_unbound_is_noop(self, client):
        s = MessageStore(client)
        assert await s.fetch() is False
        assert client.count("list_messages") == 0
        assert s.view == MessageView.EMPTY

    @pytest.mark.asyncio()
    async def test_empty(self, store):
        assert await store.fetch() is True
        assert store.view == MessageView.EMPTY
        assert store.items == []

    @pytest.mark.asyncio()
    async def test_populated_newest_first(self, client, store, inbox_id):
        client.inject_message(inbox_id, subject="first")
        client.inject_message(inbox_id, subject="second")

        await store.fetch()
        assert store.view == MessageView.POPULATED
        assert [m.subject for m in store.items] == ["second", "first"]

    @pytest.mark.asyncio()
    async def test_object_payload_is_malformed(self, client, store):
        client.overrides["list_messages"] = {"hydra:member": []}

        assert await store.fetch() is True
        assert store.view == MessageView.MALFORMED
        assert store.items == []
        assert store.malformed is not None
        assert store.malformed.payload_type == "dict"

    @pytest.mark.asyncio()
    async def test_malformed_clears_on_good_payload(self, client, store):
        client.overrides["list_messages"] = "nope"
        await store.fetch()
        del client.overrides["list_messages"]

        await store.fetch()
        assert store.view == MessageView.EMPTY
        assert store.malformed is None

    @pytest.mark.asyncio()
    async def test_error(self, client, store):
        client.fail("list_messages", status_code=500)

        assert await store.fetch() is False
        assert store.view == MessageView.ERROR
        assert isinstance(store.error, MessageFetchError)
        assert store.error.status_code == 500
        assert store.last_error() is store.error

    @pytest.mark.asyncio()
    async def test_error_keeps_previous_items(self, client, store, inbox_id):
        client.inject_message(inbox_id)
        await store.fetch()
        client.fail("list_messages")

        await store.fetch()
        assert store.view == MessageView.ERROR
        assert len(store.items) == 1

    @pytest.mark.asyncio()
    async def test_loading_takes_priority(self, client, store):
        gate = client.hold("list_messages")
        task = asyncio.ensure_future(store.fetch())
        await asyncio.sleep(0)

        assert store.is_loading
        assert store.view == MessageView.LOADING
        gate.set()
        await task
        assert store.view == MessageView.EMPTY

    @pytest.mark.asyncio()
    async def test_result_after_unbind_is_discarded(self, client, store, inbox_id):
        client.inject_message(inbox_id)
        gate = client.hold("list_messages")
        task = asyncio.ensure_future(store.fetch())
        await asyncio.sleep(0)

        store.unbind()
        gate.set()
        assert await task is False
        assert store.items == []
        assert not store.is_loading

    @pytest.mark.asyncio()
    async def test_result_for_previous_inbox_is_discarded(self, client, store, inbox_id):
        client.inject_message(inbox_id, subject="old inbox")
        gate = client.hold("list_messages")
        task = asyncio.ensure_future(store.fetch())
        await asyncio.sleep(0)

        store.bind("inbox-other")
        gate.set()
        assert await task is False
        assert store.items == []


class _PendingMessageApi:
    """MessageApi whose list calls each wait on their own future."""

    def __init__(self) -> None:
        self.pending: list[asyncio.Future] = []

    async def list_messages(self, inbox_id: str):
        fut = asyncio.get_running_loop().create_future()
        self.pending.append(fut)
        return await fut

    async def delete_message(self, inbox_id: str, message_id: str) -> None:
        return None


def _payload(*subjects: str) -> list[dict]:
    return [
        {"id": f"m-{s}", "subject": s, "from": {"address": "a@b.test"}}
        for s in subjects
    ]


class TestOverlappingFetches:
    @pytest.fixture()
    def api(self) -> _PendingMessageApi:
        return _PendingMessageApi()

    @pytest.fixture()
    def bound(self, api) -> MessageStore:
        s = MessageStore(api)
        s.bind("inbox-1")
        return s

    @pytest.mark.asyncio()
    async def test_last_completed_fetch_wins(self, api, bound):
        first = asyncio.ensure_future(bound.fetch())
        second = asyncio.ensure_future(bound.fetch())
        await asyncio.sleep(0)
        assert len(api.pending) == 2

        # The later request completes first.
        api.pending[1].set_result(_payload("newer"))
        assert await second is True
        assert bound.is_loading
        assert bound.view == MessageView.LOADING

        api.pending[0].set_result(_payload("older", "oldest"))
        assert await first is True
        assert not bound.is_loading
        assert [m.subject for m in bound.items] == ["older", "oldest"]
        assert bound.view == MessageView.POPULATED

    @pytest.mark.asyncio()
    async def test_completion_in_request_order(self, api, bound):
        first = asyncio.ensure_future(bound.fetch())
        second = asyncio.ensure_future(bound.fetch())
        await asyncio.sleep(0)

        api.pending[0].set_result(_payload("a"))
        await first
        assert bound.is_loading

        api.pending[1].set_result(_payload("b"))
        await second
        assert not bound.is_loading
        assert [m.subject for m in bound.items] == ["b"]

    @pytest.mark.asyncio()
    async def test_error_then_success(self, api, bound):
        first = asyncio.ensure_future(bound.fetch())
        second = asyncio.ensure_future(bound.fetch())
        await asyncio.sleep(0)

        api.pending[0].set_exception(ApiError("boom", status_code=500))
        assert await first is False
        assert bound.is_loading

        api.pending[1].set_result(_payload("ok"))
        await second
        assert bound.view == MessageView.POPULATED
        assert bound.error is None


class TestDelete:
    @pytest.fixture()
    async def three(self, client, store, inbox_id):
        for subject in ("c", "b", "a"):
            client.inject_message(inbox_id, subject=subject)
        await store.fetch()
        return [m.id for m in store.items]

    @pytest.mark.asyncio()
    async def test_preserves_order(self, store, three):
        first, middle, last = three
        assert await store.delete_message(middle) is True
        assert [m.id for m in store.items] == [first, last]

    @pytest.mark.asyncio()
    async def test_failure_restores_position(self, client, store, three):
        client.fail("delete_message", status_code=500)

        assert await store.delete_message(three[1]) is False
        assert [m.id for m in store.items] == three
        assert isinstance(store.delete_error, MessageDeleteError)
        # A failed delete does not hide the list.
        assert store.view == MessageView.POPULATED

    @pytest.mark.asyncio()
    async def test_optimistic_removal(self, client, store, three):
        gate = client.hold("delete_message")
        task = asyncio.ensure_future(store.delete_message(three[0]))
        await asyncio.sleep(0)

        assert [m.id for m in store.items] == three[1:]
        gate.set()
        assert await task is True

    @pytest.mark.asyncio()
    async def test_fetch_during_delete_does_not_resurrect(self, client, store, three):
        gate = client.hold("delete_message")
        task = asyncio.ensure_future(store.delete_message(three[0]))
        await asyncio.sleep(0)

        await store.fetch()
        assert three[0] not in [m.id for m in store.items]
        gate.set()
        await task
        assert [m.id for m in store.items] == three[1:]

    @pytest.mark.asyncio()
    async def test_unbound_is_noop(self, client):
        s = MessageStore(client)
        assert await s.delete_message("msg-0001") is False
        assert client.count("delete_message") == 0
