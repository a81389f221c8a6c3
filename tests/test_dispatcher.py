"""
Tests for update routing and shutdown.
"""

import asyncio
from pathlib import Path
from unittest.mock import patch

import pytest

from chatbinder.commands import CommandHandler
from chatbinder.dispatcher import Dispatcher
from chatbinder.mirror.membership import MembershipMirror
from chatbinder.persistence.kv_file import StoreWriteError
from chatbinder.transport.base import TransportError
from tests.conftest import read_store_file


class FakeTelegram:
    """Stands in for TelegramTransport's update and reply methods."""

    def __init__(self, batches=None, fail_send=False):
        self.batches = list(batches or [])
        self.sent = []
        self.offsets = []
        self.closed = False
        self.fail_send = fail_send

    async def get_updates(self, offset=None, timeout=30):
        self.offsets.append(offset)
        return self.batches.pop(0) if self.batches else []

    async def send_message(self, chat_id, text):
        if self.fail_send:
            raise TransportError("sendMessage", "chat not found", 400)
        self.sent.append((chat_id, text))

    async def close(self):
        self.closed = True


def member_update(update_id, room_id, user_id, status, is_bot=False):
    return {
        "update_id": update_id,
        "chat_member": {
            "chat": {"id": room_id},
            "new_chat_member": {"status": status, "user": {"id": user_id, "is_bot": is_bot}},
        },
    }


def text_update(update_id, room_id, text):
    return {"update_id": update_id, "message": {"chat": {"id": room_id}, "text": text}}


@pytest.fixture
def telegram():
    return FakeTelegram()


@pytest.fixture
def dispatcher(store, transport, telegram):
    mirror = MembershipMirror(store, transport)
    return Dispatcher(telegram, store, mirror, CommandHandler(store), shutdown_grace_seconds=1)


class TestProcessUpdate:
    """Routing of single updates."""

    @pytest.mark.asyncio
    async def test_member_update_goes_to_mirror(self, dispatcher, store, transport):
        store.bind(100, 200)

        await dispatcher.process_update(member_update(1, 100, 7, "left"))

        assert transport.actions == [("kick", 200, 7)]

    @pytest.mark.asyncio
    async def test_command_gets_reply(self, dispatcher, store, telegram):
        await dispatcher.process_update(text_update(1, 200, "/bindtochat 100"))

        assert telegram.sent == [(200, "Bound to 100")]
        assert store.get_master(200) == 100

    @pytest.mark.asyncio
    async def test_plain_text_ignored(self, dispatcher, telegram, transport):
        await dispatcher.process_update(text_update(1, 200, "hello"))

        assert telegram.sent == []
        assert transport.calls == []

    @pytest.mark.asyncio
    async def test_reply_failure_is_logged(self, store, transport):
        telegram = FakeTelegram(fail_send=True)
        dispatcher = Dispatcher(telegram, store, MembershipMirror(store, transport), CommandHandler(store))

        await dispatcher.process_update(text_update(1, 200, "/getchatid"))

        assert telegram.sent == []

    @pytest.mark.asyncio
    async def test_mirror_failure_does_not_raise(self, dispatcher, store, transport):
        store.bind(100, 200)
        transport.fail_on("kick", 200)

        await dispatcher.process_update(member_update(1, 100, 7, "kicked"))

        assert transport.actions == [("kick", 200, 7)]


class TestPolling:
    """Batch polling and task tracking."""

    @pytest.mark.asyncio
    async def test_poll_once_advances_offset(self, store, transport):
        store.bind(100, 200)
        telegram = FakeTelegram(batches=[
            [member_update(5, 100, 7, "kicked"), text_update(6, 300, "/getchatid")],
            [],
        ])
        dispatcher = Dispatcher(telegram, store, MembershipMirror(store, transport), CommandHandler(store))

        count = await dispatcher.poll_once()
        await dispatcher.poll_once()
        await asyncio.gather(*dispatcher._tasks)

        assert count == 2
        assert telegram.offsets == [None, 7]
        assert transport.actions == [("kick", 200, 7)]
        assert telegram.sent == [(300, "Chat id is 300")]

    @pytest.mark.asyncio
    async def test_unexpected_error_is_contained(self, dispatcher):
        with patch.object(dispatcher.commands, "handle", side_effect=RuntimeError("boom")):
            task = dispatcher.spawn(text_update(1, 200, "/getchatid"))
            await task

        assert task.exception() is None


class TestShutdown:
    """Draining and final flush."""

    @pytest.mark.asyncio
    async def test_shutdown_flushes_and_closes(self, dispatcher, store, store_path: Path, telegram):
        store.bind(100, 200)
        store_path.unlink()

        await dispatcher.shutdown()

        assert telegram.closed
        assert read_store_file(store_path) == {"s200": 100, "m100": [200]}

    @pytest.mark.asyncio
    async def test_shutdown_cancels_slow_tasks(self, dispatcher):
        async def slow(update):
            await asyncio.sleep(60)

        with patch.object(dispatcher, "process_update", side_effect=slow):
            task = dispatcher.spawn(text_update(1, 200, "/getchatid"))
            dispatcher.shutdown_grace_seconds = 0.01
            await dispatcher.shutdown()

        assert task.cancelled()

    @pytest.mark.asyncio
    async def test_flush_failure_is_logged(self, dispatcher, store, store_path: Path):
        with patch.object(
            store._db, "dump", side_effect=StoreWriteError(store_path, "disk full")
        ):
            await dispatcher.shutdown()
