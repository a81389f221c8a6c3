"""
Tests for the Telegram Bot API transport.

HTTP is served by httpx.MockTransport; no network access.
"""

import json

import httpx
import pytest

from chatbinder.models.membership import StandingKind
from chatbinder.transport.base import TransportError
from chatbinder.transport.telegram import (
    TelegramTransport,
    parse_command_message,
    parse_member_update,
    standing_from_status,
)

TOKEN = "123:abc"


def make_transport(responder):
    """Build a transport whose requests are answered by responder(method, body)."""
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        method = request.url.path.rsplit("/", 1)[-1]
        body = json.loads(request.content or b"{}")
        requests.append((method, body))
        return responder(method, body)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return TelegramTransport(TOKEN, client=client), requests


def ok(result=True):
    return httpx.Response(200, json={"ok": True, "result": result})


class TestActions:
    """Tests for membership action methods."""

    @pytest.mark.asyncio
    async def test_kick_calls_ban(self):
        transport, requests = make_transport(lambda m, b: ok())

        await transport.kick(-100, 7)

        assert requests == [("banChatMember", {"chat_id": -100, "user_id": 7})]

    @pytest.mark.asyncio
    async def test_unban_only_if_banned(self):
        transport, requests = make_transport(lambda m, b: ok())

        await transport.unban(-100, 7)

        method, body = requests[0]
        assert method == "unbanChatMember"
        assert body["only_if_banned"] is True

    @pytest.mark.asyncio
    async def test_promote(self):
        transport, requests = make_transport(lambda m, b: ok())

        await transport.promote(-100, 7)

        assert requests[0] == ("promoteChatMember", {"chat_id": -100, "user_id": 7})

    @pytest.mark.asyncio
    async def test_url_contains_token(self):
        seen = []

        def handler(request):
            seen.append(str(request.url))
            return ok()

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        transport = TelegramTransport(TOKEN, api_base="https://api.example.test/", client=client)

        await transport.kick(1, 2)

        assert seen == ["https://api.example.test/bot123:abc/banChatMember"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,expected", [
        ("creator", StandingKind.OWNER),
        ("administrator", StandingKind.ADMINISTRATOR),
        ("member", StandingKind.MEMBER),
        ("restricted", StandingKind.RESTRICTED),
        ("left", StandingKind.LEFT),
        ("kicked", StandingKind.BANNED),
    ])
    async def test_get_standing(self, status, expected):
        transport, _ = make_transport(lambda m, b: ok({"status": status, "user": {"id": 7}}))

        assert await transport.get_standing(-100, 7) is expected


class TestErrors:
    """Tests for API and network failures."""

    @pytest.mark.asyncio
    async def test_api_error_raises(self):
        transport, _ = make_transport(lambda m, b: httpx.Response(
            400,
            json={"ok": False, "error_code": 400, "description": "Bad Request: not enough rights"},
        ))

        with pytest.raises(TransportError) as exc_info:
            await transport.kick(-100, 7)

        assert exc_info.value.error_code == 400
        assert exc_info.value.code == "banChatMember_400"
        assert "not enough rights" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_network_error_raises(self):
        def responder(method, body):
            raise httpx.ConnectError("connection refused")

        transport, _ = make_transport(responder)

        with pytest.raises(TransportError, match="ConnectError"):
            await transport.unban(-100, 7)

    @pytest.mark.asyncio
    async def test_non_json_response(self):
        transport, _ = make_transport(lambda m, b: httpx.Response(502, text="Bad Gateway"))

        with pytest.raises(TransportError) as exc_info:
            await transport.promote(-100, 7)

        assert exc_info.value.error_code == 502

    @pytest.mark.asyncio
    async def test_unknown_status_raises(self):
        transport, _ = make_transport(lambda m, b: ok({"status": "weird"}))

        with pytest.raises(TransportError, match="weird"):
            await transport.get_standing(-100, 7)


class TestUpdates:
    """Tests for polling and replies."""

    @pytest.mark.asyncio
    async def test_get_updates_params(self):
        transport, requests = make_transport(lambda m, b: ok([{"update_id": 5}]))

        updates = await transport.get_updates(offset=5, timeout=20)

        assert updates == [{"update_id": 5}]
        method, body = requests[0]
        assert method == "getUpdates"
        assert body["offset"] == 5
        assert body["timeout"] == 20
        assert body["allowed_updates"] == ["message", "chat_member"]

    @pytest.mark.asyncio
    async def test_get_updates_without_offset(self):
        transport, requests = make_transport(lambda m, b: ok([]))

        assert await transport.get_updates() == []
        assert "offset" not in requests[0][1]

    @pytest.mark.asyncio
    async def test_send_message(self):
        transport, requests = make_transport(lambda m, b: ok({"message_id": 1}))

        await transport.send_message(-100, "Chat id is -100")

        assert requests[0] == ("sendMessage", {"chat_id": -100, "text": "Chat id is -100"})


class TestParsing:
    """Tests for turning raw updates into events and commands."""

    def test_parse_member_update(self):
        update = {
            "update_id": 10,
            "chat_member": {
                "chat": {"id": -100, "type": "supergroup"},
                "from": {"id": 1, "is_bot": False},
                "old_chat_member": {"status": "member", "user": {"id": 7, "is_bot": False}},
                "new_chat_member": {"status": "kicked", "user": {"id": 7, "is_bot": False}},
            },
        }

        event = parse_member_update(update)

        assert event.room_id == -100
        assert event.user_id == 7
        assert event.is_bot is False
        assert event.new_standing is StandingKind.BANNED

    def test_parse_member_update_bot(self):
        update = {
            "update_id": 11,
            "chat_member": {
                "chat": {"id": -100},
                "new_chat_member": {"status": "member", "user": {"id": 8, "is_bot": True}},
            },
        }

        assert parse_member_update(update).is_bot is True

    def test_parse_member_update_other_update(self):
        assert parse_member_update({"update_id": 1, "message": {}}) is None

    def test_parse_member_update_malformed(self):
        update = {"update_id": 1, "chat_member": {"chat": {"id": 1}, "new_chat_member": {"status": "x"}}}
        assert parse_member_update(update) is None

    def test_parse_command_message(self):
        update = {"update_id": 2, "message": {"chat": {"id": -5}, "text": "/getchatid"}}

        assert parse_command_message(update) == (-5, "/getchatid")

    def test_parse_command_message_without_text(self):
        update = {"update_id": 3, "message": {"chat": {"id": -5}, "photo": []}}

        assert parse_command_message(update) is None

    def test_standing_from_status_unknown(self):
        with pytest.raises(ValueError):
            standing_from_status("banned")
