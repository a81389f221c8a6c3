"""
Telegram Transport — Membership actions over the Telegram Bot API.

Every call is an HTTPS POST to https://api.telegram.org/bot<token>/<method>
with a JSON body. The API answers with an envelope:

    {"ok": true, "result": ...}
    {"ok": false, "error_code": 400, "description": "Bad Request: ..."}

## Method Mapping

- kick         → banChatMember
- unban        → unbanChatMember (only_if_banned, so members are not removed)
- promote      → promoteChatMember with no privileges (plain member standing)
- get_standing → getChatMember

## Updates

get_updates() long-polls for `message` and `chat_member` updates. The
bot must be an administrator of each room to receive `chat_member`
updates and to act on members.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

import httpx

from ..models.membership import MembershipEvent, StandingKind
from .base import MembershipActions, TransportError

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://api.telegram.org"

# getChatMember / chat_member status → standing
STATUS_MAP: Dict[str, StandingKind] = {
    "creator": StandingKind.OWNER,
    "administrator": StandingKind.ADMINISTRATOR,
    "member": StandingKind.MEMBER,
    "restricted": StandingKind.RESTRICTED,
    "left": StandingKind.LEFT,
    "kicked": StandingKind.BANNED,
}


def standing_from_status(status: str) -> StandingKind:
    """Map a Bot API member status string to a StandingKind."""
    try:
        return STATUS_MAP[status]
    except KeyError:
        raise ValueError(f"Unknown chat member status: {status!r}")


def parse_member_update(update: Dict[str, Any]) -> Optional[MembershipEvent]:
    """Build a MembershipEvent from a `chat_member` update, if it is one."""
    member_update = update.get("chat_member")
    if not member_update:
        return None

    new_member = member_update.get("new_chat_member") or {}
    user = new_member.get("user") or {}
    try:
        return MembershipEvent(
            room_id=member_update["chat"]["id"],
            user_id=user["id"],
            is_bot=bool(user.get("is_bot", False)),
            new_standing=standing_from_status(new_member.get("status", "")),
        )
    except (KeyError, ValueError) as e:
        logger.warning(f"Ignoring malformed chat_member update {update.get('update_id')}: {e}")
        return None


def parse_command_message(update: Dict[str, Any]) -> Optional[Tuple[int, str]]:
    """Return (room_id, text) for a text message update."""
    message = update.get("message")
    if not message:
        return None

    text = message.get("text")
    chat = message.get("chat") or {}
    if text is None or "id" not in chat:
        return None

    return chat["id"], text


class TelegramTransport(MembershipActions):
    """
    Bot API client using httpx.

    Requires a bot token (BOT_TOKEN environment variable via config).
    """

    def __init__(
        self,
        token: str,
        api_base: str = DEFAULT_API_BASE,
        timeout: float = 10,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.token = token
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self._client = client or httpx.AsyncClient(
            headers={"User-Agent": "chatbinder/1.0"},
        )

    @property
    def name(self) -> str:
        return "telegram"

    def _url(self, method: str) -> str:
        return f"{self.api_base}/bot{self.token}/{method}"

    async def call(
        self,
        method: str,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """
        Invoke a Bot API method and return its `result`.

        Raises:
            TransportError: On network failure or a non-ok API response
        """
        try:
            response = await self._client.post(
                self._url(method),
                json=params or {},
                timeout=timeout if timeout is not None else self.timeout,
            )
        except httpx.TimeoutException:
            raise TransportError(method, "request timed out")
        except httpx.HTTPError as e:
            # str(e) of request errors does not carry the token-bearing URL
            raise TransportError(method, f"{type(e).__name__}: {e}")

        try:
            body = response.json()
        except ValueError:
            raise TransportError(
                method,
                f"non-JSON response (HTTP {response.status_code})",
                response.status_code,
            )

        if not body.get("ok"):
            raise TransportError(
                method,
                body.get("description", "unknown error"),
                body.get("error_code", response.status_code),
            )

        return body.get("result")

    async def kick(self, room_id: int, user_id: int) -> None:
        await self.call("banChatMember", {"chat_id": room_id, "user_id": user_id})
        logger.info(f"Kicked user {user_id} from room {room_id}")

    async def unban(self, room_id: int, user_id: int) -> None:
        await self.call(
            "unbanChatMember",
            {"chat_id": room_id, "user_id": user_id, "only_if_banned": True},
        )
        logger.info(f"Unbanned user {user_id} in room {room_id}")

    async def promote(self, room_id: int, user_id: int) -> None:
        await self.call("promoteChatMember", {"chat_id": room_id, "user_id": user_id})
        logger.info(f"Restored member standing of user {user_id} in room {room_id}")

    async def get_standing(self, room_id: int, user_id: int) -> StandingKind:
        result = await self.call("getChatMember", {"chat_id": room_id, "user_id": user_id})
        status = (result or {}).get("status", "")
        try:
            return standing_from_status(status)
        except ValueError as e:
            raise TransportError("getChatMember", str(e))

    async def get_updates(self, offset: Optional[int] = None, timeout: int = 30) -> List[Dict[str, Any]]:
        """Long-poll for new updates."""
        params: Dict[str, Any] = {
            "timeout": timeout,
            "allowed_updates": ["message", "chat_member"],
        }
        if offset is not None:
            params["offset"] = offset
        # HTTP timeout must outlast the server-side long poll
        return await self.call("getUpdates", params, timeout=timeout + 10) or []

    async def send_message(self, chat_id: int, text: str) -> None:
        await self.call("sendMessage", {"chat_id": chat_id, "text": text})

    async def close(self) -> None:
        await self._client.aclose()
