"""
Chat Commands — Bind, unbind, and query from inside a room.

    /getchatid            Reply with this room's id
    /unbindfromall        Detach this room from its master
    /bindtochat <id>      Make this room a slave of room <id>

Every recognised command yields a reply for the issuing room. Invalid
input and storage failures are reported there and leave the store as
it was.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from .persistence.bindings import BindingStore
from .persistence.kv_file import StoreWriteError

logger = logging.getLogger(__name__)

STORAGE_ERROR_REPLY = "Storage error, binding was not saved"

_ROOM_ID_RE = re.compile(r"[+-]?[0-9]+")
_INT64_MIN, _INT64_MAX = -(2 ** 63), 2 ** 63 - 1


def parse_room_id(text: str) -> Optional[int]:
    """Parse a signed 64-bit room id, or return None."""
    if not _ROOM_ID_RE.fullmatch(text):
        return None
    value = int(text)
    if not _INT64_MIN <= value <= _INT64_MAX:
        return None
    return value


def _split_command(text: str) -> tuple:
    """Split "/cmd@BotName arg" into ("/cmd", "arg")."""
    head, _, arg = text.strip().partition(" ")
    command = head.split("@", 1)[0]
    return command, arg.strip()


class CommandHandler:
    """Executes chat commands against the binding store."""

    def __init__(self, store: BindingStore):
        self.store = store

    def handle(self, room_id: int, text: str) -> Optional[str]:
        """
        Run a command and return the reply text.

        Returns None if the text is not a known command.
        """
        if not text.startswith("/"):
            return None

        command, arg = _split_command(text)

        if command == "/getchatid":
            return f"Chat id is {room_id}"
        if command == "/unbindfromall":
            return self._unbind(room_id)
        if command == "/bindtochat":
            return self._bind(room_id, arg)
        return None

    def _unbind(self, room_id: int) -> str:
        try:
            self.store.unbind(room_id)
        except StoreWriteError as e:
            logger.error(f"/unbindfromall in room {room_id} failed: {e}")
            return STORAGE_ERROR_REPLY
        return "Unbound from all chats"

    def _bind(self, room_id: int, arg: str) -> str:
        master_id = parse_room_id(arg)
        if master_id is None:
            return f"Cannot bind to '{arg}'; chat id is invalid"

        if master_id == room_id:
            return "Cannot bind chat to itself"

        try:
            self.store.bind(master_id, room_id)
        except StoreWriteError as e:
            logger.error(f"/bindtochat {master_id} in room {room_id} failed: {e}")
            return STORAGE_ERROR_REPLY
        return f"Bound to {master_id}"
