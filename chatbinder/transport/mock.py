"""
Mock Transport — Non-executing membership actions for testing.

Logs what would happen and records every call instead of talking to
the chat service. Standings and failures can be scripted per room.

For dry runs, standing queries can be answered by a real transport
while kick, unban and promote are still only logged:

    transport = MockTransport(standings=TelegramTransport(token))
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Set, Tuple

from ..models.membership import StandingKind
from .base import MembershipActions, TransportError

logger = logging.getLogger(__name__)


class MockTransport(MembershipActions):
    """
    Records calls as (action, room_id, user_id) tuples.

    Standing lookup order: scripted standing, then the `standings`
    transport if one was given, then `default_standing`.

    Usage:
        transport = MockTransport()
        transport.set_standing(100, 7, StandingKind.BANNED)
        transport.fail_on("kick", 300)
    """

    def __init__(
        self,
        default_standing: StandingKind = StandingKind.MEMBER,
        standings: Optional[MembershipActions] = None,
    ):
        self.default_standing = default_standing
        self.standings = standings
        self.calls: List[Tuple[str, int, int]] = []
        self._standings: Dict[Tuple[int, int], StandingKind] = {}
        self._failures: Set[Tuple[str, int]] = set()

    @property
    def name(self) -> str:
        return "mock"

    def set_standing(self, room_id: int, user_id: int, kind: StandingKind) -> None:
        self._standings[(room_id, user_id)] = kind

    def fail_on(self, action: str, room_id: int) -> None:
        """Make every future `action` against room_id raise TransportError."""
        self._failures.add((action, room_id))

    @property
    def actions(self) -> List[Tuple[str, int, int]]:
        """Recorded calls excluding standing queries."""
        return [c for c in self.calls if c[0] != "get_standing"]

    def _record(self, action: str, room_id: int, user_id: int) -> None:
        self.calls.append((action, room_id, user_id))
        if (action, room_id) in self._failures:
            raise TransportError(action, f"mock failure in room {room_id}", 400)
        if action != "get_standing":
            logger.info(f"[MOCK] Would {action} user {user_id} in room {room_id}")

    async def kick(self, room_id: int, user_id: int) -> None:
        self._record("kick", room_id, user_id)

    async def unban(self, room_id: int, user_id: int) -> None:
        self._record("unban", room_id, user_id)

    async def promote(self, room_id: int, user_id: int) -> None:
        self._record("promote", room_id, user_id)

    async def get_standing(self, room_id: int, user_id: int) -> StandingKind:
        self._record("get_standing", room_id, user_id)
        scripted = self._standings.get((room_id, user_id))
        if scripted is not None:
            return scripted
        if self.standings is not None:
            return await self.standings.get_standing(room_id, user_id)
        return self.default_standing
