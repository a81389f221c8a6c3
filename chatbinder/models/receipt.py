"""
Receipt Model — Results of remote membership actions.

Every remote call made while mirroring produces a receipt, regardless of
success or failure. A MirrorReport collects the receipts of one event.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from .membership import MembershipEvent

ActionName = Literal["kick", "unban", "promote"]

# Which decision table row handled the event
MirrorRule = Literal[
    "ignored",
    "slave_recheck",
    "slave_consistent",
    "slave_departed",
    "master_restore",
    "master_remove",
]


class ErrorDetails(BaseModel):
    """Details about a failed remote call."""

    code: str
    message: str


class ActionReceipt(BaseModel):
    """Result of one remote membership action."""

    status: Literal["ok", "skipped", "failed"]
    action: ActionName
    room_id: int
    user_id: int
    ts_iso: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    error: Optional[ErrorDetails] = None

    @classmethod
    def ok(cls, action: ActionName, room_id: int, user_id: int) -> "ActionReceipt":
        """Create a successful receipt."""
        return cls(status="ok", action=action, room_id=room_id, user_id=user_id)

    @classmethod
    def skipped(cls, action: ActionName, room_id: int, user_id: int) -> "ActionReceipt":
        """Create a receipt for an action not attempted after an abort."""
        return cls(status="skipped", action=action, room_id=room_id, user_id=user_id)

    @classmethod
    def failed(
        cls,
        action: ActionName,
        room_id: int,
        user_id: int,
        error_code: str,
        error_message: str,
    ) -> "ActionReceipt":
        """Create a failed receipt."""
        return cls(
            status="failed",
            action=action,
            room_id=room_id,
            user_id=user_id,
            error=ErrorDetails(code=error_code, message=error_message),
        )


class MirrorReport(BaseModel):
    """Outcome of mirroring one membership event."""

    event: MembershipEvent
    rule: MirrorRule
    receipts: List[ActionReceipt] = Field(default_factory=list)
    aborted: bool = False
    error: Optional[ErrorDetails] = None

    @property
    def ok(self) -> bool:
        return not self.aborted and all(r.status == "ok" for r in self.receipts)

    @property
    def failed(self) -> List[ActionReceipt]:
        return [r for r in self.receipts if r.status == "failed"]

    @property
    def actions(self) -> List[tuple]:
        """(action, room_id) pairs that were actually attempted."""
        return [(r.action, r.room_id) for r in self.receipts if r.status != "skipped"]
