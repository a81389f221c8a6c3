"""
Membership Models — Standing kinds, buckets, and membership events.

A membership event says that a user's standing in a room changed.
For mirroring purposes every standing falls into one of three buckets:

- active:   administrator, owner, member, restricted
- departed: left
- removed:  banned
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class StandingKind(str, Enum):
    """A user's membership standing in a room."""

    ADMINISTRATOR = "administrator"
    OWNER = "owner"
    MEMBER = "member"
    RESTRICTED = "restricted"
    LEFT = "left"
    BANNED = "banned"


class Bucket(str, Enum):
    """Mirroring classification of a standing."""

    ACTIVE = "active"
    DEPARTED = "departed"
    REMOVED = "removed"


_BUCKETS = {
    StandingKind.ADMINISTRATOR: Bucket.ACTIVE,
    StandingKind.OWNER: Bucket.ACTIVE,
    StandingKind.MEMBER: Bucket.ACTIVE,
    StandingKind.RESTRICTED: Bucket.ACTIVE,
    StandingKind.LEFT: Bucket.DEPARTED,
    StandingKind.BANNED: Bucket.REMOVED,
}


def classify(kind: StandingKind) -> Bucket:
    """Map a standing kind to its mirroring bucket."""
    return _BUCKETS[kind]


class MembershipEvent(BaseModel):
    """A user's standing in a room changed."""

    room_id: int
    user_id: int
    is_bot: bool = False
    new_standing: StandingKind

    @property
    def bucket(self) -> Bucket:
        return classify(self.new_standing)
