"""
Transport Base Class — Remote membership-action capability.

The mirror only needs four remote operations. Each one is an
independent network call and may fail on its own.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from ..models.membership import StandingKind


class TransportError(Exception):
    """A remote call failed."""

    def __init__(
        self,
        method: str,
        description: str,
        error_code: Optional[int] = None,
    ):
        self.method = method
        self.description = description
        self.error_code = error_code
        code = f" [{error_code}]" if error_code is not None else ""
        super().__init__(f"{method} failed{code}: {description}")

    @property
    def code(self) -> str:
        """Short error code for receipts."""
        if self.error_code is not None:
            return f"{self.method}_{self.error_code}"
        return f"{self.method}_error"


class MembershipActions(ABC):
    """
    Abstract base class for membership-action transports.

    Implementations raise TransportError on failure.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The transport identifier (e.g., 'telegram', 'mock')."""
        pass

    @abstractmethod
    async def kick(self, room_id: int, user_id: int) -> None:
        """Remove user from room and keep them out."""
        pass

    @abstractmethod
    async def unban(self, room_id: int, user_id: int) -> None:
        """Lift a ban on user in room, if any."""
        pass

    @abstractmethod
    async def promote(self, room_id: int, user_id: int) -> None:
        """Grant user plain member standing in room."""
        pass

    @abstractmethod
    async def get_standing(self, room_id: int, user_id: int) -> StandingKind:
        """Query user's current standing in room."""
        pass
