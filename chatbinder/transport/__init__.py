"""
Transport Module — Remote membership actions and update delivery.
"""

from .base import MembershipActions, TransportError
from .mock import MockTransport
from .telegram import TelegramTransport

__all__ = [
    "MembershipActions",
    "MockTransport",
    "TelegramTransport",
    "TransportError",
]
