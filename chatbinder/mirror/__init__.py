"""
Mirror — Propagate membership decisions from master rooms to their slaves.
"""

from .membership import FanoutPolicy, MembershipMirror

__all__ = ["FanoutPolicy", "MembershipMirror"]
