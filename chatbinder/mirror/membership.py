"""
Membership Mirror — Keep slave rooms consistent with their master.

Given a membership event for user u in room R moving to bucket B:

| R has a master M? | B                 | Action                                            |
|-------------------|-------------------|---------------------------------------------------|
| yes               | active            | check u in M; if departed/removed, kick u from R  |
|                   |                   | and from every other slave of M                   |
| no                | active            | unban + promote u in every slave of R             |
| no                | departed, removed | kick u from every slave of R                      |
| yes               | departed, removed | nothing                                           |

Bot accounts are ignored.

## Fan-out Failures

Each remote call can fail on its own. FanoutPolicy.ABORT stops at the
first failure and records the remaining targets as skipped;
FanoutPolicy.BEST_EFFORT keeps going. Both return a MirrorReport with
every receipt so the caller can log or surface partial results.

The store lock is only taken for the binding reads, never across a
remote call.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import List, Tuple

from ..models.membership import Bucket, MembershipEvent, classify
from ..models.receipt import ActionName, ActionReceipt, ErrorDetails, MirrorReport
from ..persistence.bindings import BindingStore
from ..transport.base import MembershipActions, TransportError

logger = logging.getLogger(__name__)


class FanoutPolicy(str, Enum):
    """What to do when one target of a fan-out fails."""

    ABORT = "abort"
    BEST_EFFORT = "best_effort"


class MembershipMirror:
    """
    Decides and applies corrective membership actions for one event.

    Usage:
        mirror = MembershipMirror(store, transport)
        report = await mirror.handle(event)
    """

    def __init__(
        self,
        store: BindingStore,
        actions: MembershipActions,
        policy: FanoutPolicy = FanoutPolicy.ABORT,
    ):
        self.store = store
        self.actions = actions
        self.policy = policy

    async def handle(self, event: MembershipEvent) -> MirrorReport:
        """Apply the decision table to one event."""
        if event.is_bot:
            logger.debug(f"Ignoring bot user {event.user_id} in room {event.room_id}")
            return MirrorReport(event=event, rule="ignored")

        master = self.store.get_master(event.room_id)
        bucket = event.bucket

        if master is not None:
            if bucket is Bucket.ACTIVE:
                return await self._recheck_slave(event, master)
            return MirrorReport(event=event, rule="slave_departed")

        slaves = self.store.get_slaves(event.room_id)

        if bucket is Bucket.ACTIVE:
            steps: List[Tuple[ActionName, int]] = []
            for slave in slaves:
                steps.append(("unban", slave))
                steps.append(("promote", slave))
            report = MirrorReport(event=event, rule="master_restore")
        else:
            steps = [("kick", slave) for slave in slaves]
            report = MirrorReport(event=event, rule="master_remove")

        return await self._fan_out(report, steps)

    async def _recheck_slave(self, event: MembershipEvent, master: int) -> MirrorReport:
        """Validate a user who became active in a slave against its master."""
        try:
            standing = await self.actions.get_standing(master, event.user_id)
        except TransportError as e:
            logger.warning(
                f"Cannot check user {event.user_id} in master {master} "
                f"for room {event.room_id}: {e}"
            )
            return MirrorReport(
                event=event,
                rule="slave_recheck",
                aborted=True,
                error=ErrorDetails(code=e.code, message=str(e)),
            )

        if classify(standing) is Bucket.ACTIVE:
            logger.debug(
                f"User {event.user_id} is {standing.value} in master {master}, "
                f"room {event.room_id} is consistent"
            )
            return MirrorReport(event=event, rule="slave_consistent")

        logger.info(
            f"User {event.user_id} is {standing.value} in master {master} "
            f"but active in slave {event.room_id}, removing"
        )
        siblings = [s for s in self.store.get_slaves(master) if s != event.room_id]
        steps: List[Tuple[ActionName, int]] = [("kick", event.room_id)]
        steps.extend(("kick", sibling) for sibling in siblings)

        return await self._fan_out(MirrorReport(event=event, rule="slave_recheck"), steps)

    async def _fan_out(
        self,
        report: MirrorReport,
        steps: List[Tuple[ActionName, int]],
    ) -> MirrorReport:
        user_id = report.event.user_id

        for action, room_id in steps:
            if report.aborted:
                report.receipts.append(ActionReceipt.skipped(action, room_id, user_id))
                continue

            try:
                await getattr(self.actions, action)(room_id, user_id)
                report.receipts.append(ActionReceipt.ok(action, room_id, user_id))
            except TransportError as e:
                logger.warning(f"Mirror {action} of user {user_id} in room {room_id} failed: {e}")
                report.receipts.append(
                    ActionReceipt.failed(action, room_id, user_id, e.code, str(e))
                )
                if self.policy is FanoutPolicy.ABORT:
                    report.aborted = True
                    report.error = ErrorDetails(code=e.code, message=str(e))

        if report.receipts:
            done = sum(1 for r in report.receipts if r.status == "ok")
            logger.info(
                f"Mirrored {report.rule} for user {user_id} from room {report.event.room_id}: "
                f"{done}/{len(report.receipts)} actions ok"
                + (" (aborted)" if report.aborted else "")
            )

        return report
