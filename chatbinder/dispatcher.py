"""
Dispatcher — Poll for updates and route them to the mirror or commands.

Each update is handled in its own asyncio task so a slow remote call
for one room does not hold up the others. On SIGINT/SIGTERM polling
stops, in-flight tasks get a grace period, and the store is flushed
once more before the process exits.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from typing import Any, Dict, Optional, Set

from .commands import CommandHandler
from .mirror.membership import MembershipMirror
from .persistence.bindings import BindingStore
from .persistence.kv_file import StoreWriteError
from .transport.base import TransportError
from .transport.telegram import (
    TelegramTransport,
    parse_command_message,
    parse_member_update,
)

logger = logging.getLogger(__name__)

# Pause after a failed getUpdates before polling again
POLL_ERROR_PAUSE_SECONDS = 5


class Dispatcher:
    """
    Long-polling update loop.

    Usage:
        dispatcher = Dispatcher(telegram, store, mirror, CommandHandler(store))
        await dispatcher.run()
    """

    def __init__(
        self,
        telegram: TelegramTransport,
        store: BindingStore,
        mirror: MembershipMirror,
        commands: CommandHandler,
        poll_timeout: int = 30,
        shutdown_grace_seconds: float = 10,
    ):
        self.telegram = telegram
        self.store = store
        self.mirror = mirror
        self.commands = commands
        self.poll_timeout = poll_timeout
        self.shutdown_grace_seconds = shutdown_grace_seconds
        self._tasks: Set[asyncio.Task] = set()
        self._offset: Optional[int] = None

    async def process_update(self, update: Dict[str, Any]) -> None:
        """Handle a single update."""
        update_id = update.get("update_id")

        event = parse_member_update(update)
        if event is not None:
            report = await self.mirror.handle(event)
            if not report.ok:
                logger.warning(
                    f"Mirroring for user {event.user_id} in room {event.room_id} "
                    f"incomplete: {len(report.failed)} failed, aborted={report.aborted}",
                    extra={"update_id": update_id, "room_id": event.room_id, "user_id": event.user_id},
                )
            return

        message = parse_command_message(update)
        if message is None:
            return

        room_id, text = message
        reply = self.commands.handle(room_id, text)
        if reply is None:
            return

        try:
            await self.telegram.send_message(room_id, reply)
        except TransportError as e:
            logger.warning(
                f"Cannot reply in room {room_id}: {e}",
                extra={"update_id": update_id, "room_id": room_id},
            )

    async def _run_update(self, update: Dict[str, Any]) -> None:
        try:
            await self.process_update(update)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception(
                f"Unhandled error in update {update.get('update_id')}",
                extra={"update_id": update.get("update_id")},
            )

    def spawn(self, update: Dict[str, Any]) -> asyncio.Task:
        """Start a task for an update and track it until it finishes."""
        task = asyncio.create_task(self._run_update(update))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def poll_once(self) -> int:
        """Fetch one batch of updates and dispatch it. Returns the batch size."""
        updates = await self.telegram.get_updates(self._offset, self.poll_timeout)
        for update in updates:
            self._offset = update["update_id"] + 1
            self.spawn(update)
        return len(updates)

    async def poll_forever(self) -> None:
        while True:
            try:
                await self.poll_once()
            except TransportError as e:
                logger.warning(f"Polling failed: {e}")
                await asyncio.sleep(POLL_ERROR_PAUSE_SECONDS)

    async def shutdown(self) -> None:
        """Drain in-flight tasks, close the transport, flush the store."""
        if self._tasks:
            logger.info(f"Waiting for {len(self._tasks)} in-flight update(s)")
            _, pending = await asyncio.wait(
                set(self._tasks), timeout=self.shutdown_grace_seconds
            )
            for task in pending:
                task.cancel()
            if pending:
                logger.warning(f"Abandoned {len(pending)} update(s) after grace period")
                await asyncio.gather(*pending, return_exceptions=True)

        await self.telegram.close()

        logger.info("Dumping store")
        try:
            self.store.flush()
            logger.info("Store dumped successfully")
        except StoreWriteError as e:
            logger.error(f"Cannot dump store: {e}")

    async def run(self) -> None:
        """Poll until SIGINT/SIGTERM, then shut down cleanly."""
        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, stop.set)
            except NotImplementedError:
                # Windows may not support SIGTERM
                pass

        poller = asyncio.create_task(self.poll_forever())
        stopper = asyncio.create_task(stop.wait())
        logger.info("Starting bot polling")
        try:
            done, _ = await asyncio.wait(
                {poller, stopper}, return_when=asyncio.FIRST_COMPLETED
            )
            if poller in done:
                logger.error(f"Polling stopped unexpectedly: {poller.exception()!r}")
            else:
                logger.info("Shutdown requested")
        finally:
            for task in (poller, stopper):
                task.cancel()
            await asyncio.gather(poller, stopper, return_exceptions=True)
            await self.shutdown()
