# shutdown.py
# Graceful shutdown of the chat server.
#
# The admin console, signals and the scheduled timer all go through
# `request_shutdown()`. The close sequence runs once; an immediate request
# ends a running grace period early.

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional

from websockets.protocol import State

from protocol import closing_notice, shutdown_warning
from registry import Registry
from relay import Relay

log = logging.getLogger(__name__)

GOING_AWAY = 1001


async def close_connection(connection: Any, reason: str = "Server shutdown") -> None:
    """Close `connection` and wait until the closing handshake has finished.

    Bounded by the transport's own close timeout.
    """
    state = getattr(connection, "state", None)
    if state is State.CLOSED:
        return
    if state is State.OPEN:
        await connection.close(GOING_AWAY, reason)
    await connection.wait_closed()


class ShutdownCoordinator:
    def __init__(self, registry: Registry, relay: Relay, console=None,
                 on_exit: Optional[Callable[[], Any]] = None):
        self.registry = registry
        self.relay = relay
        self.console = console
        self.on_exit = on_exit
        self.listener: Any = None
        self.finished = asyncio.Event()
        self._now = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self._timer: Optional[asyncio.Task] = None

    @property
    def started(self) -> bool:
        return self._task is not None

    def attach(self, listener: Any) -> None:
        """Set the listening transport closed at the end of the sequence."""
        self.listener = listener

    def request_shutdown(self, reason: str = "Shutdown requested", grace: float = 0.0) -> asyncio.Task:
        """Start the shutdown sequence without waiting for it.

        An immediate request (no grace) also ends a grace period that is
        already running. The close sequence itself runs once.
        """
        if grace <= 0:
            self._now.set()
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._run(reason, grace))
        else:
            log.info("Shutdown already in progress: %s", reason)
        return self._task

    async def shutdown(self, reason: str = "Shutdown requested", grace: float = 0.0) -> None:
        """Run the shutdown sequence, or wait for the one already running.

        With a positive `grace` every registered session is warned first and
        the connections stay open for that many seconds, unless an immediate
        shutdown is requested meanwhile.
        """
        await asyncio.shield(self.request_shutdown(reason, grace))

    def schedule(self, warning_after: float, delay: float) -> asyncio.Task:
        """Start the timer: warn after `warning_after` seconds, close `delay` seconds later."""
        self._timer = asyncio.get_running_loop().create_task(self._scheduled(warning_after, delay))
        return self._timer

    async def _scheduled(self, warning_after: float, delay: float) -> None:
        await asyncio.sleep(warning_after)
        await self.shutdown("Scheduled shutdown time reached", grace=delay)

    async def _run(self, reason: str, grace: float) -> None:
        log.info("Shutting down: %s", reason)
        if self.console is not None:
            self.console.alert(reason)

        if grace > 0:
            warning = shutdown_warning(grace)
            if self.console is not None:
                self.console.alert(warning)
            self.relay.broadcast(warning, log_locally=False)
            try:
                await asyncio.wait_for(self._now.wait(), grace)
                log.info("Grace period cut short")
            except asyncio.TimeoutError:
                pass

        sessions = self.registry.sessions()
        self.relay.broadcast(closing_notice(), log_locally=False)
        await self.relay.flush()

        log.info("Closing %d client connection(s)", len(sessions))
        results = await asyncio.gather(
            *(close_connection(s.connection) for s in sessions), return_exceptions=True
        )
        for session, result in zip(sessions, results):
            if isinstance(result, Exception):
                log.warning("Closing %s failed: %s", session.username, result)

        if self.listener is not None:
            self.listener.close()
            await self.listener.wait_closed()
        log.info("Listener closed")
        if self.console is not None:
            self.console.alert("✅ Server closed cleanly")

        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self.finished.set()
        if self.on_exit is not None:
            self.on_exit()
