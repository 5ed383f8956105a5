# relay.py
# Fire-and-forget broadcast to registered sessions.
#
# broadcast() snapshots the registry, starts one send task per open recipient
# and returns without waiting. Recipients that are not open, or whose send
# fails, are pruned from the live registry after the snapshot has been walked.

from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Optional, Set

from websockets.exceptions import ConnectionClosed
from websockets.protocol import State

from registry import Registry, Session

log = logging.getLogger(__name__)


def is_open(connection: Any) -> bool:
    return getattr(connection, "state", None) is State.OPEN


class Relay:
    def __init__(self, registry: Registry, console=None):
        self.registry = registry
        self.console = console
        self._pending: Set[asyncio.Task] = set()

    def broadcast(self, message: str, exclude: Optional[Any] = None, log_locally: bool = True) -> int:
        """Queue `message` for every open registered connection except `exclude`.

        Returns the number of recipients a send was started for.
        """
        if log_locally and self.console is not None:
            self.console.show(message)

        dead: List[Session] = []
        started = 0
        for session in self.registry.sessions():
            conn = session.connection
            if exclude is not None and conn is exclude:
                continue
            if not is_open(conn):
                dead.append(session)
                continue
            self._spawn(session, message)
            started += 1

        for session in dead:
            self.prune(session)
        return started

    def prune(self, session: Session) -> None:
        if self.registry.unregister(session):
            log.info("Pruned unreachable session %r", session.username)

    async def flush(self) -> None:
        """Wait until every queued send has completed or failed."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _spawn(self, session: Session, message: str) -> None:
        task = asyncio.get_running_loop().create_task(self._deliver(session, message))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, session: Session, message: str) -> None:
        try:
            await session.connection.send(message)
        except ConnectionClosed as e:
            log.info("Send to %s failed, connection closed: %s", session.username, e)
            self.prune(session)
        except Exception:
            log.exception("Send to %s failed", session.username)
            self.prune(session)
