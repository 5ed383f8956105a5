# registry.py
# Authoritative set of registered sessions and the usernames they hold.
#
# All access happens on the server's event loop and no method awaits, so each
# call is atomic with respect to other connection handlers. Running this from
# several threads would need a lock around every method.

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set, Tuple

from protocol import ChatError, NameInUse, validate_username

log = logging.getLogger(__name__)


class SessionState(enum.Enum):
    UNREGISTERED = "unregistered"
    REGISTERED = "registered"
    CLOSED = "closed"


@dataclass(eq=False)
class Session:
    connection: Any
    username: Optional[str] = None
    state: SessionState = SessionState.UNREGISTERED
    registered_at: float = 0.0


class Registry:
    def __init__(self):
        # connection -> session, kept in registration order
        self._sessions: Dict[Any, Session] = {}
        self._names: Set[str] = set()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, username: str) -> bool:
        return username in self._names

    def try_register(self, connection: Any, candidate: str, now: float = 0.0) -> Session:
        """Reserve `candidate` and create a registered session for `connection`.

        Raises InvalidName for an empty or reserved name and NameInUse when the
        name is already held. The registry is left untouched on failure.
        """
        name = validate_username(candidate)
        if connection in self._sessions:
            raise ChatError("connection is already registered")
        if name in self._names:
            raise NameInUse(name)

        session = Session(connection=connection, username=name,
                          state=SessionState.REGISTERED, registered_at=now)
        self._sessions[connection] = session
        self._names.add(name)
        log.debug("Registered %r (%d online)", name, len(self._sessions))
        return session

    def unregister(self, session: Session) -> bool:
        """Drop `session` and release its name. Returns False if it was already gone."""
        if self._sessions.get(session.connection) is not session:
            return False
        del self._sessions[session.connection]
        self._names.discard(session.username)
        session.state = SessionState.CLOSED
        log.debug("Unregistered %r (%d online)", session.username, len(self._sessions))
        return True

    def get(self, connection: Any) -> Optional[Session]:
        return self._sessions.get(connection)

    def sessions(self) -> Tuple[Session, ...]:
        return tuple(self._sessions.values())

    def list_usernames(self) -> List[str]:
        return [s.username for s in self._sessions.values()]
