"""
websocket_logic.py

Per-connection protocol handling for the terminal chat server.

Each connection starts unregistered. Its first frame is the requested
username; once the name is accepted every further frame is a chat line that
is relayed to everybody else as "<username>: <text>". The only command a
client can send is /exit, which closes its own connection.

    UNREGISTERED --(free name)--> REGISTERED --(close/error)--> CLOSED
         |                                                        ^
         +--(name in use / invalid, or close)---------------------+

Usage (in websocket_server.py):

    async def handler(ws):
        await handle(ws, registry, relay, console)

Notes:
- The registry and relay are owned by the server and passed in; nothing here
  keeps module level state.
- Frames of one connection are processed one at a time by `handle`.
- A transport error tears the session down through the same path as a close,
  so the departure notice is always attempted.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional

from websockets.exceptions import ConnectionClosed, ConnectionClosedError, ConnectionClosedOK

from protocol import (
    ControlToken,
    InvalidName,
    MalformedInbound,
    NameInUse,
    chat_line,
    confirmation,
    decode_frame,
    invalid_name_notice,
    join_notice,
    leave_notice,
    name_in_use_notice,
    parse_control,
)
from registry import Registry, Session, SessionState
from relay import Relay

log = logging.getLogger(__name__)


class ChatSession:
    def __init__(self, connection: Any, registry: Registry, relay: Relay,
                 console=None, clock: Callable[[], float] = time.time):
        self.connection = connection
        self.registry = registry
        self.relay = relay
        self.console = console
        self.clock = clock
        self.session: Optional[Session] = None
        self._closed = False

    @property
    def state(self) -> SessionState:
        if self._closed:
            return SessionState.CLOSED
        if self.session is None:
            return SessionState.UNREGISTERED
        return SessionState.REGISTERED

    @property
    def username(self) -> Optional[str]:
        return self.session.username if self.session is not None else None

    # --------------------------- inbound events -----------------------------

    async def on_message(self, text: str) -> None:
        if self._closed:
            return
        message = text.strip()

        if self.session is None:
            await self._register(message)
            return

        if self.registry.get(self.connection) is not self.session:
            # pruned by the relay; the name may already belong to someone else
            log.info("%s is no longer registered, closing", self.username)
            await self.connection.close()
            return

        if parse_control(message) is ControlToken.EXIT:
            log.info("%s asked to leave", self.username)
            await self.connection.close()
            return

        if not message:
            return

        if self.console is not None:
            self.console.chat(self.username, message)
        self.relay.broadcast(chat_line(self.username, message),
                             exclude=self.connection, log_locally=False)

    def on_error(self, error: BaseException) -> None:
        log.warning("Error with %s: %s", self.username or "client", error)
        if self.console is not None:
            self.console.error(f"⚠ Error with {self.username or 'client'}: {error}")
        if self.session is not None:
            self.registry.unregister(self.session)

    def on_close(self) -> None:
        if self._closed:
            return
        self._closed = True
        session = self.session
        if session is None:
            return

        self.registry.unregister(session)
        log.info("%s disconnected", session.username)
        if self.console is not None:
            self.console.left(session.username)
        self.relay.broadcast(leave_notice(session.username), exclude=self.connection)

    # --------------------------- helpers ------------------------------------

    async def _register(self, candidate: str) -> None:
        try:
            session = self.registry.try_register(self.connection, candidate, now=self.clock())
        except NameInUse as e:
            log.info("Rejected connection: %s", e)
            await self._reject(name_in_use_notice())
            return
        except InvalidName as e:
            log.info("Rejected connection: %s", e)
            await self._reject(invalid_name_notice())
            return

        self.session = session
        log.info("%s registered", session.username)
        if self.console is not None:
            self.console.joined(session.username)
        self.relay.broadcast(join_notice(session.username), exclude=self.connection)
        await self.connection.send(confirmation(session.username))

    async def _reject(self, notice: str) -> None:
        self._closed = True
        try:
            await self.connection.send(notice)
        finally:
            await self.connection.close()


async def handle(ws: Any, registry: Registry, relay: Relay, console=None) -> None:
    log.info("New WS connection from %s", getattr(ws, "remote_address", None))
    chat = ChatSession(ws, registry, relay, console)

    try:
        async for raw in ws:
            try:
                text = decode_frame(raw)
            except MalformedInbound as e:
                log.warning("Discarded frame from %s: %s", chat.username or "client", e)
                continue

            try:
                await chat.on_message(text)
            except ConnectionClosed:
                raise
            except Exception:
                log.exception("Error processing message from %s", chat.username or "client")

    except ConnectionClosedError as e:
        chat.on_error(e)
    except ConnectionClosedOK:
        pass
    finally:
        chat.on_close()
