"""
pytest configuration and fixtures.
"""

import asyncio
import io
from typing import List, Optional

import pytest
from websockets.asyncio.client import connect
from websockets.exceptions import ConnectionClosedError, ConnectionClosedOK
from websockets.protocol import State

from config import ServerConfig
from console import OperatorConsole
from registry import Registry
from relay import Relay
from websocket_server import ChatServer


class FakeConnection:
    """In-memory stand-in for a server-side websocket connection."""

    def __init__(self, name: str = "conn", incoming: Optional[list] = None,
                 events: Optional[List[str]] = None):
        self.name = name
        self.remote_address = ("127.0.0.1", 50000)
        self.state = State.OPEN
        self.sent: List[str] = []
        self.close_calls: list = []
        self.incoming = list(incoming or [])
        self.fail_send = False
        self.error_after_incoming = False
        self.events = events if events is not None else []

    async def send(self, message: str) -> None:
        if self.fail_send:
            raise ConnectionClosedError(None, None)
        if self.state is not State.OPEN:
            raise ConnectionClosedOK(None, None)
        self.sent.append(message)

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.close_calls.append((code, reason))
        if self.state is not State.CLOSED:
            self.events.append(f"closed:{self.name}")
        self.state = State.CLOSED

    async def wait_closed(self) -> None:
        self.state = State.CLOSED

    def __aiter__(self):
        return self._frames()

    async def _frames(self):
        for frame in self.incoming:
            if self.state is not State.OPEN:
                return
            yield frame
        if self.error_after_incoming:
            raise ConnectionClosedError(None, None)


class FakeListener:
    def __init__(self, events: Optional[List[str]] = None):
        self.events = events if events is not None else []
        self.close_count = 0

    def close(self) -> None:
        self.close_count += 1
        self.events.append("listener:close")

    async def wait_closed(self) -> None:
        self.events.append("listener:closed")


@pytest.fixture
def output() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def console(output) -> OperatorConsole:
    return OperatorConsole(out=output, color=False)


@pytest.fixture
def registry() -> Registry:
    return Registry()


@pytest.fixture
def relay(registry, console) -> Relay:
    return Relay(registry, console)


# --------------------------- live server helpers ----------------------------

TIMEOUT = 5


def make_server():
    config = ServerConfig(host="127.0.0.1", port=0, schedule=False, admin_console=False)
    return ChatServer(config, OperatorConsole(out=io.StringIO(), color=False))


async def recv(ws, timeout: float = TIMEOUT) -> str:
    return await asyncio.wait_for(ws.recv(), timeout)


async def join(server, name: str):
    """Connect a real client, register `name` and consume the confirmation."""
    ws = await connect(f"ws://127.0.0.1:{server.port}")
    await ws.send(name)
    reply = await recv(ws)
    assert f'"{name}"' in reply
    return ws
