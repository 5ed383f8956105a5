# protocol.py
# Plain-text conventions shared by the chat server and the terminal client.
# Every frame is a text message; server notices carry SERVER_TAG so clients
# can tell them apart from relayed chat lines.

from __future__ import annotations

import enum
from typing import Optional, Union

SERVER_TAG = "[Server]: "


class ControlToken(enum.Enum):
    """Closed set of recognized commands.

    EXIT is typed by chat clients; the others are operator commands read by
    the admin console and are never accepted over the network.
    """

    EXIT = "/exit"
    SHUTDOWN = "/shutdown"
    CLEAR = "/clear"
    USERS = "/users"


CLIENT_TOKENS = frozenset({ControlToken.EXIT})
ADMIN_TOKENS = frozenset({ControlToken.SHUTDOWN, ControlToken.CLEAR, ControlToken.USERS})


class ChatError(Exception):
    pass


class NameInUse(ChatError):
    def __init__(self, name: str):
        super().__init__(f"username already in use: {name!r}")
        self.name = name


class InvalidName(ChatError):
    def __init__(self, name: str):
        super().__init__(f"invalid username: {name!r}")
        self.name = name


class MalformedInbound(ChatError):
    pass


def parse_control(text: str) -> Optional[ControlToken]:
    """Return the control token `text` spells, ignoring case and surrounding whitespace."""
    candidate = (text or "").strip().lower()
    for token in ControlToken:
        if token.value == candidate:
            return token
    return None


def decode_frame(raw: Union[str, bytes]) -> str:
    if isinstance(raw, str):
        return raw
    try:
        return bytes(raw).decode("utf-8")
    except UnicodeDecodeError as e:
        raise MalformedInbound(f"binary frame is not valid UTF-8 ({len(raw)} bytes)") from e


def validate_username(text: str) -> str:
    name = (text or "").strip()
    if not name or parse_control(name) is not None:
        raise InvalidName(name)
    return name


def is_server_message(message: str) -> bool:
    return message.startswith(SERVER_TAG)


def server_message(text: str) -> str:
    return f"{SERVER_TAG}{text}"


def chat_line(username: str, text: str) -> str:
    return f"{username}: {text}"


def join_notice(username: str) -> str:
    return server_message(f"{username} joined the chat.")


def leave_notice(username: str) -> str:
    return server_message(f"{username} left the chat.")


def name_in_use_notice() -> str:
    return server_message("Error: username already in use. Please choose another one.")


def invalid_name_notice() -> str:
    return server_message("Error: invalid username. Please choose another one.")


def confirmation(username: str) -> str:
    return f'Connected as "{username}"\n\nType your message (/exit to leave):'


def _describe_delay(seconds: float) -> str:
    if seconds < 60:
        n = max(1, int(round(seconds)))
        return f"{n} second" + ("" if n == 1 else "s")
    n = max(1, int(round(seconds / 60)))
    return f"{n} minute" + ("" if n == 1 else "s")


def shutdown_warning(delay_seconds: float) -> str:
    return server_message(f"The server will close in {_describe_delay(delay_seconds)}.")


def closing_notice() -> str:
    return server_message("The server is closing...")
