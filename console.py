# console.py
# Operator display of the chat server: what an operator watching the server
# terminal sees. Diagnostics go through `logging`; this is only the chat view.

from __future__ import annotations

import asyncio
import sys
import threading
from typing import Callable, Iterable, TextIO

from colorama import Cursor, Fore, Style, init as colorama_init
from colorama.ansi import clear_screen

from protocol import is_server_message


class OperatorConsole:
    def __init__(self, out: TextIO = None, color: bool = True):
        self.out = out or sys.stdout
        self.color = color
        self.banner = ""
        if color:
            colorama_init(autoreset=True)

    def _paint(self, style: str, text: str) -> str:
        if not self.color:
            return text
        return style + text + Style.RESET_ALL

    def _print(self, text: str) -> None:
        print(text, file=self.out, flush=True)

    def show(self, message: str) -> None:
        """Print a broadcast message; server notices are highlighted."""
        if is_server_message(message):
            self._print(self._paint(Fore.MAGENTA, message))
        else:
            self._print(message)

    def chat(self, username: str, text: str) -> None:
        self._print(self._paint(Fore.BLUE, f"✉  {username}: {text}"))

    def joined(self, username: str) -> None:
        self._print(self._paint(Fore.YELLOW, f"→ {username} connected"))

    def left(self, username: str) -> None:
        self._print(self._paint(Fore.YELLOW, f"← {username} disconnected"))

    def alert(self, text: str) -> None:
        self._print(self._paint(Fore.RED + Style.BRIGHT, text))

    def error(self, text: str) -> None:
        self._print(self._paint(Fore.RED, text))

    def users(self, names: Iterable[str]) -> None:
        self._print("Connected users: " + ", ".join(names))

    def clear(self) -> None:
        if self.color:
            self.out.write(clear_screen() + Cursor.POS(1, 1))
        if self.banner:
            self._print(self._paint(Fore.GREEN + Style.BRIGHT, self.banner))


def line_queue(readline: Callable[[], str] = None) -> asyncio.Queue:
    """Feed lines from `readline` into a queue on the running loop.

    The reader is a daemon thread so a blocked stdin read never keeps the
    process alive. An empty string is queued once input is exhausted.
    """
    readline = readline or sys.stdin.readline
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()

    def _read() -> None:
        try:
            for line in iter(readline, ""):
                loop.call_soon_threadsafe(queue.put_nowait, line)
            loop.call_soon_threadsafe(queue.put_nowait, "")
        except RuntimeError:
            # loop already closed
            return

    threading.Thread(target=_read, name="stdin-reader", daemon=True).start()
    return queue
