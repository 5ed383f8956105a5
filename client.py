# client.py
# Terminal chat client.
# Run: python client.py --url ws://localhost:8080

import asyncio
import logging
import sys
from typing import Callable, List, Optional, TextIO

from colorama import Fore, Style, init as colorama_init
from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidURI

from config import ClientConfig
from console import line_queue
from protocol import ControlToken, is_server_message, parse_control

log = logging.getLogger(__name__)


def colored(kind: str, text: str) -> str:
    if kind == "server":
        return Fore.MAGENTA + text + Style.RESET_ALL
    if kind == "error":
        return Fore.RED + text + Style.RESET_ALL
    if kind == "system":
        return Fore.YELLOW + text + Style.RESET_ALL
    if kind == "hint":
        return Style.DIM + text + Style.RESET_ALL
    if kind == "title":
        return Fore.GREEN + Style.BRIGHT + text + Style.RESET_ALL
    return text


def format_incoming(message: str) -> str:
    return colored("server", message) if is_server_message(message) else message


async def receive_loop(ws: ClientConnection, out: TextIO) -> None:
    try:
        async for message in ws:
            if isinstance(message, bytes):
                message = message.decode("utf-8", errors="replace")
            print(format_incoming(message), file=out, flush=True)
    except ConnectionClosed as e:
        log.debug("Receive loop ended: %s", e)


async def input_loop(ws: ClientConnection, queue: asyncio.Queue) -> None:
    while True:
        line = await queue.get()
        if not line or parse_control(line) is ControlToken.EXIT:
            # /exit is handled locally, nothing is sent
            await ws.close()
            return
        if line.strip():
            await ws.send(line.rstrip("\r\n"))


async def run_client(config: ClientConfig, readline: Optional[Callable[[], str]] = None,
                     out: TextIO = None) -> int:
    out = out or sys.stdout
    queue = line_queue(readline)

    print(colored("title", "Welcome to the terminal chat\n"), file=out)
    print(colored("system", "Please enter your username:"), file=out, flush=True)
    username = (await queue.get()).strip()
    if not username:
        print(colored("error", "No username given"), file=out)
        return 1

    try:
        async with connect(config.url) as ws:
            await ws.send(username)
            print(colored("hint", "Type your message (/exit to leave)\n"), file=out, flush=True)

            receiver = asyncio.create_task(receive_loop(ws, out))
            sender = asyncio.create_task(input_loop(ws, queue))
            done, pending = await asyncio.wait({receiver, sender}, return_when=asyncio.FIRST_COMPLETED)
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            for task in done:
                exc = task.exception()
                if exc is not None and not isinstance(exc, ConnectionClosed):
                    raise exc
    except (OSError, InvalidURI, InvalidHandshake) as e:
        print(colored("error", f"Connection error: {e}"), file=out, flush=True)
        return 1

    print(colored("system", "\nDisconnected from server"), file=out, flush=True)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    config = ClientConfig.from_args(argv)
    logging.basicConfig(level=config.log_level, format="%(asctime)s [%(levelname)s] %(message)s")
    colorama_init(autoreset=True)
    try:
        return asyncio.run(run_client(config))
    except KeyboardInterrupt:
        print("\nStopping...")
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
