# websocket_server.py
# Terminal chat server: plain-text WebSocket frames, unique usernames.
# Supports:
# - first frame = username, rejected if already taken
# - chat lines relayed to everybody else as "<username>: <text>"
# - /exit from a client closes its connection
# - admin console on stdin: /shutdown, /clear, /users
# - scheduled shutdown: warning after a fixed time, close after a fixed delay
#
# Run: python websocket_server.py --host 0.0.0.0 --port 8080

import asyncio
import logging
import signal
from typing import List, Optional

from websockets.asyncio.server import Server, serve

from admin_console import AdminConsole
from config import ServerConfig
from console import OperatorConsole
from registry import Registry
from relay import Relay
from shutdown import ShutdownCoordinator
from websocket_logic import handle

log = logging.getLogger(__name__)


class ChatServer:
    def __init__(self, config: ServerConfig, console: Optional[OperatorConsole] = None):
        self.config = config
        self.console = console or OperatorConsole()
        self.registry = Registry()
        self.relay = Relay(self.registry, self.console)
        self.coordinator = ShutdownCoordinator(self.registry, self.relay, self.console)
        self.server: Optional[Server] = None

    @property
    def port(self) -> int:
        """Bound port; differs from the configured one when that was 0."""
        if self.server is None:
            return self.config.port
        return self.server.sockets[0].getsockname()[1]

    async def handler(self, ws) -> None:
        await handle(ws, self.registry, self.relay, self.console)

    async def start(self) -> Server:
        self.server = await serve(self.handler, self.config.host, self.config.port)
        self.coordinator.attach(self.server)
        self.console.banner = f"🚀 Chat server running on ws://{self.config.host}:{self.port}"
        self.console.clear()
        log.info("WS server on ws://%s:%d", self.config.host, self.port)
        return self.server

    def _on_signal(self, sig: signal.Signals) -> None:
        log.info("Received %s", sig.name)
        self.coordinator.request_shutdown(f"Received {sig.name}")

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self._on_signal, sig)
            except (NotImplementedError, RuntimeError):
                # not supported on this platform; Ctrl+C raises KeyboardInterrupt instead
                pass

    async def run(self) -> None:
        await self.start()
        self._install_signal_handlers()

        if self.config.schedule:
            self.coordinator.schedule(self.config.warning_after, self.config.shutdown_delay)
            log.info("Scheduled shutdown warning in %.0fs, shutdown %.0fs later",
                     self.config.warning_after, self.config.shutdown_delay)

        admin_task = None
        if self.config.admin_console:
            admin_task = asyncio.create_task(AdminConsole(self.registry, self.coordinator, self.console).run())

        await self.coordinator.finished.wait()
        if admin_task is not None and not admin_task.done():
            admin_task.cancel()


def main(argv: Optional[List[str]] = None) -> int:
    config = ServerConfig.from_args(argv)
    logging.basicConfig(level=config.log_level, format="%(asctime)s [%(levelname)s] %(message)s")
    try:
        asyncio.run(ChatServer(config).run())
    except KeyboardInterrupt:
        print("\nStopping...")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
