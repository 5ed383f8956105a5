# admin_console.py
# Operator commands read from the server's stdin:
#   /shutdown  graceful shutdown now
#   /clear     clear the operator display
#   /users     list registered usernames

from __future__ import annotations

import logging
from typing import Callable, Optional

from console import line_queue
from protocol import ADMIN_TOKENS, ControlToken, parse_control
from registry import Registry
from shutdown import ShutdownCoordinator

log = logging.getLogger(__name__)

HELP = "Commands: /shutdown, /clear, /users"


class AdminConsole:
    def __init__(self, registry: Registry, coordinator: ShutdownCoordinator, console,
                 readline: Optional[Callable[[], str]] = None):
        self.registry = registry
        self.coordinator = coordinator
        self.console = console
        self.readline = readline

    async def handle_line(self, line: str) -> Optional[ControlToken]:
        if not line.strip():
            return None
        token = parse_control(line)
        if token not in ADMIN_TOKENS:
            self.console.error(f"Unknown command {line.strip()!r}. {HELP}")
            return None

        if token is ControlToken.SHUTDOWN:
            log.info("Admin requested shutdown")
            await self.coordinator.shutdown("Shutdown by admin command")
        elif token is ControlToken.CLEAR:
            self.console.clear()
        elif token is ControlToken.USERS:
            self.console.users(self.registry.list_usernames())
        return token

    async def run(self) -> None:
        """Read commands until stdin closes or the server has shut down."""
        queue = line_queue(self.readline)
        while not self.coordinator.finished.is_set():
            line = await queue.get()
            if not line:
                log.debug("Admin console input closed")
                return
            token = await self.handle_line(line)
            if token is ControlToken.SHUTDOWN:
                return
