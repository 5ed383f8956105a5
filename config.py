# config.py
# Command line / environment configuration for the chat server and client.

from __future__ import annotations

import argparse
import os
from dataclasses import dataclass
from typing import List, Optional

DEFAULT_PORT = 8080
SHUTDOWN_WARNING_TIME = 30   # seconds after start until the warning
SHUTDOWN_DELAY = 400         # seconds between the warning and the shutdown


def _env_flag(name: str) -> bool:
    return os.getenv(name, "0").strip().lower() in ("1", "true", "yes", "on")


@dataclass
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = DEFAULT_PORT
    warning_after: float = SHUTDOWN_WARNING_TIME
    shutdown_delay: float = SHUTDOWN_DELAY
    schedule: bool = True
    admin_console: bool = True
    log_level: str = "INFO"

    @property
    def url(self) -> str:
        return f"ws://{self.host}:{self.port}"

    @classmethod
    def from_args(cls, argv: Optional[List[str]] = None) -> "ServerConfig":
        ap = argparse.ArgumentParser(description="Terminal chat server")
        ap.add_argument("--host", default=os.getenv("CHAT_HOST", "127.0.0.1"))
        ap.add_argument("--port", type=int, default=int(os.getenv("CHAT_PORT", str(DEFAULT_PORT))))
        ap.add_argument("--warning-after", type=float,
                        default=float(os.getenv("CHAT_WARNING_AFTER", str(SHUTDOWN_WARNING_TIME))),
                        help="seconds after start before the shutdown warning is sent")
        ap.add_argument("--shutdown-delay", type=float,
                        default=float(os.getenv("CHAT_SHUTDOWN_DELAY", str(SHUTDOWN_DELAY))),
                        help="seconds between the warning and the shutdown")
        ap.add_argument("--no-schedule", action="store_true", default=_env_flag("CHAT_NO_SCHEDULE"),
                        help="disable the scheduled shutdown")
        ap.add_argument("--no-admin", action="store_true", default=_env_flag("CHAT_NO_ADMIN"),
                        help="do not read admin commands from stdin")
        ap.add_argument("--log-level", default=os.getenv("CHAT_LOG_LEVEL", "INFO"))
        args = ap.parse_args(argv)
        return cls(
            host=args.host,
            port=args.port,
            warning_after=args.warning_after,
            shutdown_delay=args.shutdown_delay,
            schedule=not args.no_schedule,
            admin_console=not args.no_admin,
            log_level=args.log_level.upper(),
        )


@dataclass
class ClientConfig:
    url: str = f"ws://localhost:{DEFAULT_PORT}"
    log_level: str = "WARNING"

    @classmethod
    def from_args(cls, argv: Optional[List[str]] = None) -> "ClientConfig":
        ap = argparse.ArgumentParser(description="Terminal chat client")
        ap.add_argument("--url", default=os.getenv("CHAT_SERVER_URL", f"ws://localhost:{DEFAULT_PORT}"))
        ap.add_argument("--log-level", default=os.getenv("CHAT_LOG_LEVEL", "WARNING"))
        args = ap.parse_args(argv)
        return cls(url=args.url, log_level=args.log_level.upper())
