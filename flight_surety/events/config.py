"""
Valkey connection settings for fact publishing, read from ``VALKEY_*`` variables.
"""

import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

from dotenv import load_dotenv


@dataclass
class ValkeyConfig:
    """Connection settings for the fact publisher."""

    host: str = "localhost"
    port: int = 6379
    password: Optional[str] = None
    database: int = 0
    max_connections: int = 10
    socket_timeout: float = 5.0
    max_connection_attempts: int = 3

    @classmethod
    def from_env(cls, prefix: str = "VALKEY_") -> "ValkeyConfig":
        """Build settings from the environment and an optional ``.env`` file."""
        load_dotenv()

        def env(name: str, default: str) -> str:
            return os.getenv(f"{prefix}{name}", default)

        return cls(
            host=env("HOST", cls.host),
            port=int(env("PORT", str(cls.port))),
            password=env("PASSWORD", "") or None,
            database=int(env("DATABASE", str(cls.database))),
            max_connections=int(env("MAX_CONNECTIONS", str(cls.max_connections))),
            socket_timeout=float(env("SOCKET_TIMEOUT", str(cls.socket_timeout))),
            max_connection_attempts=int(env("MAX_CONNECTION_ATTEMPTS", str(cls.max_connection_attempts))),
        )

    def to_connection_pool_kwargs(self) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "host": self.host,
            "port": self.port,
            "db": self.database,
            "max_connections": self.max_connections,
            "socket_timeout": self.socket_timeout,
            "socket_connect_timeout": self.socket_timeout,
            "decode_responses": True,
        }
        if self.password:
            kwargs["password"] = self.password
        return kwargs

    def __str__(self) -> str:
        secret = "***" if self.password else "None"
        return f"ValkeyConfig({self.host}:{self.port}/{self.database}, password={secret})"


class ValkeyConnectionError(Exception):
    """Raised when the Valkey server cannot be reached."""
