"""
Configuration for the Concourse SDK.

Connection settings come from explicit arguments or environment variables.
There is no configuration file.

Invariants:
    - All settings have defaults that reach a local development server
    - The password is never included in repr() or log output
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field


def _env_bool(name: str, default: bool) -> bool:
    return os.getenv(name, "true" if default else "false").lower() == "true"


def _env_number(name: str, default: str, cast: type) -> float | int:
    raw = os.getenv(name, default)
    try:
        return cast(raw)
    except ValueError:
        raise ValueError(f"Invalid {name} '{raw}'. Must be a number") from None


@dataclass(frozen=True)
class ClientConfig:
    """Client connection configuration.

    Attributes:
        host: Server hostname
        port: Server port
        username: Username for the login handshake
        password: Password for the login handshake
        environment: Server environment ("" selects the server default)
        secure: Whether to use TLS
        connect_timeout: Seconds to wait for the server at connect time
        request_timeout: Per-call deadline in seconds (None for no deadline)
        strict_transactions: Whether commit()/abort() outside a transaction
            raise instead of doing nothing
        logout_on_close: Whether close() ends the server session
    """

    host: str = "localhost"
    port: int = 1717
    username: str = "admin"
    password: str = field(default="admin", repr=False)
    environment: str = ""
    secure: bool = False
    connect_timeout: float = 10.0
    request_timeout: float | None = None
    strict_transactions: bool = False
    logout_on_close: bool = True

    @classmethod
    def from_env(cls) -> ClientConfig:
        """Load configuration from environment variables.

        Raises:
            ValueError: If a numeric setting is not a number
        """
        return cls(
            host=os.getenv("CONCOURSE_HOST", "localhost"),
            port=int(_env_number("CONCOURSE_PORT", "1717", int)),
            username=os.getenv("CONCOURSE_USERNAME", "admin"),
            password=os.getenv("CONCOURSE_PASSWORD", "admin"),
            environment=os.getenv("CONCOURSE_ENVIRONMENT", ""),
            secure=_env_bool("CONCOURSE_SECURE", False),
            connect_timeout=float(_env_number("CONCOURSE_CONNECT_TIMEOUT", "10.0", float)),
            request_timeout=(
                float(_env_number("CONCOURSE_REQUEST_TIMEOUT", "", float))
                if os.getenv("CONCOURSE_REQUEST_TIMEOUT")
                else None
            ),
            strict_transactions=_env_bool("CONCOURSE_STRICT_TRANSACTIONS", False),
            logout_on_close=_env_bool("CONCOURSE_LOGOUT_ON_CLOSE", True),
        )

    @property
    def address(self) -> str:
        """Server address as host:port."""
        return f"{self.host}:{self.port}"
