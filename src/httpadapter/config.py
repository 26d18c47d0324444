"""
=============================================================================
ADAPTER CONFIGURATION
=============================================================================

Centralized configuration for the transport, the response writer and the
diagnostics.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m httpadapter --port 3000                         │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── HTTPADAPTER_PORT=3000 python -m httpadapter               │
    │                                                                      │
    │   3. Default values (in this dataclass)                            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

import os
from dataclasses import dataclass, field
from typing import Optional, Tuple

DEFAULT_SERVER_NAME = "httpadapter with Python"


@dataclass
class AdapterConfig:
    """
    Configuration for serving a Handler.

    NETWORK SETTINGS
    - host, port, backlog

    TRANSPORT SETTINGS
    - read_chunk_size, read_timeout, keep_alive, shutdown_timeout

    RESPONSE WRITER
    - server_name

    DIAGNOSTICS
    - log_level, log_format, trace_deny_packages
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """IP address to bind to. "0.0.0.0" listens on all interfaces."""

    port: int = 8080
    """Port to listen on. 0 lets the OS pick a free port."""

    backlog: int = 100
    """Maximum number of queued, not yet accepted connections."""

    # ─────────────────────────────────────────────────────────────────────
    # TRANSPORT SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    read_chunk_size: int = 64 * 1024
    """Bytes requested from the socket per read."""

    read_timeout: Optional[float] = 30.0
    """
    Seconds to wait for request bytes before closing the connection.
    Also bounds how long an idle keep-alive connection stays open.
    None waits forever.
    """

    keep_alive: bool = True
    """Serve several requests per connection when the client allows it."""

    shutdown_timeout: float = 5.0
    """Seconds ``RequestServer.close()`` waits for connections to finish."""

    # ─────────────────────────────────────────────────────────────────────
    # RESPONSE WRITER
    # ─────────────────────────────────────────────────────────────────────

    server_name: str = DEFAULT_SERVER_NAME
    """Default Server header, written only if the response has none."""

    # ─────────────────────────────────────────────────────────────────────
    # DIAGNOSTICS
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)."""

    log_format: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    """Format handed to logging.basicConfig by ``setup_logging``."""

    trace_deny_packages: Tuple[str, ...] = field(default_factory=lambda: ("httpadapter",))
    """Packages folded out of diagnostic traces (stdlib is always folded)."""

    @classmethod
    def from_env(cls) -> "AdapterConfig":
        """
        Create configuration from environment variables.

        HTTPADAPTER_HOST          Server host (default: 127.0.0.1)
        HTTPADAPTER_PORT          Server port (default: 8080)
        HTTPADAPTER_BACKLOG       Accept backlog (default: 100)
        HTTPADAPTER_READ_TIMEOUT  Read timeout in seconds (default: 30)
        HTTPADAPTER_KEEP_ALIVE    "0" disables keep-alive (default: 1)
        HTTPADAPTER_SERVER_NAME   Default Server header
        HTTPADAPTER_LOG_LEVEL     Logging level (default: INFO)
        """
        return cls(
            host=os.getenv("HTTPADAPTER_HOST", "127.0.0.1"),
            port=int(os.getenv("HTTPADAPTER_PORT", "8080")),
            backlog=int(os.getenv("HTTPADAPTER_BACKLOG", "100")),
            read_timeout=float(os.getenv("HTTPADAPTER_READ_TIMEOUT", "30")),
            keep_alive=os.getenv("HTTPADAPTER_KEEP_ALIVE", "1") not in ("0", "false", "no"),
            server_name=os.getenv("HTTPADAPTER_SERVER_NAME", DEFAULT_SERVER_NAME),
            log_level=os.getenv("HTTPADAPTER_LOG_LEVEL", "INFO"),
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ValueError: On the first invalid setting.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.backlog < 0:
            raise ValueError("backlog must be >= 0")

        if self.read_chunk_size < 1024:
            raise ValueError("read_chunk_size must be >= 1024")

        if self.read_timeout is not None and self.read_timeout <= 0:
            raise ValueError("read_timeout must be > 0")

        if self.shutdown_timeout < 0:
            raise ValueError("shutdown_timeout must be >= 0")

        if not self.server_name:
            raise ValueError("server_name cannot be empty")
