"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Settings for an embedded server. The defaults suit a test suite:
loopback only, small backlog, generous timeouts.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION SOURCES                            │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   1. Arguments to start()   start(8080), start(("0.0.0.0", 0))      │
    │   2. ServerConfig(...)      passed to EmbeddedHttpServer            │
    │   3. Environment            ServerConfig.from_env()                 │
    │   4. Defaults               this dataclass                           │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class ServerConfig:
    """
    Configuration for EmbeddedHttpServer.

    Example:
        server = EmbeddedHttpServer(ServerConfig(backlog=10, timeout=5.0))
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """
    Host used by start() and start(port). start((host, port)) ignores it.
    """

    backlog: int = 50
    """
    Maximum number of queued connections passed to listen().
    """

    buffer_size: int = 8192
    """
    Size of each recv() call in bytes.
    """

    timeout: Optional[float] = 30.0
    """
    Socket timeout in seconds for reading a request and writing a response.
    None = block forever.
    """

    max_request_size: int = 10 * 1024 * 1024  # 10 MB
    """
    Maximum request size (head + body) in bytes. Larger requests get 413.
    """

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: Optional[str] = None
    """
    Level applied to the "embedhttp" logger at start (DEBUG, INFO, ...).
    None leaves logging configuration to the application.
    """

    # ─────────────────────────────────────────────────────────────────────
    # SERVER IDENTITY
    # ─────────────────────────────────────────────────────────────────────

    server_name: str = "embedhttp/1.0"
    """
    Value of the Server response header unless a handler sets one.
    """

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        EMBEDHTTP_HOST              Default bind host (127.0.0.1)
        EMBEDHTTP_BACKLOG           listen() backlog (50)
        EMBEDHTTP_TIMEOUT           Socket timeout in seconds (30)
        EMBEDHTTP_MAX_REQUEST_SIZE  Request size limit in bytes (10 MB)
        EMBEDHTTP_LOG_LEVEL         Level for the embedhttp logger (unset)
        """
        defaults = cls()
        return cls(
            host=os.getenv("EMBEDHTTP_HOST", defaults.host),
            backlog=int(os.getenv("EMBEDHTTP_BACKLOG", str(defaults.backlog))),
            timeout=float(os.getenv("EMBEDHTTP_TIMEOUT", str(defaults.timeout))),
            max_request_size=int(
                os.getenv("EMBEDHTTP_MAX_REQUEST_SIZE", str(defaults.max_request_size))
            ),
            log_level=os.getenv("EMBEDHTTP_LOG_LEVEL") or None,
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ValueError: On the first invalid setting.
        """
        if not self.host:
            raise ValueError("host must not be empty")

        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.max_request_size < 1024:
            raise ValueError("max_request_size must be >= 1024")

        if self.log_level is not None and self.log_level.upper() not in (
            "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL",
        ):
            raise ValueError(f"Invalid log_level: {self.log_level}")


def validate_port(port: int) -> int:
    """Check a port number; 0 asks the OS for any free port."""
    if not 0 <= port < 65536:
        raise ValueError(f"Invalid port: {port}. Must be 0-65535.")
    return port
