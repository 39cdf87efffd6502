"""Hub configuration.

Values come from keyword arguments or from ``IPC_HUB_*`` environment
variables via ``HubConfig.from_env()``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 4097

_TRUTHY = ("1", "true", "yes")


class ProcessRole(str, Enum):
    """Which side of the channel this process plays."""

    COORDINATOR = "coordinator"
    WORKER = "worker"


@dataclass
class HubConfig:
    """Configuration shared by both hub roles."""

    # Process role (None = must be supplied explicitly to HubContext)
    role: ProcessRole | None = None

    # Default deadline for worker calls in seconds (None = wait forever)
    call_timeout: float | None = None

    # Log replies for unknown ids at WARNING instead of DEBUG
    log_discarded_replies: bool = False

    # Coordinator server (WebSocket endpoint)
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT

    log_level: str = "WARNING"

    def __post_init__(self) -> None:
        if self.role is not None and not isinstance(self.role, ProcessRole):
            self.role = ProcessRole(self.role)
        if self.call_timeout is not None and self.call_timeout <= 0:
            raise ValueError(f"call_timeout must be positive, got {self.call_timeout}")

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> HubConfig:
        """Build a config from ``IPC_HUB_*`` environment variables."""
        env = os.environ if environ is None else environ

        role = env.get("IPC_HUB_ROLE", "").strip().lower() or None
        timeout = env.get("IPC_HUB_CALL_TIMEOUT", "").strip()

        return cls(
            role=ProcessRole(role) if role else None,
            call_timeout=float(timeout) if timeout else None,
            log_discarded_replies=env.get("IPC_HUB_LOG_DISCARDED_REPLIES", "").lower() in _TRUTHY,
            host=env.get("IPC_HUB_HOST", DEFAULT_HOST),
            port=int(env.get("IPC_HUB_PORT", DEFAULT_PORT)),
            log_level=env.get("IPC_HUB_LOG_LEVEL", "WARNING").upper(),
        )
