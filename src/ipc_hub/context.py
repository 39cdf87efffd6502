"""Per-process hub context.

The host creates one ``HubContext`` for its process role and passes it to
whatever code needs a hub. The context builds the hub on first request
and hands back that same instance afterwards, so handlers and listeners
never end up split across two registries.

Usage (coordinator process):
    context = HubContext(ProcessRole.COORDINATOR)
    hub = context.coordinator()
    assert context.coordinator() is hub

Usage (worker process):
    context = HubContext(ProcessRole.WORKER)
    hub = context.worker(await open_stdio_channel())
"""

from __future__ import annotations

import dataclasses
import logging

from .channel.base import Channel
from .config import HubConfig, ProcessRole
from .coordinator import CoordinatorHub
from .errors import InvalidArgument, WrongProcessRole
from .hooks import HubHooks
from .worker import WorkerHub

logger = logging.getLogger(__name__)


class HubContext:
    """Owns the single hub of this process."""

    def __init__(
        self,
        role: ProcessRole | str | None = None,
        config: HubConfig | None = None,
    ) -> None:
        """Create the context.

        Args:
            role: Process role; falls back to ``config.role`` (``IPC_HUB_ROLE``)
            config: Hub configuration; defaults to ``HubConfig.from_env()``

        Raises:
            WrongProcessRole: If no role is given or configured
        """
        config = config or HubConfig.from_env()
        resolved = role or config.role
        if resolved is None:
            raise WrongProcessRole("Process role is not set: pass role= or set IPC_HUB_ROLE")
        self.role = ProcessRole(resolved)
        # The caller's config is left untouched
        self.config = dataclasses.replace(config, role=self.role)
        self._coordinator: CoordinatorHub | None = None
        self._worker: WorkerHub | None = None

    @property
    def hub(self) -> CoordinatorHub | WorkerHub | None:
        """The hub built so far, if any."""
        return self._coordinator or self._worker

    def coordinator(self, hooks: HubHooks | None = None) -> CoordinatorHub:
        """Return the coordinator hub, building it on first use.

        Raises:
            WrongProcessRole: If this is a worker process
        """
        if self.role is not ProcessRole.COORDINATOR:
            raise WrongProcessRole("coordinator() must be called in the coordinator process")
        if self._coordinator is None:
            self._coordinator = CoordinatorHub(self.config, hooks)
            logger.debug("Coordinator hub created")
        return self._coordinator

    def worker(self, channel: Channel | None = None, hooks: HubHooks | None = None) -> WorkerHub:
        """Return the worker hub, building it over ``channel`` on first use.

        Raises:
            WrongProcessRole: If this is the coordinator process
            InvalidArgument: If the hub does not exist yet and no channel is given
        """
        if self.role is not ProcessRole.WORKER:
            raise WrongProcessRole("worker() must be called in a worker process")
        if self._worker is None:
            if channel is None:
                raise InvalidArgument("A channel is required to create the worker hub")
            self._worker = WorkerHub(channel, self.config, hooks)
            logger.debug("Worker hub created")
        elif channel is not None and channel is not self._worker.channel:
            logger.warning("Worker hub already exists; ignoring the new channel")
        return self._worker
