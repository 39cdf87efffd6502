"""Unit tests for the per-process hub context."""

import pytest

from ipc_hub.channel.memory import MemoryChannel
from ipc_hub.config import HubConfig, ProcessRole
from ipc_hub.context import HubContext
from ipc_hub.coordinator import CoordinatorHub
from ipc_hub.errors import InvalidArgument, WrongProcessRole
from ipc_hub.hooks import HubHooks
from ipc_hub.worker import WorkerHub


class TestRoleResolution:
    def test_explicit_role(self):
        context = HubContext(ProcessRole.WORKER, HubConfig())

        assert context.role is ProcessRole.WORKER
        assert context.config.role is ProcessRole.WORKER

    def test_callers_config_not_modified(self):
        config = HubConfig(call_timeout=2.0)

        context = HubContext(ProcessRole.WORKER, config)

        assert config.role is None
        assert context.config is not config
        assert context.config.call_timeout == 2.0

    def test_role_from_string(self):
        assert HubContext("coordinator", HubConfig()).role is ProcessRole.COORDINATOR

    def test_role_from_config(self):
        context = HubContext(config=HubConfig(role=ProcessRole.COORDINATOR))

        assert context.role is ProcessRole.COORDINATOR

    def test_role_from_environment(self, monkeypatch):
        monkeypatch.setenv("IPC_HUB_ROLE", "worker")

        assert HubContext().role is ProcessRole.WORKER

    def test_missing_role_fails_fast(self, monkeypatch):
        monkeypatch.delenv("IPC_HUB_ROLE", raising=False)

        with pytest.raises(WrongProcessRole, match="IPC_HUB_ROLE"):
            HubContext()


class TestCoordinatorSingleton:
    def test_returns_same_instance(self):
        context = HubContext(ProcessRole.COORDINATOR, HubConfig())

        hub = context.coordinator()

        assert isinstance(hub, CoordinatorHub)
        assert context.coordinator() is hub
        assert context.hub is hub

    def test_registrations_shared(self):
        """A second lookup sees handlers registered through the first."""
        context = HubContext(ProcessRole.COORDINATOR, HubConfig())
        context.coordinator().on("sum", lambda data: 0)

        assert context.coordinator().handlers == ["sum"]

    def test_hub_uses_context_config_and_hooks(self):
        config = HubConfig(call_timeout=3.0)
        hooks = HubHooks()
        context = HubContext(ProcessRole.COORDINATOR, config)

        hub = context.coordinator(hooks)

        assert hub.config is context.config
        assert hub.config.call_timeout == 3.0
        assert hub.hooks is hooks

    def test_rejected_in_worker_process(self):
        context = HubContext(ProcessRole.WORKER, HubConfig())

        with pytest.raises(WrongProcessRole):
            context.coordinator()


class TestWorkerSingleton:
    def test_returns_same_instance(self):
        _, worker_side = MemoryChannel.pair()
        context = HubContext(ProcessRole.WORKER, HubConfig())

        hub = context.worker(worker_side)

        assert isinstance(hub, WorkerHub)
        assert hub.channel is worker_side
        assert context.worker() is hub

    def test_later_channel_ignored(self):
        _, first = MemoryChannel.pair()
        _, second = MemoryChannel.pair()
        context = HubContext(ProcessRole.WORKER, HubConfig())

        hub = context.worker(first)

        assert context.worker(second) is hub
        assert hub.channel is first

    def test_channel_required_on_first_use(self):
        context = HubContext(ProcessRole.WORKER, HubConfig())

        with pytest.raises(InvalidArgument, match="channel"):
            context.worker()

    def test_rejected_in_coordinator_process(self):
        _, worker_side = MemoryChannel.pair()
        context = HubContext(ProcessRole.COORDINATOR, HubConfig())

        with pytest.raises(WrongProcessRole):
            context.worker(worker_side)
        assert context.hub is None
