"""Pytest configuration and shared fixtures."""

from collections.abc import AsyncIterator
from dataclasses import dataclass

import pytest

from ipc_hub.channel.memory import MemoryChannel
from ipc_hub.coordinator import CoordinatorHub
from ipc_hub.worker import WorkerHub


@pytest.fixture(scope="module")
def anyio_backend():
    """Configure anyio to use asyncio backend."""
    return "asyncio"


@dataclass
class LinkedHubs:
    """A coordinator and one worker joined by an in-memory channel."""

    coordinator: CoordinatorHub
    worker: WorkerHub
    coordinator_side: MemoryChannel
    worker_side: MemoryChannel


@pytest.fixture
async def linked() -> AsyncIterator[LinkedHubs]:
    """Coordinator attached to a started worker over a memory channel pair."""
    coordinator_side, worker_side = MemoryChannel.pair("test")
    coordinator = CoordinatorHub()
    coordinator.attach("worker-1", coordinator_side)
    worker = WorkerHub(worker_side)
    worker.start()

    yield LinkedHubs(coordinator, worker, coordinator_side, worker_side)

    await worker_side.disconnect()
    await worker.stop()
    await coordinator.close()
