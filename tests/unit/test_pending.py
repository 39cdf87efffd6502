"""Unit tests for the pending-call table."""

import asyncio

import pytest

from ipc_hub.errors import CallTimeout, ChannelClosed, HandlerFailure, HubError, NoHandlerRegistered
from ipc_hub.protocol.messages import ErrorInfo, Reply
from ipc_hub.worker import PendingCallTable


def new_future() -> asyncio.Future:
    return asyncio.get_running_loop().create_future()


class TestPendingCallTable:
    @pytest.mark.anyio
    async def test_settle_success(self):
        table = PendingCallTable()
        future = new_future()
        table.add("1_1", "sum", future)

        assert table.settle(Reply(name="sum", id="1_1", data=5)) is True

        assert await future == 5
        assert "1_1" not in table
        assert len(table) == 0

    @pytest.mark.anyio
    async def test_settle_failure_rebuilds_error(self):
        table = PendingCallTable()
        future = new_future()
        table.add("1_1", "sum", future)

        table.settle(Reply(name="sum", id="1_1", err=ErrorInfo.no_handler("sum")))

        with pytest.raises(NoHandlerRegistered, match="sum"):
            await future

    @pytest.mark.anyio
    async def test_settle_handler_failure(self):
        table = PendingCallTable()
        future = new_future()
        table.add("2_1", "div", future)

        table.settle(
            Reply(name="div", id="2_1", err=ErrorInfo.from_exception(ZeroDivisionError("by zero")))
        )

        with pytest.raises(HandlerFailure) as exc_info:
            await future
        assert exc_info.value.remote_type == "ZeroDivisionError"

    @pytest.mark.anyio
    async def test_settles_exactly_once(self):
        """A second reply with the same id is ignored."""
        table = PendingCallTable()
        future = new_future()
        table.add("1_1", "sum", future)

        assert table.settle(Reply(name="sum", id="1_1", data=1)) is True
        assert table.settle(Reply(name="sum", id="1_1", data=2)) is False
        assert await future == 1

    @pytest.mark.anyio
    async def test_unknown_id_leaves_others_pending(self):
        table = PendingCallTable()
        future = new_future()
        table.add("1_1", "sum", future)

        assert table.settle(Reply(name="sum", id="9_9", data=0)) is False

        assert not future.done()
        assert "1_1" in table

    @pytest.mark.anyio
    async def test_duplicate_id_rejected(self):
        table = PendingCallTable()
        table.add("1_1", "sum", new_future())

        with pytest.raises(HubError, match="already pending"):
            table.add("1_1", "sum", new_future())

    @pytest.mark.anyio
    async def test_timeout_expires_entry(self):
        table = PendingCallTable()
        future = new_future()
        table.add("1_1", "slow", future, timeout=0.01)

        with pytest.raises(CallTimeout) as exc_info:
            await future

        assert exc_info.value.call_name == "slow"
        assert len(table) == 0

    @pytest.mark.anyio
    async def test_reply_cancels_deadline(self):
        table = PendingCallTable()
        future = new_future()
        entry = table.add("1_1", "sum", future, timeout=10)

        table.settle(Reply(name="sum", id="1_1", data=3))

        assert entry.timer is not None
        assert entry.timer.cancelled()
        assert await future == 3

    @pytest.mark.anyio
    async def test_late_reply_after_timeout_discarded(self):
        table = PendingCallTable()
        future = new_future()
        table.add("1_1", "slow", future, timeout=0.01)
        with pytest.raises(CallTimeout):
            await future

        assert table.settle(Reply(name="slow", id="1_1", data="late")) is False

    @pytest.mark.anyio
    async def test_fail_all(self):
        table = PendingCallTable()
        futures = [new_future() for _ in range(3)]
        for i, future in enumerate(futures):
            table.add(f"{i}_1", "sum", future)

        failed = table.fail_all(lambda call_id, entry: ChannelClosed(call_id))

        assert failed == 3
        assert len(table) == 0
        for future in futures:
            with pytest.raises(ChannelClosed):
                await future
