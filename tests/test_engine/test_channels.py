"""
Tests for the queue-backed streaming channel.
"""

import asyncio

import pytest

from quirk_wallets.engine.channels import QueueChannel
from quirk_wallets.engine.exceptions import StreamInterruptedError


async def drain(channel: QueueChannel) -> list:
    return [line async for line in channel.lines()]


class TestQueueChannel:

    @pytest.mark.asyncio
    async def test_lines_arrive_in_order_with_newline(self):
        channel = QueueChannel()
        await channel.open()
        await channel.write("BASE: 0xabc")
        await channel.write("ETH: 0xdef\n")
        await channel.close()

        assert await drain(channel) == ["BASE: 0xabc\n", "ETH: 0xdef\n"]

    @pytest.mark.asyncio
    async def test_empty_stream(self):
        channel = QueueChannel()
        await channel.open()
        await channel.close()

        assert await drain(channel) == []
        assert not channel.interrupted

    @pytest.mark.asyncio
    async def test_consumer_sees_lines_before_close(self):
        channel = QueueChannel()
        await channel.open()
        consumer = channel.lines()

        await channel.write("BASE: 0xabc")
        first = await asyncio.wait_for(consumer.__anext__(), timeout=1)

        assert first == "BASE: 0xabc\n"
        assert channel.is_open
        await channel.close()
        await consumer.aclose()

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self):
        channel = QueueChannel()
        await channel.open()
        await channel.close()
        await channel.close()

        assert await drain(channel) == []
        assert not channel.is_open

    @pytest.mark.asyncio
    async def test_write_before_open_raises(self):
        with pytest.raises(RuntimeError):
            await QueueChannel().write("BASE: 0xabc")

    @pytest.mark.asyncio
    async def test_write_after_close_raises(self):
        channel = QueueChannel()
        await channel.open()
        await channel.close()

        with pytest.raises(RuntimeError):
            await channel.write("BASE: 0xabc")

    @pytest.mark.asyncio
    async def test_open_twice_raises(self):
        channel = QueueChannel()
        await channel.open()

        with pytest.raises(RuntimeError):
            await channel.open()

    @pytest.mark.asyncio
    async def test_write_after_consumer_disconnect_is_interrupted(self):
        channel = QueueChannel()
        await channel.open()
        consumer = channel.lines()
        await channel.write("BASE: 0xabc")
        await consumer.__anext__()

        # client disconnect: the response body generator is closed early
        await consumer.aclose()

        assert channel.interrupted
        with pytest.raises(StreamInterruptedError):
            await channel.write("ETH: 0xdef")
        await channel.close()
