"""
Streaming response channels.

A channel carries text lines from one producer (the orchestrator) to one
consumer (an HTTP response body) as they are written. It is opened once,
written zero or more times and closed once; the consumer sees a finite,
non-restartable sequence.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import AsyncGenerator, Optional

from .exceptions import StreamInterruptedError

logger = logging.getLogger(__name__)


class StreamingResponseChannel(ABC):
    """Producer side of a line stream."""

    @abstractmethod
    async def open(self) -> None:
        """Start the stream. Called once, after request validation."""

    @abstractmethod
    async def write(self, line: str) -> None:
        """
        Append one line and make it visible to the consumer immediately.

        Raises:
            StreamInterruptedError: If the consumer has gone away.
        """

    @abstractmethod
    async def close(self) -> None:
        """Signal that no further lines will arrive. Idempotent."""


class QueueChannel(StreamingResponseChannel):
    """
    In-process channel backed by an ``asyncio.Queue``.

    The producer writes into the queue; ``lines()`` drains it until the
    ``None`` sentinel put by ``close()``. If the consumer stops iterating
    before the sentinel (client disconnect), later writes raise
    ``StreamInterruptedError``.

    Example:
        channel = QueueChannel()
        asyncio.create_task(orchestrator.run(request, channel))
        return StreamingResponse(channel.lines(), media_type="text/plain")
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[Optional[str]] = asyncio.Queue()
        self._opened = False
        self._closed = False
        self._interrupted = False

    @property
    def is_open(self) -> bool:
        return self._opened and not self._closed

    @property
    def interrupted(self) -> bool:
        return self._interrupted

    async def open(self) -> None:
        if self._opened:
            raise RuntimeError("Channel already opened")
        self._opened = True

    async def write(self, line: str) -> None:
        if not self._opened or self._closed:
            raise RuntimeError("Channel is not open for writing")
        if self._interrupted:
            raise StreamInterruptedError("Stream consumer disconnected")
        await self._queue.put(line.rstrip("\n") + "\n")

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._queue.put(None)  # Sentinel to indicate completion

    async def lines(self) -> AsyncGenerator[str, None]:
        """Yield lines as they are written, until the channel is closed."""
        try:
            while True:
                line = await self._queue.get()
                if line is None:
                    break
                yield line
        finally:
            if not self._closed:
                self._interrupted = True
                logger.warning("Stream consumer disconnected before the channel was closed")
