"""Logical time used by the lease protocol."""

import asyncio
import time
from typing import Protocol


class Clock(Protocol):
    """Wall-clock reading in whole seconds plus a way to wait."""

    def now(self) -> int:
        """Current epoch time in whole seconds."""

    async def sleep(self, seconds: float) -> None:
        """Suspend the caller for ``seconds``."""


class SystemClock:
    """Clock backed by ``time.time`` and ``asyncio.sleep``."""

    def now(self) -> int:
        return int(time.time())

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)
