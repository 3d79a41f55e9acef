# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""
Periodic ledger polling on the asyncio event loop.

The controller knows nothing about games: it calls an async ``poll``
function right away and then every ``interval_ms`` until disabled. A failed
cycle is logged and reported, and polling carries on with the next interval.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from salvo.errors import DecodeError, ExternalServiceFailure, GameError, SessionNotFound


logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_MS = 3000


class PollingController:
    """Schedules periodic snapshot fetches."""

    def __init__(
        self,
        poll: Callable[[], Awaitable[object]],
        interval_ms: int = DEFAULT_INTERVAL_MS,
        on_error: Optional[Callable[[GameError], None]] = None,
    ):
        """
        Initialize the controller.

        Args:
            poll: Coroutine function performing one fetch-and-merge cycle.
            interval_ms: Delay between cycles in milliseconds.
            on_error: Called with recoverable errors (not found, service failure).
        """
        self._poll = poll
        self.interval_ms = self._checked_interval(interval_ms)
        self.on_error = on_error
        self._task: Optional[asyncio.Task] = None
        self.cycles = 0
        self.failures = 0

    @staticmethod
    def _checked_interval(interval_ms: int) -> int:
        if interval_ms <= 0:
            raise ValueError(f"Polling interval must be positive, got {interval_ms}")
        return int(interval_ms)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def set_enabled(self, enabled: bool, interval_ms: Optional[int] = None) -> None:
        """
        Start or stop polling.

        Must be called from within the running event loop when enabling.
        Changing the interval of a running poller restarts it.
        """
        if interval_ms is not None:
            interval_ms = self._checked_interval(interval_ms)
            if interval_ms != self.interval_ms:
                self.interval_ms = interval_ms
                if self.running:
                    self.stop()

        if not enabled:
            self.stop()
            return

        if not self.running:
            self._task = asyncio.get_running_loop().create_task(self._run())
            logger.info(f"Polling started (every {self.interval_ms} ms)")

    def stop(self) -> None:
        """Cancel the polling task, releasing its timer."""
        if self._task is not None:
            if not self._task.done():
                self._task.cancel()
                logger.info("Polling stopped")
            self._task = None

    async def aclose(self) -> None:
        """Stop polling and wait for the task to wind down."""
        task = self._task
        self.stop()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def poll_once(self) -> bool:
        """
        Run one poll cycle.

        Returns:
            True if the cycle completed, False if it was discarded.
        """
        self.cycles += 1
        try:
            await self._poll()
            return True
        except DecodeError as e:
            self.failures += 1
            logger.warning(f"Discarding malformed ledger snapshot: {e}")
        except (SessionNotFound, ExternalServiceFailure) as e:
            self.failures += 1
            logger.error(f"Failed to fetch game state: {e}")
            if self.on_error is not None:
                self.on_error(e)
        return False

    async def _run(self) -> None:
        while True:
            await self.poll_once()
            await asyncio.sleep(self.interval_ms / 1000.0)
