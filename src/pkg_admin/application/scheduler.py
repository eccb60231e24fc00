from __future__ import annotations

import asyncio
import logging
from typing import Optional

from ..domain.ports import RefreshCallback

logger = logging.getLogger(__name__)


class AsyncioRefreshScheduler:
    """
    Single-slot timer on the running event loop.

    - ``schedule`` cancels the pending timer before arming a new one, so two
      refreshes can never be pending at once.
    - ``cancel`` only drops the timer. A refresh that already started keeps
      running (it is usually the one re-arming the timer).
    - ``shutdown`` also cancels a running refresh task; used on app deletion.
    """

    def __init__(self) -> None:
        self._handle: Optional[asyncio.TimerHandle] = None
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self, delay_millis: float, callback: RefreshCallback) -> None:
        self.cancel()
        loop = asyncio.get_running_loop()
        delay_seconds = max(delay_millis, 0) / 1000
        logger.debug("Scheduling token refresh in %.3f seconds", delay_seconds)
        self._handle = loop.call_later(delay_seconds, self._fire, callback)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def shutdown(self) -> None:
        self.cancel()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #

    def _fire(self, callback: RefreshCallback) -> None:
        self._handle = None
        task = asyncio.ensure_future(callback())
        task.add_done_callback(self._on_done)
        self._task = task

    def _on_done(self, task: "asyncio.Task[None]") -> None:
        if self._task is task:
            self._task = None
        if not task.cancelled() and task.exception() is not None:
            logger.error(
                "Scheduled token refresh raised unexpectedly",
                exc_info=task.exception(),
            )
