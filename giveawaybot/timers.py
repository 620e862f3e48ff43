"""Per-giveaway expiry and refresh timers backed by asyncio tasks."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional

from .models import now_ms

log = logging.getLogger(__name__)

# Largest single timer delay we allow (~24.8 days, a signed 32-bit ms value).
MAX_TIMER_DELAY_MS = 2_147_483_647
REFRESH_INTERVAL_MS = 60_000

ExpireCallback = Callable[[str], Awaitable[None]]
RefreshCallback = Callable[[str], Awaitable[bool]]


def next_delay_segment(remaining: int, max_delay: int) -> tuple[int, bool]:
    """Return ``(delay, final)`` for the next wait towards an expiry.

    ``final`` is true once the remaining time fits in a single segment, at
    which point the real expiry action should run after ``delay``.
    """
    if max_delay <= 0:
        raise ValueError("max_delay must be positive")
    remaining = max(0, remaining)
    if remaining <= max_delay:
        return remaining, True
    return max_delay, False


class TimerOrchestrator:
    """Owns one expiry task and one refresh task per giveaway id."""

    def __init__(
        self,
        *,
        max_delay_ms: int = MAX_TIMER_DELAY_MS,
        refresh_interval_ms: int = REFRESH_INTERVAL_MS,
        clock: Callable[[], int] = now_ms,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.max_delay_ms = max_delay_ms
        self.refresh_interval_ms = refresh_interval_ms
        self._clock = clock
        self._sleep = sleep
        self._expiry_tasks: Dict[str, asyncio.Task] = {}
        self._refresh_tasks: Dict[str, asyncio.Task] = {}

    def start(
        self,
        giveaway_id: str,
        end_at: int,
        on_expire: ExpireCallback,
        on_refresh: RefreshCallback,
    ) -> None:
        """(Re)schedule both timers for a giveaway, replacing any existing ones."""
        self.stop(giveaway_id)
        self._expiry_tasks[giveaway_id] = asyncio.create_task(
            self._run_expiry(giveaway_id, end_at, on_expire),
            name=f"giveaway-expiry-{giveaway_id}",
        )
        self._refresh_tasks[giveaway_id] = asyncio.create_task(
            self._run_refresh(giveaway_id, on_refresh),
            name=f"giveaway-refresh-{giveaway_id}",
        )

    def stop(self, giveaway_id: str) -> None:
        """Cancel both timers for ``giveaway_id``; a no-op when none exist."""
        current = asyncio.current_task()
        for tasks in (self._expiry_tasks, self._refresh_tasks):
            task = tasks.pop(giveaway_id, None)
            if task and task is not current:
                task.cancel()

    def stop_all(self) -> None:
        for giveaway_id in set(self._expiry_tasks) | set(self._refresh_tasks):
            self.stop(giveaway_id)

    def is_scheduled(self, giveaway_id: str) -> bool:
        return giveaway_id in self._expiry_tasks

    def expiry_task(self, giveaway_id: str) -> Optional[asyncio.Task]:
        return self._expiry_tasks.get(giveaway_id)

    def refresh_task(self, giveaway_id: str) -> Optional[asyncio.Task]:
        return self._refresh_tasks.get(giveaway_id)

    async def _run_expiry(
        self, giveaway_id: str, end_at: int, on_expire: ExpireCallback
    ) -> None:
        me = asyncio.current_task()
        try:
            while True:
                delay, final = next_delay_segment(
                    end_at - self._clock(), self.max_delay_ms
                )
                if delay > 0:
                    await self._sleep(delay / 1000)
                if final:
                    break
                log.debug("Expiry for giveaway %s rescheduled after a full segment", giveaway_id)
            await on_expire(giveaway_id)
        except asyncio.CancelledError:
            log.debug("Expiry task for giveaway %s cancelled", giveaway_id)
            raise
        except Exception:
            log.exception("Expiry action for giveaway %s failed", giveaway_id)
        finally:
            if self._expiry_tasks.get(giveaway_id) is me:
                del self._expiry_tasks[giveaway_id]

    async def _run_refresh(self, giveaway_id: str, on_refresh: RefreshCallback) -> None:
        me = asyncio.current_task()
        try:
            while True:
                await self._sleep(self.refresh_interval_ms / 1000)
                try:
                    keep_going = await on_refresh(giveaway_id)
                except Exception:
                    log.exception("Refresh for giveaway %s failed", giveaway_id)
                    continue
                if not keep_going:
                    log.debug("Refresh for giveaway %s stopped", giveaway_id)
                    return
        except asyncio.CancelledError:
            log.debug("Refresh task for giveaway %s cancelled", giveaway_id)
            raise
        finally:
            if self._refresh_tasks.get(giveaway_id) is me:
                del self._refresh_tasks[giveaway_id]
