"""
Airlock - Delayed Task Scheduler
================================

Cancellable, single-fire-per-member timers.

DESIGN:
    Each timer is an asyncio task that sleeps for the delay and then runs
    the callback. The registry maps a user id to its ScheduledTask, so
    there is at most one live timer per member:

    - schedule() cancels the previous timer before installing a new one.
      It is synchronous, so calls on the event loop are linearized and the
      most recent one always wins.
    - cancel() stops a timer that has not fired. A callback that already
      started is left to finish; the workflow's re-check covers that case.
    - The registry entry is removed when the callback settles, but only if
      the entry still belongs to that task, so a finished older timer can
      never evict a newer one.

    Callback errors are logged and swallowed; nothing propagates to the
    caller of schedule().
"""

import asyncio
import inspect
from typing import Callable, Dict, Optional

from airlock.core.logger import logger
from airlock.onboarding.models import Callback, ScheduledTask, now_ms


class DelayedTaskScheduler:
    """
    Registry of per-member delayed callbacks.

    Attributes:
        name: Label used in task names and log titles.
    """

    def __init__(self, name: str = "Enforcement", clock: Callable[[], int] = now_ms) -> None:
        self.name = name
        self._clock = clock
        self._tasks: Dict[int, ScheduledTask] = {}

    # =========================================================================
    # Public API
    # =========================================================================

    def schedule(self, subject_id: int, callback: Callback, delay_ms: int) -> ScheduledTask:
        """
        Run `callback` once after `delay_ms`, replacing any pending timer.

        Must be called from a running event loop.

        Args:
            subject_id: Member the timer belongs to.
            callback: Sync or async zero-argument callable.
            delay_ms: Delay before the callback runs.

        Returns:
            The registry entry; its `task` is the timer handle.
        """
        replaced = self._tasks.pop(subject_id, None)
        self._stop(replaced)

        entry = ScheduledTask(
            subject_id=subject_id,
            fire_at=self._clock() + delay_ms,
            callback=callback,
        )
        entry.task = asyncio.create_task(
            self._run(entry, delay_ms),
            name=f"{self.name.lower()}:{subject_id}",
        )
        self._tasks[subject_id] = entry

        logger.debug(f"{self.name} Timer Scheduled", [
            ("User ID", str(subject_id)),
            ("Delay", f"{delay_ms}ms"),
            ("Replaced", "Yes" if replaced else "No"),
        ])
        return entry

    def cancel(self, subject_id: int) -> bool:
        """
        Drop the member's timer.

        Returns:
            True if an entry existed.
        """
        entry = self._tasks.pop(subject_id, None)
        if entry is None:
            return False

        self._stop(entry)
        logger.debug(f"{self.name} Timer Cancelled", [
            ("User ID", str(subject_id)),
            ("Already Fired", "Yes" if entry.fired else "No"),
        ])
        return True

    def has(self, subject_id: int) -> bool:
        return subject_id in self._tasks

    def get(self, subject_id: int) -> Optional[ScheduledTask]:
        return self._tasks.get(subject_id)

    def pending_count(self) -> int:
        return len(self._tasks)

    async def shutdown(self) -> None:
        """Cancel every timer, including callbacks in flight."""
        entries = list(self._tasks.values())
        self._tasks.clear()

        tasks = [e.task for e in entries if e.task and not e.task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        logger.info(f"{self.name} Scheduler Stopped", [
            ("Cancelled", str(len(tasks))),
        ])

    # =========================================================================
    # Internals
    # =========================================================================

    @staticmethod
    def _stop(entry: Optional[ScheduledTask]) -> None:
        if entry is None or entry.fired:
            return
        if entry.task and not entry.task.done():
            entry.task.cancel()

    async def _run(self, entry: ScheduledTask, delay_ms: int) -> None:
        try:
            await asyncio.sleep(max(delay_ms, 0) / 1000)
            entry.fired = True

            result = entry.callback()
            if inspect.isawaitable(result):
                await result

        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"{self.name} Callback Failed", [
                ("User ID", str(entry.subject_id)),
                ("Error Type", type(e).__name__),
                ("Error", str(e)[:200]),
            ])
        finally:
            if self._tasks.get(entry.subject_id) is entry:
                del self._tasks[entry.subject_id]


__all__ = ["DelayedTaskScheduler"]
