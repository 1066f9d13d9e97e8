"""Single-consumer FIFO queue for analysis and translation tasks."""

import asyncio
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional

import structlog
from pydantic import BaseModel

from doc_truyen.services.events import EventBus, ReaderEvent

logger = structlog.get_logger()

# Failures kept for display; older ones are dropped
MAX_ERRORS = 100


@dataclass
class Task:
    """A unit of queued work.

    ``id`` is unique per operation and target, e.g. ``analyze-<file>-3-12``.
    """

    id: str
    description: str
    action: Callable[[], Awaitable[None]]
    file_id: Optional[str] = None


@dataclass
class TaskError:
    """A task failure kept for user visibility."""

    task_id: str
    description: str
    message: str
    timestamp: float = field(default_factory=time.time)


class QueueStatus(BaseModel):
    """Observable queue state."""

    is_busy: bool
    current_task_description: Optional[str] = None
    queue_length: int = 0


class TaskQueue:
    """Runs at most one task at a time, strictly in enqueue order.

    The consumer is an asyncio task started on demand and exits when the
    queue drains. Taking the next task is guarded by a lock so the
    one-task-in-flight rule holds even if enqueue is reached from several
    coroutines. A failing task is recorded and reported; the queue moves on.
    """

    def __init__(self, event_bus: Optional[EventBus] = None, max_errors: int = MAX_ERRORS):
        self._event_bus = event_bus or EventBus()
        self._pending: deque[Task] = deque()
        self._current: Optional[Task] = None
        self._worker: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()
        self._idle = asyncio.Event()
        self._idle.set()
        self.errors: deque[TaskError] = deque(maxlen=max_errors)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    @property
    def is_busy(self) -> bool:
        return self._current is not None

    @property
    def current_task_description(self) -> Optional[str]:
        return self._current.description if self._current else None

    @property
    def queue_length(self) -> int:
        """Tasks waiting behind the running one."""
        return len(self._pending)

    def pending_ids(self) -> list[str]:
        return [task.id for task in self._pending]

    def status(self) -> QueueStatus:
        return QueueStatus(
            is_busy=self.is_busy,
            current_task_description=self.current_task_description,
            queue_length=self.queue_length,
        )

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def enqueue(self, task: Task) -> bool:
        """Append a task and make sure the consumer is running.

        Must be called from the event loop thread. A task whose id is already
        waiting is ignored.

        Returns:
            True if the task was queued
        """
        if task.id in self.pending_ids():
            logger.debug("task_duplicate_ignored", task_id=task.id)
            return False

        self._pending.append(task)
        self._idle.clear()
        logger.debug("task_enqueued", task_id=task.id, queue_length=len(self._pending))
        self._emit("task_enqueued", task)

        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(
                self._run(), name="task-queue"
            )
        return True

    def discard(self, predicate: Callable[[Task], bool]) -> int:
        """Drop waiting tasks matching predicate. The running task is not touched.

        Returns:
            Number of tasks removed
        """
        kept = [task for task in self._pending if not predicate(task)]
        removed = len(self._pending) - len(kept)
        if removed:
            self._pending = deque(kept)
            logger.debug("tasks_discarded", count=removed)
        if not self._pending and self._current is None:
            self._idle.set()
        return removed

    async def join(self) -> None:
        """Wait until every queued task (including chained ones) has finished."""
        await self._idle.wait()

    async def shutdown(self) -> None:
        """Drop waiting tasks and cancel the running one."""
        self._pending.clear()
        if self._worker and not self._worker.done():
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
        self._current = None
        self._idle.set()

    async def _next_task(self) -> Optional[Task]:
        async with self._lock:
            if not self._pending:
                self._current = None
                return None
            self._current = self._pending.popleft()
            return self._current

    async def _run(self) -> None:
        while True:
            task = await self._next_task()
            if task is None:
                self._idle.set()
                return

            logger.info("task_started", task_id=task.id, description=task.description)
            self._emit("task_started", task)
            try:
                await task.action()
            except asyncio.CancelledError:
                self._current = None
                raise
            except Exception as e:
                self.errors.append(TaskError(task.id, task.description, str(e)))
                logger.error("task_failed", task_id=task.id, error=str(e))
                self._emit("task_failed", task, error=str(e))
            else:
                logger.info("task_completed", task_id=task.id)
                self._emit("task_completed", task)

    def _emit(self, event_type: str, task: Task, **extra) -> None:
        self._event_bus.emit(
            ReaderEvent(
                type=event_type,
                data={
                    "task_id": task.id,
                    "description": task.description,
                    "queue_length": len(self._pending),
                    **extra,
                },
                file_id=task.file_id,
            )
        )
