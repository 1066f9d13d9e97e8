"""Task queue and reader orchestration."""

from doc_truyen.pipeline.orchestrator import ReaderOrchestrator
from doc_truyen.pipeline.task_queue import QueueStatus, Task, TaskQueue

__all__ = ["ReaderOrchestrator", "TaskQueue", "Task", "QueueStatus"]
