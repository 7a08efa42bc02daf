"""Job orchestration: refresh/cleanup jobs, scheduling and shutdown."""

from .barrier import CompletionBarrier
from .jobs import CleanupJob, RefreshJob
from .scheduler import Scheduler, start_engine
from .shutdown import ShutdownCoordinator
from .triggers import build_trigger

__all__ = [
    "CleanupJob",
    "CompletionBarrier",
    "RefreshJob",
    "Scheduler",
    "ShutdownCoordinator",
    "build_trigger",
    "start_engine",
]
