"""Fan out refresh/cleanup pairs and run them once or on a timer."""

from __future__ import annotations
import threading
from typing import Callable

from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.schedulers.background import BackgroundScheduler

from ..exceptions import ConfigurationError
from ..models import LaunchDescriptor
from ..utils import get_logger
from .barrier import CompletionBarrier
from .jobs import CleanupJob, RefreshJob
from .shutdown import ShutdownCoordinator
from .triggers import build_trigger

JobPair = tuple[RefreshJob, CleanupJob]


def make_timer(job_count: int) -> BackgroundScheduler:
    """
    Timer engine sized so every registered job can run at once.

    Each job polls for a long time; a smaller pool would let one project's
    bake delay another's firing.
    """
    return BackgroundScheduler(
        executors={"default": ThreadPoolExecutor(max_workers=max(job_count, 1))},
        job_defaults={"max_instances": 1, "coalesce": True},
    )


class Scheduler:
    """Resolves projects to job pairs and drives them until shutdown."""

    def __init__(
        self,
        storage,
        logger=None,
        barrier: CompletionBarrier | None = None,
        coordinator: ShutdownCoordinator | None = None,
        timer_factory: Callable[[int], BackgroundScheduler] = make_timer,
    ):
        self.storage = storage
        self.logger = logger or get_logger()
        self.barrier = barrier or CompletionBarrier()
        self.coordinator = coordinator or ShutdownCoordinator(logger=self.logger)
        self.timer_factory = timer_factory
        self.timer: BackgroundScheduler | None = None
        self.threads: list[threading.Thread] = []

    def build_jobs(self) -> list[JobPair]:
        """One (RefreshJob, CleanupJob) per project x matching source."""
        pairs = []
        for project in self.storage.projects.values():
            account = self.storage.accounts.get(project.account)
            if account is None:
                raise ConfigurationError(
                    f"Project '{project.name}' references unknown Account '{project.account}'"
                )
            userdata = self.storage.userdatas.get(project.user_data)
            if userdata is None:
                raise ConfigurationError(
                    f"Project '{project.name}' references unknown UserData '{project.user_data}'"
                )
            base = LaunchDescriptor(
                user_data=userdata.bash,
                instance_type=project.instance_type,
                tags=project.tags,
                ebs=project.ebs_volumes,
            )

            matches = project.source_filter.find_sources(self.storage.sources)
            if not matches:
                self.logger.warning(
                    f"No sources match the filter of Project '{project.name}'",
                    extra={"project": project.name},
                )
            for source in matches:
                descriptor = base.with_source(source)
                refresh = RefreshJob(
                    account,
                    descriptor,
                    project.retention_count,
                    project.name,
                    project.cron,
                    self.barrier,
                    self.logger,
                )
                refresh.validate()
                cleanup = CleanupJob(
                    account,
                    descriptor.copy(),
                    project.name,
                    project.cron,
                    self.barrier,
                    self.logger,
                )
                pairs.append((refresh, cleanup))
        return pairs

    def dispatch(self, pairs: list[JobPair]) -> int:
        """
        Start one-shot pairs now and register recurring ones on the timer.

        Returns the number of timer jobs registered.
        """
        recurring = [pair for pair in pairs if pair[0].is_recurring]
        if recurring:
            self.timer = self.timer_factory(2 * len(recurring))

        for index, (refresh, cleanup) in enumerate(pairs):
            if refresh.is_recurring:
                trigger = build_trigger(refresh.cron)
                self.timer.add_job(
                    refresh.refresh,
                    trigger=trigger,
                    id=f"refresh-{index}",
                    name=repr(refresh),
                )
                self.timer.add_job(
                    cleanup.cleanup,
                    trigger=trigger,
                    id=f"cleanup-{index}",
                    name=repr(cleanup),
                )
            else:
                self.barrier.add(2)
                self._start_thread(refresh.refresh, f"refresh-{index}")
                self._start_thread(cleanup.cleanup, f"cleanup-{index}")
        return 2 * len(recurring)

    def _start_thread(self, target: Callable, name: str) -> None:
        thread = threading.Thread(target=target, name=name, daemon=True)
        self.threads.append(thread)
        thread.start()

    def run(self) -> None:
        """Build, dispatch and block until all work is done or drained."""
        pairs = self.build_jobs()
        self.logger.info(f"Resolved {len(pairs)} refresh/cleanup job pairs")
        self.coordinator.install()
        try:
            timer_jobs = self.dispatch(pairs)
            if timer_jobs:
                self.logger.info(f"Starting cron runner with {timer_jobs} jobs")
                self.timer.start()
                self.coordinator.wait_for_stop()
                # Running jobs keep going; only future firings stop
                self.timer.shutdown(wait=False)
                self.logger.info("Cron runner stopped")
            self.logger.info(
                "Waiting for running jobs to finish",
                extra={"pending_jobs": self.barrier.pending},
            )
            self.barrier.wait()
            self.logger.info("All jobs complete, exiting")
        finally:
            self.coordinator.restore()


def start_engine(storage, logger=None) -> None:
    """Entry point: run every configured project until done or shut down."""
    Scheduler(storage, logger=logger).run()
