"""Refresh and cleanup jobs for one (project, source) pair."""

from __future__ import annotations
import datetime
from contextlib import contextmanager
from typing import Any, Callable

from botocore.exceptions import BotoCoreError

from ..ec2 import Account, ImageHandle, check_orphaned_instance
from ..exceptions import AmiRefreshError, ConfigurationError
from ..models import CleanupAction, LaunchDescriptor, RefreshReport
from ..models.config import INSTANCE_MAX_AGE_MINUTES
from ..utils import get_logger
from .barrier import CompletionBarrier


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class _JobUnit:
    """State shared by both job kinds: account, descriptor, schedule, barrier."""

    def __init__(
        self,
        account: Account | None,
        descriptor: LaunchDescriptor,
        name: str,
        cron: str = "",
        barrier: CompletionBarrier | None = None,
        logger=None,
    ):
        self.account = account
        self.descriptor = descriptor
        self.name = name
        self.cron = cron
        self.barrier = barrier
        self.logger = logger or get_logger()

    @property
    def is_recurring(self) -> bool:
        return bool(self.cron)

    def log_fields(self) -> dict[str, Any]:
        return {
            "job": self.name,
            "account": self.account.name if self.account else None,
            "region": self.descriptor.source.region,
            "ami_id": self.descriptor.source.ami_id,
        }

    @contextmanager
    def _unit(self):
        """
        Keep the barrier count while the job runs.

        One-shot units are counted by the dispatcher before they start;
        recurring firings count themselves.
        """
        if self.barrier is None:
            yield
            return
        if self.is_recurring:
            self.barrier.add(1)
        try:
            yield
        finally:
            self.barrier.done()


class RefreshJob(_JobUnit):
    """Launch, bake, snapshot and retire for one source AMI."""

    def __init__(
        self,
        account: Account | None,
        descriptor: LaunchDescriptor,
        retention_count: int,
        name: str,
        cron: str = "",
        barrier: CompletionBarrier | None = None,
        logger=None,
    ):
        super().__init__(account, descriptor, name, cron, barrier, logger)
        self.retention_count = retention_count

    def __repr__(self) -> str:
        return (
            f"RefreshJob(name={self.name!r}, region={self.descriptor.source.region!r}, "
            f"ami_id={self.descriptor.source.ami_id!r})"
        )

    def validate(self) -> None:
        if self.account is None:
            raise ConfigurationError("Account not found")
        self.account.validate_and_set_defaults()
        self.descriptor.validate()
        if self.retention_count <= 0:
            raise ConfigurationError("RetentionCount is configured as 0")
        if not self.name:
            raise ConfigurationError("Name field missing")

    def refresh(self) -> RefreshReport:
        """Run one full refresh. Never raises; failures land on the report."""
        report = RefreshReport(
            job_name=self.name,
            account=self.account.name if self.account else "",
            region=self.descriptor.source.region,
            source_ami_id=self.descriptor.source.ami_id,
        )
        with self._unit():
            try:
                self._refresh(report)
            except AmiRefreshError as e:
                self._record_failure(report, e)
                self.logger.error(
                    str(e),
                    extra={
                        **self.log_fields(),
                        "type": report.stage,
                        "error_type": report.error_type,
                    },
                )
                self.logger.info(
                    "Recovering from errors, aborted last job", extra=self.log_fields()
                )
            except Exception as e:
                self._record_failure(report, e)
                self.logger.exception(
                    "Unexpected error during refresh",
                    extra={**self.log_fields(), "type": report.stage},
                )
        return report

    def _refresh(self, report: RefreshReport) -> None:
        report.stage = "Validate"
        self.validate()

        image = None
        try:
            report.stage = "LaunchInstance"
            instance = self.account.launch_instance(self.descriptor)
            report.instance_id = instance.id
            try:
                report.stage = "WaitForStoppedState"
                instance.wait_for_stopped_state()

                report.stage = "CreateAmi"
                image = instance.create_image(self.name)
                report.image_id = image.id
                report.image_name = image.name

                report.stage = "WaitForAmiAvailableState"
                image.wait_for_available_state()
                report.stage = "Complete"
            finally:
                report.instance_terminated = instance.terminate()
        finally:
            self._retire_old_images(image, report)

    def _retire_old_images(
        self, image: ImageHandle | None, report: RefreshReport
    ) -> None:
        # Runs inside a finally block, so it must not raise over the original error
        try:
            if image is None:
                image = self.account.image_handle(self.descriptor)
            retired = image.retire_old_images(
                self.account.owner_id, self.retention_count
            )
        except (AmiRefreshError, BotoCoreError) as e:
            self.logger.error(
                "Retiring old AMIs failed",
                extra={**self.log_fields(), "type": "RetireOldImages", "error": str(e)},
            )
            if report.stage == "Complete":
                report.error = str(e)
                report.error_type = type(e).__name__
                report.stage = "RetireOldImages"
            return
        report.retired_image_ids = [retired_image.id for retired_image in retired]

    def _record_failure(self, report: RefreshReport, error: Exception) -> None:
        report.error = str(error)
        report.error_type = type(error).__name__


class CleanupJob(_JobUnit):
    """Terminate stopped managed instances a failed refresh left behind."""

    def __init__(
        self,
        account: Account | None,
        descriptor: LaunchDescriptor,
        name: str,
        cron: str = "",
        barrier: CompletionBarrier | None = None,
        logger=None,
        max_age_minutes: int = INSTANCE_MAX_AGE_MINUTES,
        clock: Callable[[], datetime.datetime] = utc_now,
    ):
        super().__init__(account, descriptor, name, cron, barrier, logger)
        self.max_age_minutes = max_age_minutes
        self.clock = clock

    def __repr__(self) -> str:
        return (
            f"CleanupJob(name={self.name!r}, region={self.descriptor.source.region!r})"
        )

    def cleanup(self) -> list[CleanupAction]:
        """Find and terminate orphans. Never raises; errors are logged."""
        actions = []
        with self._unit():
            try:
                actions = self._cleanup()
            except AmiRefreshError as e:
                self.logger.error(
                    str(e), extra={**self.log_fields(), "type": "FindInstances"}
                )
            except Exception:
                self.logger.exception(
                    "Unexpected error during cleanup", extra=self.log_fields()
                )
        return actions

    def _cleanup(self) -> list[CleanupAction]:
        if self.account is None:
            raise ConfigurationError("Account not found")
        instances = self.account.find_instances(self.descriptor)
        self.logger.info(
            f"{len(instances)} matching instances found, old instances will be terminated",
            extra=self.log_fields(),
        )

        current_time = self.clock()
        actions = []
        for instance in instances:
            action = check_orphaned_instance(
                instance, current_time, self.max_age_minutes
            )
            if action is None:
                continue
            self.logger.info(
                "TERMINATE orphaned instance",
                extra={
                    **self.log_fields(),
                    "instance_id": action.instance_id,
                    "reason": action.reason,
                    "age_minutes": round(action.age_minutes, 2),
                },
            )
            action.executed = instance.terminate()
            actions.append(action)
        return actions
