"""EC2 instance handle: stop polling, image creation and termination."""

from __future__ import annotations
import datetime
import time
from typing import Any, Callable

from botocore.exceptions import BotoCoreError, ClientError

from ..exceptions import ProviderAPIError
from ..models.config import (
    IMAGE_TIMESTAMP_FORMAT,
    INSTANCE_STOPPED,
    POLL_INTERVAL_SECONDS,
    TAG_RETRY_ATTEMPTS,
    TAG_RETRY_INTERVAL_SECONDS,
)
from ..utils import (
    call_with_retry,
    convert_dict_to_tags,
    convert_tags_to_dict,
    error_code,
    get_logger,
)
from .images import ImageHandle
from .polling import wait_for_state


class InstanceHandle:
    """One launched instance, refreshed from describe_instances."""

    def __init__(
        self,
        client,
        region: str,
        instance_id: str = "",
        tags: dict[str, str] | None = None,
        logger=None,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
        timeout: float | None = None,
    ):
        self.client = client
        self.region = region
        self.id = instance_id
        self.image_id = ""
        self.launch_time: datetime.datetime | None = None
        self.state = ""
        self.tags = dict(tags or {})
        self.logger = logger or get_logger()
        self.poll_interval = poll_interval
        self.sleep = sleep
        self.timeout = timeout

    @classmethod
    def from_description(
        cls, instance: dict[str, Any], client, region: str, **kwargs
    ) -> InstanceHandle:
        handle = cls(client, region, **kwargs)
        handle.update(instance)
        return handle

    def __repr__(self) -> str:
        return f"InstanceHandle(id={self.id!r}, state={self.state!r})"

    def log_fields(self) -> dict[str, Any]:
        return {
            "instance_id": self.id,
            "image_id": self.image_id,
            "state": self.state,
            "region": self.region,
        }

    def update(self, instance: dict[str, Any]) -> None:
        """Overwrite fields from a describe/run_instances entry; tags are merged."""
        self.id = instance["InstanceId"]
        self.launch_time = instance.get("LaunchTime")
        self.image_id = instance.get("ImageId", "")
        self.state = instance.get("State", {}).get("Name", "")
        self.tags.update(convert_tags_to_dict(instance.get("Tags")))

    def age_minutes(self, current_time: datetime.datetime) -> float:
        if self.launch_time is None:
            return 0.0
        return (current_time - self.launch_time).total_seconds() / 60

    def tag_instance(self) -> None:
        self.logger.debug("Tagging instance", extra=self.log_fields())
        self.client.create_tags(
            Resources=[self.id], Tags=convert_dict_to_tags(self.tags)
        )
        self.logger.info(
            f"Instance tagged with {len(self.tags)} keys", extra=self.log_fields()
        )

    def tag_instance_with_retry(
        self,
        attempts: int = TAG_RETRY_ATTEMPTS,
        interval: float = TAG_RETRY_INTERVAL_SECONDS,
    ) -> None:
        """Tag right after launch; the new id may not be visible to CreateTags yet."""
        try:
            call_with_retry(
                self.tag_instance,
                attempts=attempts,
                interval=interval,
                description="Instance tagging",
                logger=self.logger,
                sleep=self.sleep,
                extra=self.log_fields(),
            )
        except (ClientError, BotoCoreError) as e:
            self.logger.error(
                "Instance tagging failed, instance is left untagged",
                extra={**self.log_fields(), "attempts": attempts, "error": str(e)},
            )
            raise ProviderAPIError("CreateTags", self.id, str(e)) from e

    def refresh(self) -> str:
        try:
            response = self.client.describe_instances(InstanceIds=[self.id])
        except (ClientError, BotoCoreError) as e:
            self.logger.error(
                "describe_instances failed",
                extra={**self.log_fields(), "error": str(e)},
            )
            raise ProviderAPIError("DescribeInstances", self.id, str(e)) from e
        reservations = response.get("Reservations", [])
        if not reservations or not reservations[0].get("Instances"):
            raise ProviderAPIError("DescribeInstances", self.id, "instance not found")
        self.update(reservations[0]["Instances"][0])
        return self.state

    def wait_for_stopped_state(self) -> None:
        wait_for_state(
            refresh=self.refresh,
            desired=INSTANCE_STOPPED,
            current=self.state,
            poll_interval=self.poll_interval,
            logger=self.logger,
            log_fields=self.log_fields,
            waiting_message="Waiting for instance to stop",
            sleep=self.sleep,
            timeout=self.timeout,
        )
        self.logger.info("Instance stopped", extra=self.log_fields())

    def image_name(self, name: str) -> str:
        launched = self.launch_time or datetime.datetime.now(datetime.timezone.utc)
        return f"{name} {launched.strftime(IMAGE_TIMESTAMP_FORMAT)}"

    def create_image(self, name: str) -> ImageHandle:
        """Snapshot this instance into a new AMI tagged like the instance."""
        image = ImageHandle(
            self.client,
            self.region,
            name=self.image_name(name),
            tags=self.tags,
            logger=self.logger,
            poll_interval=self.poll_interval,
            sleep=self.sleep,
            timeout=self.timeout,
        )
        try:
            response = self.client.create_image(
                InstanceId=self.id, Name=image.name, Description=image.name
            )
        except (ClientError, BotoCoreError) as e:
            self.logger.error(
                "AMI creation API failed",
                extra={**self.log_fields(), "error": str(e)},
            )
            raise ProviderAPIError("CreateImage", self.id, str(e)) from e
        image.id = response["ImageId"]
        image.description = image.name
        self.logger.info(
            f"Created AMI: {image.id}",
            extra={**self.log_fields(), "new_image_id": image.id},
        )
        image.tag_image_with_retry()
        return image

    def terminate(self) -> bool:
        """Terminate the instance. Errors are logged and reported as False."""
        try:
            self.client.terminate_instances(InstanceIds=[self.id])
        except (ClientError, BotoCoreError) as e:
            self.logger.error(
                "Terminate instance API failed",
                extra={**self.log_fields(), "error": str(e), "error_code": error_code(e)},
            )
            return False
        self.logger.info("Instance terminated", extra=self.log_fields())
        return True
