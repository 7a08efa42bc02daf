"""AMI handle: availability polling, tagging and retention."""

from __future__ import annotations
import time
from typing import Any, Callable

from botocore.exceptions import BotoCoreError, ClientError

from ..exceptions import ProviderAPIError
from ..models.config import (
    IMAGE_AVAILABLE,
    POLL_INTERVAL_SECONDS,
    TAG_RETRY_ATTEMPTS,
    TAG_RETRY_INTERVAL_SECONDS,
)
from ..utils import (
    build_tag_filters,
    call_with_retry,
    convert_dict_to_tags,
    convert_tags_to_dict,
    error_code,
    get_logger,
)
from .polling import wait_for_state


class ImageHandle:
    """One AMI in one region, refreshed from describe_images."""

    def __init__(
        self,
        client,
        region: str,
        image_id: str = "",
        name: str = "",
        tags: dict[str, str] | None = None,
        logger=None,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
        timeout: float | None = None,
    ):
        self.client = client
        self.region = region
        self.id = image_id
        self.name = name
        self.architecture = ""
        self.state = ""
        self.description = ""
        self.creation_date = ""
        self.tags = dict(tags or {})
        self.logger = logger or get_logger()
        self.poll_interval = poll_interval
        self.sleep = sleep
        self.timeout = timeout

    @classmethod
    def from_description(cls, image: dict[str, Any], client, region: str, **kwargs):
        handle = cls(client, region, **kwargs)
        handle.update(image)
        return handle

    def __repr__(self) -> str:
        return f"ImageHandle(id={self.id!r}, state={self.state!r}, created={self.creation_date!r})"

    def log_fields(self) -> dict[str, Any]:
        return {
            "region": self.region,
            "image_id": self.id,
            "image_name": self.name,
            "state": self.state,
        }

    def update(self, image: dict[str, Any]) -> None:
        """Overwrite fields from a describe_images entry; tags are merged."""
        self.id = image["ImageId"]
        self.architecture = image.get("Architecture", "")
        self.creation_date = image.get("CreationDate", "")
        self.description = image.get("Description", "")
        self.name = image.get("Name", "")
        self.state = image.get("State", "")
        self.tags.update(convert_tags_to_dict(image.get("Tags")))

    @property
    def is_available(self) -> bool:
        return self.state == IMAGE_AVAILABLE

    def refresh(self) -> str:
        try:
            response = self.client.describe_images(ImageIds=[self.id])
        except (ClientError, BotoCoreError) as e:
            self.logger.error(
                "describe_images failed",
                extra={**self.log_fields(), "error": str(e)},
            )
            raise ProviderAPIError("DescribeImages", self.id, str(e)) from e
        images = response.get("Images", [])
        if not images:
            raise ProviderAPIError("DescribeImages", self.id, "image not found")
        self.update(images[0])
        return self.state

    def wait_for_available_state(self) -> None:
        wait_for_state(
            refresh=self.refresh,
            desired=IMAGE_AVAILABLE,
            current=self.state,
            poll_interval=self.poll_interval,
            logger=self.logger,
            log_fields=self.log_fields,
            waiting_message="Waiting for AMI to be ready",
            sleep=self.sleep,
            timeout=self.timeout,
        )
        self.logger.info("AMI is now ready", extra=self.log_fields())

    def tag_image(self) -> None:
        self.logger.debug("Tagging AMI", extra=self.log_fields())
        self.client.create_tags(
            Resources=[self.id], Tags=convert_dict_to_tags(self.tags)
        )
        self.logger.info(
            f"AMI tagged with {len(self.tags)} keys", extra=self.log_fields()
        )

    def tag_image_with_retry(
        self,
        attempts: int = TAG_RETRY_ATTEMPTS,
        interval: float = TAG_RETRY_INTERVAL_SECONDS,
    ) -> None:
        try:
            call_with_retry(
                self.tag_image,
                attempts=attempts,
                interval=interval,
                description="AMI tagging",
                logger=self.logger,
                sleep=self.sleep,
                extra=self.log_fields(),
            )
        except (ClientError, BotoCoreError) as e:
            self.logger.error(
                "AMI tagging failed",
                extra={**self.log_fields(), "error": str(e)},
            )
            raise ProviderAPIError("CreateTags", self.id, str(e)) from e

    def find_images(self, owner_id: str) -> list[ImageHandle]:
        """Images owned by ``owner_id`` carrying this image's tags, newest first."""
        try:
            response = self.client.describe_images(
                Owners=[owner_id], Filters=build_tag_filters(self.tags)
            )
        except (ClientError, BotoCoreError) as e:
            self.logger.error(
                "describe_images failed while listing AMIs",
                extra={**self.log_fields(), "owner_id": owner_id, "error": str(e)},
            )
            raise ProviderAPIError("DescribeImages", owner_id, str(e)) from e

        # CreationDate is fixed-width ISO 8601, so string order is time order
        images = sorted(
            response.get("Images", []),
            key=lambda image: image.get("CreationDate", ""),
            reverse=True,
        )
        return [
            ImageHandle.from_description(
                image, self.client, self.region, logger=self.logger
            )
            for image in images
        ]

    def retire_old_images(
        self, owner_id: str, retention_count: int
    ) -> list[ImageHandle]:
        """
        Deregister every available image beyond the newest ``retention_count``.

        Walks from the oldest image upward. An image that is not available is
        skipped and extends the retained window by one, so in-flight builds are
        never deregistered. A failed deregistration is logged, the scan goes
        on, and the image is still reported in the returned list.
        """
        found = self.find_images(owner_id)
        retired = []
        index = len(found) - 1
        while index >= retention_count:
            image = found[index]
            index -= 1
            if not image.is_available:
                retention_count += 1
                continue
            try:
                self.client.deregister_image(ImageId=image.id)
            except (ClientError, BotoCoreError) as e:
                self.logger.warning(
                    "AMI deregister API failed",
                    extra={
                        **self.log_fields(),
                        "retired_image_id": image.id,
                        "error": str(e),
                        "error_code": error_code(e),
                    },
                )
            retired.append(image)

        for image in retired:
            self.logger.info(
                f"Deleted AMI: {image.id}",
                extra={**self.log_fields(), "retired_image_id": image.id},
            )
        return retired
