"""AWS account: region clients, instance launch and re-discovery."""

from __future__ import annotations
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..exceptions import ConfigurationError, ProviderAPIError
from ..models.config import (
    POLL_INTERVAL_SECONDS,
    TAG_RETRY_ATTEMPTS,
    TAG_RETRY_INTERVAL_SECONDS,
)
from ..models.launch import LaunchDescriptor
from ..models.records import map_fields
from ..utils import build_tag_filters, error_code, get_logger
from .images import ImageHandle
from .instances import InstanceHandle


@dataclass
class Account:
    """Credentials and owner id for one AWS account."""

    name: str = ""
    access_key_id: str = ""
    owner_id: str = ""
    secret_access_key: str = field(default="", repr=False)
    logger: Any = field(default=None, repr=False, compare=False)
    poll_interval: float = field(default=POLL_INTERVAL_SECONDS, repr=False)
    tag_retry_attempts: int = field(default=TAG_RETRY_ATTEMPTS, repr=False)
    tag_retry_interval: float = field(default=TAG_RETRY_INTERVAL_SECONDS, repr=False)
    sleep: Callable[[float], None] = field(
        default=time.sleep, repr=False, compare=False
    )

    def __post_init__(self):
        self.logger = self.logger or get_logger()
        self._clients: dict[str, Any] = {}
        self._clients_lock = threading.Lock()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Account:
        credential_fields = {"name", "access_key_id", "owner_id", "secret_access_key"}
        mapped = {
            key: value
            for key, value in map_fields(cls, data).items()
            if key in credential_fields
        }
        for key, value in mapped.items():
            if value is not None and not isinstance(value, str):
                # Account numbers are sometimes written as JSON numbers
                mapped[key] = str(value)
        return cls(**{key: value or "" for key, value in mapped.items()})

    def log_fields(self) -> dict[str, Any]:
        return {"account": self.name}

    def validate_and_set_defaults(self) -> None:
        missing = []
        for f, label in (
            ("name", "Name"),
            ("access_key_id", "AccessKeyId"),
            ("owner_id", "OwnerId"),
            ("secret_access_key", "SecretAccessKey"),
        ):
            setattr(self, f, (getattr(self, f) or "").strip())
            if not getattr(self, f):
                missing.append(label)
        if missing:
            raise ConfigurationError(
                f"Mandatory fields missing in Account: {', '.join(missing)}"
            )

    def connect_to_region(self, region: str):
        """Return the EC2 client for ``region``, creating it once.

        boto3 sessions are not thread-safe but the clients they build are, so
        clients are created under a lock and then shared.
        """
        with self._clients_lock:
            client = self._clients.get(region)
            if client is None:
                session = boto3.session.Session(
                    aws_access_key_id=self.access_key_id,
                    aws_secret_access_key=self.secret_access_key,
                    region_name=region,
                )
                client = session.client("ec2")
                self._clients[region] = client
            return client

    def _handle(self, client, region: str, **kwargs) -> InstanceHandle:
        return InstanceHandle(
            client,
            region,
            logger=self.logger,
            poll_interval=self.poll_interval,
            sleep=self.sleep,
            **kwargs,
        )

    def launch_instance(self, descriptor: LaunchDescriptor) -> InstanceHandle:
        """
        Launch one instance from the descriptor's source and tag it.

        Tagging is retried; if it still fails the launch fails even though
        the instance exists. The untagged instance is not cleaned up.
        """
        source = descriptor.source
        request: dict[str, Any] = {
            "ImageId": source.ami_id,
            "InstanceType": descriptor.instance_type,
            # botocore base64-encodes UserData for run_instances
            "UserData": descriptor.user_data,
            "MinCount": 1,
            "MaxCount": 1,
        }
        mappings = descriptor.block_device_mappings()
        if mappings:
            request["BlockDeviceMappings"] = mappings

        context = {
            **self.log_fields(),
            "region": source.region,
            "ami_id": source.ami_id,
            "instance_type": descriptor.instance_type,
        }
        self.logger.info(
            f"Launching {descriptor.instance_type} instance with AMI ID: "
            f"{source.ami_id} on Region: {source.region}",
            extra=context,
        )
        client = self.connect_to_region(source.region)
        try:
            response = client.run_instances(**request)
        except (ClientError, BotoCoreError) as e:
            self.logger.error(
                "Launch failed",
                extra={**context, "error": str(e), "error_code": error_code(e)},
            )
            raise ProviderAPIError("RunInstances", source.ami_id, str(e)) from e

        instance = self._handle(client, source.region, tags=descriptor.tags)
        instance.update(response["Instances"][0])
        self.logger.info(
            f"Instance launched on Region: {source.region}, Instance ID: {instance.id}",
            extra={**context, "instance_id": instance.id},
        )
        instance.tag_instance_with_retry(
            attempts=self.tag_retry_attempts, interval=self.tag_retry_interval
        )
        return instance

    def image_handle(self, descriptor: LaunchDescriptor) -> ImageHandle:
        """Unbound image handle carrying the descriptor's tags, for retention."""
        region = descriptor.source.region
        return ImageHandle(
            self.connect_to_region(region),
            region,
            tags=descriptor.tags,
            logger=self.logger,
            poll_interval=self.poll_interval,
            sleep=self.sleep,
        )

    def find_instances(self, descriptor: LaunchDescriptor) -> list[InstanceHandle]:
        """Instances whose tags equal every tag of the descriptor."""
        region = descriptor.source.region
        client = self.connect_to_region(region)
        request: dict[str, Any] = {"Filters": build_tag_filters(descriptor.tags)}
        found = []
        while True:
            try:
                response = client.describe_instances(**request)
            except (ClientError, BotoCoreError) as e:
                self.logger.error(
                    "describe_instances failed while searching by tags",
                    extra={**self.log_fields(), "region": region, "error": str(e)},
                )
                raise ProviderAPIError("DescribeInstances", region, str(e)) from e

            for reservation in response.get("Reservations", []):
                for instance in reservation.get("Instances", []):
                    handle = self._handle(client, region)
                    handle.update(instance)
                    found.append(handle)

            next_token = response.get("NextToken")
            if not next_token:
                return found
            request["NextToken"] = next_token
