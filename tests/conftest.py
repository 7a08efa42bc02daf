"""Pytest configuration and shared fixtures for AMI refresh tests."""

from __future__ import annotations
import datetime
import pytest
from typing import Any
from unittest.mock import Mock

from ami_refresh.ec2 import Account
from ami_refresh.models import EbsVolume, LaunchDescriptor, Source
from ami_refresh.models.config import MANAGED_BY_TAG_KEY, MANAGED_BY_TAG_VALUE

NOW = datetime.datetime(2024, 6, 1, 12, 0, 0, tzinfo=datetime.timezone.utc)


class InstanceBuilder:
    """Builder pattern for EC2 describe_instances entries."""

    def __init__(self):
        self._instance = {
            "InstanceId": "i-test123456",
            "ImageId": "ami-source",
            "State": {"Name": "running"},
            "LaunchTime": NOW,
            "Tags": [],
        }

    def with_instance_id(self, instance_id: str) -> InstanceBuilder:
        self._instance["InstanceId"] = instance_id
        return self

    def with_state(self, state: str) -> InstanceBuilder:
        """Set instance state (pending, running, stopping, stopped)."""
        self._instance["State"]["Name"] = state
        return self

    def with_launch_time(self, launch_time: datetime.datetime) -> InstanceBuilder:
        self._instance["LaunchTime"] = launch_time
        return self

    def launched_minutes_ago(self, minutes: float) -> InstanceBuilder:
        return self.with_launch_time(NOW - datetime.timedelta(minutes=minutes))

    def with_tag(self, key: str, value: str) -> InstanceBuilder:
        self._instance["Tags"].append({"Key": key, "Value": value})
        return self

    def build(self) -> dict[str, Any]:
        return self._instance


class ImageBuilder:
    """Builder pattern for EC2 describe_images entries."""

    def __init__(self):
        self._image = {
            "ImageId": "ami-new",
            "Architecture": "x86_64",
            "CreationDate": "2024-06-01T12:00:00.000Z",
            "Description": "test image",
            "Name": "test image",
            "State": "pending",
            "Tags": [],
        }

    def with_image_id(self, image_id: str) -> ImageBuilder:
        self._image["ImageId"] = image_id
        return self

    def with_state(self, state: str) -> ImageBuilder:
        self._image["State"] = state
        return self

    def created(self, creation_date: str) -> ImageBuilder:
        self._image["CreationDate"] = creation_date
        return self

    def with_tag(self, key: str, value: str) -> ImageBuilder:
        self._image["Tags"].append({"Key": key, "Value": value})
        return self

    def build(self) -> dict[str, Any]:
        return self._image


# Shared fixtures


@pytest.fixture
def instance_builder():
    """Fixture that returns a new InstanceBuilder."""
    return InstanceBuilder()


@pytest.fixture
def image_builder():
    """Fixture that returns a new ImageBuilder."""
    return ImageBuilder()


@pytest.fixture
def current_time():
    """Fixed 'now' used by age-based policies."""
    return NOW


@pytest.fixture
def logger():
    """Capturing stand-in for the Powertools logger."""
    return Mock()


@pytest.fixture
def no_sleep():
    """Sleep replacement that records requested intervals."""
    return Mock(return_value=None)


@pytest.fixture
def managed_tags():
    return {"Project": "base-ubuntu", MANAGED_BY_TAG_KEY: MANAGED_BY_TAG_VALUE}


@pytest.fixture
def source():
    return Source(
        ami_id="ami-source",
        architecture="x86_64",
        name="ubuntu-22.04",
        os="ubuntu",
        region="us-east-1",
        type="hvm",
        version="22.04",
    )


@pytest.fixture
def descriptor(source, managed_tags):
    return LaunchDescriptor(
        user_data="#!/bin/bash\n\necho baking\n\nsudo init 0\n",
        source=source,
        instance_type="t3.micro",
        tags=dict(managed_tags),
        ebs=[EbsVolume(device_name="/dev/sda1", volume_size=16, volume_type="gp3")],
    )


@pytest.fixture
def account(logger, no_sleep, mock_ec2_client):
    """Account whose region client is a mock EC2 client (see ``account.ec2``)."""
    acct = Account(
        name="prod",
        access_key_id="AKIATEST",
        owner_id="123456789012",
        secret_access_key="secret",
        logger=logger,
        poll_interval=0,
        tag_retry_interval=0,
        sleep=no_sleep,
    )
    acct.ec2 = mock_ec2_client()
    acct.connect_to_region = Mock(return_value=acct.ec2)
    return acct


@pytest.fixture
def mock_ec2_client():
    """Factory for mock EC2 clients with common responses.

    Example:
        ec2 = mock_ec2_client(
            describe_instances_response={"Reservations": [{"Instances": [data]}]}
        )
    """

    def _create_mock(**kwargs):
        mock = Mock()
        mock.describe_instances.return_value = kwargs.get(
            "describe_instances_response", {"Reservations": []}
        )
        mock.describe_images.return_value = kwargs.get(
            "describe_images_response", {"Images": []}
        )
        mock.run_instances.return_value = kwargs.get(
            "run_instances_response", {"Instances": []}
        )
        mock.create_image.return_value = kwargs.get(
            "create_image_response", {"ImageId": "ami-new"}
        )
        mock.create_tags.return_value = {}
        mock.terminate_instances.return_value = {}
        mock.deregister_image.return_value = {}
        return mock

    return _create_mock
