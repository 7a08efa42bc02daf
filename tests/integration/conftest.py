"""Fixtures specific to integration tests."""

from __future__ import annotations
import pytest
from botocore.exceptions import ClientError


@pytest.fixture(autouse=True)
def _mark_as_integration(request):
    """Automatically mark all tests in integration/ as integration tests."""
    request.node.add_marker(pytest.mark.integration)


@pytest.fixture
def client_error():
    """Factory for botocore ClientErrors."""

    def _create(code="InternalError", operation="Operation", message="test failure"):
        return ClientError({"Error": {"Code": code, "Message": message}}, operation)

    return _create


@pytest.fixture
def ec2_happy_path(account, instance_builder, image_builder):
    """
    Wire the account's mock EC2 client for a full successful refresh.

    describe_images answers both the availability poll (ImageIds=...) and
    the retention listing (Owners=...); ``listing`` holds the latter.
    """
    ec2 = account.ec2
    ec2.run_instances.return_value = {
        "Instances": [instance_builder.with_state("pending").build()]
    }
    stopped = {**instance_builder.build(), "State": {"Name": "stopped"}}
    ec2.describe_instances.return_value = {"Reservations": [{"Instances": [stopped]}]}
    ec2.create_image.return_value = {"ImageId": "ami-new"}

    new_image = image_builder.with_image_id("ami-new").with_state("available").build()
    listing = {
        "Images": [
            new_image,
            {**new_image, "ImageId": "ami-old-1", "CreationDate": "2024-05-01T00:00:00.000Z"},
            {**new_image, "ImageId": "ami-old-2", "CreationDate": "2024-04-01T00:00:00.000Z"},
        ]
    }

    def describe_images(**kwargs):
        if "ImageIds" in kwargs:
            return {"Images": [new_image]}
        return listing

    ec2.describe_images.side_effect = describe_images
    return ec2
