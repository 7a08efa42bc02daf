"""Integration tests for CleanupJob against a mocked EC2 client."""

from __future__ import annotations
import pytest
from freezegun import freeze_time

from ami_refresh.engine import CleanupJob


@pytest.fixture
def make_job(account, descriptor, logger, current_time):
    def _make(**kwargs):
        return CleanupJob(
            account, descriptor, "base-ubuntu", logger=logger,
            clock=lambda: current_time, **kwargs
        )

    return _make


def _reservations(*instances):
    return {"Reservations": [{"Instances": list(instances)}]}


class TestCleanupJob:
    def test_terminates_only_old_stopped_instances(
        self, make_job, account, instance_builder
    ):
        """
        GIVEN managed instances: old stopped, old running and young stopped
        WHEN cleanup is called
        THEN only the old stopped instance should be terminated, exactly once
        """
        old_stopped = (
            instance_builder.with_instance_id("i-orphan")
            .with_state("stopped")
            .launched_minutes_ago(180)
            .build()
        )
        old_running = {**old_stopped, "InstanceId": "i-baking", "State": {"Name": "running"}}
        young_stopped = {
            **old_stopped,
            "InstanceId": "i-young",
            "LaunchTime": old_stopped["LaunchTime"].replace(year=2030),
        }
        account.ec2.describe_instances.return_value = _reservations(
            old_stopped, old_running, young_stopped
        )

        actions = make_job().cleanup()

        assert [a.instance_id for a in actions] == ["i-orphan"]
        assert actions[0].executed is True
        account.ec2.terminate_instances.assert_called_once_with(InstanceIds=["i-orphan"])

    def test_searches_by_descriptor_tags(self, make_job, account, descriptor):
        account.ec2.describe_instances.return_value = {"Reservations": []}

        assert make_job().cleanup() == []

        account.connect_to_region.assert_called_with("us-east-1")
        filters = account.ec2.describe_instances.call_args.kwargs["Filters"]
        assert {f["Name"] for f in filters} == {f"tag:{k}" for k in descriptor.tags}

    def test_terminate_failure_recorded(
        self, make_job, account, instance_builder, client_error
    ):
        account.ec2.describe_instances.return_value = _reservations(
            instance_builder.with_state("stopped").launched_minutes_ago(500).build()
        )
        account.ec2.terminate_instances.side_effect = client_error(
            "UnauthorizedOperation", "TerminateInstances"
        )

        actions = make_job().cleanup()

        assert len(actions) == 1
        assert actions[0].executed is False

    def test_listing_failure_logged_not_raised(
        self, make_job, account, client_error, logger
    ):
        """
        GIVEN describe_instances fails
        WHEN cleanup is called
        THEN the error should be logged and an empty list returned
        """
        account.ec2.describe_instances.side_effect = client_error(
            "RequestLimitExceeded", "DescribeInstances"
        )

        assert make_job().cleanup() == []
        account.ec2.terminate_instances.assert_not_called()
        logger.error.assert_called()

    def test_custom_age_ceiling(self, make_job, account, instance_builder):
        account.ec2.describe_instances.return_value = _reservations(
            instance_builder.with_state("stopped").launched_minutes_ago(45).build()
        )

        assert make_job(max_age_minutes=30).cleanup()[0].executed is True


class TestCleanupJobClock:
    @freeze_time("2024-06-01 12:00:00")
    def test_default_clock_is_current_utc_time(
        self, account, descriptor, logger, instance_builder
    ):
        """
        GIVEN a stopped instance launched 121 minutes before the frozen time
        WHEN cleanup runs with the default clock
        THEN it should be terminated
        """
        account.ec2.describe_instances.return_value = _reservations(
            instance_builder.with_state("stopped").launched_minutes_ago(121).build()
        )

        actions = CleanupJob(account, descriptor, "base-ubuntu", logger=logger).cleanup()

        assert len(actions) == 1
        assert actions[0].age_minutes == pytest.approx(121)
