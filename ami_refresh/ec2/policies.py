"""Orphaned bake-instance policy."""

from __future__ import annotations
import datetime

from ..models import CleanupAction
from ..models.config import INSTANCE_MAX_AGE_MINUTES, INSTANCE_STOPPED
from .instances import InstanceHandle


def check_orphaned_instance(
    instance: InstanceHandle,
    current_time: datetime.datetime,
    max_age_minutes: int = INSTANCE_MAX_AGE_MINUTES,
) -> CleanupAction | None:
    """
    Check if a managed instance was left behind by an aborted refresh.

    Only stopped instances older than ``max_age_minutes`` qualify; a running
    instance may still be baking and is never terminated.
    """
    if instance.state != INSTANCE_STOPPED:
        return None

    if instance.launch_time is None:
        return None

    age_minutes = instance.age_minutes(current_time)
    if age_minutes <= max_age_minutes:
        return None

    launched_at = instance.launch_time.strftime("%Y-%m-%d %H:%M:%S UTC")
    return CleanupAction(
        instance_id=instance.id,
        region=instance.region,
        name=instance.tags.get("Name", "N/A"),
        action="TERMINATE",
        reason=f"Stopped instance older than {max_age_minutes} minutes. Launched {launched_at}",
        age_minutes=age_minutes,
        state=instance.state,
    )
