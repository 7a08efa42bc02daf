"""EC2 accounts, instance and image handles, and the orphan cleanup policy."""

from .account import Account
from .images import ImageHandle
from .instances import InstanceHandle
from .policies import check_orphaned_instance

__all__ = [
    "Account",
    "ImageHandle",
    "InstanceHandle",
    "check_orphaned_instance",
]
