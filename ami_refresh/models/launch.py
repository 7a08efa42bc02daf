"""LaunchDescriptor: everything needed to launch one bake instance."""

from __future__ import annotations
import copy
from dataclasses import dataclass, field, replace

from ..exceptions import ConfigurationError
from .records import EbsVolume, Source


@dataclass
class LaunchDescriptor:
    user_data: str = ""
    source: Source = field(default_factory=Source)
    instance_type: str = ""
    tags: dict[str, str] = field(default_factory=dict)
    ebs: list[EbsVolume] = field(default_factory=list)

    def copy(self) -> LaunchDescriptor:
        """Deep copy; the result shares no tag map or volume list with self."""
        return copy.deepcopy(self)

    def with_source(self, source: Source) -> LaunchDescriptor:
        return replace(self.copy(), source=source.copy())

    def validate(self) -> None:
        missing = []
        if not self.user_data:
            missing.append("UserData")
        if not self.instance_type:
            missing.append("InstanceType")
        if missing:
            raise ConfigurationError(
                f"Mandatory fields missing in LaunchConfig: {', '.join(missing)}"
            )
        try:
            self.source.validate_and_set_defaults()
        except ConfigurationError as e:
            raise ConfigurationError(
                f"Invalid source found in LaunchConfig: {e}"
            ) from e
        if not self.tags:
            raise ConfigurationError(
                "Mandatory field 'Tags' not defined in LaunchConfig"
            )

    def block_device_mappings(self) -> list[dict]:
        return [volume.to_block_device_mapping() for volume in self.ebs]
