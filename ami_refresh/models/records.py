"""Configuration records: sources, user data, EBS volumes and projects."""

from __future__ import annotations
from dataclasses import dataclass, field, fields
from typing import Any

from ..exceptions import ConfigurationError
from ..utils import get_logger
from .config import (
    DEFAULT_INSTANCE_TYPE,
    DEFAULT_RETENTION_COUNT,
    MANAGED_BY_TAG_KEY,
    MANAGED_BY_TAG_VALUE,
)

BASH_HEADER = "#!/bin/bash\n"
SHUTDOWN_FOOTER = "\nsudo init 0\n"


def _normalize_key(key: str) -> str:
    return key.replace("_", "").replace("-", "").lower()


def map_fields(cls: type, data: dict[str, Any]) -> dict[str, Any]:
    """
    Map JSON keys onto dataclass field names.

    Keys match case-insensitively and ignore underscores, so ``AmiId``,
    ``amiid`` and ``ami_id`` all land on ``ami_id``. Unknown keys are dropped.
    """
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Expected an object for {cls.__name__}, got {type(data).__name__}"
        )
    by_key = {_normalize_key(f.name): f.name for f in fields(cls)}
    mapped = {}
    for key, value in data.items():
        name = by_key.get(_normalize_key(str(key)))
        if name is not None:
            mapped[name] = value
    return mapped


def _as_str(value: Any, field_name: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ConfigurationError(f"Field '{field_name}' must be a string")
    return value.strip()


def _missing_fields_error(record: str, missing: list[str]) -> ConfigurationError:
    return ConfigurationError(
        f"Mandatory fields missing in {record}: {', '.join(missing)}"
    )


@dataclass
class Source:
    """A base AMI to launch from; doubles as a filter where empty means any."""

    ami_id: str = ""
    architecture: str = ""
    name: str = ""
    os: str = ""
    region: str = ""
    type: str = ""
    version: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Source:
        mapped = map_fields(cls, data)
        return cls(**{key: _as_str(value, key) for key, value in mapped.items()})

    def copy(self) -> Source:
        return Source(**{f.name: getattr(self, f.name) for f in fields(self)})

    def matches(self, candidate: Source) -> bool:
        """Conjunctive match: every non-empty field must equal the candidate's."""
        for f in fields(self):
            wanted = getattr(self, f.name)
            if wanted and getattr(candidate, f.name) != wanted:
                return False
        return True

    def find_sources(self, sources: list[Source]) -> list[Source]:
        return [source for source in sources if self.matches(source)]

    def validate_and_set_defaults(self) -> None:
        for f in fields(self):
            setattr(self, f.name, _as_str(getattr(self, f.name), f.name))
        if not self.ami_id:
            raise _missing_fields_error("Source", ["AmiId"])


@dataclass
class EbsVolume:
    device_name: str = ""
    delete_on_termination: bool = True
    volume_size: int = 8
    volume_type: str = "gp2"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EbsVolume:
        volume = cls(**map_fields(cls, data))
        volume.validate()
        return volume

    def validate(self) -> None:
        self.device_name = _as_str(self.device_name, "DeviceName")
        self.volume_type = _as_str(self.volume_type, "VolumeType")
        if not self.device_name:
            raise _missing_fields_error("EbsVolume", ["DeviceName"])
        if not isinstance(self.volume_size, int) or isinstance(
            self.volume_size, bool
        ):
            raise ConfigurationError("Field 'VolumeSize' must be an integer")
        if not isinstance(self.delete_on_termination, bool):
            raise ConfigurationError("Field 'DeleteOnTermination' must be a boolean")

    def to_block_device_mapping(self) -> dict[str, Any]:
        """Render as an EC2 BlockDeviceMapping."""
        return {
            "DeviceName": self.device_name,
            "Ebs": {
                "DeleteOnTermination": self.delete_on_termination,
                "VolumeSize": self.volume_size,
                "VolumeType": self.volume_type,
            },
        }


@dataclass
class UserData:
    """Named bake script; the instance powers itself off when it finishes."""

    name: str = ""
    bash: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UserData:
        mapped = map_fields(cls, data)
        return cls(**{key: _as_str(value, key) for key, value in mapped.items()})

    def validate_and_set_defaults(self) -> None:
        self.name = _as_str(self.name, "Name")
        self.bash = _as_str(self.bash, "Bash")
        missing = [
            label for label, value in (("Name", self.name), ("Bash", self.bash))
            if not value
        ]
        if missing:
            raise _missing_fields_error("UserData", missing)
        if not self.bash.startswith(BASH_HEADER):
            self.bash = f"{BASH_HEADER}\n{self.bash}"
        if not self.bash.endswith(SHUTDOWN_FOOTER):
            self.bash = f"{self.bash}\n{SHUTDOWN_FOOTER}"


@dataclass
class Project:
    """One image family to refresh: what to launch, where, and how often."""

    name: str = ""
    instance_type: str = ""
    cron: str = ""
    retention_count: int = 0
    source_filter: Source = field(default_factory=Source)
    user_data: str = ""
    account: str = ""
    ebs_volumes: list[EbsVolume] = field(default_factory=list)
    tags: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Project:
        mapped = map_fields(cls, data)
        if "source_filter" in mapped:
            mapped["source_filter"] = Source.from_dict(mapped["source_filter"] or {})
        if "ebs_volumes" in mapped:
            volumes = mapped["ebs_volumes"] or []
            if not isinstance(volumes, list):
                raise ConfigurationError("Field 'EbsVolumes' must be a list")
            mapped["ebs_volumes"] = [EbsVolume.from_dict(v) for v in volumes]
        if "tags" in mapped:
            tags = mapped["tags"] or {}
            if not isinstance(tags, dict):
                raise ConfigurationError("Field 'Tags' must be an object")
            mapped["tags"] = {str(k): str(v) for k, v in tags.items()}
        for key in ("name", "instance_type", "cron", "user_data", "account"):
            if key in mapped:
                mapped[key] = _as_str(mapped[key], key)
        if mapped.get("retention_count") is None:
            mapped.pop("retention_count", None)
        return cls(**mapped)

    @property
    def is_recurring(self) -> bool:
        return bool(self.cron)

    def validate_and_set_defaults(self, logger=None) -> None:
        logger = logger or get_logger()
        self.name = self.name.strip()
        self.instance_type = self.instance_type.strip()
        self.cron = self.cron.strip()
        self.user_data = self.user_data.strip()
        self.account = self.account.strip()

        if not self.instance_type:
            self.instance_type = DEFAULT_INSTANCE_TYPE
            logger.info(
                f"InstanceType not configured for Project '{self.name}', "
                f"using default {self.instance_type}",
                extra={"project": self.name},
            )
        if not isinstance(self.retention_count, int) or self.retention_count < 0:
            raise ConfigurationError(
                f"RetentionCount must be a non-negative integer in Project '{self.name}'"
            )
        if self.retention_count == 0:
            self.retention_count = DEFAULT_RETENTION_COUNT
            logger.info(
                f"RetentionCount not configured or 0 for Project '{self.name}', "
                f"using default {self.retention_count}",
                extra={"project": self.name},
            )
        if not self.cron:
            logger.warning(
                f"No cron defined for Project '{self.name}', it will run once and exit",
                extra={"project": self.name},
            )
        self.tags[MANAGED_BY_TAG_KEY] = MANAGED_BY_TAG_VALUE

        missing = [
            label
            for label, value in (
                ("Name", self.name),
                ("UserData", self.user_data),
                ("Account", self.account),
            )
            if not value
        ]
        if missing:
            raise _missing_fields_error("Project", missing)
