"""Result records returned by refresh and cleanup jobs."""

from __future__ import annotations
from dataclasses import dataclass, asdict, field
from typing import Any


@dataclass
class CleanupAction:
    """Represents a cleanup action to be taken on an orphaned instance."""

    instance_id: str
    region: str
    name: str
    action: str
    reason: str
    age_minutes: float
    state: str = ""
    executed: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data = asdict(self)
        data["age_minutes"] = round(self.age_minutes, 2)
        return data


@dataclass
class RefreshReport:
    """Outcome of one refresh run for a (project, source) pair."""

    job_name: str
    account: str
    region: str
    source_ami_id: str
    instance_id: str | None = None
    image_id: str | None = None
    image_name: str | None = None
    retired_image_ids: list[str] = field(default_factory=list)
    instance_terminated: bool = False
    error: str | None = None
    error_type: str | None = None
    stage: str = ""

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["succeeded"] = self.succeeded
        return data
