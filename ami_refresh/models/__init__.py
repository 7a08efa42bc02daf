"""Data models for the refresh engine."""

from .launch import LaunchDescriptor
from .records import EbsVolume, Project, Source, UserData
from .reports import CleanupAction, RefreshReport

__all__ = [
    "CleanupAction",
    "EbsVolume",
    "LaunchDescriptor",
    "Project",
    "RefreshReport",
    "Source",
    "UserData",
]
