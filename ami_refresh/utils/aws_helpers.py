"""AWS helper functions."""

from __future__ import annotations


def convert_tags_to_dict(tags: list[dict[str, str]] | None) -> dict[str, str]:
    """Convert AWS tag list to dictionary."""
    return {tag["Key"]: tag["Value"] for tag in tags} if tags else {}


def convert_dict_to_tags(tags_dict: dict[str, str]) -> list[dict[str, str]]:
    """Convert tag dictionary to the AWS Key/Value list format."""
    return [{"Key": key, "Value": value} for key, value in tags_dict.items()]


def build_tag_filters(tags_dict: dict[str, str]) -> list[dict[str, list[str] | str]]:
    """Build exact-match ``tag:<key>`` describe filters from a tag dictionary."""
    return [
        {"Name": f"tag:{key}", "Values": [value]} for key, value in tags_dict.items()
    ]


def error_code(error: Exception) -> str:
    """Extract the AWS error code from a ClientError, empty for anything else."""
    response = getattr(error, "response", None) or {}
    return response.get("Error", {}).get("Code", "")
