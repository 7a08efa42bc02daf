"""Utility functions for the refresh engine."""

from .aws_helpers import (
    convert_tags_to_dict,
    convert_dict_to_tags,
    build_tag_filters,
    error_code,
)
from .logging_config import get_logger, set_log_level
from .retry import call_with_retry

__all__ = [
    "convert_tags_to_dict",
    "convert_dict_to_tags",
    "build_tag_filters",
    "error_code",
    "get_logger",
    "set_log_level",
    "call_with_retry",
]
