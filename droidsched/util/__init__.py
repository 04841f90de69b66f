"""Utility module initialization."""

from .hashing import calculate_file_hash, verify_file_integrity
from .logging import get_logger, setup_logging
from .paths import (
    ensure_directory,
    format_size,
    get_available_space,
    is_writable_directory,
    safe_filename,
)
from .timeutil import (
    current_millis,
    next_occurrence,
    now_iso,
    session_name,
)

__all__ = [
    # hashing
    "calculate_file_hash",
    "verify_file_integrity",
    # logging
    "get_logger",
    "setup_logging",
    # paths
    "ensure_directory",
    "format_size",
    "get_available_space",
    "is_writable_directory",
    "safe_filename",
    # timeutil
    "current_millis",
    "next_occurrence",
    "now_iso",
    "session_name",
]
