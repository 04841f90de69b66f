"""Utility functions for path operations."""

import os
import shutil
from pathlib import Path

from ..util.logging import get_logger

logger = get_logger(__name__)


def ensure_directory(path: Path) -> Path:
    """Ensure directory exists, creating it if necessary."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def safe_filename(filename: str) -> str:
    """Create a safe filename by removing/replacing problematic characters."""
    replacements = {
        "/": "_",
        "\\": "_",
        ":": "_",
        "*": "_",
        "?": "_",
        '"': "_",
        "<": "_",
        ">": "_",
        "|": "_",
        "\n": "_",
        "\r": "_",
        "\t": "_",
    }

    safe_name = filename
    for old, new in replacements.items():
        safe_name = safe_name.replace(old, new)

    safe_name = safe_name.strip(" .")

    if not safe_name:
        safe_name = "unknown"

    return safe_name


def is_writable_directory(path: Path) -> bool:
    """Check that ``path`` is an existing directory the current user can write."""
    return path.is_dir() and os.access(path, os.W_OK | os.X_OK)


def get_available_space(path: Path) -> int:
    """Get available space in bytes for the given path."""
    try:
        stat = shutil.disk_usage(path)
        return stat.free
    except OSError as e:
        logger.warning(f"Could not get disk usage for {path}: {e}")
        return 0


def format_size(size_bytes: int) -> str:
    """Format file size in human readable format."""
    if size_bytes == 0:
        return "0 B"

    size_names = ["B", "KB", "MB", "GB", "TB"]
    i = 0
    while size_bytes >= 1024.0 and i < len(size_names) - 1:
        size_bytes /= 1024.0
        i += 1

    return f"{size_bytes:.1f} {size_names[i]}"
