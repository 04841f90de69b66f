"""Utility functions for hashing backup artifacts."""

import hashlib
from pathlib import Path
from typing import Optional

from ..util.logging import get_logger

logger = get_logger(__name__)


def calculate_file_hash(
    file_path: Path,
    algorithm: str = "sha256",
    chunk_size: int = 8192
) -> Optional[str]:
    """Calculate hash of a file, or None when it cannot be read."""
    try:
        hasher = hashlib.new(algorithm)

        with open(file_path, "rb") as f:
            while chunk := f.read(chunk_size):
                hasher.update(chunk)

        return hasher.hexdigest()
    except OSError as e:
        logger.error(f"Failed to calculate hash for {file_path}: {e}")
        return None


def verify_file_integrity(file_path: Path, expected_hash: str, algorithm: str = "sha256") -> bool:
    """Verify file integrity against expected hash."""
    actual_hash = calculate_file_hash(file_path, algorithm)

    if actual_hash is None:
        return False

    return actual_hash.lower() == expected_hash.lower()
