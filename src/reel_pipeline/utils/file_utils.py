"""
File utility functions for the celebrity reel pipeline.
"""

import os
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Union

from ..logging_config import get_logger

logger = get_logger(__name__)


def ensure_directory(path: Union[str, Path]) -> Path:
    """
    Ensure a directory exists, creating it if necessary.

    Args:
        path: Directory path to create

    Returns:
        Path object for the directory
    """
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    logger.debug("Directory ensured", path=str(path))
    return path


def list_files(directory: Union[str, Path]) -> List[Path]:
    """Return every file below ``directory`` (empty list if it does not exist)."""
    directory = Path(directory)
    if not directory.exists():
        return []
    return sorted(p for p in directory.rglob("*") if p.is_file())


@contextmanager
def scratch_directory(root: Union[str, Path], prefix: str = "attempt_") -> Iterator[Path]:
    """
    Create a private scratch directory and remove it on every exit path.

    The directory is exclusively owned by the caller; it is deleted whether
    the block returns normally or raises.

    Args:
        root: Staging area the directory is created in
        prefix: Prefix for the directory name

    Yields:
        Path to the scratch directory
    """
    root = ensure_directory(root)
    scratch = Path(tempfile.mkdtemp(prefix=prefix, dir=str(root)))
    logger.debug("Scratch directory created", scratch_dir=str(scratch))
    try:
        yield scratch
    finally:
        shutil.rmtree(scratch, ignore_errors=True)
        if scratch.exists():
            logger.error("Scratch directory could not be removed", scratch_dir=str(scratch))
        else:
            logger.debug("Scratch directory removed", scratch_dir=str(scratch))


def safe_filename(filename: str, max_length: int = 255) -> str:
    """
    Create a safe filename by removing/replacing problematic characters.

    Args:
        filename: Original filename
        max_length: Maximum length for the filename

    Returns:
        Safe filename string
    """
    safe_chars = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789-_."
    safe_name = "".join(c if c in safe_chars else "_" for c in filename)

    if len(safe_name) > max_length:
        name, ext = os.path.splitext(safe_name)
        safe_name = name[:max_length - len(ext)] + ext

    return safe_name
