"""
Utility modules for the celebrity reel pipeline.
"""

from .file_utils import (
    ensure_directory,
    list_files,
    scratch_directory,
    safe_filename,
)

from .retry import (
    compute_backoff,
    call_with_retries,
)

__all__ = [
    "ensure_directory",
    "list_files",
    "scratch_directory",
    "safe_filename",
    "compute_backoff",
    "call_with_retries",
]
