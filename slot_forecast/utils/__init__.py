"""Utility helpers: run identity and progress display."""

from .run_identity import new_run_id, resource_name
from .rich_progress import RichJobProgress

__all__ = [
    "new_run_id",
    "resource_name",
    "RichJobProgress",
]
