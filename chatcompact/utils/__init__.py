"""Utility functions for chatcompact."""

from chatcompact.utils.helpers import ensure_dir, safe_filename

__all__ = ["ensure_dir", "safe_filename"]
