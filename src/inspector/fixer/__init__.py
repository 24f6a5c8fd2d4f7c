"""Source rewriting from lint suggestions."""
from .apply import apply_suggestions, fix_files

__all__ = ['apply_suggestions', 'fix_files']
