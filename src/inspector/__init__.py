"""The Inspector - review lints for Python code."""
from .config import __version__

__all__ = ["__version__"]
