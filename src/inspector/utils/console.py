"""Rich console that degrades gracefully on terminals without UTF-8."""
from typing import Any
from rich.console import Console

from .logger import sanitize_for_terminal, is_utf8_capable


class SafeConsole(Console):
    """Rich Console whose print() sanitizes strings for the active terminal encoding."""

    def __init__(self, *args, **kwargs):
        self._needs_sanitization = not is_utf8_capable()
        if self._needs_sanitization:
            kwargs.setdefault('legacy_windows', True)
        super().__init__(*args, **kwargs)

    def print(self, *objects: Any, **kwargs) -> None:
        if self._needs_sanitization:
            objects = tuple(
                sanitize_for_terminal(obj, self.encoding) if isinstance(obj, str) else obj
                for obj in objects
            )
        super().print(*objects, **kwargs)


# Diagnostics go to stdout, status and errors to stderr
console = SafeConsole(highlight=False, soft_wrap=True)
err_console = SafeConsole(stderr=True, highlight=False, soft_wrap=True)
