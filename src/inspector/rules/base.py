"""Base class for lint rules.

The engine calls the hooks below; a rule overrides only the ones it needs.
Rules must not keep per-file state between callbacks beyond caches keyed by
the file they belong to.
"""
from typing import Any, Dict

from ..analyzer.diagnostics import Level


class LintRule:
    """A single lint."""

    name: str = ''
    description: str = ''
    default_level: Level = Level.WARN

    def configure(self, table: Dict[str, Any], env_config) -> None:
        """Receive the rule's option table and the environment configuration.

        Raises:
            ConfigError: If the table holds invalid values
        """

    def check_session(self, session) -> None:
        """Called once per run, before any file is linted."""

    def check_function(self, cx, node) -> None:
        """Called for every `function_definition` node."""

    def check_call(self, cx, node) -> None:
        """Called for every `call` node."""
