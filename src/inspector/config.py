"""Configuration management for The Inspector.

Two layers:
1. Environment: process variables plus an optional .env file (API key,
   completion endpoint, debug switch).
2. Lint configuration: `inspector.toml`, or a `[tool.inspector]` table in
   `pyproject.toml`, holding per-rule levels and per-rule option tables.
"""
import os
import tomllib
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Tuple
from dotenv import load_dotenv

__version__ = "0.3.0"

CONFIG_FILE_NAME = "inspector.toml"
LEVELS = ('allow', 'warn', 'deny')
OPENAI_API_KEY = "OPENAI_API_KEY"


class ConfigError(ValueError):
    """Raised for unreadable or malformed lint configuration."""


def env_enabled(name: str) -> bool:
    """Check an INSPECTOR_<NAME> switch: set and not "0" means enabled."""
    value = os.getenv(f"INSPECTOR_{name.upper()}")
    return value is not None and value != "0"


def is_testing_key(api_key: Optional[str]) -> bool:
    """A key containing "test" switches the completion client to a canned response."""
    return api_key is not None and "test" in api_key.lower()


class Config:
    """Environment configuration with .env support."""

    def __init__(self, env_path: Optional[Path] = None):
        """Load .env from the working directory (existing variables win).

        Args:
            env_path: Explicit .env location
        """
        load_dotenv(env_path or Path.cwd() / ".env")

    @property
    def openai_api_key(self) -> Optional[str]:
        """OpenAI API key, or None when suggestions are disabled."""
        return os.getenv(OPENAI_API_KEY) or None

    @property
    def openai_base_url(self) -> Optional[str]:
        """Override for the completion endpoint (None uses the SDK default)."""
        return os.getenv("INSPECTOR_OPENAI_BASE_URL") or None

    @property
    def debug(self) -> bool:
        return env_enabled("DEBUG")

    @property
    def testing(self) -> bool:
        return is_testing_key(self.openai_api_key)


# Singleton instance
_config = None


def get_config() -> Config:
    """Get or create singleton Config instance.

    Returns:
        Config instance
    """
    global _config
    if _config is None:
        _config = Config()
    return _config


def get_option(table: Dict[str, Any], key: str, kind: type) -> Any:
    """Read one optional, typed value from a rule's option table.

    Ints are accepted where floats are expected; bools never count as numbers.

    Raises:
        ConfigError: If the value has the wrong type
    """
    if key not in table:
        return None

    value = table[key]
    accepted: Tuple[type, ...] = (int, float) if kind is float else (kind,)
    if isinstance(value, bool) and kind is not bool:
        accepted = ()
    if not isinstance(value, accepted):
        raise ConfigError(
            f"invalid value for `{key}`: expected {kind.__name__}, got {type(value).__name__}"
        )
    return float(value) if kind is float else value


class LintConfig:
    """Rule levels and rule option tables for one linted workspace."""

    def __init__(self, levels: Optional[Dict[str, str]] = None,
                 tables: Optional[Dict[str, Dict[str, Any]]] = None,
                 path: Optional[Path] = None):
        self.levels = dict(levels or {})
        self.tables = dict(tables or {})
        self.path = path

    def level_for(self, rule_name: str, default: str) -> str:
        return self.levels.get(rule_name, default)

    def table(self, rule_name: str) -> Dict[str, Any]:
        """Option table of a rule (empty when not configured)."""
        return self.tables.get(rule_name, {})

    def with_overrides(self, allow: Iterable[str] = (), warn: Iterable[str] = (),
                       deny: Iterable[str] = ()) -> 'LintConfig':
        """Copy with command-line level overrides applied (deny wins over warn over allow)."""
        levels = dict(self.levels)
        for level, names in (('allow', allow), ('warn', warn), ('deny', deny)):
            for name in names:
                levels[name] = level
        return LintConfig(levels, self.tables, self.path)

    @classmethod
    def from_mapping(cls, data: Dict[str, Any], path: Optional[Path] = None) -> 'LintConfig':
        """Build from a parsed TOML document.

        Raises:
            ConfigError: If `[lints]` is not a table or names an unknown level
        """
        levels = data.get('lints', {})
        if not isinstance(levels, dict):
            raise ConfigError("`lints` must be a table of rule = level entries")

        for rule_name, level in levels.items():
            if level not in LEVELS:
                raise ConfigError(
                    f"invalid level {level!r} for `{rule_name}`: expected one of {', '.join(LEVELS)}"
                )

        tables = {
            name: value for name, value in data.items()
            if name != 'lints' and isinstance(value, dict)
        }
        return cls(levels, tables, path)

    @classmethod
    def load(cls, path: Path) -> 'LintConfig':
        """Load `inspector.toml` or the `[tool.inspector]` table of `pyproject.toml`.

        Raises:
            ConfigError: If the file cannot be read or parsed
        """
        path = Path(path)
        try:
            with open(path, 'rb') as f:
                data = tomllib.load(f)
        except OSError as e:
            raise ConfigError(f"cannot read {path}: {e}") from e
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"cannot parse {path}: {e}") from e

        if path.name == 'pyproject.toml':
            data = data.get('tool', {}).get('inspector', {})
        return cls.from_mapping(data, path)

    @classmethod
    def discover(cls, start: Path) -> 'LintConfig':
        """Find the nearest configuration file at or above ``start``.

        `inspector.toml` wins over `pyproject.toml` in the same directory;
        a `pyproject.toml` without `[tool.inspector]` is skipped.

        Returns:
            Loaded configuration, or an empty one when nothing is found
        """
        start = Path(start).resolve()
        directory = start if start.is_dir() else start.parent

        for candidate in (directory, *directory.parents):
            config_file = candidate / CONFIG_FILE_NAME
            if config_file.is_file():
                return cls.load(config_file)

            pyproject = candidate / 'pyproject.toml'
            if pyproject.is_file():
                try:
                    with open(pyproject, 'rb') as f:
                        has_table = 'inspector' in tomllib.load(f).get('tool', {})
                except (OSError, tomllib.TOMLDecodeError):
                    has_table = False
                if has_table:
                    return cls.load(pyproject)

        return cls()
