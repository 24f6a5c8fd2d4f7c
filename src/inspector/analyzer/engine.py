"""Lint engine: parses files, dispatches rule callbacks and collects diagnostics."""
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Set
from tree_sitter import Node, Tree

from .diagnostics import Diagnostic, Level, Suggestion, location
from .parser import PythonParser
from .scopes import ScopeIndex
from .syntax import Span, node_text
from .usage import UsageQuery
from ..config import Config, LintConfig, get_config


# Directories never worth linting
EXCLUDED_DIRS = {
    'venv', '.venv', 'env', '.virtualenv', '.tox', '.nox',
    'site-packages', 'dist', 'build', '__pycache__', '.mypy_cache',
    '.pytest_cache', 'node_modules', '.git', '.hg', '.eggs',
}

ALLOW_COMMENT = re.compile(r'#\s*inspector:\s*allow\(([^)]*)\)')


def collect_files(paths: Iterable[str | Path]) -> List[Path]:
    """Expand files and directories into the Python files to lint.

    Args:
        paths: Files and/or directories

    Returns:
        Sorted, de-duplicated list of Python files
    """
    found: Set[Path] = set()
    for path in paths:
        path = Path(path)
        if path.is_file():
            if PythonParser.supports(path):
                found.add(path)
            continue

        for file_path in path.rglob('*.py'):
            relative_parts = file_path.relative_to(path).parts
            if not any(part in EXCLUDED_DIRS or part.endswith('.egg-info') for part in relative_parts):
                found.add(file_path)
    return sorted(found)


def display_path(path: Path) -> str:
    """Path relative to the working directory when possible."""
    try:
        return str(path.resolve().relative_to(Path.cwd().resolve()))
    except ValueError:
        return str(path)


class LintSession:
    """Run-wide state handed to ``check_session`` (once per run, before any file)."""

    def __init__(self, lint_config: LintConfig, env_config: Config):
        self.lint_config = lint_config
        self.env_config = env_config
        self.diagnostics: List[Diagnostic] = []

    def warn(self, message: str):
        """Plain warning not attached to any file."""
        self.diagnostics.append(Diagnostic(None, Level.WARN, message))


class LintContext:
    """Per-file state handed to rule callbacks."""

    def __init__(self, path: str, source: bytes, tree: Tree, levels: Dict[str, Level],
                 lint_config: LintConfig, env_config: Config, file_path: Optional[Path] = None):
        self.path = path
        self.file_path = file_path
        self.source = source
        self.tree = tree
        self.levels = levels
        self.lint_config = lint_config
        self.env_config = env_config
        self.diagnostics: List[Diagnostic] = []
        self._scopes: Optional[ScopeIndex] = None
        self._usage: Optional[UsageQuery] = None
        self._allowed: Optional[Dict[int, Set[str]]] = None

    @property
    def scopes(self) -> ScopeIndex:
        """Scope index of this file, built on first use."""
        if self._scopes is None:
            self._scopes = ScopeIndex(self.tree)
        return self._scopes

    @property
    def usage(self) -> UsageQuery:
        if self._usage is None:
            self._usage = UsageQuery(self.scopes)
        return self._usage

    def text(self, node: Node) -> str:
        return node_text(node)

    def _allowed_rules(self) -> Dict[int, Set[str]]:
        """Rules allowed by `# inspector: allow(...)` comments, keyed by 1-based line."""
        if self._allowed is None:
            self._allowed = {}
            stack = [self.tree.root_node]
            while stack:
                node = stack.pop()
                if node.type == 'comment':
                    match = ALLOW_COMMENT.search(node_text(node))
                    if match:
                        names = {name.strip() for name in match.group(1).split(',') if name.strip()}
                        self._allowed.setdefault(node.start_point[0] + 1, set()).update(names)
                    continue
                stack.extend(node.children)
        return self._allowed

    def is_allowed(self, rule_name: str, line: int) -> bool:
        """Check for an allow comment on ``line`` or the line directly above it."""
        allowed = self._allowed_rules()
        return rule_name in allowed.get(line, ()) or rule_name in allowed.get(line - 1, ())

    def _diagnostic(self, rule_name: Optional[str], level: Level, target: Node | Span, message: str,
                    suggestion: Optional[Suggestion], notes: Sequence[str]) -> Diagnostic:
        span = target if isinstance(target, Span) else Span.of(target)
        line, column = location(self.source, span.start)
        return Diagnostic(rule_name, level, message, self.path, span, line, column,
                          suggestion, list(notes))

    def span_lint(self, rule, target: Node | Span, message: str,
                  suggestion: Optional[Suggestion] = None, notes: Sequence[str] = ()):
        """Report a lint at a node or span, honouring the rule level and allow comments."""
        level = self.levels.get(rule.name, rule.default_level)
        if level is Level.ALLOW:
            return

        diagnostic = self._diagnostic(rule.name, level, target, message, suggestion, notes)
        if self.is_allowed(rule.name, diagnostic.line):
            return
        self.diagnostics.append(diagnostic)

    def warn(self, target: Node | Span, message: str):
        """Plain warning at a node or span (not subject to lint levels)."""
        self.diagnostics.append(self._diagnostic(None, Level.WARN, target, message, None, ()))


@dataclass
class LintReport:
    """Result of one run over a set of paths."""
    diagnostics: List[Diagnostic] = field(default_factory=list)
    files: List[str] = field(default_factory=list)
    sources: Dict[str, bytes] = field(default_factory=dict)
    skipped: List[str] = field(default_factory=list)

    def count(self, level: Level) -> int:
        return sum(1 for d in self.diagnostics if d.level is level)


class LintEngine:
    """Runs a set of rules over Python sources."""

    def __init__(self, rules: Sequence, lint_config: Optional[LintConfig] = None,
                 env_config: Optional[Config] = None):
        """Resolve rule levels and hand each enabled rule its option table.

        Args:
            rules: Rule instances
            lint_config: Levels and option tables (empty when omitted)
            env_config: Environment configuration (the singleton when omitted)

        Raises:
            ConfigError: If a rule rejects its option table
        """
        self.lint_config = lint_config or LintConfig()
        self.env_config = env_config or get_config()
        self.parser = PythonParser()

        self.levels: Dict[str, Level] = {
            rule.name: Level(self.lint_config.level_for(rule.name, rule.default_level.value))
            for rule in rules
        }
        self.rules = [rule for rule in rules if self.levels[rule.name] is not Level.ALLOW]
        for rule in self.rules:
            rule.configure(self.lint_config.table(rule.name), self.env_config)

    def start_session(self) -> List[Diagnostic]:
        """Run every rule's ``check_session`` hook."""
        session = LintSession(self.lint_config, self.env_config)
        for rule in self.rules:
            rule.check_session(session)
        return session.diagnostics

    def check_source(self, source: bytes, path: str = '<string>',
                     file_path: Optional[Path] = None) -> List[Diagnostic]:
        """Lint in-memory source.

        Returns:
            Diagnostics sorted by position; a single warning if the source
            does not parse
        """
        tree = self.parser.parse_source(source)
        cx = LintContext(path, source, tree, self.levels, self.lint_config, self.env_config, file_path)

        if tree.root_node.has_error:
            cx.warn(Span(0, 0), f"skipping {path}: file contains syntax errors")
            return cx.diagnostics

        stack = [tree.root_node]
        while stack:
            node = stack.pop()
            if node.type == 'function_definition':
                for rule in self.rules:
                    rule.check_function(cx, node)
            elif node.type == 'call':
                for rule in self.rules:
                    rule.check_call(cx, node)
            stack.extend(reversed(node.children))

        return sorted(cx.diagnostics, key=lambda d: (d.line, d.column))

    def check_file(self, file_path: Path) -> Optional[List[Diagnostic]]:
        """Lint one file.

        Returns:
            Diagnostics, or None if the file could not be read
        """
        try:
            source = Path(file_path).read_bytes()
        except OSError:
            return None
        return self.check_source(source, display_path(Path(file_path)), Path(file_path))

    def check_paths(self, paths: Iterable[str | Path]) -> LintReport:
        """Run the session hooks, then lint every Python file under ``paths``."""
        report = LintReport()
        report.diagnostics.extend(self.start_session())

        for file_path in collect_files(paths):
            path = display_path(file_path)
            try:
                source = file_path.read_bytes()
            except OSError as e:
                report.skipped.append(path)
                report.diagnostics.append(Diagnostic(None, Level.WARN, f"cannot read {path}: {e}"))
                continue

            report.files.append(path)
            report.sources[path] = source
            report.diagnostics.extend(self.check_source(source, path, file_path))

        return report
