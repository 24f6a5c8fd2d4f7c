"""Diagnostics, suggestions and their text/JSON rendering."""
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple
from rich.console import Console
from rich.markup import escape

from .syntax import Span


class Level(str, Enum):
    """Lint level; ALLOW disables a rule entirely."""
    ALLOW = 'allow'
    WARN = 'warn'
    DENY = 'deny'

    @property
    def label(self) -> str:
        return 'error' if self is Level.DENY else 'warning'


class Applicability(str, Enum):
    """How safe it is to apply a suggestion without looking at it."""
    MACHINE_APPLICABLE = 'machine-applicable'
    MAYBE_INCORRECT = 'maybe-incorrect'


@dataclass
class Suggestion:
    """Replace the bytes covered by ``span`` with ``replacement``."""
    span: Span
    replacement: str
    message: str
    applicability: Applicability = Applicability.MACHINE_APPLICABLE


@dataclass
class Diagnostic:
    """One finding. ``rule`` is None for plain warnings not tied to a lint."""
    rule: Optional[str]
    level: Level
    message: str
    path: Optional[str] = None
    span: Optional[Span] = None
    line: int = 0
    column: int = 0
    suggestion: Optional[Suggestion] = None
    notes: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        """JSON-friendly representation."""
        data = {
            'rule': self.rule,
            'level': self.level.value,
            'message': self.message,
            'path': self.path,
            'line': self.line,
            'column': self.column,
            'span': [self.span.start, self.span.end] if self.span else None,
            'notes': list(self.notes),
            'suggestion': None,
        }
        if self.suggestion is not None:
            data['suggestion'] = {
                'message': self.suggestion.message,
                'replacement': self.suggestion.replacement,
                'span': [self.suggestion.span.start, self.suggestion.span.end],
                'applicability': self.suggestion.applicability.value,
            }
        return data


def location(source: bytes, offset: int) -> Tuple[int, int]:
    """1-based (line, column) of a byte offset; the column counts characters."""
    line_start = source.rfind(b'\n', 0, offset) + 1
    line = source.count(b'\n', 0, offset) + 1
    column = len(source[line_start:offset].decode('utf-8', errors='replace')) + 1
    return line, column


def _source_line(source: bytes, line: int) -> str:
    lines = source.split(b'\n')
    if 1 <= line <= len(lines):
        return lines[line - 1].decode('utf-8', errors='replace').rstrip('\r')
    return ''


def render_text(diagnostics: Iterable[Diagnostic], sources: Dict[str, bytes], console: Console) -> None:
    """Print diagnostics in a compiler-like layout.

    Args:
        diagnostics: Diagnostics to print
        sources: Source bytes by path, used for the code excerpt
        console: Rich console to print to
    """
    for diagnostic in diagnostics:
        color = 'red' if diagnostic.level is Level.DENY else 'yellow'
        console.print(f"[bold {color}]{diagnostic.level.label}[/bold {color}][bold]: {escape(diagnostic.message)}[/bold]")

        if diagnostic.path is None:
            console.print()
            continue

        gutter = ' ' * len(str(diagnostic.line))
        console.print(f"[blue]{gutter}-->[/blue] {escape(diagnostic.path)}:{diagnostic.line}:{diagnostic.column}")

        source = sources.get(diagnostic.path)
        if source is not None and diagnostic.span is not None:
            text = _source_line(source, diagnostic.line)
            end_line, end_column = location(source, diagnostic.span.end)
            width = (end_column if end_line == diagnostic.line else len(text) + 1) - diagnostic.column
            console.print(f"[blue]{gutter} |[/blue]")
            console.print(f"[blue]{diagnostic.line} |[/blue] {escape(text)}")
            console.print(f"[blue]{gutter} |[/blue] {' ' * (diagnostic.column - 1)}[{color}]{'^' * max(width, 1)}[/{color}]")

        if diagnostic.rule is not None:
            console.print(f"[blue]{gutter} =[/blue] note: `{diagnostic.rule}` is set to {diagnostic.level.value}")
        for note in diagnostic.notes:
            console.print(f"[blue]{gutter} =[/blue] note: {escape(note)}")

        if diagnostic.suggestion is not None:
            console.print(f"[bold cyan]help[/bold cyan]: {escape(diagnostic.suggestion.message)}")
            for replacement_line in diagnostic.suggestion.replacement.splitlines() or ['']:
                console.print(f"[blue]{gutter} |[/blue] [green]{escape(replacement_line)}[/green]")
        console.print()


def render_json(diagnostics: Iterable[Diagnostic]) -> str:
    """Serialize diagnostics as a JSON array."""
    return json.dumps([d.to_dict() for d in diagnostics], indent=2)
