"""Apply machine-applicable suggestions to source files."""
from collections import defaultdict
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from ..analyzer.diagnostics import Applicability, Diagnostic, Suggestion


def apply_suggestions(source: bytes, suggestions: Iterable[Suggestion]) -> Tuple[bytes, int]:
    """Rewrite source with every machine-applicable suggestion.

    Edits are applied from the end of the file backwards so earlier offsets
    stay valid. A suggestion overlapping one already applied is skipped.

    Args:
        source: Original source bytes
        suggestions: Suggestions whose spans refer to ``source``

    Returns:
        Tuple of (modified_source, applied_count)
    """
    applicable = sorted(
        (s for s in suggestions if s.applicability is Applicability.MACHINE_APPLICABLE),
        key=lambda s: (s.span.start, s.span.end),
        reverse=True,
    )

    applied = 0
    boundary = len(source) + 1
    for suggestion in applicable:
        span = suggestion.span
        if span.end > boundary:
            continue
        source = source[:span.start] + suggestion.replacement.encode('utf-8') + source[span.end:]
        boundary = span.start
        applied += 1

    return source, applied


def fix_files(diagnostics: Iterable[Diagnostic],
              sources: Optional[Dict[str, bytes]] = None) -> Dict[str, int]:
    """Apply the suggestions of a run, writing each touched file once.

    Args:
        diagnostics: Diagnostics of a lint run
        sources: Source bytes the diagnostics were computed from, by path
            (files are re-read when missing)

    Returns:
        Dictionary mapping paths to the number of applied suggestions
    """
    by_path: Dict[str, List[Suggestion]] = defaultdict(list)
    for diagnostic in diagnostics:
        if diagnostic.path is not None and diagnostic.suggestion is not None:
            by_path[diagnostic.path].append(diagnostic.suggestion)

    results = {}
    for path, suggestions in by_path.items():
        file_path = Path(path)
        source = sources.get(path) if sources else None
        if source is None:
            source = file_path.read_bytes()

        modified, count = apply_suggestions(source, suggestions)
        if count:
            file_path.write_bytes(modified)
            results[path] = count

    return results
