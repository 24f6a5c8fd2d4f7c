"""Tests for the unnecessary_conversion_for_iterable lint."""
import textwrap

import pytest

from inspector.analyzer.diagnostics import Applicability, Level
from inspector.analyzer.engine import LintEngine
from inspector.config import LintConfig
from inspector.fixer import apply_suggestions
from inspector.rules.unnecessary_conversion_for_iterable import UnnecessaryConversionForIterable

RULE = 'unnecessary_conversion_for_iterable'


def lint(code: str, lint_config: LintConfig = None):
    """Run only this lint; returns (diagnostics, source bytes)."""
    source = textwrap.dedent(code).encode('utf-8')
    engine = LintEngine([UnnecessaryConversionForIterable()], lint_config)
    return [d for d in engine.check_source(source) if d.rule == RULE], source


def fixed(code: str) -> str:
    diagnostics, source = lint(code)
    new_source, _ = apply_suggestions(source, [d.suggestion for d in diagnostics])
    return new_source.decode('utf-8')


class TestFlagged:
    """Conversions that can be dropped."""

    @pytest.mark.parametrize('code, expected', [
        (
            """
            def total(xs):
                return sum(list(xs))
            """,
            "return sum(xs)",
        ),
        (
            """
            def show(items):
                for item in list(items):
                    print(item)
            """,
            "for item in items:",
        ),
        (
            """
            def merge(a, b):
                a.extend(b.copy())
                return a
            """,
            "a.extend(b)",
        ),
        (
            """
            def names(d):
                for k in d.keys():
                    print(k)
            """,
            "for k in d:",
        ),
        (
            """
            def ordered(n):
                return sorted(list(range(n)))
            """,
            "return sorted(range(n))",
        ),
        (
            """
            def longest(xs):
                return max(tuple(xs), key=len)
            """,
            "return max(xs, key=len)",
        ),
        (
            """
            def doubled(xs):
                return [x * 2 for x in list(xs)]
            """,
            "return [x * 2 for x in xs]",
        ),
        (
            """
            def labelled(xs):
                return ", ".join(iter(xs))
            """,
            'return ", ".join(xs)',
        ),
        (
            """
            def pairs(xs, ys):
                return zip(list(xs), ys)
            """,
            "return zip(xs, ys)",
        ),
        (
            """
            import itertools

            def flat(xs, ys):
                return itertools.chain(ys, list(xs))
            """,
            "return itertools.chain(ys, xs)",
        ),
        (
            "h = lambda xs: sorted(list(xs))\n",
            "h = lambda xs: sorted(xs)",
        ),
    ])
    def test_flagged_and_fixed(self, code, expected):
        diagnostics, _ = lint(code)
        assert len(diagnostics) == 1, f"expected one lint, got {diagnostics}"
        assert expected in fixed(code)

    def test_diagnostic_details(self):
        diagnostics, source = lint("""
            def total(xs):
                return sum(list(xs))
        """)
        diagnostic = diagnostics[0]

        assert diagnostic.level is Level.WARN
        assert diagnostic.message == (
            "the `list()` call is unnecessary for a consumer that accepts any iterable"
        )
        assert diagnostic.notes == ["`sum` accepts any iterable"]
        assert (diagnostic.line, diagnostic.column) == (3, 16)
        assert source[diagnostic.span.start:diagnostic.span.end] == b'list(xs)'

        suggestion = diagnostic.suggestion
        assert suggestion.message == "remove the conversion"
        assert suggestion.replacement == 'xs'
        assert suggestion.applicability is Applicability.MACHINE_APPLICABLE


class TestNotFlagged:
    """Conversions whose snapshot may be observable, or that are not conversions."""

    @pytest.mark.parametrize('code', [
        # Later use of the receiver
        """
        def f(xs, ys):
            ys.extend(iter(xs))
            print(xs)
        """,
        # Receiver mutated while iterating the snapshot
        """
        def f(xs):
            for x in list(xs):
                xs.remove(x)
        """,
        # Receiver used again in the same statement
        """
        def f(xs):
            return zip(list(xs), xs)
        """,
        # Later use inside a closure
        """
        def f(xs):
            total = sum(list(xs))
            return lambda: xs
        """,
        # Fresh value with a lazy consumer changes evaluation order
        """
        def f(n):
            return zip(list(range(n)), range(n))
        """,
        # Shadowed conversion function
        """
        def list(x):
            return x

        def f(xs):
            return sorted(list(xs))
        """,
        # Shadowed consumer
        """
        def f(xs, sorted):
            return sorted(list(xs))
        """,
        # Module-level receiver
        """
        xs = [3, 1, 2]
        print(sorted(list(xs)))
        """,
        # Attribute receiver
        """
        def f(self):
            return sorted(list(self.items))
        """,
        # Star-args hide the argument position
        """
        def f(xs, rest):
            return zip(list(xs), *rest)
        """,
        # Not the sole positional argument of max
        """
        def f(xs):
            return max(list(xs), 0)
        """,
        # Not the iterable position of filter
        """
        def f(xs):
            return filter(list(xs), [])
        """,
        # Result stored, not consumed
        """
        def f(xs):
            snapshot = list(xs)
            return snapshot
        """,
        # Unknown consumer
        """
        def f(xs):
            return process(list(xs))
        """,
        # Conversion with keyword arguments is not a plain conversion
        """
        def f(xs):
            return sorted(list(xs, extra=1))
        """,
        # dict() reads a mapping as a mapping and anything else as pairs
        """
        def f(d):
            return dict(d.keys())
        """,
        """
        def f(d, target):
            target.update(list(d))
        """,
    ])
    def test_not_flagged(self, code):
        diagnostics, _ = lint(code)
        assert diagnostics == [], f"unexpected lint: {[d.message for d in diagnostics]}"


class TestLevels:
    """Configuration and allow comments."""

    CODE = """
        def total(xs):
            return sum(list(xs))
    """

    def test_allow_comment_on_line_above(self):
        diagnostics, _ = lint("""
            def total(xs):
                # inspector: allow(unnecessary_conversion_for_iterable)
                return sum(list(xs))
        """)
        assert diagnostics == []

    def test_allow_comment_on_same_line(self):
        diagnostics, _ = lint("""
            def total(xs):
                return sum(list(xs))  # inspector: allow(unnecessary_conversion_for_iterable)
        """)
        assert diagnostics == []

    def test_allow_comment_for_other_rule(self):
        diagnostics, _ = lint("""
            def total(xs):
                return sum(list(xs))  # inspector: allow(missing_docstring_openai)
        """)
        assert len(diagnostics) == 1

    def test_allow_level(self):
        diagnostics, _ = lint(self.CODE, LintConfig(levels={RULE: 'allow'}))
        assert diagnostics == []

    def test_deny_level(self):
        diagnostics, _ = lint(self.CODE, LintConfig(levels={RULE: 'deny'}))
        assert [d.level for d in diagnostics] == [Level.DENY]
        assert diagnostics[0].level.label == 'error'
