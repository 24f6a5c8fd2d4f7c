"""Tests for the usage-after-point query.

Every case resolves the binding from a real parameter so identity matching
goes through the production scope index.
"""
import pytest

from inspector.analyzer.syntax import Binding, FunctionBody, Span
from inspector.analyzer.usage import UsageQuery, UsageWalker


def param_binding(parsed, name='xs'):
    """Binding of the first occurrence of ``name`` (the parameter)."""
    binding = parsed.scopes.binding_of(parsed.find('identifier', name))
    assert binding is not None, f"{name} did not resolve to a function binding"
    return binding


def conversion_span(parsed, text='list(xs)'):
    return Span.of(parsed.find('call', text))


class TestStraightLine:
    """Later statements in a def body."""

    def test_later_statement_use(self, parse):
        parsed = parse("""
            def f(xs):
                ys = consume(list(xs))
                g(xs)
        """)
        query = UsageQuery(parsed.scopes)
        assert query.is_used_after(param_binding(parsed), conversion_span(parsed)) is True

    def test_no_later_use(self, parse):
        parsed = parse("""
            def f(xs):
                ys = consume(list(xs))
                return ys
        """)
        query = UsageQuery(parsed.scopes)
        assert query.is_used_after(param_binding(parsed), conversion_span(parsed)) is False

    def test_no_look_back(self, parse):
        """Uses before the position never count."""
        parsed = parse("""
            def f(xs):
                g(xs)
                ys = consume(list(xs))
                return ys
        """)
        query = UsageQuery(parsed.scopes)
        assert query.is_used_after(param_binding(parsed), conversion_span(parsed)) is False

    def test_same_statement_is_not_later(self, parse):
        """The statement holding the position starts before it."""
        parsed = parse("""
            def f(xs):
                ys = pair(list(xs), xs)
        """)
        query = UsageQuery(parsed.scopes)
        assert query.is_used_after(param_binding(parsed), conversion_span(parsed)) is False

    def test_assignment_only_is_not_a_use(self, parse):
        parsed = parse("""
            def f(xs):
                ys = consume(list(xs))
                xs = []
        """)
        query = UsageQuery(parsed.scopes)
        assert query.is_used_after(param_binding(parsed), conversion_span(parsed)) is False

    def test_del_counts_as_use(self, parse):
        parsed = parse("""
            def f(xs):
                ys = consume(list(xs))
                del xs
        """)
        query = UsageQuery(parsed.scopes)
        assert query.is_used_after(param_binding(parsed), conversion_span(parsed)) is True


class TestBoundary:
    """The position's start is inclusive."""

    def test_statement_starting_at_position_is_searched(self, parse):
        parsed = parse("""
            def f(xs):
                ys = consume(list(xs))
                g(xs)
        """)
        statement = parsed.find('expression_statement', 'g(xs)')
        query = UsageQuery(parsed.scopes)

        at_start = Span(statement.start_byte, statement.start_byte)
        just_after = Span(statement.start_byte + 1, statement.start_byte + 1)

        assert query.is_used_after(param_binding(parsed), at_start) is True
        assert query.is_used_after(param_binding(parsed), just_after) is False


class TestTail:
    """Lambda bodies are a trailing expression only."""

    def test_tail_mentions_binding(self, parse):
        parsed = parse("h = lambda xs: pair(xs, 1)\n")
        query = UsageQuery(parsed.scopes)
        position = Span.of(parsed.find('lambda'))
        assert query.is_used_after(param_binding(parsed), position) is True

    def test_tail_without_binding(self, parse):
        parsed = parse("h = lambda xs: 0\n")
        query = UsageQuery(parsed.scopes)
        position = Span.of(parsed.find('lambda'))
        assert query.is_used_after(param_binding(parsed), position) is False

    def test_tail_before_position_is_skipped(self, parse):
        parsed = parse("h = lambda xs: pair(list(xs), xs)\n")
        query = UsageQuery(parsed.scopes)
        assert query.is_used_after(param_binding(parsed), conversion_span(parsed)) is False

    def test_statements_then_tail_with_stub_scopes(self, parse):
        """Any scopes object exposing enclosing_body/resolve can drive the query."""
        parsed = parse("""
            first(xs)
            second(xs)
        """)
        first, second = parsed.root.named_children
        binding = Binding(1, 'xs')

        class StubScopes:
            def enclosing_body(self, target):
                return FunctionBody(parsed.root, [first], second)

            def resolve(self, identifier):
                return binding

        query = UsageQuery(StubScopes())
        assert query.is_used_after(binding, Span(second.start_byte, second.end_byte)) is True
        assert query.is_used_after(binding, Span(second.end_byte, second.end_byte)) is False


class TestNestedScopes:
    """Closures capture, shadowing hides."""

    def test_closure_capture(self, parse):
        parsed = parse("""
            def f(xs):
                ys = consume(list(xs))
                c = lambda: use(xs)
                return c
        """)
        query = UsageQuery(parsed.scopes)
        assert query.is_used_after(param_binding(parsed), conversion_span(parsed)) is True

    def test_nested_def_shadowing(self, parse):
        parsed = parse("""
            def f(xs):
                ys = consume(list(xs))

                def inner(xs):
                    return xs

                return inner
        """)
        query = UsageQuery(parsed.scopes)
        assert query.is_used_after(param_binding(parsed), conversion_span(parsed)) is False

    def test_nonlocal_reads_outer_binding(self, parse):
        parsed = parse("""
            def f(xs):
                ys = consume(list(xs))

                def inner():
                    nonlocal xs
                    xs = xs + [1]

                return inner
        """)
        query = UsageQuery(parsed.scopes)
        assert query.is_used_after(param_binding(parsed), conversion_span(parsed)) is True

    def test_nested_policy_off_ignores_closures(self, parse):
        parsed = parse("""
            def f(xs):
                ys = consume(list(xs))
                c = lambda: use(xs)
                return c
        """)
        query = UsageQuery(parsed.scopes, descend_into_nested=False)
        assert query.is_used_after(param_binding(parsed), conversion_span(parsed)) is False

    def test_nested_policy_off_still_searches_defaults(self, parse):
        parsed = parse("""
            def f(xs):
                ys = consume(list(xs))

                def inner(a=xs):
                    return a

                return inner
        """)
        query = UsageQuery(parsed.scopes, descend_into_nested=False)
        assert query.is_used_after(param_binding(parsed), conversion_span(parsed)) is True


class TestUndecidable:
    """No enclosing body means "assume used"."""

    def test_comprehension_binding(self, parse):
        parsed = parse("""
            def f():
                return [x for x in range(3)]
        """)
        binding = parsed.scopes.binding_of(parsed.find('identifier', 'x', nth=1))
        assert binding is not None

        query = UsageQuery(parsed.scopes)
        assert query.is_used_after(binding, Span(0, 0)) is True

    def test_unknown_binding(self, parse):
        parsed = parse("x = 1\n")
        query = UsageQuery(parsed.scopes)
        assert query.is_used_after(Binding(-1, 'x'), Span(0, 0)) is True


class TestWalker:
    """Early exit and determinism."""

    CODE = """
        def f(xs, ys):
            a = xs
            b = [xs for _ in ys]
            c = lambda: xs
            def g(xs):
                return xs
            return ys
    """

    def test_early_exit_matches_full_traversal(self, parse):
        parsed = parse(self.CODE)
        binding = param_binding(parsed)
        walker = UsageWalker(binding, parsed.scopes.resolve)
        function = parsed.find('function_definition')
        body = parsed.scopes.enclosing_body(binding)

        for statement in body.statements:
            full = list(walker.iter_references(statement))
            assert walker.contains_reference(statement) == bool(full), \
                f"early exit disagrees on {statement.text!r}"

        references = list(walker.iter_references(function.child_by_field_name('body')))
        # a = xs, the comprehension element, the lambda body; never g's own xs
        assert len(references) == 3

    def test_determinism(self, parse):
        parsed = parse(self.CODE)
        query = UsageQuery(parsed.scopes)
        binding = param_binding(parsed)
        position = Span.of(parsed.find('assignment', 'a = xs'))

        results = {query.is_used_after(binding, position) for _ in range(5)}
        assert results == {True}

    @pytest.mark.parametrize('descend, expected', [(True, 3), (False, 2)])
    def test_descend_policy(self, parse, descend, expected):
        parsed = parse(self.CODE)
        binding = param_binding(parsed)
        walker = UsageWalker(binding, parsed.scopes.resolve, descend_into_nested=descend)
        body = parsed.find('function_definition').child_by_field_name('body')
        assert len(list(walker.iter_references(body))) == expected
