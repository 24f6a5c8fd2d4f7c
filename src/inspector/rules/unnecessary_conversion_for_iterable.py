"""unnecessary_conversion_for_iterable: conversions a consumer does not need.

Flags `list(xs)`, `tuple(xs)`, `iter(xs)`, `xs.copy()` and `xs.keys()` when the
result is handed straight to something that accepts any iterable:

    for x in list(xs):        ->  for x in xs:
    sorted(tuple(xs))         ->  sorted(xs)
    ys.extend(xs.copy())      ->  ys.extend(xs)

The conversion takes a snapshot of the receiver. Dropping it is only safe when
nothing can observe the difference, so a local receiver must not be mentioned
anywhere else in the statement holding the call, nor anywhere after it in the
function. Freshly built receivers (calls, literals, comprehensions) are only
unwrapped for consumers that drain the iterable immediately.
"""
from typing import NamedTuple, Optional, Tuple
from tree_sitter import Node

from .base import LintRule
from ..analyzer.diagnostics import Applicability, Suggestion
from ..analyzer.syntax import Span


# Argument positions a consumer accepts an iterable in
SOLE = 'sole'
ALL = 'all'
REST = 'rest'

CONVERSION_FUNCTIONS = ('list', 'tuple', 'iter')
CONVERSION_METHODS = ('copy', 'keys')

# name -> (positions, lazy)
BUILTIN_CONSUMERS = {
    'sorted': ((0,), False),
    'sum': ((0,), False),
    'any': ((0,), False),
    'all': ((0,), False),
    'set': ((0,), False),
    'frozenset': ((0,), False),
    'list': ((0,), False),
    'tuple': ((0,), False),
    'min': (SOLE, False),
    'max': (SOLE, False),
    'enumerate': ((0,), True),
    'zip': (ALL, True),
    'map': (REST, True),
    'filter': ((1,), True),
    'iter': (SOLE, True),
}

METHOD_CONSUMERS = {
    'extend', 'extendleft', 'join', 'union', 'intersection',
    'difference', 'symmetric_difference', 'issubset', 'issuperset',
    'isdisjoint', 'writelines',
}

ITERTOOLS_CONSUMERS = {
    'chain': (ALL, True),
    'islice': ((0,), True),
    'cycle': ((0,), True),
    'tee': ((0,), True),
}

# Receivers evaluated right where the conversion is
FRESH_RECEIVERS = {
    'call', 'list', 'tuple', 'set', 'dictionary',
    'list_comprehension', 'set_comprehension', 'dictionary_comprehension',
    'generator_expression', 'string', 'concatenated_string',
}


class Consumer(NamedTuple):
    name: str
    lazy: bool


class Conversion(NamedTuple):
    label: str
    receiver: Node


def _accepts(positions, index: int, positional: int) -> bool:
    if positions == ALL:
        return True
    if positions == REST:
        return index >= 1
    if positions == SOLE:
        return index == 0 and positional == 1
    return index in positions


class UnnecessaryConversionForIterable(LintRule):
    """Checks for iterable conversions whose result only feeds an iterable consumer."""

    name = 'unnecessary_conversion_for_iterable'
    description = 'conversion to list/tuple/iterator or copy passed where any iterable is accepted'

    def check_call(self, cx, node):
        conversion = self._conversion(cx, node)
        if conversion is None:
            return

        consumer = self._consumer(cx, node)
        if consumer is None or not self._is_safe(cx, node, conversion.receiver, consumer):
            return

        cx.span_lint(
            self,
            node,
            f"the `{conversion.label}` call is unnecessary for a consumer that accepts any iterable",
            suggestion=Suggestion(
                Span.of(node),
                cx.text(conversion.receiver),
                "remove the conversion",
                Applicability.MACHINE_APPLICABLE,
            ),
            notes=[f"`{consumer.name}` accepts any iterable"],
        )

    def _conversion(self, cx, call: Node) -> Optional[Conversion]:
        """Recognize `list(x)`, `tuple(x)`, `iter(x)`, `x.copy()` and `x.keys()`."""
        function = call.child_by_field_name('function')
        arguments = call.child_by_field_name('arguments')
        if function is None or arguments is None or arguments.type != 'argument_list':
            return None
        args = [a for a in arguments.named_children if a.type != 'comment']

        if function.type == 'identifier':
            name = cx.text(function)
            if name not in CONVERSION_FUNCTIONS or len(args) != 1:
                return None
            if args[0].type in ('keyword_argument', 'list_splat', 'dictionary_splat'):
                return None
            if not cx.scopes.is_builtin(function):
                return None
            return Conversion(f"{name}()", args[0])

        if function.type == 'attribute' and not args:
            method = cx.text(function.child_by_field_name('attribute'))
            if method in CONVERSION_METHODS:
                return Conversion(f".{method}()", function.child_by_field_name('object'))

        return None

    def _consumer(self, cx, call: Node) -> Optional[Consumer]:
        """What the call's value flows into, if it accepts any iterable there."""
        parent = call.parent
        if parent is None:
            return None

        if parent.type in ('for_statement', 'for_in_clause'):
            if any(right == call for right in parent.children_by_field_name('right')):
                return Consumer('for', True)
            return None

        if parent.type != 'argument_list' or parent.parent is None or parent.parent.type != 'call':
            return None
        args = [a for a in parent.named_children if a.type != 'comment']
        if any(a.type == 'list_splat' for a in args):
            return None

        positional = [a for a in args if a.type not in ('keyword_argument', 'dictionary_splat')]
        if call not in positional:
            return None
        index = positional.index(call)

        function = parent.parent.child_by_field_name('function')
        signature = self._consumer_signature(cx, function)
        if signature is None:
            return None

        label, (positions, lazy) = signature
        if not _accepts(positions, index, len(positional)):
            return None
        return Consumer(label, lazy)

    def _consumer_signature(self, cx, function: Node) -> Optional[Tuple[str, tuple]]:
        if function.type == 'identifier':
            name = cx.text(function)
            if name in BUILTIN_CONSUMERS and cx.scopes.is_builtin(function):
                return name, BUILTIN_CONSUMERS[name]
            return None

        if function.type != 'attribute':
            return None
        method = cx.text(function.child_by_field_name('attribute'))
        owner = function.child_by_field_name('object')

        if owner.type == 'identifier' and cx.text(owner) == 'itertools' and method in ITERTOOLS_CONSUMERS:
            return f"itertools.{method}", ITERTOOLS_CONSUMERS[method]
        if method in METHOD_CONSUMERS:
            return f".{method}()", ((0,), False)
        return None

    def _is_safe(self, cx, call: Node, receiver: Node, consumer: Consumer) -> bool:
        """Whether dropping the conversion cannot change what the program observes."""
        if receiver.type in FRESH_RECEIVERS:
            return not consumer.lazy
        if receiver.type != 'identifier':
            return False

        binding = cx.scopes.resolve(receiver)
        if binding is None:
            return False
        body = cx.scopes.enclosing_body(binding)
        if body is None:
            return False

        fragment = body.fragment_containing(call)
        if fragment is None:
            return False

        walker = cx.usage.walker(binding)
        for reference in walker.iter_references(fragment):
            if reference != receiver:
                return False

        return not cx.usage.is_used_after(binding, Span.of(call))
