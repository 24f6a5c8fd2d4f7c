"""Usage-after-point analysis.

Answers one question for the rules: "is this binding mentioned anywhere
lexically after this point, within the same function body?"

This is a deliberately cheap, syntactic over-approximation: no alias analysis,
no control-flow graph, no interprocedural reasoning. Top-level statements are
the unit of "before" and "after"; a statement counts as later when it starts
at or after the position under review.
"""
from typing import Callable, Iterator, Optional
from tree_sitter import Node

from .syntax import Binding, Span, is_field
from ..utils.logger import debug


# Nodes whose `body` opens a nested function scope
NESTED_FUNCTIONS = ('function_definition', 'lambda')


class UsageWalker:
    """Depth-first search for references to one binding.

    Matching is identity based: an identifier matches when it is a reference
    and ``resolve`` maps it to the target binding, so nested scopes that
    shadow the name never match while closures that capture it do.
    """

    def __init__(self, binding: Binding, resolve: Callable[[Node], Optional[Binding]],
                 descend_into_nested: bool = True):
        """Initialize the walker.

        Args:
            binding: Target binding identity
            resolve: Maps a reference identifier to the Binding it denotes (or None)
            descend_into_nested: Whether bodies of nested defs and lambdas are searched
        """
        self.binding = binding
        self.resolve = resolve
        self.descend_into_nested = descend_into_nested
        self._name = binding.name.encode('utf-8')

    def iter_references(self, root: Node) -> Iterator[Node]:
        """Yield every identifier in ``root``'s subtree that refers to the binding.

        Lazy: stopping iteration stops the traversal.
        """
        stack = [root]
        while stack:
            node = stack.pop()

            if node.type == 'identifier':
                if node.text == self._name and self.resolve(node) == self.binding:
                    yield node
                continue

            children = node.children
            if not self.descend_into_nested and node.type in NESTED_FUNCTIONS:
                # Defaults and decorators still belong to the enclosing scope
                children = [c for c in children if not is_field(node, 'body', c)]

            stack.extend(reversed(children))

    def contains_reference(self, root: Node) -> bool:
        """Check whether the subtree refers to the binding (stops at the first match)."""
        return next(self.iter_references(root), None) is not None


class UsageQuery:
    """Usage-after-point query over the bodies known to a scope index.

    ``scopes`` must expose ``enclosing_body(binding)`` and ``resolve(identifier)``;
    ScopeIndex is the production implementation.
    """

    def __init__(self, scopes, descend_into_nested: bool = True):
        self.scopes = scopes
        self.descend_into_nested = descend_into_nested

    def walker(self, binding: Binding) -> UsageWalker:
        return UsageWalker(binding, self.scopes.resolve, self.descend_into_nested)

    def is_used_after(self, binding: Binding, position: Span) -> bool:
        """Check whether ``binding`` is referenced lexically at or after ``position``.

        Statements of the enclosing body that start before ``position`` are
        skipped; the rest are searched in order and the search stops at the
        first reference. The trailing expression, if any, is searched last.

        Args:
            binding: Binding identity to look for
            position: Span of the call under review (only its start is used)

        Returns:
            True if a later reference exists, or if no enclosing body can be
            found (an undecidable binding is assumed to be used)
        """
        body = self.scopes.enclosing_body(binding)
        if body is None:
            debug("usage", f"no enclosing function body for `{binding.name}`; assuming it is used")
            return True

        walker = self.walker(binding)

        for statement in body.statements:
            if statement.start_byte >= position.start and walker.contains_reference(statement):
                return True

        tail = body.tail
        if tail is not None and tail.start_byte >= position.start and walker.contains_reference(tail):
            return True

        return False
