"""Scope resolution for Python syntax trees.

Builds one record per scope (module, function, lambda, class, comprehension),
classifies every identifier occurrence as a reference, a binding or neither,
and resolves references to the function-local Binding they denote.

Python scoping rules that matter here:
- A function's name, decorators, defaults and annotations are evaluated in the
  ENCLOSING scope; only its parameter names and body live inside it.
- A comprehension's first iterable is evaluated in the enclosing scope.
- Class bodies are visible only to code written directly in them, never to
  methods or comprehensions nested inside.
- Walrus targets inside a comprehension bind in the nearest non-comprehension scope.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set
from tree_sitter import Node, Tree

from .syntax import Binding, FunctionBody, is_field, node_text, statements_of


FUNCTION_SCOPES = ('function_definition', 'lambda')
COMPREHENSION_SCOPES = (
    'list_comprehension', 'set_comprehension',
    'dictionary_comprehension', 'generator_expression',
)
SCOPE_TYPES = FUNCTION_SCOPES + ('class_definition',) + COMPREHENSION_SCOPES

# Occurrence kinds
REFERENCE = 'reference'
BINDING = 'binding'
OTHER = 'other'

PARAMETER_LISTS = ('parameters', 'lambda_parameters')
SPLAT_PATTERNS = ('list_splat_pattern', 'dictionary_splat_pattern')
IMPORT_STATEMENTS = ('import_statement', 'import_from_statement', 'future_import_statement')

# Nodes an assignment target may be wrapped in: a, (b, [c, *d]) = ...
TARGET_CONTAINERS = (
    'pattern_list', 'tuple_pattern', 'list_pattern', 'list_splat_pattern',
    'parenthesized_expression', 'tuple', 'list', 'expression_list',
)


@dataclass
class Scope:
    """Names bound and declared in one scope."""
    node: Node
    parent: Optional['Scope']
    bound: Set[str] = field(default_factory=set)
    globals: Set[str] = field(default_factory=set)
    nonlocals: Set[str] = field(default_factory=set)

    @property
    def kind(self) -> str:
        return self.node.type


def is_parameter_name(node: Node) -> bool:
    """Check whether ``node`` is the name of a def/lambda parameter."""
    parent = node.parent
    if parent is None:
        return False

    # *args / **kwargs
    if parent.type in SPLAT_PATTERNS:
        node, parent = parent, parent.parent
        if parent is None:
            return False

    if parent.type in PARAMETER_LISTS:
        return True
    if parent.type == 'typed_parameter':
        # The annotation sits inside a `type` child; the name is the first named child
        return parent.named_children[0] == node
    if parent.type in ('default_parameter', 'typed_default_parameter'):
        return is_field(parent, 'name', node)
    return False


def _opens_scope(scope: Node, child: Node, node: Node) -> bool:
    """Whether ``node``, reached from ``scope`` through ``child``, is evaluated inside ``scope``."""
    if scope.type in FUNCTION_SCOPES:
        if is_field(scope, 'body', child):
            return True
        if is_field(scope, 'parameters', child):
            return is_parameter_name(node)
        return False

    if scope.type == 'class_definition':
        return is_field(scope, 'body', child)

    # Comprehension: everything except the first iterable
    first_clause = next((c for c in scope.named_children if c.type == 'for_in_clause'), None)
    if first_clause is not None and child == first_clause:
        for iterable in first_clause.children_by_field_name('right'):
            if iterable.start_byte <= node.start_byte and node.end_byte <= iterable.end_byte:
                return False
    return True


def enclosing_scope_node(node: Node) -> Node:
    """Innermost scope node (or the module root) in which ``node`` is evaluated."""
    child, parent = node, node.parent
    while parent is not None:
        if parent.type in SCOPE_TYPES and _opens_scope(parent, child, node):
            return parent
        child, parent = parent, parent.parent
    return child


def _within_import(node: Node) -> bool:
    parent = node.parent
    while parent is not None and parent.type in ('dotted_name', 'aliased_import', 'relative_import'):
        parent = parent.parent
    return parent is not None and parent.type in IMPORT_STATEMENTS


def _in_case_pattern(node: Node) -> bool:
    parent = node.parent
    while parent is not None:
        if parent.type == 'case_pattern':
            return True
        if parent.type in ('case_clause', 'block', 'module'):
            return False
        parent = parent.parent
    return False


def _classify_pattern(node: Node) -> str:
    parent = node.parent
    if parent.type == 'keyword_pattern' and parent.named_children[0] == node:
        return OTHER
    if parent.type == 'dotted_name':
        names = parent.named_children
        grandparent = parent.parent
        # `case x:` captures; `case Color.RED:` and `case Point(...)` read a value
        if len(names) == 1 and grandparent is not None and grandparent.type != 'class_pattern':
            return BINDING
        return REFERENCE if names[0] == node else OTHER
    if parent.type == 'splat_pattern':
        return BINDING
    return REFERENCE


def _is_target(node: Node) -> bool:
    child, parent = node, node.parent
    while parent is not None and parent.type in TARGET_CONTAINERS:
        child, parent = parent, parent.parent
    if parent is None:
        return False
    if parent.type in ('assignment', 'for_statement', 'for_in_clause'):
        return is_field(parent, 'left', child)
    return parent.type == 'as_pattern_target'


def classify(node: Node) -> str:
    """Classify an identifier occurrence as REFERENCE, BINDING or OTHER."""
    parent = node.parent
    if parent is None:
        return REFERENCE

    if _within_import(node):
        return OTHER
    if parent.type in ('global_statement', 'nonlocal_statement'):
        return OTHER
    if parent.type in ('function_definition', 'class_definition') and is_field(parent, 'name', node):
        return BINDING
    if parent.type == 'attribute' and is_field(parent, 'attribute', node):
        return OTHER
    if parent.type == 'keyword_argument' and is_field(parent, 'name', node):
        return OTHER
    if parent.type == 'named_expression' and is_field(parent, 'name', node):
        return BINDING
    if is_parameter_name(node):
        return BINDING

    previous = node.prev_sibling
    if previous is not None and previous.type == 'as':
        return BINDING

    if _in_case_pattern(node):
        return _classify_pattern(node)
    if _is_target(node):
        return BINDING
    return REFERENCE


def _import_bindings(statement: Node) -> List[str]:
    """Names an import statement binds in its scope."""
    if statement.type == 'future_import_statement':
        return []

    names = []
    for imported in statement.children_by_field_name('name'):
        if imported.type == 'aliased_import':
            alias = imported.child_by_field_name('alias')
            if alias is not None:
                names.append(node_text(alias))
        elif imported.type == 'dotted_name':
            parts = imported.named_children
            if not parts:
                continue
            # `import a.b` binds `a`; `from m import a` binds `a`
            names.append(node_text(parts[0]) if statement.type == 'import_statement' else node_text(parts[-1]))
    return names


class ScopeIndex:
    """Scope records for one parsed module.

    Resolves references to function-local bindings and bindings to their
    enclosing function body.
    """

    def __init__(self, tree: Tree | Node):
        """Index every scope of a module.

        Args:
            tree: Parsed tree-sitter Tree or its root node
        """
        self.root = tree.root_node if isinstance(tree, Tree) else tree
        self.scopes: Dict[int, Scope] = {}
        self._build()

    @property
    def module(self) -> Scope:
        return self.scopes[self.root.id]

    def _build(self):
        """Single pre-order pass: outer scope records always exist before inner ones."""
        self.scopes[self.root.id] = Scope(self.root, None)

        stack = [self.root]
        while stack:
            current = stack.pop()

            if current.type in SCOPE_TYPES:
                parent = self.scope_of(enclosing_scope_node(current))
                self.scopes[current.id] = Scope(current, parent)

            elif current.type == 'identifier':
                if classify(current) == BINDING:
                    self.scope_of(self._binding_scope_node(current)).bound.add(node_text(current))
                continue

            elif current.type in IMPORT_STATEMENTS:
                self.scope_of(enclosing_scope_node(current)).bound.update(_import_bindings(current))

            elif current.type in ('global_statement', 'nonlocal_statement'):
                scope = self.scope_of(enclosing_scope_node(current))
                names = {node_text(c) for c in current.named_children if c.type == 'identifier'}
                if current.type == 'global_statement':
                    scope.globals.update(names)
                else:
                    scope.nonlocals.update(names)

            stack.extend(reversed(current.children))

    def _binding_scope_node(self, identifier: Node) -> Node:
        parent = identifier.parent
        if parent is not None and parent.type == 'named_expression':
            scope = enclosing_scope_node(parent)
            while scope.type in COMPREHENSION_SCOPES:
                scope = enclosing_scope_node(scope)
            return scope
        return enclosing_scope_node(identifier)

    def scope_of(self, scope_node: Node) -> Scope:
        """Scope record for a scope node (or the module root)."""
        return self.scopes[scope_node.id]

    def _lookup(self, scope: Optional[Scope], name: str) -> Optional[Binding]:
        innermost = True
        while scope is not None:
            if name in scope.globals:
                return None
            if name not in scope.nonlocals:
                if scope.kind == 'module':
                    return None
                if scope.kind == 'class_definition':
                    # Class attribute, not a function-local binding
                    if innermost and name in scope.bound:
                        return None
                elif name in scope.bound:
                    return Binding(scope.node.id, name, scope.node)
            innermost = False
            scope = scope.parent
        return None

    def resolve(self, identifier: Node) -> Optional[Binding]:
        """Binding denoted by a reference occurrence.

        Returns:
            The function-local Binding, or None for declarations, module
            globals, class attributes, builtins and non-identifiers
        """
        if identifier.type != 'identifier' or classify(identifier) != REFERENCE:
            return None
        scope = self.scope_of(enclosing_scope_node(identifier))
        return self._lookup(scope, node_text(identifier))

    def binding_of(self, identifier: Node) -> Optional[Binding]:
        """Binding introduced by a declaration occurrence (parameter, target, ...)."""
        if identifier.type != 'identifier' or classify(identifier) != BINDING:
            return None
        scope = self.scope_of(self._binding_scope_node(identifier))
        return self._lookup(scope, node_text(identifier))

    def is_builtin(self, identifier: Node) -> bool:
        """Check that a name is not bound anywhere between its use and the builtins."""
        name = node_text(identifier)
        scope = self.scope_of(enclosing_scope_node(identifier))
        innermost = True
        while scope is not None:
            if name in scope.globals:
                return name not in self.module.bound
            if scope.kind != 'class_definition' or innermost:
                if name in scope.bound:
                    return False
            innermost = False
            scope = scope.parent
        return True

    def enclosing_body(self, binding: Binding) -> Optional[FunctionBody]:
        """Function body that owns a binding.

        Returns:
            FunctionBody of the owning def or lambda, or None when the binding
            belongs to a comprehension or is unknown to this index
        """
        scope = self.scopes.get(binding.scope_id)
        if scope is None:
            return None

        node = scope.node
        if node.type == 'function_definition':
            return FunctionBody(node, statements_of(node.child_by_field_name('body')))
        if node.type == 'lambda':
            return FunctionBody(node, [], node.child_by_field_name('body'))
        return None
