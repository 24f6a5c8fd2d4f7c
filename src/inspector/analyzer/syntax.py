"""Small value types and helpers shared by the analyzers."""
from dataclasses import dataclass, field
from typing import Iterator, List, Optional
from tree_sitter import Node


@dataclass(frozen=True, order=True)
class Span:
    """Half-open byte range over the original source, ordered by start offset."""
    start: int
    end: int

    @classmethod
    def of(cls, node: Node) -> 'Span':
        """Span covering a syntax node."""
        return cls(node.start_byte, node.end_byte)

    def contains(self, other: 'Span') -> bool:
        return self.start <= other.start and other.end <= self.end


@dataclass(frozen=True)
class Binding:
    """Identity of one function-local name (parameter or local variable).

    Two occurrences denote the same binding iff their Binding objects are equal.
    Only meaningful for the tree the identity was resolved from.
    """
    scope_id: int
    name: str
    scope: Optional[Node] = field(default=None, compare=False, hash=False, repr=False)


@dataclass
class FunctionBody:
    """Ordered statements plus optional trailing expression of one function.

    A ``def`` has statements and no tail; a ``lambda`` has only a tail.
    """
    owner: Node
    statements: List[Node]
    tail: Optional[Node] = None

    def fragments(self) -> Iterator[Node]:
        """Top-level statements in declaration order, then the tail."""
        yield from self.statements
        if self.tail is not None:
            yield self.tail

    def fragment_containing(self, node: Node) -> Optional[Node]:
        """Top-level statement (or the tail) whose range contains ``node``."""
        target = Span.of(node)
        for fragment in self.fragments():
            if Span.of(fragment).contains(target):
                return fragment
        return None


def node_text(node: Node) -> str:
    """Decode a node's source text."""
    return node.text.decode('utf-8', errors='replace')


def is_field(parent: Node, field_name: str, child: Node) -> bool:
    """Check whether ``child`` is the node stored under ``field_name`` of ``parent``."""
    candidate = parent.child_by_field_name(field_name)
    return candidate is not None and candidate == child


def statements_of(block: Optional[Node]) -> List[Node]:
    """Statements of a block, without interleaved comments."""
    if block is None:
        return []
    return [child for child in block.named_children if child.type != 'comment']
