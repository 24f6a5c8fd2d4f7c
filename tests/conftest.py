"""Shared fixtures: parsed sources, node lookup and a network-free environment."""
import textwrap
from typing import List, Optional

import pytest

from inspector.analyzer.parser import PythonParser
from inspector.analyzer.scopes import ScopeIndex
from inspector.analyzer.syntax import node_text


class ParsedSource:
    """Dedented source, its tree and a lazily built scope index."""

    def __init__(self, parser: PythonParser, code: str):
        self.source = textwrap.dedent(code).encode('utf-8')
        self.tree = parser.parse_source(self.source)
        self.root = self.tree.root_node
        self._scopes = None

    @property
    def scopes(self) -> ScopeIndex:
        if self._scopes is None:
            self._scopes = ScopeIndex(self.tree)
        return self._scopes

    def nodes(self, node_type: str, text: Optional[str] = None) -> List:
        """All nodes of a type (optionally with exact text), in source order."""
        found = []
        stack = [self.root]
        while stack:
            node = stack.pop()
            if node.type == node_type and (text is None or node_text(node) == text):
                found.append(node)
            stack.extend(reversed(node.children))
        return found

    def find(self, node_type: str, text: Optional[str] = None, nth: int = 0):
        matches = self.nodes(node_type, text)
        assert len(matches) > nth, f"no {node_type} #{nth} with text {text!r}"
        return matches[nth]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Never talk to the completion service and never print debug output."""
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("INSPECTOR_OPENAI_BASE_URL", raising=False)
    monkeypatch.delenv("INSPECTOR_DEBUG", raising=False)


@pytest.fixture
def parser():
    return PythonParser()


@pytest.fixture
def parse(parser):
    """Parse dedented source code into a ParsedSource."""
    def _parse(code: str) -> ParsedSource:
        return ParsedSource(parser, code)
    return _parse
