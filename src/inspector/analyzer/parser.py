"""Tree-sitter parser for the Python sources being linted."""
from pathlib import Path
from typing import Optional, Tuple
from tree_sitter import Language, Parser, Tree
import tree_sitter_python as tspython


class PythonParser:
    """Python parser using the tree-sitter v0.22+ API."""

    SUPPORTED_EXTENSIONS = {'.py', '.pyi'}

    def __init__(self):
        """Initialize the underlying tree-sitter parser."""
        self.parser = self._create_parser()

    def _create_parser(self) -> Parser:
        """Factory method using tree-sitter v0.22+ API.

        Returns:
            Configured Parser instance
        """
        # v0.22+ API: Pass language to Parser constructor
        return Parser(Language(tspython.language()))

    def parse_source(self, source_code: bytes) -> Tree:
        """Parse in-memory source code.

        Args:
            source_code: Source code bytes

        Returns:
            Parsed Tree object (may contain ERROR nodes)
        """
        return self.parser.parse(source_code)

    def parse_file(self, file_path: str | Path) -> Optional[Tuple[Tree, bytes]]:
        """Parse file and return the tree together with the bytes it was built from.

        Args:
            file_path: Path to source file to parse

        Returns:
            (tree, source_code) tuple, or None if the file could not be read
        """
        file_path = Path(file_path)

        if not file_path.is_file():
            return None

        try:
            source_code = file_path.read_bytes()
        except OSError:
            return None

        return self.parse_source(source_code), source_code

    @classmethod
    def supports(cls, file_path: str | Path) -> bool:
        """Check whether a file extension is handled by this parser."""
        return Path(file_path).suffix.lower() in cls.SUPPORTED_EXTENSIONS
