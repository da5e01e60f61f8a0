"""Tree-sitter adapter for PHP source units."""

import threading
from pathlib import Path
from typing import Any, Iterator

import tree_sitter_php as tsphp
from tree_sitter import Language, Parser, Tree

from phpapidoc.core.exceptions import PhpSyntaxError

PHP_LANGUAGE = Language(tsphp.language_php())


def node_text(content: bytes, node: Any) -> str:
    """Get text content of a node.

    Args:
        content: Full source code as bytes.
        node: Tree-sitter node.

    Returns:
        Text content of the node.
    """
    return content[node.start_byte : node.end_byte].decode("utf-8", errors="replace")


def node_line(node: Any) -> int:
    """Get the 1-based starting line number of a node."""
    return node.start_point[0] + 1


def node_end_line(node: Any) -> int:
    """Get the 1-based ending line number of a node."""
    return node.end_point[0] + 1


def walk(node: Any) -> Iterator[Any]:
    """Yield a node and all of its descendants in document order."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


def find_all(node: Any, *types: str) -> list[Any]:
    """Find every descendant of the given node types."""
    return [child for child in walk(node) if child.type in types]


def doc_comment(node: Any, content: bytes) -> Any | None:
    """Find the doc comment attached to a declaration or statement.

    Comments directly preceding the node are scanned backwards and the
    nearest one opening with ``/**`` wins.

    Args:
        node: Declaration or statement node.
        content: Source of the unit.

    Returns:
        Comment node, or None.
    """
    sibling = node.prev_sibling
    while sibling is not None and sibling.type == "comment":
        if node_text(content, sibling).startswith("/**"):
            return sibling
        sibling = sibling.prev_sibling
    return None


class TreeSitterParser:
    """Parse PHP source units into syntax trees.

    Each thread gets its own tree-sitter parser, so one adapter can be
    shared by a worker pool.
    """

    def __init__(self) -> None:
        self._local = threading.local()

    @property
    def parser(self) -> Parser:
        parser = getattr(self._local, "parser", None)
        if parser is None:
            parser = Parser(PHP_LANGUAGE)
            self._local.parser = parser
        return parser

    def parse_unit(self, path: Path | str, content: bytes) -> Tree:
        """Parse one source unit.

        Args:
            path: Path of the unit, used in error reports.
            content: Raw source bytes.

        Returns:
            Tree-sitter tree.

        Raises:
            PhpSyntaxError: If the source contains syntax errors.
        """
        tree = self.parser.parse(content)
        if tree.root_node.has_error:
            raise self._syntax_error(tree.root_node, content, path)
        return tree

    def _syntax_error(self, root: Any, content: bytes, path: Path | str) -> PhpSyntaxError:
        for node in walk(root):
            if node.is_missing:
                line = node_line(node)
                return PhpSyntaxError(
                    f"Syntax error, expected '{node.type}' on line {line}",
                    path=str(path),
                    line=line,
                )
            if node.type == "ERROR":
                line = node_line(node)
                token = self._first_token(node, content)
                return PhpSyntaxError(
                    f"Syntax error, unexpected '{token}' on line {line}",
                    path=str(path),
                    line=line,
                )
        return PhpSyntaxError("Syntax error", path=str(path))

    def _first_token(self, node: Any, content: bytes) -> str:
        for child in walk(node):
            if child.child_count == 0 and child.end_byte > child.start_byte:
                return node_text(content, child)
        return node_text(content, node)[:20] or "EOF"
