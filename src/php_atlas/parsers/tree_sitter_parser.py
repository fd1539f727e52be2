"""Tree-sitter based PHP parser.

Wraps the ``tree-sitter-php`` grammar and turns error-tolerant tree-sitter
output into a strict parse: a tree containing ERROR or MISSING nodes raises
``ParseError`` so callers can drop the file the way a real PHP parser would.
"""
import logging

import tree_sitter_php
from tree_sitter import Language, Node, Parser, Tree

logger = logging.getLogger(__name__)

_language: Language | None = None
_parser: Parser | None = None


class ParseError(Exception):
    """Source text is not syntactically valid PHP."""

    def __init__(self, message: str, line: int | None = None):
        super().__init__(message)
        self.line = line


def _init() -> Parser:
    global _language, _parser
    if _parser is not None:
        return _parser
    # tree-sitter >= 0.22 API: grammar packages expose a language capsule
    _language = Language(tree_sitter_php.language_php())
    _parser = Parser(_language)
    logger.debug("tree-sitter-php initialized")
    return _parser


def text(node: Node | None) -> str:
    """Return the decoded source text spanned by *node*."""
    if node is None or node.text is None:
        return ""
    return node.text.decode("utf-8", errors="replace")


def line_range(node: Node) -> tuple[int, int]:
    """Return the 1-based (start, end) line numbers of *node*."""
    return node.start_point[0] + 1, node.end_point[0] + 1


def _first_error(root: Node) -> Node | None:
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "ERROR" or node.is_missing:
            return node
        if node.has_error:
            stack.extend(reversed(node.children))
    return None


def parse(source: bytes) -> Tree:
    """Parse PHP source bytes into a syntax tree.

    Raises:
        ParseError: if the source contains a syntax error
    """
    tree = _init().parse(source)
    root = tree.root_node
    if root.has_error:
        bad = _first_error(root)
        line = bad.start_point[0] + 1 if bad is not None else None
        if bad is not None and bad.is_missing:
            message = f"Syntax error, missing '{bad.type}' on line {line}"
        else:
            snippet = text(bad).splitlines()[0][:40] if bad is not None and text(bad) else ""
            message = f"Syntax error, unexpected '{snippet}' on line {line}"
        raise ParseError(message, line)
    return tree
