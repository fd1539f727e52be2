"""Parsers for PHP files."""

from .code import CodeParser
from .declarations import extract_declarations
from .members import extract_members
from .tree_sitter_parser import ParseError

__all__ = ["CodeParser", "ParseError", "extract_declarations", "extract_members"]
