"""Parser for PHP source files.

Reads .php files and extracts namespace, import, class and function declarations.
"""

import logging
from pathlib import Path

import chardet

from ..storage.models import RawDeclaration
from . import tree_sitter_parser
from .declarations import extract_declarations
from .tree_sitter_parser import ParseError

logger = logging.getLogger(__name__)


class CodeParser:
    """Parser for PHP code files."""

    ENCODINGS = ("utf-8-sig", "utf-8", "cp1251")

    def decode(self, content: bytes) -> str:
        """Decode file content with automatic encoding detection."""
        for encoding in self.ENCODINGS:
            try:
                return content.decode(encoding, errors="strict")
            except (UnicodeDecodeError, UnicodeError):
                continue

        # Fallback to chardet
        detected = chardet.detect(content[:10000]).get("encoding") or "utf-8"
        logger.debug(f"Decoding with detected encoding: {detected}")
        try:
            return content.decode(detected, errors="replace")
        except LookupError:
            return content.decode("utf-8", errors="replace")

    def parse_source(self, source: str, file_name: str) -> list[RawDeclaration] | None:
        """Parse PHP source text into raw declarations.

        A syntax error is logged and yields None so a batch can carry on
        with the next file; valid source without declarations yields [].
        """
        try:
            tree = tree_sitter_parser.parse(source.encode("utf-8"))
        except ParseError as e:
            logger.error(f"Parse error in file {file_name}: {e}")
            return None

        declarations = extract_declarations(tree.root_node, source.split("\n"))
        logger.debug(f"Parsed {file_name}: {len(declarations)} declarations")
        return declarations

    def parse_content(self, content: bytes, file_name: str) -> list[RawDeclaration] | None:
        """Decode raw file bytes and parse them."""
        return self.parse_source(self.decode(content), file_name)

    def parse_file(self, file_path: str | Path) -> list[RawDeclaration] | None:
        """Parse a PHP file from disk.

        Args:
            file_path: Path to the .php file

        Returns:
            Declarations in source order, None if the file does not parse
        """
        file_path = Path(file_path)
        return self.parse_content(file_path.read_bytes(), str(file_path))
