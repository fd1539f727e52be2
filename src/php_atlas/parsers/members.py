"""Class member extraction.

Turns the statements of a class-like body into method, property and constant
records. Also home to the helpers shared with the declaration walk: parameter
lists, declared types and literal values.
"""

import re

from tree_sitter import Node

from ..storage.models import (
    ClassMembers,
    ConstantRecord,
    MethodRecord,
    ParameterRecord,
    PropertyRecord,
    Scalar,
    Visibility,
)
from .nodes import NodeKind, classify
from .tree_sitter_parser import line_range, text

_PARAMETER_TYPES = {"simple_parameter", "variadic_parameter", "property_promotion_parameter"}
_VISIBILITIES = ("public", "protected", "private")

_DQ_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "v": "\v",
    "e": "\x1b",
    "f": "\f",
    "\\": "\\",
    "$": "$",
    '"': '"',
}
_DQ_ESCAPE_PATTERN = re.compile(
    r'\\(?:([ntrvef\\$"])|([0-7]{1,3})|x([0-9A-Fa-f]{1,2})|u\{([0-9A-Fa-f]+)\})'
)
_SQ_ESCAPE_PATTERN = re.compile(r"\\([\\'])")
_PLAIN_STRING_PARTS = {"string_content", "string_value", "escape_sequence"}


def source_slice(lines: list[str], start_line: int, end_line: int) -> str:
    """Return lines start_line..end_line (1-based, inclusive) joined by newlines."""
    return "\n".join(lines[start_line - 1 : end_line])


def doc_comment(node: Node) -> str | None:
    """Return the nearest ``/** ... */`` comment directly preceding *node*."""
    sibling = node.prev_named_sibling
    while sibling is not None and sibling.type == "comment":
        comment = text(sibling)
        if comment.startswith("/**"):
            return comment
        sibling = sibling.prev_named_sibling
    return None


# ---------------------------------------------------------------------------
# Types and values
# ---------------------------------------------------------------------------


def type_name(node: Node | None) -> str | None:
    """Return the textual form of a simple or qualified type, else None.

    Nullable, union and intersection types are not resolved.
    """
    if node is None:
        return None
    # Older grammars wrap every declared type in a union_type
    if node.type == "union_type" and node.named_child_count == 1:
        node = node.named_children[0]

    if node.type == "primitive_type":
        return text(node)
    if node.type == "named_type" and node.named_child_count:
        node = node.named_children[0]
    if node.type in ("name", "qualified_name", "relative_name"):
        return text(node).lstrip("\\")
    return None


def scalar_value(node: Node | None) -> Scalar | None:
    """Resolve a literal string, integer or float node; anything else is None."""
    if node is None:
        return None
    if node.type == "integer":
        return _php_int(text(node))
    if node.type == "float":
        try:
            return float(text(node).replace("_", ""))
        except ValueError:
            return None
    if node.type == "string":
        return _SQ_ESCAPE_PATTERN.sub(r"\1", _unquote(text(node)))
    if node.type == "encapsed_string":
        if any(child.type not in _PLAIN_STRING_PARTS for child in node.named_children):
            return None
        return _DQ_ESCAPE_PATTERN.sub(_dq_escape, _unquote(text(node)))
    return None


def _php_int(literal: str) -> int | None:
    raw = literal.replace("_", "").lower()
    try:
        if raw.startswith(("0x", "0b", "0o")):
            return int(raw, 0)
        if len(raw) > 1 and raw.startswith("0"):
            return int(raw, 8)
        return int(raw)
    except ValueError:
        return None


def _unquote(literal: str) -> str:
    if literal[:1] in ("b", "B"):
        literal = literal[1:]
    return literal[1:-1]


def _dq_escape(match: re.Match) -> str:
    simple, octal, hex_code, codepoint = match.groups()
    if simple:
        return _DQ_ESCAPES[simple]
    if octal:
        return chr(int(octal, 8) & 0xFF)
    if hex_code:
        return chr(int(hex_code, 16))
    value = int(codepoint, 16)
    if value > 0x10FFFF or 0xD800 <= value <= 0xDFFF:
        # not a Unicode scalar value, left as written
        return match.group(0)
    return chr(value)


# ---------------------------------------------------------------------------
# Parameters
# ---------------------------------------------------------------------------


def _variable_name(node: Node | None) -> str:
    if node is None:
        return ""
    if node.type != "variable_name":
        # by_ref wraps the variable of a promoted "&$x" parameter
        for child in node.named_children:
            if child.type == "variable_name":
                return _variable_name(child)
        return text(node).lstrip("&$")
    for child in node.named_children:
        if child.type == "name":
            return text(child)
    return text(node).lstrip("$")


def parameters(params_node: Node | None) -> list[ParameterRecord]:
    """Extract name and declared type of every parameter in a formal_parameters node."""
    if params_node is None:
        return []
    result = []
    for child in params_node.named_children:
        if child.type not in _PARAMETER_TYPES:
            continue
        result.append(
            ParameterRecord(
                name=_variable_name(child.child_by_field_name("name")),
                type=type_name(child.child_by_field_name("type")),
            )
        )
    return result


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------


def _method(node: Node, lines: list[str]) -> MethodRecord:
    start_line, end_line = line_range(node)
    return MethodRecord(
        name=text(node.child_by_field_name("name")),
        parameters=parameters(node.child_by_field_name("parameters")),
        doc=doc_comment(node),
        source_text=source_slice(lines, start_line, end_line),
    )


def visibility(node: Node) -> Visibility:
    """Access level from the explicit modifier of a declaration, private if none."""
    for child in node.named_children:
        if child.type == "var_modifier":
            return "public"
        if child.type != "visibility_modifier":
            continue
        label = text(child).lower()
        if "(set)" in label:
            # asymmetric write visibility, the read level comes separately
            continue
        return label if label in _VISIBILITIES else "unknown"  # type: ignore[return-value]
    return "private"


def _properties(node: Node) -> list[PropertyRecord]:
    access = visibility(node)
    declared_type = type_name(node.child_by_field_name("type"))
    records = []
    for element in node.named_children:
        if element.type != "property_element":
            continue
        name_node = element.child_by_field_name("name")
        default_node = element.child_by_field_name("default_value")
        for child in element.named_children:
            if child.type == "variable_name":
                if name_node is None:
                    name_node = child
            elif child.type == "property_initializer" and default_node is None:
                default_node = child.named_children[-1] if child.named_child_count else None
            elif child.type != "comment" and default_node is None:
                default_node = child
        records.append(
            PropertyRecord(
                name=_variable_name(name_node),
                visibility=access,
                type=declared_type,
                default=scalar_value(default_node),
            )
        )
    return records


def _constants(node: Node) -> list[ConstantRecord]:
    records = []
    for element in node.named_children:
        if element.type != "const_element":
            continue
        parts = [child for child in element.named_children if child.type != "comment"]
        if not parts:
            continue
        value_node = element.child_by_field_name("value")
        if value_node is None and len(parts) > 1:
            value_node = parts[-1]
        records.append(ConstantRecord(name=text(parts[0]), value=scalar_value(value_node)))
    return records


def extract_members(body: Node | None, lines: list[str]) -> ClassMembers:
    """Collect methods, properties and constants declared directly in a class body.

    Args:
        body: The declaration_list (or enum_declaration_list) node of a class
        lines: Source file content split on "\\n", used for method source slices

    Returns:
        ClassMembers with each list in source order
    """
    members = ClassMembers()
    if body is None:
        return members

    for stmt in body.named_children:
        match classify(stmt):
            case NodeKind.METHOD:
                members.methods.append(_method(stmt, lines))
            case NodeKind.PROPERTY:
                members.properties.extend(_properties(stmt))
            case NodeKind.CONSTANT:
                members.constants.extend(_constants(stmt))
            case _:
                pass
    return members
