"""Declaration extraction from a PHP syntax tree.

Walks the tree depth-first and produces the flat, source-ordered list of
namespace, import, class and function records for one file. The walk only
looks at the tree and the file's lines, so it can be tested against any
parsed snippet.
"""

from tree_sitter import Node

from ..storage.models import (
    ClassDecl,
    FunctionDecl,
    ImportDecl,
    NamespaceDecl,
    RawDeclaration,
)
from .members import extract_members, parameters
from .nodes import NodeKind, classify
from .tree_sitter_parser import text

_USE_CLAUSES = {"namespace_use_clause", "namespace_use_group_clause"}
_USE_TARGETS = {"qualified_name", "name", "namespace_name"}


def _clause_target(clause: Node) -> str:
    for child in clause.named_children:
        if child.type in _USE_TARGETS:
            return text(child).lstrip("\\")
    return ""


def import_names(node: Node) -> list[str]:
    """Return every name imported by a ``use`` statement, in order.

    A group use (``use A\\{B, C as D};``) yields one name per member,
    prefixed with the group namespace.
    """
    names: list[str] = []
    prefix = ""
    for child in node.named_children:
        if child.type == "namespace_name":
            prefix = text(child).strip("\\")
        elif child.type in _USE_CLAUSES:
            names.append(_clause_target(child))
        elif child.type == "namespace_use_group":
            for clause in child.named_children:
                if clause.type not in _USE_CLAUSES:
                    continue
                target = _clause_target(clause)
                if target:
                    names.append(f"{prefix}\\{target}" if prefix else target)
    return [name for name in names if name]


def _children(node: Node | None) -> list[Node]:
    return node.named_children if node is not None else []


def extract_declarations(root: Node, lines: list[str]) -> list[RawDeclaration]:
    """Collect namespace, import, class and function declarations under *root*.

    Args:
        root: Parsed tree root (usually the ``program`` node)
        lines: Source file content split on "\\n"

    Returns:
        Declarations in source order
    """
    declarations: list[RawDeclaration] = []
    # Explicit stack: deeply nested expressions would exhaust the recursion limit
    stack: list[Node] = [root]

    while stack:
        node = stack.pop()
        children: list[Node]

        match classify(node):
            case NodeKind.NAMESPACE:
                name_node = node.child_by_field_name("name")
                name = text(name_node) if name_node is not None else None
                declarations.append(NamespaceDecl(name=name))
                children = _children(node.child_by_field_name("body"))
            case NodeKind.IMPORT:
                declarations.extend(ImportDecl(name=name) for name in import_names(node))
                children = []
            case NodeKind.CLASS:
                body = node.child_by_field_name("body")
                members = extract_members(body, lines)
                declarations.append(
                    ClassDecl(
                        name=text(node.child_by_field_name("name")),
                        methods=members.methods,
                        properties=members.properties,
                        constants=members.constants,
                    )
                )
                # member bodies may still declare functions or classes
                children = _children(body)
            case NodeKind.FUNCTION:
                declarations.append(
                    FunctionDecl(
                        name=text(node.child_by_field_name("name")),
                        parameters=parameters(node.child_by_field_name("parameters")),
                    )
                )
                children = _children(node.child_by_field_name("body"))
            case _:
                children = node.named_children

        stack.extend(reversed(children))

    return declarations
