"""Classification of tree-sitter-php nodes into the kinds the extractors handle."""

from enum import Enum, auto

from tree_sitter import Node


class NodeKind(Enum):
    NAMESPACE = auto()
    IMPORT = auto()
    CLASS = auto()
    FUNCTION = auto()
    METHOD = auto()
    PROPERTY = auto()
    CONSTANT = auto()
    OTHER = auto()


_KIND_BY_TYPE: dict[str, NodeKind] = {
    "namespace_definition": NodeKind.NAMESPACE,
    "namespace_use_declaration": NodeKind.IMPORT,
    "class_declaration": NodeKind.CLASS,
    "interface_declaration": NodeKind.CLASS,
    "trait_declaration": NodeKind.CLASS,
    "enum_declaration": NodeKind.CLASS,
    "function_definition": NodeKind.FUNCTION,
    "method_declaration": NodeKind.METHOD,
    "property_declaration": NodeKind.PROPERTY,
    "const_declaration": NodeKind.CONSTANT,
}


def classify(node: Node) -> NodeKind:
    return _KIND_BY_TYPE.get(node.type, NodeKind.OTHER)
