"""Reshapes raw declarations into the per-file document body."""

from ..storage.models import (
    ClassDecl,
    ClassDocument,
    DocumentBody,
    FunctionDecl,
    FunctionDocument,
    ImportDecl,
    NamespaceDecl,
    RawDeclaration,
)


def normalize(declarations: list[RawDeclaration]) -> DocumentBody:
    """Build the document body for one file.

    The first namespace wins; imports keep source order and duplicates.
    """
    body = DocumentBody()
    namespace_seen = False

    for decl in declarations:
        match decl:
            case NamespaceDecl(name=name):
                if not namespace_seen:
                    body.namespace = name
                    namespace_seen = True
            case ImportDecl(name=name):
                body.uses.append(name)
            case ClassDecl():
                body.classes.append(
                    ClassDocument(
                        name=decl.name,
                        methods=list(decl.methods),
                        constants=list(decl.constants),
                        properties=list(decl.properties),
                    )
                )
            case FunctionDecl():
                body.functions.append(
                    FunctionDocument(name=decl.name, parameters=list(decl.parameters))
                )

    return body
