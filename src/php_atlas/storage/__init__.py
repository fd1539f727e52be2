"""Storage layer - data models and the document store.

Note: SQLiteDocumentStore is NOT re-exported here so that parsers can import
the models without pulling in the store:
Import it directly: `from php_atlas.storage.document_store import SQLiteDocumentStore`
"""

from .models import (
    ClassDecl,
    ClassDocument,
    ClassInfo,
    ClassMembers,
    ConstantRecord,
    DocumentBody,
    FileDocument,
    FunctionDecl,
    FunctionDocument,
    FunctionInfo,
    ImportDecl,
    MethodRecord,
    NamespaceDecl,
    ParameterRecord,
    PropertyRecord,
    RawDeclaration,
    ScanStats,
    StoreStats,
    UpsertResult,
)

__all__ = [
    "ClassDecl",
    "ClassDocument",
    "ClassInfo",
    "ClassMembers",
    "ConstantRecord",
    "DocumentBody",
    "FileDocument",
    "FunctionDecl",
    "FunctionDocument",
    "FunctionInfo",
    "ImportDecl",
    "MethodRecord",
    "NamespaceDecl",
    "ParameterRecord",
    "PropertyRecord",
    "RawDeclaration",
    "ScanStats",
    "StoreStats",
    "UpsertResult",
]
