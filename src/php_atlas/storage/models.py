"""Shared data models for the extraction pipeline.

Used by both parsers (as output types) and storage (as input/output types).
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Literal, Union

Scalar = Union[str, int, float]
Visibility = Literal["public", "protected", "private", "unknown"]
ScanOutcome = Literal["unchanged", "created", "modified", "noop", "unparsed", "failed"]


# ---------------------------------------------------------------------------
# Parser output models
# ---------------------------------------------------------------------------


@dataclass
class ParameterRecord:
    """A function or method parameter."""

    name: str                   # without the leading "$"
    type: str | None = None     # simple or qualified type name


@dataclass
class MethodRecord:
    """A class method with its doc-comment and verbatim source."""

    name: str
    parameters: list[ParameterRecord] = field(default_factory=list)
    doc: str | None = None
    source_text: str = ""


@dataclass
class PropertyRecord:
    """A class property."""

    name: str
    visibility: Visibility = "private"
    type: str | None = None
    default: Scalar | None = None


@dataclass
class ConstantRecord:
    """A class constant."""

    name: str
    value: Scalar | None = None


@dataclass
class ClassMembers:
    methods: list[MethodRecord] = field(default_factory=list)
    properties: list[PropertyRecord] = field(default_factory=list)
    constants: list[ConstantRecord] = field(default_factory=list)


@dataclass
class NamespaceDecl:
    name: str | None


@dataclass
class ImportDecl:
    name: str


@dataclass
class ClassDecl:
    """A class-like declaration (class, interface, trait, enum)."""

    name: str
    methods: list[MethodRecord] = field(default_factory=list)
    properties: list[PropertyRecord] = field(default_factory=list)
    constants: list[ConstantRecord] = field(default_factory=list)


@dataclass
class FunctionDecl:
    """A free (non-method) function."""

    name: str
    parameters: list[ParameterRecord] = field(default_factory=list)


RawDeclaration = Union[NamespaceDecl, ImportDecl, ClassDecl, FunctionDecl]


# ---------------------------------------------------------------------------
# Document models
# ---------------------------------------------------------------------------


@dataclass
class ClassDocument:
    name: str
    methods: list[MethodRecord] = field(default_factory=list)
    constants: list[ConstantRecord] = field(default_factory=list)
    properties: list[PropertyRecord] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "methods": [
                {
                    "name": m.name,
                    "parameters": [_parameter_dict(p) for p in m.parameters],
                    "phpdoc": m.doc,
                    "source_code": m.source_text,
                }
                for m in self.methods
            ],
            "constants": [{"name": c.name, "value": c.value} for c in self.constants],
            "properties": [
                {
                    "name": p.name,
                    "visibility": p.visibility,
                    "type": p.type,
                    "default": p.default,
                }
                for p in self.properties
            ],
        }


@dataclass
class FunctionDocument:
    name: str
    parameters: list[ParameterRecord] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "parameters": [_parameter_dict(p) for p in self.parameters],
        }


@dataclass
class DocumentBody:
    """Normalized per-file metadata, before hashing and timestamping."""

    namespace: str | None = None
    uses: list[str] = field(default_factory=list)
    classes: list[ClassDocument] = field(default_factory=list)
    functions: list[FunctionDocument] = field(default_factory=list)


@dataclass(frozen=True)
class FileDocument:
    """The unit of persistence: one document per source file."""

    file_name: str              # path relative to the configured base path
    file_hash: str              # sha256 hex digest of the raw file bytes
    last_updated: datetime
    namespace: str | None = None
    uses: tuple[str, ...] = ()
    classes: tuple[ClassDocument, ...] = ()
    functions: tuple[FunctionDocument, ...] = ()

    @classmethod
    def from_body(
        cls,
        body: DocumentBody,
        file_name: str,
        file_hash: str,
        last_updated: datetime,
    ) -> "FileDocument":
        return cls(
            file_name=file_name,
            file_hash=file_hash,
            last_updated=last_updated,
            namespace=body.namespace,
            uses=tuple(body.uses),
            classes=tuple(body.classes),
            functions=tuple(body.functions),
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the field set written to the store."""
        return {
            "namespace": self.namespace,
            "uses": list(self.uses),
            "classes": [c.to_dict() for c in self.classes],
            "functions": [f.to_dict() for f in self.functions],
            "last_updated": self.last_updated.isoformat(),
            "file_name": self.file_name,
            "file_hash": self.file_hash,
        }


def _parameter_dict(param: ParameterRecord) -> dict[str, Any]:
    return {"name": param.name, "type": param.type}


# ---------------------------------------------------------------------------
# Storage / scan result models
# ---------------------------------------------------------------------------


class UpsertResult(Enum):
    """What a store write did to the stored record."""

    CREATED = "created"
    MODIFIED = "modified"
    NOOP = "noop"


@dataclass
class ClassInfo:
    """Class search result."""

    name: str
    file_name: str
    namespace: str | None = None
    method_count: int = 0


@dataclass
class FunctionInfo:
    """Function or method search result."""

    name: str
    file_name: str
    parameters: list[str]
    class_name: str | None = None   # None for free functions


@dataclass
class StoreStats:
    """Counts over the stored documents."""

    files: int = 0
    classes: int = 0
    functions: int = 0
    methods: int = 0


@dataclass
class ScanStats:
    """Counters for one scan pass."""

    discovered: int = 0
    unchanged: int = 0
    created: int = 0
    modified: int = 0
    noop: int = 0
    unparsed: int = 0
    failed: int = 0

    def record(self, outcome: ScanOutcome) -> None:
        setattr(self, outcome, getattr(self, outcome) + 1)

    @property
    def written(self) -> int:
        return self.created + self.modified
