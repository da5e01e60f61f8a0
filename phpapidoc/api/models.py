"""Data models for PHP API documentation records."""

from enum import Enum
from pathlib import Path
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_serializer


class DeclarationKind(str, Enum):
    """Kind of class-like declaration."""

    CLASS = "class"
    INTERFACE = "interface"
    TRAIT = "trait"


class Visibility(str, Enum):
    """Visibility modifier for class members."""

    PUBLIC = "public"
    PROTECTED = "protected"
    PRIVATE = "private"

    @property
    def rank(self) -> int:
        """Sort rank, public first."""
        return _VISIBILITY_RANKS[self]


_VISIBILITY_RANKS = {
    Visibility.PUBLIC: 1,
    Visibility.PROTECTED: 2,
    Visibility.PRIVATE: 3,
}


class UseAlias(BaseModel):
    """One entry of a unit's import table."""

    model_config = ConfigDict(populate_by_name=True)

    class_name: str = Field(alias="class")
    name: str
    alias: str


AliasTable = dict[str, UseAlias]


# Type references


class ClassReference(BaseModel):
    """A reference to a class-like symbol."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    class_name: str = Field(alias="class")
    linked: bool = False
    summary: str | None = None


class ScalarType(BaseModel):
    """A scalar, pseudo or array type carried by name."""

    definition: Literal["scalar"] = "scalar"
    type: str

    @property
    def is_mixed(self) -> bool:
        return self.type == "mixed"


class ReferenceType(BaseModel):
    """A type pointing at a class, interface or trait."""

    definition: Literal["reference"] = "reference"
    type: ClassReference

    @property
    def is_mixed(self) -> bool:
        return False


SingleType = Annotated[Union[ScalarType, ReferenceType], Field(discriminator="definition")]


class UnionType(BaseModel):
    """An ordered union of single types."""

    definition: Literal["union"] = "union"
    types: list[SingleType] = Field(default_factory=list)

    @property
    def is_mixed(self) -> bool:
        return False


TypeRef = Annotated[
    Union[ScalarType, ReferenceType, UnionType], Field(discriminator="definition")
]


def mixed_type() -> ScalarType:
    """Return the fallback type used when nothing better is known."""
    return ScalarType(type="mixed")


# Documentation


class Author(BaseModel):
    """An ``@author`` tag."""

    name: str
    email: str | None = None


class VarTag(BaseModel):
    """A ``@var`` tag."""

    type: TypeRef


class ParamTag(BaseModel):
    """A ``@param`` tag, keyed by parameter name in the doc block."""

    type: TypeRef
    summary: str | None = None


class ReturnTag(BaseModel):
    """A ``@return`` tag."""

    type: TypeRef
    summary: str | None = None


class ThrowsTag(BaseModel):
    """A ``@throws`` tag."""

    type: TypeRef
    summary: str | None = None


class DocBlock(BaseModel):
    """Parsed documentation for one declaration.

    Serialization is sparse: absent and empty fields are left out, and an
    inherit marker serializes as ``{"inherit": true}`` only.
    """

    model_config = ConfigDict(populate_by_name=True)

    summary: str | None = None
    body: str | None = None
    since: str | None = None
    deprecated: str | None = None
    authors: list[Author] = Field(default_factory=list)
    var: VarTag | None = None
    params: dict[str, ParamTag] = Field(default_factory=dict)
    returns: ReturnTag | None = Field(default=None, alias="return")
    throws: list[ThrowsTag] = Field(default_factory=list)
    inherit: bool = False

    @classmethod
    def inherit_marker(cls) -> "DocBlock":
        """Build a doc block that only requests ancestor documentation."""
        return cls(inherit=True)

    @model_serializer(mode="wrap")
    def _serialize_sparse(self, handler: Any) -> dict[str, Any]:
        if self.inherit:
            return {"inherit": True}
        data = handler(self)
        return {
            key: value
            for key, value in data.items()
            if key != "inherit" and value is not None and value != "" and value != [] and value != {}
        }


# Members


class InheritedFrom(BaseModel):
    """Provenance of an inherited member."""

    from_class: str
    from_name: str


class Member(BaseModel):
    """Fields shared by constants, properties and methods."""

    name: str
    visibility: Visibility = Visibility.PUBLIC
    static: bool = False
    docs: DocBlock | None = None
    inherited: InheritedFrom | None = None

    @property
    def is_inherited(self) -> bool:
        return self.inherited is not None

    @property
    def requests_inherited_docs(self) -> bool:
        return self.docs is not None and self.docs.inherit


class ConstantDef(Member):
    """A class constant."""

    type: TypeRef = Field(default_factory=mixed_type)
    value: str | None = None
    line: int = 0


class PropertyDef(Member):
    """A class property."""

    type: TypeRef = Field(default_factory=mixed_type)
    default: str | None = None
    line: int = 0


class ParamDef(BaseModel):
    """A method or event parameter."""

    name: str
    type: TypeRef = Field(default_factory=mixed_type)
    summary: str | None = None
    default: str | None = None


class ReturnDef(BaseModel):
    """A method's return type and summary."""

    type: TypeRef = Field(default_factory=mixed_type)
    summary: str | None = None


class MethodDef(Member):
    """A class method."""

    final: bool = False
    abstract: bool = False
    returns: ReturnDef = Field(default_factory=ReturnDef)
    params: list[ParamDef] = Field(default_factory=list)
    lines: list[int] = Field(default_factory=lambda: [0, 0])


class EventRecord(BaseModel):
    """A documented event fired from a call site inside a method."""

    name: str
    method: str
    call: str
    params: list[ParamDef] = Field(default_factory=list)
    docs: DocBlock | None = None
    lines: list[int] = Field(default_factory=lambda: [0, 0])


# Class records


class ClassRecord(BaseModel):
    """One parsed class, interface or trait."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    class_name: str = Field(alias="class")
    kind: DeclarationKind = DeclarationKind.CLASS
    path: str = ""
    namespace: str
    uses: AliasTable = Field(default_factory=dict, exclude=True)
    extends: ClassReference | None = None
    implements: list[ClassReference] = Field(default_factory=list)
    traits: list[ClassReference] = Field(default_factory=list)
    final: bool = False
    abstract: bool = False
    docs: DocBlock | None = None
    constants: list[ConstantDef] = Field(default_factory=list)
    properties: list[PropertyDef] = Field(default_factory=list)
    methods: list[MethodDef] = Field(default_factory=list)
    events: list[EventRecord] = Field(default_factory=list)

    @property
    def is_interface(self) -> bool:
        return self.kind == DeclarationKind.INTERFACE

    @property
    def has_ancestors(self) -> bool:
        """Whether the record names any parent, trait or interface."""
        return self.extends is not None or bool(self.traits) or bool(self.implements)

    def members(self, kind: str) -> list[Member]:
        """Return the member list for ``constants``, ``properties`` or ``methods``."""
        return getattr(self, kind)

    def find_member(self, kind: str, name: str) -> Member | None:
        """Find a member of the given kind by name."""
        for member in self.members(kind):
            if member.name == name:
                return member
        return None

    def get_method(self, name: str) -> MethodDef | None:
        return self.find_member("methods", name)  # type: ignore[return-value]

    def get_property(self, name: str) -> PropertyDef | None:
        return self.find_member("properties", name)  # type: ignore[return-value]

    def get_constant(self, name: str) -> ConstantDef | None:
        return self.find_member("constants", name)  # type: ignore[return-value]

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the sparse form consumed by renderers."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


MEMBER_KINDS = ("constants", "properties", "methods")


# Run bookkeeping


class SourceUnit(BaseModel):
    """One source file being parsed."""

    path: Path
    content: bytes = b""
    parsed: bool = False
    diagnostics: list[str] = Field(default_factory=list)


class FailedPath(BaseModel):
    """A file that could not be parsed or extracted."""

    path: str
    error: str

    @classmethod
    def from_unit(cls, unit: SourceUnit) -> "FailedPath":
        """Build the failure entry of a unit from its diagnostics."""
        return cls(path=str(unit.path), error="; ".join(unit.diagnostics))
