"""
Core schema representation for code generation.

The resolved interface graph produced by the WIT front-end: packages,
worlds, interfaces, type definitions and function signatures. Generators
only read this model; nothing downstream of the loader mutates it.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Iterator
from enum import Enum


class TypeKind(Enum):
    """Shapes a type definition can take."""

    PRIMITIVE = "primitive"
    STRING = "string"
    LIST = "list"
    OPTION = "option"
    RESULT = "result"
    RECORD = "record"
    VARIANT = "variant"
    ENUM = "enum"
    FLAGS = "flags"
    ALIAS = "alias"
    # Parsed but not lowered by any generator
    TUPLE = "tuple"
    HANDLE = "handle"
    FUTURE = "future"
    STREAM = "stream"
    GENERIC = "generic"


class Primitive(Enum):
    """Fixed-width scalar types."""

    U8 = "u8"
    U16 = "u16"
    U32 = "u32"
    U64 = "u64"
    S8 = "s8"
    S16 = "s16"
    S32 = "s32"
    S64 = "s64"
    F32 = "f32"
    F64 = "f64"
    BOOL = "bool"
    CHAR = "char"

    @property
    def width(self) -> int:
        """Size in bits."""
        return _PRIMITIVE_INFO[self][0]

    @property
    def signed(self) -> bool:
        return _PRIMITIVE_INFO[self][1]

    @property
    def is_float(self) -> bool:
        return self in (Primitive.F32, Primitive.F64)


_PRIMITIVE_INFO = {
    Primitive.U8: (8, False),
    Primitive.U16: (16, False),
    Primitive.U32: (32, False),
    Primitive.U64: (64, False),
    Primitive.S8: (8, True),
    Primitive.S16: (16, True),
    Primitive.S32: (32, True),
    Primitive.S64: (64, True),
    Primitive.F32: (32, True),
    Primitive.F64: (64, True),
    Primitive.BOOL: (8, False),
    Primitive.CHAR: (32, False),
}

# WIT spells floats both ways
PRIMITIVE_ALIASES = {"float32": Primitive.F32, "float64": Primitive.F64}


@dataclass(frozen=True)
class SourceLocation:
    """Position of a definition in its source file."""

    path: Optional[str]
    line: int
    column: int

    def __str__(self) -> str:
        return f"{self.path or '<input>'}:{self.line}:{self.column}"


@dataclass
class Field:
    """A single field of a record."""

    name: str
    type: "TypeDef"
    description: Optional[str] = None


@dataclass
class Case:
    """A case of a variant or enum. Enum cases never carry a payload."""

    name: str
    payload: Optional["TypeDef"] = None
    description: Optional[str] = None


@dataclass(eq=False)
class TypeDef:
    """
    A type reference or definition in the resolved graph.

    Named types (records, variants, enums, flags, aliases, resources) are
    shared objects: every use of ``native-request`` points at the same
    TypeDef instance. Anonymous types (``list<u8>``, ``option<u64>``) are
    created per occurrence. Identity is object identity.
    """

    kind: TypeKind
    name: Optional[str] = None
    owner: Optional[str] = None  # "ns:pkg/interface" of a named type

    primitive: Optional[Primitive] = None
    element: Optional["TypeDef"] = None  # list / option / alias / future / stream
    ok: Optional["TypeDef"] = None
    err: Optional["TypeDef"] = None
    length: Optional[int] = None  # fixed-size list

    fields: List[Field] = field(default_factory=list)
    cases: List[Case] = field(default_factory=list)
    flags: List[str] = field(default_factory=list)
    items: List["TypeDef"] = field(default_factory=list)  # tuple members

    description: Optional[str] = None
    location: Optional[SourceLocation] = None

    @property
    def is_named(self) -> bool:
        return self.name is not None

    @property
    def qualified_name(self) -> str:
        """Fully qualified path used in diagnostics."""
        if self.name is None:
            return self.render()
        if self.owner:
            return f"{self.owner}.{self.name}"
        return self.name

    def resolve_alias(self) -> "TypeDef":
        """Follow alias chains to the underlying definition."""
        current = self
        seen = set()
        while current.kind == TypeKind.ALIAS and current.element is not None:
            if id(current) in seen:
                break
            seen.add(id(current))
            current = current.element
        return current

    def render(self) -> str:
        """Render the type the way it is spelled in WIT."""
        if self.name is not None:
            return self.name
        if self.kind == TypeKind.PRIMITIVE:
            return self.primitive.value
        if self.kind == TypeKind.STRING:
            return "string"
        if self.kind == TypeKind.LIST:
            if self.length is not None:
                return f"list<{self.element.render()}, {self.length}>"
            return f"list<{self.element.render()}>"
        if self.kind == TypeKind.OPTION:
            return f"option<{self.element.render()}>"
        if self.kind == TypeKind.RESULT:
            if self.ok is None and self.err is None:
                return "result"
            if self.err is None:
                return f"result<{self.ok.render()}>"
            ok = self.ok.render() if self.ok is not None else "_"
            return f"result<{ok}, {self.err.render()}>"
        if self.kind == TypeKind.TUPLE:
            return "tuple<" + ", ".join(item.render() for item in self.items) + ">"
        if self.kind in (TypeKind.FUTURE, TypeKind.STREAM):
            if self.element is None:
                return self.kind.value
            return f"{self.kind.value}<{self.element.render()}>"
        if self.kind == TypeKind.HANDLE and self.element is not None:
            return f"own<{self.element.render()}>"
        return self.kind.value

    def children(self) -> Iterator["TypeDef"]:
        """Directly referenced types, in declaration order."""
        if self.element is not None:
            yield self.element
        if self.ok is not None:
            yield self.ok
        if self.err is not None:
            yield self.err
        for f in self.fields:
            yield f.type
        for case in self.cases:
            if case.payload is not None:
                yield case.payload
        yield from self.items

    def __repr__(self) -> str:
        return f"TypeDef({self.kind.value}, {self.render()!r})"


@dataclass
class Param:
    """A function parameter."""

    name: str
    type: TypeDef


@dataclass
class Function:
    """An exported function signature."""

    name: str
    params: List[Param] = field(default_factory=list)
    result: Optional[TypeDef] = None
    interface: Optional[str] = None  # None for world-level functions
    description: Optional[str] = None
    location: Optional[SourceLocation] = None

    @property
    def qualified_name(self) -> str:
        if self.interface:
            return f"{self.interface}.{self.name}"
        return self.name

    def signature(self) -> str:
        """WIT-style signature used in generated comments."""
        params = ", ".join(f"{p.name}: {p.type.render()}" for p in self.params)
        text = f"{self.name}: func({params})"
        if self.result is not None:
            text += f" -> {self.result.render()}"
        return text


@dataclass
class Interface:
    """A named group of types and functions."""

    name: str
    package: Optional[str] = None
    types: List[TypeDef] = field(default_factory=list)
    functions: List[Function] = field(default_factory=list)
    description: Optional[str] = None
    location: Optional[SourceLocation] = None

    @property
    def qualified_name(self) -> str:
        if self.package:
            return f"{self.package}/{self.name}"
        return self.name

    def get_type(self, name: str) -> Optional[TypeDef]:
        for ty in self.types:
            if ty.name == name:
                return ty
        return None


@dataclass
class World:
    """The unit of generation: what a component exports."""

    name: str
    package: Optional[str] = None
    exports: List[Interface] = field(default_factory=list)
    functions: List[Function] = field(default_factory=list)
    types: List[TypeDef] = field(default_factory=list)
    imports: List[str] = field(default_factory=list)
    description: Optional[str] = None
    location: Optional[SourceLocation] = None

    def exported_functions(self) -> List[Function]:
        """All exported functions: interface exports first, in export order."""
        result = []
        for iface in self.exports:
            result.extend(iface.functions)
        result.extend(self.functions)
        return result

    def declared_types(self) -> List[TypeDef]:
        """Named types declared by exported interfaces and the world itself."""
        result = []
        for iface in self.exports:
            result.extend(iface.types)
        result.extend(self.types)
        return result


@dataclass
class Package:
    """A WIT package: interfaces and worlds sharing a namespace."""

    name: str
    interfaces: Dict[str, Interface] = field(default_factory=dict)
    worlds: Dict[str, World] = field(default_factory=dict)


@dataclass
class Resolve:
    """All packages loaded for one invocation."""

    packages: Dict[str, Package] = field(default_factory=dict)

    def worlds(self) -> List[World]:
        result = []
        for package in self.packages.values():
            result.extend(package.worlds.values())
        return result


# Constructors for anonymous types


def primitive(kind: Primitive) -> TypeDef:
    return TypeDef(TypeKind.PRIMITIVE, primitive=kind)


def string_type() -> TypeDef:
    return TypeDef(TypeKind.STRING)


def list_of(element: TypeDef) -> TypeDef:
    return TypeDef(TypeKind.LIST, element=element)


def option_of(element: TypeDef) -> TypeDef:
    return TypeDef(TypeKind.OPTION, element=element)


def result_of(ok: Optional[TypeDef] = None, err: Optional[TypeDef] = None) -> TypeDef:
    return TypeDef(TypeKind.RESULT, ok=ok, err=err)
