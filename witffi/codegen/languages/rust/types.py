"""
Rust/C type system for code generation.

Maps classified WIT types to their three spellings: the idiomatic Rust
type the capability trait uses, the ``#[repr(C)]`` Rust type on the
boundary, and the matching C type in the header.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from ...core.classify import Classification, ClassificationTable, ReprKind
from ...core.naming import NamingCase, NamingContext, NamingRole
from ...core.schema import Primitive, TypeDef, TypeKind


class AbiShape(Enum):
    """How a boundary value behaves: what its sentinel is and how it is released."""

    SCALAR = "scalar"
    BOOL = "bool"
    FLOAT = "float"
    CHAR = "char"
    ENUM = "enum"
    FLAGS = "flags"
    SLICE = "slice"            # borrowed bytes, caller-owned
    BUFFER = "buffer"          # owned bytes, null ptr = absent
    LIST = "list"              # length + array
    STRUCT = "struct"          # inline repr(C) struct
    POINTER = "pointer"        # *mut, boxed, null = absent
    CONST_POINTER = "const_pointer"  # *const, caller-owned


# WIT primitive -> (idiomatic Rust, repr(C) Rust, C)
RUST_PRIMITIVES: Dict[Primitive, Tuple[str, str, str]] = {
    Primitive.U8: ("u8", "u8", "uint8_t"),
    Primitive.U16: ("u16", "u16", "uint16_t"),
    Primitive.U32: ("u32", "u32", "uint32_t"),
    Primitive.U64: ("u64", "u64", "uint64_t"),
    Primitive.S8: ("i8", "i8", "int8_t"),
    Primitive.S16: ("i16", "i16", "int16_t"),
    Primitive.S32: ("i32", "i32", "int32_t"),
    Primitive.S64: ("i64", "i64", "int64_t"),
    Primitive.F32: ("f32", "f32", "float"),
    Primitive.F64: ("f64", "f64", "double"),
    Primitive.BOOL: ("bool", "bool", "bool"),
    Primitive.CHAR: ("char", "u32", "uint32_t"),
}

UNSIGNED_BY_WIDTH = {8: ("u8", "uint8_t"), 16: ("u16", "uint16_t"),
                     32: ("u32", "uint32_t"), 64: ("u64", "uint64_t")}


@dataclass(frozen=True)
class RustType:
    """
    One WIT type in one position.

    ``abi`` and ``c`` describe the same memory layout; ``idiomatic`` is what
    implementers of the capability trait see.
    """

    idiomatic: str
    abi: str
    c: str
    shape: AbiShape
    classification: Classification
    sentinel: str = "0"

    @property
    def needs_release(self) -> bool:
        return self.classification.is_owned

    def c_decl(self, name: str) -> str:
        """C declarator for a field or parameter of this type."""
        return c_decl(self.c, name)


def c_decl(c_type: str, name: str) -> str:
    if c_type.endswith("*"):
        return f"{c_type}{name}"
    return f"{c_type} {name}"


def c_pointer(c_type: str, const: bool = False) -> str:
    base = f"const {c_type}" if const else c_type
    if base.endswith("*"):
        return f"{base}*"
    return f"{base} *"


@dataclass
class NamedType:
    """Generated names for one named WIT type."""

    type: TypeDef
    idiomatic: str
    abi: str
    snake: str

    @property
    def into_fn(self) -> str:
        return f"witffi_{self.snake}_into_abi"

    @property
    def from_fn(self) -> str:
        return f"witffi_{self.snake}_from_abi"


@dataclass
class SupportStruct:
    """An anonymous option/list/result struct the ABI needs."""

    kind: str  # "option", "list" or "result"
    abi: str
    snake: str
    type: TypeDef
    classification: Classification
    members: List[Tuple[str, RustType]] = field(default_factory=list)


class RustTypeMapper:
    """
    Central engine for mapping WIT types to Rust and C types.

    Named types map shallowly (a record field of record type is just the
    record's ABI name), so recursive graphs terminate. Anonymous option,
    list and result shapes are registered as support structs the first
    time they are seen.
    """

    def __init__(self, naming: NamingContext, table: ClassificationTable):
        self.naming = naming
        self.table = table
        self._named: Dict[int, NamedType] = {}
        self.support: Dict[str, SupportStruct] = {}

    def claim_prelude(self):
        """Reserve the shared byte slice and buffer type names before any WIT type is named."""
        self.naming.register(NamingRole.TYPE, "abi-types", "<prelude>.byte-slice", self.byte_slice)
        self.naming.register(NamingRole.TYPE, "abi-types", "<prelude>.byte-buffer", self.byte_buffer)

    @property
    def byte_slice(self) -> str:
        return f"{self.naming.type_prefix}ByteSlice"

    @property
    def byte_buffer(self) -> str:
        return f"{self.naming.type_prefix}ByteBuffer"

    # Names

    def named(self, ty: TypeDef) -> NamedType:
        """Names for a record, variant, enum, flags or alias."""
        cached = self._named.get(id(ty))
        if cached is not None:
            return cached

        sanitizer = self.naming.sanitizer
        info = NamedType(
            type=ty,
            idiomatic=self.naming.type_name(ty.name, ty.qualified_name),
            abi=self.naming.c_type_name(ty.name, ty.qualified_name),
            snake=sanitizer.sanitize_name(ty.name, NamingCase.SNAKE_CASE, escape=False),
        )
        self._named[id(ty)] = info
        return info

    def mangle(self, ty: TypeDef) -> str:
        """PascalCase fragment naming an anonymous type inside support struct names."""
        target = ty.resolve_alias()
        kind = target.kind

        if target.is_named:
            return self.naming.sanitizer.sanitize_name(target.name, NamingCase.PASCAL_CASE, escape=False)
        if kind == TypeKind.PRIMITIVE:
            return target.primitive.value.capitalize()
        if kind == TypeKind.STRING:
            return "String"
        if kind == TypeKind.LIST:
            if _is_bytes(target):
                return "Bytes"
            return "List" + self.mangle(target.element)
        if kind == TypeKind.OPTION:
            return "Option" + self.mangle(target.element)
        if kind == TypeKind.RESULT:
            ok = self.mangle(target.ok) if target.ok is not None else "Unit"
            err = self.mangle(target.err) if target.err is not None else "Unit"
            return f"Result{ok}{err}"
        return kind.value.capitalize()

    # Idiomatic spellings

    def idiomatic(self, ty: TypeDef) -> str:
        kind = ty.kind
        if ty.is_named:
            return self.named(ty).idiomatic
        if kind == TypeKind.PRIMITIVE:
            return RUST_PRIMITIVES[ty.primitive][0]
        if kind == TypeKind.STRING:
            return "String"
        if kind == TypeKind.LIST:
            return f"Vec<{self.idiomatic(ty.element)}>"
        if kind == TypeKind.OPTION:
            return f"Option<{self.idiomatic(ty.element)}>"
        if kind == TypeKind.RESULT:
            ok = self.idiomatic(ty.ok) if ty.ok is not None else "()"
            err = self.idiomatic(ty.err) if ty.err is not None else "()"
            return f"Result<{ok}, {err}>"
        raise ValueError(f"No idiomatic Rust spelling for {ty!r}")

    def idiomatic_param(self, ty: TypeDef) -> str:
        """Trait parameter spelling: borrowed where the boundary borrows."""
        target = ty.resolve_alias()
        if target.kind == TypeKind.STRING:
            return "&str"
        if _is_bytes(target):
            return "&[u8]"
        if target.kind == TypeKind.OPTION:
            inner = target.element.resolve_alias()
            if inner.kind == TypeKind.STRING:
                return "Option<&str>"
            if _is_bytes(inner):
                return "Option<&[u8]>"
        return self.idiomatic(ty)

    # Boundary spellings per position

    def field(self, ty: TypeDef) -> RustType:
        """Type as stored inside an ABI struct (also the by-value return form)."""
        cls = self.table.field(ty)
        target = ty.resolve_alias()
        idiomatic = self.idiomatic(ty)
        kind = target.kind

        if kind == TypeKind.PRIMITIVE:
            _, abi, c = RUST_PRIMITIVES[target.primitive]
            if target.primitive == Primitive.BOOL:
                return RustType(idiomatic, abi, c, AbiShape.BOOL, cls, "false")
            if target.primitive.is_float:
                return RustType(idiomatic, abi, c, AbiShape.FLOAT, cls, "0.0")
            if target.primitive == Primitive.CHAR:
                return RustType(idiomatic, abi, c, AbiShape.CHAR, cls, "0")
            return RustType(idiomatic, abi, c, AbiShape.SCALAR, cls, "0")

        if cls.kind == ReprKind.BYTE_BUFFER:
            return RustType(idiomatic, self.byte_buffer, self.byte_buffer, AbiShape.BUFFER, cls,
                            f"{self.byte_buffer}::null()")

        if kind == TypeKind.LIST:
            abi = self._list_struct(target, cls)
            return RustType(idiomatic, abi, abi, AbiShape.LIST, cls, f"{abi}::null()")

        if kind in (TypeKind.RECORD, TypeKind.VARIANT):
            abi = self.named(target).abi
            return RustType(idiomatic, abi, abi, AbiShape.STRUCT, cls, _ZEROED)

        if kind == TypeKind.ENUM:
            info = self.named(target)
            return RustType(idiomatic, info.abi, info.abi, AbiShape.ENUM, cls,
                            self.enum_invalid_constant(target))

        if kind == TypeKind.FLAGS:
            abi = self.named(target).abi
            return RustType(idiomatic, abi, abi, AbiShape.FLAGS, cls, "0")

        if kind == TypeKind.OPTION:
            if cls.representation.nullable:
                return self._nullable(idiomatic, self.field(target.element), cls)
            abi = self._option_struct(target, cls)
            return RustType(idiomatic, abi, abi, AbiShape.STRUCT, cls, _ZEROED)

        if kind == TypeKind.RESULT:
            abi = self._result_struct(target, cls)
            return RustType(idiomatic, abi, abi, AbiShape.STRUCT, cls, _ZEROED)

        raise ValueError(f"Cannot lower {ty!r}")

    def param(self, ty: TypeDef) -> RustType:
        """Type as received by a boundary wrapper."""
        cls = self.table.param(ty)
        target = ty.resolve_alias()
        kind = target.kind
        idiomatic = self.idiomatic_param(ty)

        if cls.kind in (ReprKind.CSTRING_REF, ReprKind.BYTE_SLICE):
            return RustType(idiomatic, self.byte_slice, self.byte_slice, AbiShape.SLICE, cls)

        if kind in (TypeKind.RECORD, TypeKind.VARIANT, TypeKind.RESULT):
            inner = self.field(ty)
            return RustType(idiomatic, f"*const {inner.abi}", c_pointer(inner.c, const=True),
                            AbiShape.CONST_POINTER, cls)

        if kind == TypeKind.OPTION and cls.representation.nullable:
            return self._nullable(idiomatic, self.param(target.element), cls)

        base = self.field(ty)
        return RustType(idiomatic, base.abi, base.c, base.shape, cls, base.sentinel)

    def ret(self, ty: TypeDef) -> RustType:
        """Type as returned by a boundary wrapper."""
        cls = self.table.ret(ty)
        target = ty.resolve_alias()
        base = self.field(ty)

        boxed = target.kind in (TypeKind.RECORD, TypeKind.VARIANT) or (
            target.kind == TypeKind.RESULT and cls.is_owned
        )
        if boxed:
            return RustType(base.idiomatic, f"*mut {base.abi}", c_pointer(base.c), AbiShape.POINTER,
                            cls, _NULL_MUT)
        return base

    def _nullable(self, idiomatic: str, inner: RustType, cls: Classification) -> RustType:
        """option<T> for a reference-like T: absent is a null reference."""
        if inner.shape in (AbiShape.BUFFER, AbiShape.LIST, AbiShape.SLICE, AbiShape.CONST_POINTER):
            return RustType(idiomatic, inner.abi, inner.c, inner.shape, cls, inner.sentinel)
        if inner.shape == AbiShape.STRUCT:
            return RustType(idiomatic, f"*mut {inner.abi}", c_pointer(inner.c), AbiShape.POINTER,
                            cls, _NULL_MUT)
        raise ValueError(f"option of {inner.abi} cannot be nullable")

    # Support structs

    def _register(self, kind: str, ty: TypeDef, cls: Classification) -> Tuple[str, bool]:
        fragment = self.mangle(ty)
        # Structurally equal shapes (through aliases) share one struct; distinct
        # shapes that mangle alike collide
        abi = self.naming.c_type_name(fragment, f"<{shape_key(ty)}>")
        if abi in self.support:
            return abi, False
        snake = self.naming.sanitizer.sanitize_name(fragment, NamingCase.SNAKE_CASE, escape=False)
        self.support[abi] = SupportStruct(kind=kind, abi=abi, snake=snake, type=ty, classification=cls)
        return abi, True

    def _list_struct(self, ty: TypeDef, cls: Classification) -> str:
        abi, created = self._register("list", ty, cls)
        if created:
            # Registered before the element is mapped so recursive lists terminate
            self.support[abi].members = [("ptr", self.field(ty.element))]
        return abi

    def _option_struct(self, ty: TypeDef, cls: Classification) -> str:
        abi, created = self._register("option", ty, cls)
        if created:
            value = self.field(ty.element)
            flag = RustType("bool", "bool", "bool", AbiShape.BOOL, self.table.field(_BOOL), "false")
            self.support[abi].members = [("has_value", flag), ("value", value)]
        return abi

    def _result_struct(self, ty: TypeDef, cls: Classification) -> str:
        abi, created = self._register("result", ty, cls)
        if created:
            flag = RustType("bool", "bool", "bool", AbiShape.BOOL, self.table.field(_BOOL), "false")
            members = [("is_ok", flag)]
            if ty.ok is not None:
                members.append(("ok", self.field(ty.ok)))
            if ty.err is not None:
                members.append(("err", self.field(ty.err)))
            self.support[abi].members = members
        return abi

    # Constants

    def enum_invalid_constant(self, ty: TypeDef) -> str:
        # '<invalid>' cleans to 'invalid'; a real case named 'invalid' collides
        return self.naming.constant_name(ty.name, "<invalid>")


def _is_bytes(ty: TypeDef) -> bool:
    if ty.kind != TypeKind.LIST or ty.length is not None:
        return False
    element = ty.element.resolve_alias()
    return element.kind == TypeKind.PRIMITIVE and element.primitive == Primitive.U8


_ZEROED = "unsafe { ::std::mem::zeroed() }"
_NULL_MUT = "::std::ptr::null_mut()"
_BOOL = TypeDef(TypeKind.PRIMITIVE, primitive=Primitive.BOOL)


def shape_key(ty: TypeDef) -> str:
    """Canonical rendering of an anonymous shape, aliases resolved and named types qualified."""
    target = ty.resolve_alias()
    kind = target.kind

    if target.is_named:
        return target.qualified_name
    if kind == TypeKind.PRIMITIVE:
        return target.primitive.value
    if kind == TypeKind.STRING:
        return "string"
    if kind == TypeKind.LIST:
        return f"list<{shape_key(target.element)}>"
    if kind == TypeKind.OPTION:
        return f"option<{shape_key(target.element)}>"
    if kind == TypeKind.RESULT:
        ok = shape_key(target.ok) if target.ok is not None else "_"
        err = shape_key(target.err) if target.err is not None else "_"
        return f"result<{ok}, {err}>"
    return kind.value
