"""
Rust conversion expressions between idiomatic and repr(C) values.

Every helper takes a *place* expression (something that can appear on the
left of ``.field``) and returns a Rust expression. ``from_abi`` expressions
use ``?`` and therefore only appear inside functions or closures returning
``Result<_, String>``.
"""

from typing import List

from ...core.schema import Primitive, TypeDef, TypeKind
from .types import AbiShape, RustTypeMapper, _is_bytes


def _deref(binding: str) -> str:
    return f"(*{binding})"


class Marshaller:
    """Builds conversion expressions for one generation run."""

    def __init__(self, mapper: RustTypeMapper):
        self.mapper = mapper

    @property
    def _buffer(self) -> str:
        return self.mapper.byte_buffer

    # Idiomatic -> ABI

    def into_abi(self, place: str, ty: TypeDef, depth: int = 0) -> str:
        """Expression converting an idiomatic place into its field-form ABI value."""
        target = ty.resolve_alias()
        kind = target.kind
        binding = f"v{depth}"

        if kind == TypeKind.PRIMITIVE:
            if target.primitive == Primitive.CHAR:
                return f"{place} as u32"
            return place

        if kind == TypeKind.STRING:
            return f"{self._buffer}::from_string({place}.clone())"

        if _is_bytes(target):
            return f"{self._buffer}::from_vec({place}.clone())"

        if kind == TypeKind.LIST:
            abi = self.mapper.field(target).abi
            element = self.into_abi(_deref(binding), target.element, depth + 1)
            return f"{abi}::from_vec({place}.iter().map(|{binding}| {element}).collect())"

        if kind in (TypeKind.RECORD, TypeKind.VARIANT, TypeKind.ENUM, TypeKind.FLAGS):
            return f"{self.mapper.named(target).into_fn}(&{place})"

        if kind == TypeKind.OPTION:
            rust_type = self.mapper.field(target)
            inner = self.into_abi(_deref(binding), target.element, depth + 1)
            if rust_type.shape == AbiShape.POINTER:
                some = f"Box::into_raw(Box::new({inner}))"
                none = rust_type.sentinel
            elif rust_type.shape in (AbiShape.BUFFER, AbiShape.LIST):
                some = inner
                none = rust_type.sentinel
            else:
                abi = rust_type.abi
                some = f"{abi} {{ has_value: true, value: {inner} }}"
                none = f"{abi} {{ has_value: false, value: unsafe {{ ::std::mem::zeroed() }} }}"
            return f"match &{place} {{ Some({binding}) => {some}, None => {none} }}"

        if kind == TypeKind.RESULT:
            abi = self.mapper.field(target).abi
            zeroed = "unsafe { ::std::mem::zeroed() }"
            ok_fields = ["is_ok: true"]
            err_fields = ["is_ok: false"]
            if target.ok is not None:
                ok_fields.append(f"ok: {self.into_abi(_deref(binding), target.ok, depth + 1)}")
                err_fields.append(f"ok: {zeroed}")
            if target.err is not None:
                ok_fields.append(f"err: {zeroed}")
                err_fields.append(f"err: {self.into_abi(_deref(binding), target.err, depth + 1)}")
            ok_pattern = f"Ok({binding})" if target.ok is not None else "Ok(_)"
            err_pattern = f"Err({binding})" if target.err is not None else "Err(_)"
            return (
                f"match &{place} {{ "
                f"{ok_pattern} => {abi} {{ {', '.join(ok_fields)} }}, "
                f"{err_pattern} => {abi} {{ {', '.join(err_fields)} }} }}"
            )

        raise ValueError(f"Cannot convert {ty!r} to the ABI")

    def return_into_abi(self, place: str, ty: TypeDef) -> str:
        """Expression producing the wrapper's return value from an idiomatic place."""
        rust_type = self.mapper.ret(ty)
        value = self.into_abi(place, ty)
        target = ty.resolve_alias()
        if rust_type.shape == AbiShape.POINTER and target.kind != TypeKind.OPTION:
            return f"Box::into_raw(Box::new({value}))"
        return value

    # ABI -> idiomatic

    def from_abi(self, place: str, ty: TypeDef, depth: int = 0) -> str:
        """Expression copying a field-form ABI place into an idiomatic value."""
        target = ty.resolve_alias()
        kind = target.kind
        binding = f"v{depth}"

        if kind == TypeKind.PRIMITIVE:
            if target.primitive == Primitive.CHAR:
                return (
                    f"::std::char::from_u32({place})"
                    f".ok_or_else(|| format!(\"invalid char scalar {{}}\", {place}))?"
                )
            return place

        if kind == TypeKind.STRING:
            return f"{place}.to_utf8_string()?"

        if _is_bytes(target):
            return f"{place}.as_bytes().to_vec()"

        if kind == TypeKind.LIST:
            element = self.from_abi(_deref(binding), target.element, depth + 1)
            return (
                f"{place}.as_slice().iter().map(|{binding}| Ok({element}))"
                f".collect::<Result<Vec<_>, String>>()?"
            )

        if kind in (TypeKind.RECORD, TypeKind.VARIANT, TypeKind.ENUM, TypeKind.FLAGS):
            return f"{self.mapper.named(target).from_fn}(&{place})?"

        if kind == TypeKind.OPTION:
            rust_type = self.mapper.field(target)
            if rust_type.shape == AbiShape.POINTER:
                inner = self.from_abi(_deref(place), target.element, depth + 1)
                return f"if {place}.is_null() {{ None }} else {{ Some({inner}) }}"
            if rust_type.shape in (AbiShape.BUFFER, AbiShape.LIST):
                inner = self.from_abi(place, target.element, depth + 1)
                return f"if {place}.ptr.is_null() {{ None }} else {{ Some({inner}) }}"
            inner = self.from_abi(f"{place}.value", target.element, depth + 1)
            return f"if {place}.has_value {{ Some({inner}) }} else {{ None }}"

        if kind == TypeKind.RESULT:
            ok = self.from_abi(f"{place}.ok", target.ok, depth + 1) if target.ok is not None else "()"
            err = self.from_abi(f"{place}.err", target.err, depth + 1) if target.err is not None else "()"
            return f"if {place}.is_ok {{ Ok({ok}) }} else {{ Err({err}) }}"

        raise ValueError(f"Cannot convert {ty!r} from the ABI")

    def param_from_abi(self, name: str, source_name: str, ty: TypeDef) -> List[str]:
        """Statements rebinding a wrapper parameter to its idiomatic value."""
        rust_type = self.mapper.param(ty)
        target = ty.resolve_alias()

        if rust_type.shape == AbiShape.SLICE and target.kind != TypeKind.OPTION:
            return [f"let {name} = {self._slice(name, target)};"]

        if rust_type.shape == AbiShape.CONST_POINTER and target.kind != TypeKind.OPTION:
            value = self.from_abi(_deref(name), ty)
            return [
                f"let {name} = __witffi_deref({name}, \"{source_name}\")?;",
                f"let {name} = {value};",
            ]

        if target.kind == TypeKind.OPTION and rust_type.classification.representation.nullable:
            inner = target.element.resolve_alias()
            if rust_type.shape == AbiShape.SLICE:
                some = self._slice(name, inner)
                return [f"let {name} = if {name}.ptr.is_null() {{ None }} else {{ Some({some}) }};"]
            if rust_type.shape == AbiShape.CONST_POINTER:
                some = self.from_abi(_deref(name), target.element)
                return [f"let {name} = if {name}.is_null() {{ None }} else {{ Some({some}) }};"]

        return [f"let {name} = {self.from_abi(name, ty)};"]

    @staticmethod
    def _slice(name: str, target: TypeDef) -> str:
        if target.kind == TypeKind.STRING:
            return f"{name}.as_str()?"
        return f"{name}.as_bytes()"

    # Release

    def release(self, place: str, ty: TypeDef) -> List[str]:
        """Statements releasing an owned field-form place, empty for values."""
        if not self.mapper.field(ty).needs_release:
            return []
        return [f"{place}.release();"]
