"""
Type classification for C ABI lowering.

Decides, for every type in a world and every position it appears in, who
owns the value at the boundary and how it is represented there. Generators
consume the resulting table; they never re-derive ownership themselves.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

from .errors import UnsupportedTypeShape
from .schema import Primitive, TypeDef, TypeKind, World
from ...logging_config import get_logger

logger = get_logger(__name__)


class Ownership(Enum):
    """Who is responsible for releasing a value crossing the boundary."""

    VALUE = "value"        # plain copy, nothing to release
    BORROWED = "borrowed"  # caller keeps ownership for the duration of the call
    OWNED = "owned"        # callee allocates, caller must release


class ReprKind(Enum):
    """How a value is laid out at the boundary."""

    SCALAR = "scalar"
    CSTRING_REF = "cstring_ref"
    BYTE_SLICE = "byte_slice"
    BYTE_BUFFER = "byte_buffer"
    LIST = "list"
    RECORD_REF = "record_ref"
    VARIANT_REF = "variant_ref"
    ENUM_REF = "enum_ref"
    FLAGS_REF = "flags_ref"
    OPTION = "option"
    RESULT = "result"


class Position(Enum):
    PARAM = "param"
    FIELD = "field"
    RETURN = "return"


@dataclass(frozen=True)
class Representation:
    """ABI shape of a classified type."""

    kind: ReprKind
    inner: Optional["Classification"] = None  # list element / option payload
    ok: Optional["Classification"] = None
    err: Optional["Classification"] = None
    nullable: bool = False  # option lowered as a null reference, no flag
    width: int = 0          # scalar / enum / flags width in bits


@dataclass(frozen=True)
class Classification:
    ownership: Ownership
    representation: Representation

    @property
    def kind(self) -> ReprKind:
        return self.representation.kind

    @property
    def is_owned(self) -> bool:
        return self.ownership == Ownership.OWNED

    @property
    def is_value(self) -> bool:
        return self.ownership == Ownership.VALUE


def _rank(ownership: Ownership) -> int:
    return {Ownership.VALUE: 0, Ownership.BORROWED: 1, Ownership.OWNED: 2}[ownership]


def _strongest(classes) -> Ownership:
    result = Ownership.VALUE
    for cls in classes:
        if _rank(cls.ownership) > _rank(result):
            result = cls.ownership
    return result


def flags_width(count: int) -> Optional[int]:
    """Smallest backing width for a flags type, or None if nothing fits."""
    for width in (8, 16, 32, 64):
        if count <= width:
            return width
    return None


class TypeClassifier:
    """
    Derives and caches classifications per (type, position).

    A single classifier is used for one generation run; results are pure
    functions of the type graph, so repeated queries return identical
    objects.
    """

    def __init__(self):
        self._cache: Dict[Tuple[int, Position], Classification] = {}
        self._keep: Dict[int, TypeDef] = {}
        # Named types currently being classified, with the list depth at entry
        self._in_progress: List[Tuple[TypeDef, int]] = []
        self._list_depth = 0

    def classify(self, ty: TypeDef, position: Position = Position.FIELD) -> Classification:
        """Classify ``ty`` as it appears in ``position``."""
        if position == Position.RETURN:
            position = Position.FIELD

        key = (id(ty), position)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        for entry, depth in self._in_progress:
            if entry is ty:
                if self._list_depth > depth:
                    # Recursion through a heap array: the element is owned
                    return Classification(Ownership.OWNED, self._named_repr(ty))
                raise UnsupportedTypeShape(
                    ty.qualified_name, "self-referential type without list indirection"
                )

        if ty.is_named:
            self._in_progress.append((ty, self._list_depth))
        try:
            result = self._classify(ty, position)
        finally:
            if ty.is_named:
                self._in_progress.pop()

        if not self._in_progress or ty.is_named:
            self._cache[key] = result
            self._keep[id(ty)] = ty
        return result

    def _named_repr(self, ty: TypeDef) -> Representation:
        target = ty.resolve_alias()
        if target.kind == TypeKind.VARIANT:
            return Representation(ReprKind.VARIANT_REF)
        return Representation(ReprKind.RECORD_REF)

    def _classify(self, ty: TypeDef, position: Position) -> Classification:
        kind = ty.kind

        if kind == TypeKind.ALIAS:
            if ty.element is None:
                raise UnsupportedTypeShape(ty.qualified_name, "alias without a target")
            return self.classify(ty.element, position)

        if kind == TypeKind.PRIMITIVE:
            return Classification(
                Ownership.VALUE, Representation(ReprKind.SCALAR, width=ty.primitive.width)
            )

        if kind == TypeKind.STRING:
            if position == Position.PARAM:
                return Classification(Ownership.BORROWED, Representation(ReprKind.CSTRING_REF))
            return Classification(Ownership.OWNED, Representation(ReprKind.BYTE_BUFFER))

        if kind == TypeKind.LIST:
            return self._classify_list(ty, position)

        if kind == TypeKind.OPTION:
            return self._classify_option(ty, position)

        if kind == TypeKind.RESULT:
            ok = self.classify(ty.ok, Position.FIELD) if ty.ok is not None else None
            err = self.classify(ty.err, Position.FIELD) if ty.err is not None else None
            ownership = _strongest(arm for arm in (ok, err) if arm is not None)
            return Classification(ownership, Representation(ReprKind.RESULT, ok=ok, err=err))

        if kind == TypeKind.RECORD:
            members = [self.classify(f.type, Position.FIELD) for f in ty.fields]
            return Classification(_strongest(members), Representation(ReprKind.RECORD_REF))

        if kind == TypeKind.VARIANT:
            members = [
                self.classify(case.payload, Position.FIELD)
                for case in ty.cases
                if case.payload is not None
            ]
            return Classification(_strongest(members), Representation(ReprKind.VARIANT_REF))

        if kind == TypeKind.ENUM:
            return Classification(Ownership.VALUE, Representation(ReprKind.ENUM_REF, width=32))

        if kind == TypeKind.FLAGS:
            width = flags_width(len(ty.flags))
            if width is None:
                raise UnsupportedTypeShape(
                    ty.qualified_name,
                    f"flags with {len(ty.flags)} members exceed the widest backing integer (64 bits)",
                )
            return Classification(Ownership.VALUE, Representation(ReprKind.FLAGS_REF, width=width))

        raise UnsupportedTypeShape(ty.qualified_name, _UNSUPPORTED_REASONS[kind])

    def _classify_list(self, ty: TypeDef, position: Position) -> Classification:
        if ty.length is not None:
            raise UnsupportedTypeShape(ty.qualified_name, "fixed-length lists are not supported")

        element = ty.element
        target = element.resolve_alias()
        if target.kind == TypeKind.PRIMITIVE and target.primitive == Primitive.U8:
            if position == Position.PARAM:
                return Classification(Ownership.BORROWED, Representation(ReprKind.BYTE_SLICE))
            return Classification(Ownership.OWNED, Representation(ReprKind.BYTE_BUFFER))

        self._list_depth += 1
        try:
            inner = self.classify(element, Position.FIELD)
        finally:
            self._list_depth -= 1

        ownership = Ownership.BORROWED if position == Position.PARAM else Ownership.OWNED
        return Classification(ownership, Representation(ReprKind.LIST, inner=inner))

    def _classify_option(self, ty: TypeDef, position: Position) -> Classification:
        inner = self.classify(ty.element, position)

        if inner.is_value:
            return Classification(
                Ownership.VALUE, Representation(ReprKind.OPTION, inner=inner, nullable=False)
            )

        if inner.kind == ReprKind.OPTION:
            # option<option<T>> with a nullable inner has no spare null value
            raise UnsupportedTypeShape(
                ty.qualified_name, "nested option of a reference type cannot be represented"
            )

        return Classification(
            inner.ownership, Representation(ReprKind.OPTION, inner=inner, nullable=True)
        )


_UNSUPPORTED_REASONS = {
    TypeKind.TUPLE: "tuples are not supported",
    TypeKind.HANDLE: "resource handles are not supported",
    TypeKind.FUTURE: "futures are not supported",
    TypeKind.STREAM: "streams are not supported",
    TypeKind.GENERIC: "open generic parameters are not supported",
}


@dataclass
class ClassificationTable:
    """Classifications for one world, queried by the generator."""

    classifier: TypeClassifier

    def param(self, ty: TypeDef) -> Classification:
        return self.classifier.classify(ty, Position.PARAM)

    def field(self, ty: TypeDef) -> Classification:
        return self.classifier.classify(ty, Position.FIELD)

    def ret(self, ty: TypeDef) -> Classification:
        return self.classifier.classify(ty, Position.RETURN)


def classify_world(world: World, classifier: Optional[TypeClassifier] = None) -> ClassificationTable:
    """
    Classify every exported type, parameter and result of a world.

    Raises:
        UnsupportedTypeShape: for the first type that cannot be lowered
    """
    classifier = classifier or TypeClassifier()

    for ty in world.declared_types():
        classifier.classify(ty, Position.FIELD)

    for func in world.exported_functions():
        for param in func.params:
            classifier.classify(param.type, Position.PARAM)
        if func.result is not None:
            classifier.classify(func.result, Position.RETURN)

    logger.debug(f"Classified {len(classifier._cache)} types for world {world.name}")
    return ClassificationTable(classifier)
