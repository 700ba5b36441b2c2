"""
WIT source parser.

Turns WIT text into an unresolved syntax tree. Names are kept as written
(minus the ``%`` escape); :mod:`witffi.loader` resolves them into the
shared data model.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from lark import Lark, Token, Tree, UnexpectedCharacters, UnexpectedEOF, UnexpectedInput, UnexpectedToken

from .codegen.core.errors import LoadError
from .codegen.core.schema import SourceLocation
from .logging_config import get_logger

logger = get_logger(__name__)

_GRAMMAR_PATH = Path(__file__).with_name("wit.lark")
_GRAMMAR_SRC = _GRAMMAR_PATH.read_text()

_PARSER = Lark(
    _GRAMMAR_SRC,
    parser="lalr",
    propagate_positions=True,
    maybe_placeholders=False,
)


@dataclass
class TypeRef:
    """A type as written: ``list<u8>``, ``option<foo>``, ``bar``."""

    kind: str
    name: Optional[str] = None
    args: List[Optional["TypeRef"]] = field(default_factory=list)
    length: Optional[int] = None
    loc: Optional[SourceLocation] = None


@dataclass
class FieldDecl:
    name: str
    type: TypeRef
    doc: Optional[str] = None
    loc: Optional[SourceLocation] = None


@dataclass
class CaseDecl:
    name: str
    payload: Optional[TypeRef] = None
    doc: Optional[str] = None
    loc: Optional[SourceLocation] = None


@dataclass
class TypeDecl:
    """record, variant, enum, flags, type alias or resource."""

    kind: str
    name: str
    fields: List[FieldDecl] = field(default_factory=list)
    cases: List[CaseDecl] = field(default_factory=list)
    target: Optional[TypeRef] = None
    doc: Optional[str] = None
    loc: Optional[SourceLocation] = None


@dataclass
class ParamDecl:
    name: str
    type: TypeRef
    loc: Optional[SourceLocation] = None


@dataclass
class FuncDecl:
    name: str
    params: List[ParamDecl] = field(default_factory=list)
    result: Optional[TypeRef] = None
    doc: Optional[str] = None
    loc: Optional[SourceLocation] = None


@dataclass
class UsePath:
    """``iface`` or ``ns:pkg/iface@1.0.0``."""

    name: str
    package: Optional[str] = None
    version: Optional[str] = None
    loc: Optional[SourceLocation] = None

    def render(self) -> str:
        if self.package is None:
            return self.name
        text = f"{self.package}/{self.name}"
        if self.version:
            text += f"@{self.version}"
        return text


@dataclass
class UseDecl:
    path: UsePath
    names: List[Tuple[str, str]] = field(default_factory=list)  # (source, local)
    loc: Optional[SourceLocation] = None


@dataclass
class InterfaceDecl:
    name: str
    types: List[TypeDecl] = field(default_factory=list)
    functions: List[FuncDecl] = field(default_factory=list)
    uses: List[UseDecl] = field(default_factory=list)
    doc: Optional[str] = None
    loc: Optional[SourceLocation] = None


@dataclass
class ExternDecl:
    """One ``import`` or ``export`` line of a world."""

    direction: str
    kind: str  # "path", "func" or "interface"
    name: str
    path: Optional[UsePath] = None
    func: Optional[FuncDecl] = None
    interface: Optional[InterfaceDecl] = None
    loc: Optional[SourceLocation] = None


@dataclass
class WorldDecl:
    name: str
    externs: List[ExternDecl] = field(default_factory=list)
    types: List[TypeDecl] = field(default_factory=list)
    uses: List[UseDecl] = field(default_factory=list)
    includes: List[UsePath] = field(default_factory=list)
    doc: Optional[str] = None
    loc: Optional[SourceLocation] = None


@dataclass
class TopLevelUse:
    path: UsePath
    alias: str
    loc: Optional[SourceLocation] = None


@dataclass
class Document:
    """Everything declared in one ``.wit`` file."""

    path: Optional[str] = None
    package: Optional[str] = None
    version: Optional[str] = None
    package_loc: Optional[SourceLocation] = None
    interfaces: List[InterfaceDecl] = field(default_factory=list)
    worlds: List[WorldDecl] = field(default_factory=list)
    uses: List[TopLevelUse] = field(default_factory=list)


def parse_document(source: str, path: Optional[Union[str, Path]] = None) -> Document:
    """
    Parse WIT source text.

    Args:
        source: WIT text
        path: File the text came from, used in diagnostics

    Returns:
        Unresolved Document

    Raises:
        LoadError: On any syntax error, with the offending line and column
    """
    path_text = str(path) if path is not None else None

    try:
        tree = _PARSER.parse(source)
    except UnexpectedInput as exc:
        location = SourceLocation(path_text, exc.line, exc.column)
        raise LoadError(_describe(exc), path=path_text, location=location) from exc

    builder = _DocumentBuilder(path_text, _doc_comments(source))
    document = builder.build(tree)
    logger.debug(
        f"Parsed {path_text or '<input>'}: {len(document.interfaces)} interfaces, "
        f"{len(document.worlds)} worlds"
    )
    return document


def parse_file(path: Union[str, Path]) -> Document:
    """Read and parse one ``.wit`` file."""
    path = Path(path)
    try:
        source = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise LoadError(f"cannot read WIT file: {e}", path=str(path)) from e
    return parse_document(source, path)


# Diagnostics


def _describe(exc: UnexpectedInput) -> str:
    if isinstance(exc, UnexpectedCharacters):
        return f"unexpected character {exc.char!r}"
    if isinstance(exc, UnexpectedEOF):
        return "unexpected end of input"
    if isinstance(exc, UnexpectedToken):
        if exc.token.type == "$END":
            found = "end of input"
        else:
            found = repr(exc.token.value)
        expected = sorted({_terminal_label(name) for name in exc.expected})
        return f"unexpected {found}, expected one of: {', '.join(expected)}"
    return "syntax error"


def _terminal_label(name: str) -> str:
    try:
        terminal = _PARSER.get_terminal(name)
    except KeyError:
        return "end of input" if name == "$END" else name
    if terminal.pattern.type == "str":
        return repr(terminal.pattern.value)
    return name.lower()


# Doc comments


def _doc_comments(source: str) -> Dict[int, str]:
    """Map line number to ``///`` comment text for every doc-comment line."""
    docs = {}
    for number, line in enumerate(source.splitlines(), start=1):
        stripped = line.strip()
        if stripped.startswith("///") and not stripped.startswith("////"):
            text = stripped[3:]
            if text.startswith(" "):
                text = text[1:]
            docs[number] = text
    return docs


# Tree helpers


def _name(node: Union[Tree, Token]) -> str:
    if isinstance(node, Tree):
        data = node.data
        if isinstance(data, Token):
            return data.value
        return data
    if isinstance(node, Token):
        return node.type
    return str(node)


def _ident(token: Token) -> str:
    value = token.value
    return value[1:] if value.startswith("%") else value


def _ids(tree: Tree) -> List[Token]:
    return [c for c in tree.children if isinstance(c, Token) and c.type == "ID"]


def _subtrees(tree: Tree, kind: Optional[str] = None) -> List[Tree]:
    return [
        c for c in tree.children if isinstance(c, Tree) and (kind is None or _name(c) == kind)
    ]


def _first(tree: Tree, kind: str) -> Optional[Tree]:
    found = _subtrees(tree, kind)
    return found[0] if found else None


class _DocumentBuilder:
    """Walks the lark tree of one file and builds the declaration dataclasses."""

    _TYPEDEFS = {
        "record_item": "record",
        "variant_item": "variant",
        "enum_item": "enum",
        "flags_item": "flags",
        "type_alias": "alias",
        "resource_item": "resource",
    }

    def __init__(self, path: Optional[str], docs: Dict[int, str]):
        self.path = path
        self.docs = docs

    def build(self, tree: Tree) -> Document:
        document = Document(path=self.path)

        for child in _subtrees(tree):
            kind = _name(child)
            if kind == "package_decl":
                self._package(child, document)
            elif kind == "interface_item":
                document.interfaces.append(self._interface(child))
            elif kind == "world_item":
                document.worlds.append(self._world(child))
            elif kind == "toplevel_use":
                document.uses.append(self._toplevel_use(child))

        return document

    def _loc(self, node: Union[Tree, Token], fallback: Optional[SourceLocation] = None):
        if isinstance(node, Token):
            return SourceLocation(self.path, node.line, node.column)
        line = getattr(node.meta, "line", None)
        if line is None:
            return fallback
        return SourceLocation(self.path, line, node.meta.column)

    def _doc(self, loc: Optional[SourceLocation]) -> Optional[str]:
        if loc is None:
            return None
        lines = []
        number = loc.line - 1
        while number in self.docs:
            lines.append(self.docs[number])
            number -= 1
        if not lines:
            return None
        return "\n".join(reversed(lines))

    # Package and top level

    def _package(self, tree: Tree, document: Document):
        name_tree = _first(tree, "package_name")
        parts = [_ident(t) for t in _ids(name_tree)]
        document.package = f"{parts[0]}:{'/'.join(parts[1:])}"
        version = _first(name_tree, "version")
        if version is not None:
            document.version = version.children[0].value
        document.package_loc = self._loc(tree)

    def _toplevel_use(self, tree: Tree) -> TopLevelUse:
        path = self._use_path(_first(tree, "use_path"))
        ids = _ids(tree)
        alias = _ident(ids[0]) if ids else path.name
        return TopLevelUse(path=path, alias=alias, loc=self._loc(tree))

    def _use_path(self, tree: Tree) -> UsePath:
        ids = [_ident(t) for t in _ids(tree)]
        loc = self._loc(tree)
        if len(ids) == 1:
            return UsePath(name=ids[0], loc=loc)

        version = _first(tree, "version")
        return UsePath(
            name=ids[2],
            package=f"{ids[0]}:{ids[1]}",
            version=version.children[0].value if version is not None else None,
            loc=loc,
        )

    def _use(self, tree: Tree) -> UseDecl:
        names = []
        for item in _subtrees(tree, "use_name"):
            ids = [_ident(t) for t in _ids(item)]
            names.append((ids[0], ids[-1]))
        return UseDecl(
            path=self._use_path(_first(tree, "use_path")),
            names=names,
            loc=self._loc(tree),
        )

    # Interfaces

    def _interface(self, tree: Tree, name: Optional[str] = None) -> InterfaceDecl:
        loc = self._loc(tree)
        ids = _ids(tree)
        interface = InterfaceDecl(
            name=name if name is not None else _ident(ids[0]),
            doc=self._doc(loc),
            loc=loc,
        )

        for member in _subtrees(tree):
            kind = _name(member)
            if kind in self._TYPEDEFS:
                interface.types.append(self._typedef(member))
            elif kind == "use_item":
                interface.uses.append(self._use(member))
            elif kind == "func_item":
                func_name = _ident(_ids(member)[0])
                interface.functions.append(
                    self._func(_first(member, "func_type"), func_name, self._loc(member))
                )

        return interface

    def _func(self, tree: Tree, name: str, loc: Optional[SourceLocation]) -> FuncDecl:
        params = [
            ParamDecl(
                name=_ident(_ids(p)[0]),
                type=self._type(_subtrees(p)[0], self._loc(p)),
                loc=self._loc(p),
            )
            for p in _subtrees(tree, "param")
        ]
        result_tree = _first(tree, "result_list")
        result = None
        if result_tree is not None:
            result = self._type(_subtrees(result_tree)[0], self._loc(result_tree, loc))
        return FuncDecl(name=name, params=params, result=result, doc=self._doc(loc), loc=loc)

    # Type definitions

    def _typedef(self, tree: Tree) -> TypeDecl:
        kind = self._TYPEDEFS[_name(tree)]
        loc = self._loc(tree)
        decl = TypeDecl(kind=kind, name=_ident(_ids(tree)[0]), doc=self._doc(loc), loc=loc)

        if kind == "record":
            for item in _subtrees(tree, "field"):
                item_loc = self._loc(item)
                decl.fields.append(
                    FieldDecl(
                        name=_ident(_ids(item)[0]),
                        type=self._type(_subtrees(item)[0], item_loc),
                        doc=self._doc(item_loc),
                        loc=item_loc,
                    )
                )
        elif kind == "variant":
            for item in _subtrees(tree, "variant_case"):
                item_loc = self._loc(item)
                payload = _subtrees(item)
                decl.cases.append(
                    CaseDecl(
                        name=_ident(_ids(item)[0]),
                        payload=self._type(payload[0], item_loc) if payload else None,
                        doc=self._doc(item_loc),
                        loc=item_loc,
                    )
                )
        elif kind in ("enum", "flags"):
            member_kind = "enum_case" if kind == "enum" else "flag"
            for item in _subtrees(tree, member_kind):
                item_loc = self._loc(item)
                decl.cases.append(
                    CaseDecl(name=_ident(_ids(item)[0]), doc=self._doc(item_loc), loc=item_loc)
                )
        elif kind == "alias":
            decl.target = self._type(_subtrees(tree)[0], loc)

        return decl

    def _type(self, tree: Tree, fallback: Optional[SourceLocation] = None) -> TypeRef:
        kind = _name(tree)
        loc = self._loc(tree, fallback)
        args = [self._type(t, loc) for t in _subtrees(tree) if _name(t) not in ("prim", "result_arm")]

        if kind == "prim_type":
            return TypeRef("prim", name=tree.children[0].children[0].value, loc=loc)
        if kind == "string_type":
            return TypeRef("string", loc=loc)
        if kind in ("list_type", "fixed_list_type"):
            ints = [c for c in tree.children if isinstance(c, Token) and c.type == "INT"]
            length = int(ints[0].value) if ints else None
            return TypeRef("list", args=args, length=length, loc=loc)
        if kind == "option_type":
            return TypeRef("option", args=args, loc=loc)
        if kind == "result_type":
            arm = _first(tree, "result_arm")
            arm_types = _subtrees(arm)
            ok = self._type(arm_types[0], loc) if arm_types else None
            return TypeRef("result", args=[ok, args[0]], loc=loc)
        if kind == "result_ok_type":
            return TypeRef("result", args=[args[0], None], loc=loc)
        if kind == "result_empty_type":
            return TypeRef("result", args=[None, None], loc=loc)
        if kind == "tuple_type":
            return TypeRef("tuple", args=args, loc=loc)
        if kind in ("borrow_type", "own_type"):
            return TypeRef(kind[: -len("_type")], name=_ident(_ids(tree)[0]), loc=loc)
        if kind in ("future_type", "stream_type"):
            return TypeRef(kind[: -len("_type")], args=args, loc=loc)
        if kind == "named_type":
            return TypeRef("named", name=_ident(_ids(tree)[0]), loc=loc)

        raise LoadError(f"unsupported type syntax '{kind}'", path=self.path, location=loc)

    # Worlds

    def _world(self, tree: Tree) -> WorldDecl:
        loc = self._loc(tree)
        world = WorldDecl(name=_ident(_ids(tree)[0]), doc=self._doc(loc), loc=loc)

        for member in _subtrees(tree):
            kind = _name(member)
            if kind in ("export_item", "import_item"):
                direction = "export" if kind == "export_item" else "import"
                world.externs.append(self._extern(_subtrees(member)[0], direction))
            elif kind == "include_item":
                world.includes.append(self._use_path(_first(member, "use_path")))
            elif kind == "use_item":
                world.uses.append(self._use(member))
            elif kind in self._TYPEDEFS:
                world.types.append(self._typedef(member))

        return world

    def _extern(self, tree: Tree, direction: str) -> ExternDecl:
        kind = _name(tree)
        loc = self._loc(tree)

        if kind == "extern_path":
            path = self._use_path(_first(tree, "use_path"))
            return ExternDecl(direction, "path", path.name, path=path, loc=loc)

        name = _ident(_ids(tree)[0])
        if kind == "extern_func":
            func = self._func(_first(tree, "func_type"), name, loc)
            return ExternDecl(direction, "func", name, func=func, loc=loc)

        interface = self._interface(tree, name=name)
        return ExternDecl(direction, "interface", name, interface=interface, loc=loc)
