"""
WIT loader.

Resolves parsed documents into the data model consumed by the generators.
Resolution runs in phases so declaration order inside a package never
matters: every named type is declared first, ``use`` statements are bound
next, and type bodies and function signatures are filled in last.
"""

from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from .codegen.core.errors import LoadError
from .codegen.core.schema import (
    PRIMITIVE_ALIASES,
    Case,
    Field,
    Function,
    Interface,
    Package,
    Param,
    Primitive,
    Resolve,
    TypeDef,
    TypeKind,
    World,
    list_of,
    option_of,
    primitive,
    result_of,
    string_type,
)
from .logging_config import get_logger
from .parser import (
    Document,
    FuncDecl,
    InterfaceDecl,
    TypeDecl,
    TypeRef,
    UseDecl,
    UsePath,
    parse_document,
    parse_file,
)

logger = get_logger(__name__)

_DECL_KINDS = {
    "record": TypeKind.RECORD,
    "variant": TypeKind.VARIANT,
    "enum": TypeKind.ENUM,
    "flags": TypeKind.FLAGS,
    "alias": TypeKind.ALIAS,
    "resource": TypeKind.HANDLE,
}


def load_wit(path: Union[str, Path]) -> Tuple[Resolve, World]:
    """
    Load a ``.wit`` file, or a directory of them forming one package.

    Args:
        path: File or directory

    Returns:
        The resolved packages and the single world they declare

    Raises:
        LoadError: If the path is missing, a file does not parse, a name
            does not resolve, or the package does not declare exactly one
            world
    """
    path = Path(path)

    if path.is_dir():
        files = sorted(path.glob("*.wit"))
        if not files:
            raise LoadError("no .wit files found in directory", path=str(path))
        documents = [parse_file(f) for f in files]
    elif path.is_file():
        documents = [parse_file(path)]
    else:
        raise LoadError("WIT path does not exist", path=str(path))

    return _Resolver(documents, str(path)).resolve()


def load_wit_text(text: str, path: Optional[str] = None) -> Tuple[Resolve, World]:
    """Load WIT source held in memory."""
    return _Resolver([parse_document(text, path)], path).resolve()


class _Scope:
    """Names visible inside one interface or world."""

    def __init__(self, owner: str, uses: List[UseDecl]):
        self.owner = owner
        self.uses = uses
        self.types: Dict[str, TypeDef] = {}
        self.bound = False

    def declare(self, ty: TypeDef, location):
        existing = self.types.get(ty.name)
        if existing is not None:
            raise LoadError(
                f"'{ty.name}' is defined more than once in '{self.owner}'",
                location=location,
            )
        self.types[ty.name] = ty


class _Resolver:
    def __init__(self, documents: List[Document], path: Optional[str]):
        self.documents = documents
        self.path = path
        self.package_id: Optional[str] = None
        self.package: Optional[Package] = None

        self.interfaces: Dict[str, Tuple[InterfaceDecl, Interface, _Scope]] = {}
        self.interface_aliases: Dict[str, str] = {}
        self.pending: List[Tuple[TypeDecl, TypeDef, _Scope]] = []

    def resolve(self) -> Tuple[Resolve, World]:
        self._declare_package()

        for document in self.documents:
            for decl in document.interfaces:
                self._declare_interface(decl)
        for document in self.documents:
            for use in document.uses:
                self._declare_interface_alias(use.path, use.alias)

        worlds = [w for document in self.documents for w in document.worlds]
        if not worlds:
            raise LoadError("no world found", path=self.path)
        if len(worlds) > 1:
            names = ", ".join(w.name for w in worlds)
            raise LoadError(
                f"expected exactly one world, found {len(worlds)} ({names})",
                path=self.path,
            )

        for _, _, scope in self.interfaces.values():
            self._bind_uses(scope, [])

        world = self._build_world(worlds[0])

        for decl, interface, scope in self.interfaces.values():
            for func_decl in decl.functions:
                interface.functions.append(self._function(func_decl, scope, interface.name))

        for decl, ty, scope in self.pending:
            self._fill(decl, ty, scope)
        self._check_alias_cycles()

        resolve = Resolve(packages={self.package.name: self.package})
        logger.info(
            f"Loaded world '{world.name}': {len(world.exports)} exported interfaces, "
            f"{len(world.exported_functions())} functions"
        )
        return resolve, world

    # Phase 1: declarations

    def _declare_package(self):
        declared = {}
        for document in self.documents:
            if document.package is not None:
                key = document.package
                if document.version:
                    key += f"@{document.version}"
                declared.setdefault(key, document)

        if len(declared) > 1:
            names = ", ".join(sorted(declared))
            raise LoadError(
                f"files declare different packages ({names}); dependency packages are not supported",
                path=self.path,
            )

        if declared:
            name, document = next(iter(declared.items()))
            self.package_id = document.package
        else:
            name = ""
        self.package = Package(name=name)

    def _owner(self, name: str) -> str:
        if self.package_id:
            return f"{self.package_id}/{name}"
        return name

    def _declare_interface(self, decl: InterfaceDecl) -> Interface:
        if decl.name in self.interfaces:
            raise LoadError(f"interface '{decl.name}' is defined more than once", location=decl.loc)

        interface = Interface(
            name=decl.name,
            package=self.package_id,
            description=decl.doc,
            location=decl.loc,
        )
        scope = _Scope(interface.qualified_name, decl.uses)
        for type_decl in decl.types:
            interface.types.append(self._declare_type(type_decl, scope))

        self.interfaces[decl.name] = (decl, interface, scope)
        self.package.interfaces[decl.name] = interface
        return interface

    def _declare_type(self, decl: TypeDecl, scope: _Scope) -> TypeDef:
        ty = TypeDef(
            _DECL_KINDS[decl.kind],
            name=decl.name,
            owner=scope.owner,
            description=decl.doc,
            location=decl.loc,
        )
        if decl.kind == "enum":
            ty.cases = [Case(c.name, description=c.doc) for c in decl.cases]
            self._check_unique(ty, [c.name for c in decl.cases], "case")
        elif decl.kind == "flags":
            ty.flags = [c.name for c in decl.cases]
            self._check_unique(ty, ty.flags, "flag")

        scope.declare(ty, decl.loc)
        self.pending.append((decl, ty, scope))
        return ty

    def _check_unique(self, ty: TypeDef, names: List[str], what: str):
        seen = set()
        for name in names:
            if name in seen:
                raise LoadError(
                    f"{what} '{name}' appears more than once in '{ty.qualified_name}'",
                    location=ty.location,
                )
            seen.add(name)

    def _declare_interface_alias(self, path: UsePath, alias: str):
        target = self._find_interface(path)
        if alias != target.name:
            self.interface_aliases[alias] = target.name

    # Phase 2: use statements

    def _find_interface(self, path: UsePath) -> Interface:
        if path.package is not None and path.package != self.package_id:
            raise LoadError(
                f"interface '{path.render()}' belongs to another package; "
                "dependency packages are not supported",
                location=path.loc,
            )

        name = self.interface_aliases.get(path.name, path.name)
        if name not in self.interfaces:
            raise LoadError(f"unknown interface '{path.render()}'", location=path.loc)
        return self.interfaces[name][1]

    def _bind_uses(self, scope: _Scope, stack: List[str]):
        if scope.bound:
            return
        if scope.owner in stack:
            chain = " -> ".join(stack + [scope.owner])
            raise LoadError(f"cyclic 'use' between interfaces: {chain}", path=self.path)

        for use in scope.uses:
            target = self._find_interface(use.path)
            target_scope = self.interfaces[target.name][2]
            self._bind_uses(target_scope, stack + [scope.owner])

            for source, local in use.names:
                ty = target_scope.types.get(source)
                if ty is None:
                    raise LoadError(
                        f"interface '{target.name}' has no type named '{source}'",
                        location=use.loc,
                    )
                if scope.types.get(local) is not None and scope.types[local] is not ty:
                    raise LoadError(
                        f"'{local}' is defined more than once in '{scope.owner}'",
                        location=use.loc,
                    )
                scope.types[local] = ty

        scope.bound = True

    # Phase 3: bodies

    def _fill(self, decl: TypeDecl, ty: TypeDef, scope: _Scope):
        if decl.kind == "record":
            self._check_unique(ty, [f.name for f in decl.fields], "field")
            ty.fields = [
                Field(f.name, self._type(f.type, scope), description=f.doc)
                for f in decl.fields
            ]
        elif decl.kind == "variant":
            self._check_unique(ty, [c.name for c in decl.cases], "case")
            ty.cases = [
                Case(
                    c.name,
                    payload=self._type(c.payload, scope) if c.payload is not None else None,
                    description=c.doc,
                )
                for c in decl.cases
            ]
        elif decl.kind == "alias":
            ty.element = self._type(decl.target, scope)

    def _function(self, decl: FuncDecl, scope: _Scope, interface: Optional[str]) -> Function:
        seen = set()
        params = []
        for param in decl.params:
            if param.name in seen:
                raise LoadError(
                    f"parameter '{param.name}' appears more than once in '{decl.name}'",
                    location=param.loc,
                )
            seen.add(param.name)
            params.append(Param(param.name, self._type(param.type, scope)))

        return Function(
            name=decl.name,
            params=params,
            result=self._type(decl.result, scope) if decl.result is not None else None,
            interface=interface,
            description=decl.doc,
            location=decl.loc,
        )

    def _type(self, ref: TypeRef, scope: _Scope) -> TypeDef:
        kind = ref.kind

        if kind == "prim":
            if ref.name in PRIMITIVE_ALIASES:
                return primitive(PRIMITIVE_ALIASES[ref.name])
            return primitive(Primitive(ref.name))
        if kind == "string":
            return string_type()
        if kind == "list":
            ty = list_of(self._type(ref.args[0], scope))
            ty.length = ref.length
            return ty
        if kind == "option":
            return option_of(self._type(ref.args[0], scope))
        if kind == "result":
            ok, err = ref.args
            return result_of(
                self._type(ok, scope) if ok is not None else None,
                self._type(err, scope) if err is not None else None,
            )
        if kind == "tuple":
            return TypeDef(TypeKind.TUPLE, items=[self._type(a, scope) for a in ref.args])
        if kind in ("own", "borrow"):
            target = self._lookup(ref, scope)
            if target.resolve_alias().kind != TypeKind.HANDLE:
                raise LoadError(f"'{ref.name}' is not a resource", location=ref.loc)
            return TypeDef(TypeKind.HANDLE, element=target)
        if kind in ("future", "stream"):
            element = self._type(ref.args[0], scope) if ref.args else None
            return TypeDef(TypeKind(kind), element=element)
        if kind == "named":
            return self._lookup(ref, scope)

        raise LoadError(f"unsupported type '{kind}'", location=ref.loc)

    def _lookup(self, ref: TypeRef, scope: _Scope) -> TypeDef:
        ty = scope.types.get(ref.name)
        if ty is None:
            raise LoadError(f"unknown type '{ref.name}' in '{scope.owner}'", location=ref.loc)
        return ty

    def _check_alias_cycles(self):
        for _, ty, _ in self.pending:
            if ty.kind != TypeKind.ALIAS:
                continue
            seen = set()
            current = ty
            while current.kind == TypeKind.ALIAS and current.element is not None:
                if id(current) in seen:
                    raise LoadError(
                        f"type alias '{ty.qualified_name}' refers to itself",
                        location=ty.location,
                    )
                seen.add(id(current))
                current = current.element

    # Worlds

    def _build_world(self, decl) -> World:
        world = World(
            name=decl.name,
            package=self.package_id,
            description=decl.doc,
            location=decl.loc,
        )

        if decl.includes:
            include = decl.includes[0]
            raise LoadError(
                f"'include {include.render()}' is not supported",
                location=include.loc,
            )

        scope = _Scope(self._owner(decl.name), decl.uses)
        for type_decl in decl.types:
            world.types.append(self._declare_type(type_decl, scope))
        self._bind_uses(scope, [])

        exported = set()
        for extern in decl.externs:
            if extern.direction == "import":
                name = extern.path.render() if extern.path is not None else extern.name
                world.imports.append(name)
                logger.debug(f"Import '{name}' recorded but not generated")
                continue

            if extern.name in exported:
                raise LoadError(
                    f"'{extern.name}' is exported more than once from world '{decl.name}'",
                    location=extern.loc,
                )
            exported.add(extern.name)

            if extern.kind == "path":
                world.exports.append(self._find_interface(extern.path))
            elif extern.kind == "interface":
                world.exports.append(self._declare_interface(extern.interface))
                self._bind_uses(self.interfaces[extern.name][2], [])
            else:
                world.functions.append(self._function(extern.func, scope, None))

        self.package.worlds[decl.name] = world
        return world
