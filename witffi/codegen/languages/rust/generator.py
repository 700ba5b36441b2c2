"""
Rust code generator implementation.

Generates a Rust FFI module (idiomatic types, capability trait, a
registration macro stamping out ``extern "C"`` wrappers, release functions
and error accessors) plus the C header describing the same layout.
"""

from typing import Any, Dict, List, Optional
from pathlib import Path

from ...core.classify import ClassificationTable
from ...core.generator import CodeGenerator, GeneratedArtifacts
from ...core.naming import NamingCase, NamingContext, NamingRole
from ...core.schema import Function, TypeDef, TypeKind, World
from ....logging_config import get_logger
from .marshal import Marshaller
from .naming import create_rust_sanitizer
from .types import AbiShape, RustType, RustTypeMapper, UNSIGNED_BY_WIDTH, c_decl, c_pointer

logger = get_logger(__name__)


class RustGenerator(CodeGenerator):
    """Code generator for Rust extern "C" scaffolding and its C header."""

    @property
    def language_name(self) -> str:
        """Return the language name."""
        return "rust"

    @property
    def file_extension(self) -> str:
        """Return Rust file extension."""
        return ".rs"

    def get_template_directory(self) -> Optional[Path]:
        """Return the Rust templates directory."""
        template_dir = Path(__file__).parent / "templates"
        return template_dir if template_dir.exists() else None

    def create_sanitizer(self):
        return create_rust_sanitizer(self.config.escape_suffix)

    def generate(self, world: World, table: ClassificationTable) -> GeneratedArtifacts:
        """Generate ffi.rs and ffi.h for a world using templates."""
        run = _GenerationRun(self, world, table, self.create_naming_context())
        context = run.build()

        native = self.render_template("ffi.rs.j2", context)
        header = self.render_template("ffi.h.j2", context)

        return GeneratedArtifacts(native=native, header=header)


class _GenerationRun:
    """State for generating one world; discarded afterwards."""

    def __init__(self, generator: RustGenerator, world: World, table: ClassificationTable,
                 naming: NamingContext):
        self.world = world
        self.naming = naming
        self.add_comments = generator.config.add_comments
        self.mapper = RustTypeMapper(naming, table)
        self.marshal = Marshaller(self.mapper)
        self.sanitizer = naming.sanitizer

    def build(self) -> Dict[str, Any]:
        world = self.world
        prefix = self.naming.symbol_prefix

        self.mapper.claim_prelude()
        trait_name = self.naming.module_name(world.name)
        self.naming.register(NamingRole.TYPE, "types", f"world {world.name}", trait_name)

        named_types = self._collect_named_types()
        definitions = [self._definition(ty) for ty in named_types]
        functions = [self._function(func, trait_name) for func in world.exported_functions()]

        # Support structs are all known once every signature has been mapped
        items = self._ordered_items([d for d in definitions if d["kind"] != "alias"])

        releases = self._release_functions(items)
        accessors = {
            "length_fn": self.naming.runtime_symbol("last-error-length"),
            "message_fn": self.naming.runtime_symbol("last-error-message"),
            "clear_fn": self.naming.runtime_symbol("clear-last-error"),
        }

        world_upper = self.sanitizer.sanitize_name(world.name, NamingCase.SCREAMING_SNAKE, escape=False)
        prefix_upper = self.sanitizer.sanitize_name(prefix, NamingCase.SCREAMING_SNAKE, escape=False)

        logger.info(
            f"Generating {len(functions)} functions and {len(items)} ABI types for world {world.name}"
        )

        return {
            "world": world,
            "trait_name": trait_name,
            "symbol_prefix": prefix,
            "type_prefix": self.naming.type_prefix,
            "byte_slice": self.mapper.byte_slice,
            "byte_buffer": self.mapper.byte_buffer,
            "header_guard": f"{prefix_upper}_{world_upper}_FFI_H",
            "add_comments": self.add_comments,
            "definitions": definitions,
            "items": items,
            "functions": functions,
            "releases": releases,
            "accessors": accessors,
        }

    # Collection and ordering

    def _collect_named_types(self) -> List[TypeDef]:
        """Named types reachable from the world, first-seen order."""
        seen = set()
        order = []

        def walk(ty: TypeDef):
            if ty.is_named:
                if id(ty) in seen:
                    return
                seen.add(id(ty))
                order.append(ty)
            for child in ty.children():
                walk(child)

        for ty in self.world.declared_types():
            walk(ty)
        for func in self.world.exported_functions():
            for param in func.params:
                walk(param.type)
            if func.result is not None:
                walk(func.result)
        return order

    def _ordered_items(self, definitions: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        ABI type items so that every by-value member is defined before use.

        Only by-value edges are followed; pointer edges are covered by the
        forward declarations, which is what lets list recursion through.
        """
        items: Dict[str, Dict[str, Any]] = {d["abi"]: d for d in definitions}
        for support in self.mapper.support.values():
            items[support.abi] = self._support_item(support)

        ordered = []
        visited = set()

        def visit(abi: str):
            if abi in visited or abi not in items:
                return
            visited.add(abi)
            for dep in items[abi]["deps"]:
                visit(dep)
            ordered.append(items[abi])

        for abi in items:
            visit(abi)
        return ordered

    @staticmethod
    def _by_value(rust_type: RustType) -> List[str]:
        if rust_type.shape in (AbiShape.STRUCT, AbiShape.ENUM, AbiShape.FLAGS, AbiShape.LIST):
            return [rust_type.abi]
        return []

    # Named type definitions

    def _definition(self, ty: TypeDef) -> Dict[str, Any]:
        kind = ty.kind
        info = self.mapper.named(ty)
        base = {
            "source": ty.name,
            "qualified": ty.qualified_name,
            "name": info.idiomatic,
            "abi": info.abi,
            "into_fn": info.into_fn,
            "from_fn": info.from_fn,
            "description": self._doc(ty.description),
        }

        if kind == TypeKind.ALIAS:
            base.update(kind="alias", target=self.mapper.idiomatic(ty.element))
            return base
        if kind == TypeKind.RECORD:
            return self._record(ty, base)
        if kind == TypeKind.VARIANT:
            return self._variant(ty, base)
        if kind == TypeKind.ENUM:
            return self._enum(ty, base)
        if kind == TypeKind.FLAGS:
            return self._flags(ty, base)
        raise ValueError(f"Unexpected named type {ty!r}")

    def _record(self, ty: TypeDef, base: Dict[str, Any]) -> Dict[str, Any]:
        namespace = f"fields:{ty.qualified_name}"
        fields = []
        deps = []
        for f in ty.fields:
            rust_type = self.mapper.field(f.type)
            name = self.naming.field_name(f.name, namespace)
            place = f"value.{name}"
            abi_place = f"abi.{name}"
            fields.append({
                "name": name,
                "source": f.name,
                "idiomatic": self.mapper.idiomatic(f.type),
                "abi": rust_type.abi,
                "c_decl": rust_type.c_decl(name),
                "into": self.marshal.into_abi(place, f.type),
                "from": self.marshal.from_abi(abi_place, f.type),
                "release": self.marshal.release(f"self.{name}", f.type),
                "description": self._doc(f.description),
            })
            deps.extend(self._by_value(rust_type))

        base.update(kind="record", fields=fields, empty=not fields, deps=deps)
        return base

    def _variant(self, ty: TypeDef, base: Dict[str, Any]) -> Dict[str, Any]:
        case_ns = f"cases:{ty.qualified_name}"
        arm_ns = f"arms:{ty.qualified_name}"
        payload_abi = self.naming.c_type_name(f"{ty.name}-payload", f"{ty.qualified_name}#payload")
        cases = []
        deps = []
        for index, case in enumerate(ty.cases):
            entry = {
                "name": self.naming.case_name(case.name, case_ns),
                "source": case.name,
                "const": self.naming.constant_name(ty.name, case.name),
                "value": index,
                "payload": None,
                "description": self._doc(case.description),
            }
            if case.payload is not None:
                rust_type = self.mapper.field(case.payload)
                arm = self.naming.field_name(case.name, arm_ns)
                entry["payload"] = {
                    "arm": arm,
                    "idiomatic": self.mapper.idiomatic(case.payload),
                    "abi": rust_type.abi,
                    "c_decl": rust_type.c_decl(arm),
                    "into": self.marshal.into_abi("(*v0)", case.payload, depth=1),
                    "from": self.marshal.from_abi(f"abi.payload.{arm}", case.payload, depth=1),
                    "release": self.marshal.release(f"self.payload.{arm}", case.payload),
                }
                deps.extend(self._by_value(rust_type))
            cases.append(entry)

        base.update(
            kind="variant",
            cases=cases,
            payload_abi=payload_abi,
            has_payload=any(c["payload"] for c in cases),
            deps=deps,
        )
        return base

    def _enum(self, ty: TypeDef, base: Dict[str, Any]) -> Dict[str, Any]:
        case_ns = f"cases:{ty.qualified_name}"
        cases = [
            {
                "name": self.naming.case_name(case.name, case_ns),
                "source": case.name,
                "const": self.naming.constant_name(ty.name, case.name),
                "value": index,
                "description": self._doc(case.description),
            }
            for index, case in enumerate(ty.cases)
        ]
        base.update(kind="enum", cases=cases, invalid=self.mapper.enum_invalid_constant(ty), deps=[])
        return base

    def _flags(self, ty: TypeDef, base: Dict[str, Any]) -> Dict[str, Any]:
        width = self.mapper.table.field(ty).representation.width
        rust_int, c_int = UNSIGNED_BY_WIDTH[width]
        member_ns = f"flags:{ty.qualified_name}"
        members = [
            {
                "name": self.naming.member_constant(flag, member_ns),
                "source": flag,
                "const": self.naming.constant_name(ty.name, flag),
                "bit": index,
            }
            for index, flag in enumerate(ty.flags)
        ]
        mask = (1 << len(ty.flags)) - 1
        base.update(
            kind="flags",
            members=members,
            width=width,
            rust_int=rust_int,
            c_int=c_int,
            mask=f"{mask:#x}",
            deps=[],
        )
        return base

    # Support structs

    def _support_item(self, support) -> Dict[str, Any]:
        members = []
        deps = []
        release = []
        for name, rust_type in support.members:
            if support.kind == "list":
                member = {
                    "name": name,
                    "abi": f"*mut {rust_type.abi}",
                    "c_decl": c_decl(c_pointer(rust_type.c), name),
                }
                # typedef'd scalars must precede the pointer declaration
                if rust_type.shape in (AbiShape.ENUM, AbiShape.FLAGS):
                    deps.append(rust_type.abi)
            else:
                member = {"name": name, "abi": rust_type.abi, "c_decl": rust_type.c_decl(name)}
                deps.extend(self._by_value(rust_type))
                if rust_type.needs_release:
                    release.append(name)
            members.append(member)

        item = {
            "kind": support.kind,
            "abi": support.abi,
            "snake": support.snake,
            "description": None,
            "members": members,
            "deps": deps,
            "owned": support.classification.is_owned,
            "release": release,
        }
        if support.kind == "list":
            element = support.members[0][1]
            item["element_abi"] = element.abi
            item["release_elements"] = element.needs_release
        return item

    # Functions

    def _function(self, func: Function, trait_name: str) -> Dict[str, Any]:
        symbol = self.naming.symbol_name(func.name, func.interface)
        method = self.naming.method_name(func.name, func.interface)
        namespace = f"params:{symbol}"

        params = []
        body: List[str] = []
        for param in func.params:
            rust_type = self.mapper.param(param.type)
            name = self.naming.field_name(param.name, namespace)
            params.append({
                "name": name,
                "source": param.name,
                "abi": rust_type.abi,
                "c_decl": rust_type.c_decl(name),
                "idiomatic": rust_type.idiomatic,
            })
            body.extend(self.marshal.param_from_abi(name, param.name, param.type))

        call = f"<$impl as {trait_name}>::{method}({', '.join(p['name'] for p in params)})"
        trait_return, ret_abi, ret_c, sentinel = None, None, "void", "()"

        result = func.result
        target = result.resolve_alias() if result is not None else None
        if target is None:
            body.append(f"{call};")
            body.append("Ok(())")
        elif target.kind == TypeKind.RESULT:
            trait_return = self.mapper.idiomatic(result)
            call += self._error_route(func, target)
            if target.ok is None:
                body.append(f"{call};")
                body.append("Ok(true)")
                ret_abi, ret_c, sentinel = "bool", "bool", "false"
            else:
                rust_type = self.mapper.ret(target.ok)
                body.append(f"let __witffi_value = {call};")
                body.append(f"Ok({self.marshal.return_into_abi('__witffi_value', target.ok)})")
                ret_abi, ret_c, sentinel = rust_type.abi, rust_type.c, rust_type.sentinel
        else:
            trait_return = self.mapper.idiomatic(result)
            rust_type = self.mapper.ret(result)
            body.append(f"let __witffi_value = {call};")
            body.append(f"Ok({self.marshal.return_into_abi('__witffi_value', result)})")
            ret_abi, ret_c, sentinel = rust_type.abi, rust_type.c, rust_type.sentinel

        c_params = ", ".join(p["c_decl"] for p in params) or "void"
        c_return = ret_c if ret_c.endswith("*") else f"{ret_c} "

        return {
            "source": func.qualified_name,
            "signature": func.signature(),
            "description": self._doc(func.description),
            "symbol": symbol,
            "method": method,
            "params": params,
            "trait_return": trait_return,
            "ret_abi": ret_abi,
            "sentinel": sentinel,
            "body": body,
            "c_prototype": f"{c_return}{symbol}({c_params});",
        }

    @staticmethod
    def _error_route(func: Function, result: TypeDef) -> str:
        """Suffix routing a capability's error arm to the error slot."""
        if result.err is None:
            return f".map_err(|_| String::from(\"{func.qualified_name} failed\"))?"
        if result.err.resolve_alias().kind == TypeKind.STRING:
            return "?"
        return ".map_err(|__witffi_error| format!(\"{:?}\", __witffi_error))?"

    # Release functions

    def _release_functions(self, items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        releases = [{
            "symbol": self.naming.runtime_symbol("free-byte-buffer"),
            "param": "buffer",
            "abi": self.mapper.byte_buffer,
            "c_decl": f"{self.mapper.byte_buffer} buffer",
            "doc": "Release a buffer returned by this library.",
        }]

        for item in items:
            kind = item["kind"]
            if kind == "list":
                releases.append({
                    "symbol": self.naming.runtime_symbol(f"free-{item['snake']}"),
                    "param": "list",
                    "abi": item["abi"],
                    "c_decl": f"{item['abi']} list",
                    "doc": f"Release a {item['abi']} and its elements.",
                })
            elif kind in ("record", "variant") or (kind == "result" and item["owned"]):
                source = item.get("source") or item["snake"]
                releases.append({
                    "symbol": self.naming.runtime_symbol(f"free-{source}"),
                    "param": "ptr",
                    "abi": f"*mut {item['abi']}",
                    "c_decl": c_decl(c_pointer(item["abi"]), "ptr"),
                    "doc": f"Release a {item['abi']} returned by this library.",
                })
        return releases

    def _doc(self, text: Optional[str]) -> Optional[str]:
        if not self.add_comments or not text:
            return None
        return text.strip()
