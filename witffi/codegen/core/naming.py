"""
Naming utilities for safe code generation.

Handles name sanitization, case conversions and keyword escaping, plus the
per-run NamingContext that hands out generated identifiers by role and
refuses to map two source identifiers onto one generated identifier.
"""

import re
from typing import Dict, Optional, Set, Tuple
from enum import Enum

from .errors import NamingCollision


class NamingCase(Enum):
    """Different naming case styles."""
    SNAKE_CASE = "snake"      # user_name
    CAMEL_CASE = "camel"      # userName
    PASCAL_CASE = "pascal"    # UserName
    KEBAB_CASE = "kebab"      # user-name
    SCREAMING_SNAKE = "screaming_snake"  # USER_NAME


class NamingRole(Enum):
    """What a generated identifier is used for."""
    TYPE = "type"
    FIELD = "field"
    CASE = "case"
    FUNCTION = "function"
    MODULE = "module"


class NameSanitizer:
    """Handles name sanitization, case conversion and keyword escaping."""

    def __init__(self, reserved_words: Set[str] = None, builtin_types: Set[str] = None,
                 escape_suffix: str = "_"):
        """
        Initialize name sanitizer.

        Args:
            reserved_words: Set of language reserved words
            builtin_types: Set of builtin type names that might conflict
            escape_suffix: Appended to identifiers that hit a reserved word
        """
        self.reserved_words = reserved_words or set()
        self.builtin_types = builtin_types or set()
        self.escape_suffix = escape_suffix
        self._name_cache: Dict[Tuple[str, NamingCase, bool], str] = {}

    def sanitize_name(self, name: str, target_case: NamingCase = NamingCase.SNAKE_CASE,
                      escape: bool = True) -> str:
        """
        Sanitize a name for safe use in target language.

        Args:
            name: Original name to sanitize
            target_case: Desired case style
            escape: Whether to escape reserved words

        Returns:
            Sanitized name safe for use
        """
        cache_key = (name, target_case, escape)
        if cache_key in self._name_cache:
            return self._name_cache[cache_key]

        cleaned = self._clean_basic(name)
        converted = self._convert_case(cleaned, target_case)
        if escape:
            converted = self.escape(converted)

        self._name_cache[cache_key] = converted
        return converted

    def escape(self, name: str) -> str:
        """Append the escape suffix if name is reserved."""
        if name in self.reserved_words or name in self.builtin_types:
            return f"{name}{self.escape_suffix}"
        return name

    def _clean_basic(self, name: str) -> str:
        """Basic name cleanup - remove invalid characters."""
        # WIT escapes keywords with a leading '%'
        cleaned = name.lstrip('%')

        # Remove non-alphanumeric chars except underscore and hyphen
        cleaned = re.sub(r'[^a-zA-Z0-9_-]', '_', cleaned)

        # Remove leading/trailing underscores and hyphens
        cleaned = cleaned.strip('_-')

        # Ensure doesn't start with number
        if cleaned and cleaned[0].isdigit():
            cleaned = f"_{cleaned}"

        if not cleaned:
            cleaned = "unnamed"

        return cleaned

    def _convert_case(self, name: str, target_case: NamingCase) -> str:
        """Convert name to target case style."""
        if target_case == NamingCase.SNAKE_CASE:
            return self._to_snake_case(name)
        elif target_case == NamingCase.CAMEL_CASE:
            return self._to_camel_case(name)
        elif target_case == NamingCase.PASCAL_CASE:
            return self._to_pascal_case(name)
        elif target_case == NamingCase.KEBAB_CASE:
            return self._to_kebab_case(name)
        elif target_case == NamingCase.SCREAMING_SNAKE:
            return self._to_snake_case(name).upper()
        else:
            return name

    def _to_snake_case(self, name: str) -> str:
        """Convert to snake_case."""
        name = name.replace('-', '_')

        # Split acronym runs and lower/upper boundaries
        name = re.sub(r'([A-Z]+)([A-Z][a-z])', r'\1_\2', name)
        name = re.sub(r'([a-z0-9])([A-Z])', r'\1_\2', name)

        name = name.lower()
        name = re.sub(r'_+', '_', name)

        return name.strip('_')

    def _to_camel_case(self, name: str) -> str:
        """Convert to camelCase."""
        snake = self._to_snake_case(name)
        parts = snake.split('_')

        if not parts:
            return name

        return parts[0].lower() + ''.join(part.capitalize() for part in parts[1:])

    def _to_pascal_case(self, name: str) -> str:
        """Convert to PascalCase."""
        snake = self._to_snake_case(name)
        parts = snake.split('_')
        return ''.join(part.capitalize() for part in parts if part)

    def _to_kebab_case(self, name: str) -> str:
        """Convert to kebab-case."""
        snake = self._to_snake_case(name)
        return snake.replace('_', '-')


class NamingContext:
    """
    Per-run identifier mapping with injectivity checking.

    Every generated identifier is registered under a (role, namespace)
    pair; registering the same generated identifier for a second, different
    source identifier raises NamingCollision naming both sources.
    """

    def __init__(self, sanitizer: NameSanitizer, symbol_prefix: str, type_prefix: str):
        self.sanitizer = sanitizer
        self.symbol_prefix = symbol_prefix
        self.type_prefix = type_prefix
        self._claimed: Dict[Tuple[NamingRole, str, str], str] = {}

    def register(self, role: NamingRole, namespace: str, source: str, generated: str) -> str:
        """Claim a generated identifier for a source identifier."""
        key = (role, namespace, generated)
        owner = self._claimed.get(key)
        if owner is not None and owner != source:
            raise NamingCollision(owner, source, generated, role.value)
        self._claimed[key] = source
        return generated

    # Role helpers

    def type_name(self, source: str, qualified: Optional[str] = None) -> str:
        """Idiomatic PascalCase type name."""
        generated = self.sanitizer.sanitize_name(source, NamingCase.PASCAL_CASE)
        return self.register(NamingRole.TYPE, "types", qualified or source, generated)

    def c_type_name(self, source: str, qualified: Optional[str] = None) -> str:
        """Prefixed PascalCase name for a repr(C) / header type."""
        pascal = self.sanitizer.sanitize_name(source, NamingCase.PASCAL_CASE, escape=False)
        generated = f"{self.type_prefix}{pascal}"
        return self.register(NamingRole.TYPE, "abi-types", qualified or source, generated)

    def field_name(self, source: str, namespace: str) -> str:
        """snake_case field or parameter name, escaped for both artifacts."""
        generated = self.sanitizer.sanitize_name(source, NamingCase.SNAKE_CASE)
        return self.register(NamingRole.FIELD, namespace, source, generated)

    def case_name(self, source: str, namespace: str) -> str:
        """PascalCase variant/enum case name."""
        generated = self.sanitizer.sanitize_name(source, NamingCase.PASCAL_CASE)
        return self.register(NamingRole.CASE, namespace, source, generated)

    def constant_name(self, type_source: str, member_source: str) -> str:
        """SCREAMING_SNAKE constant for a discriminant or flag bit."""
        prefix = self.sanitizer.sanitize_name(self.type_prefix, NamingCase.SCREAMING_SNAKE, escape=False)
        type_part = self.sanitizer.sanitize_name(type_source, NamingCase.SCREAMING_SNAKE, escape=False)
        member = self.sanitizer.sanitize_name(member_source, NamingCase.SCREAMING_SNAKE, escape=False)
        generated = f"{prefix}_{type_part}_{member}"
        return self.register(NamingRole.CASE, "constants", f"{type_source}.{member_source}", generated)

    def member_constant(self, member_source: str, namespace: str) -> str:
        """SCREAMING_SNAKE associated constant (flag members on the idiomatic type)."""
        generated = self.sanitizer.sanitize_name(member_source, NamingCase.SCREAMING_SNAKE)
        return self.register(NamingRole.CASE, namespace, member_source, generated)

    def symbol_name(self, source: str, interface: Optional[str] = None) -> str:
        """C-callable symbol: prefix, interface qualifier, function name."""
        prefix = self.sanitizer.sanitize_name(self.symbol_prefix, NamingCase.SNAKE_CASE, escape=False)
        parts = [prefix]
        if interface:
            parts.append(self.sanitizer.sanitize_name(interface, NamingCase.SNAKE_CASE, escape=False))
        parts.append(self.sanitizer.sanitize_name(source, NamingCase.SNAKE_CASE, escape=False))
        generated = "_".join(parts)
        qualified = f"{interface}.{source}" if interface else source
        return self.register(NamingRole.FUNCTION, "symbols", qualified, generated)

    def runtime_symbol(self, source: str) -> str:
        """Symbol of a release function or error accessor, sharing the wrapper namespace."""
        prefix = self.sanitizer.sanitize_name(self.symbol_prefix, NamingCase.SNAKE_CASE, escape=False)
        generated = f"{prefix}_{self.sanitizer.sanitize_name(source, NamingCase.SNAKE_CASE, escape=False)}"
        return self.register(NamingRole.FUNCTION, "symbols", f"<runtime>.{source}", generated)

    def method_name(self, source: str, interface: Optional[str] = None) -> str:
        """Capability method name, interface-qualified."""
        parts = []
        if interface:
            parts.append(self.sanitizer.sanitize_name(interface, NamingCase.SNAKE_CASE, escape=False))
        parts.append(self.sanitizer.sanitize_name(source, NamingCase.SNAKE_CASE, escape=False))
        generated = self.sanitizer.escape("_".join(parts))
        qualified = f"{interface}.{source}" if interface else source
        return self.register(NamingRole.FUNCTION, "methods", qualified, generated)

    def module_name(self, source: str) -> str:
        """PascalCase name for the world-level module item (the capability trait)."""
        generated = self.sanitizer.sanitize_name(source, NamingCase.PASCAL_CASE)
        return self.register(NamingRole.MODULE, "modules", source, generated)
