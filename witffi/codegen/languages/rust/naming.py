"""
Rust/C naming utilities and sanitization.

Identifiers shared by the Rust source and the C header (fields, params,
union arms) must be legal in both languages, so the sanitizer escapes the
union of both reserved word sets.
"""

from ...core.naming import NameSanitizer


# Rust strict and reserved keywords
RUST_RESERVED_WORDS = {
    "as", "async", "await", "break", "const", "continue", "crate", "dyn",
    "else", "enum", "extern", "false", "fn", "for", "if", "impl", "in",
    "let", "loop", "match", "mod", "move", "mut", "pub", "ref", "return",
    "self", "Self", "static", "struct", "super", "trait", "true", "type",
    "unsafe", "use", "where", "while",
    # Reserved for future use
    "abstract", "become", "box", "do", "final", "gen", "macro", "override",
    "priv", "try", "typeof", "unsized", "virtual", "yield",
}

# Prelude and primitive names that generated types must not shadow
RUST_BUILTIN_TYPES = {
    "bool", "char", "str", "u8", "u16", "u32", "u64", "u128", "usize",
    "i8", "i16", "i32", "i64", "i128", "isize", "f32", "f64",
    "Box", "Option", "Result", "String", "Vec", "Some", "None", "Ok", "Err",
    "Copy", "Clone", "Debug", "Default", "Drop", "Send", "Sync", "Sized",
}

# C keywords (C11) plus names the header pulls in
C_RESERVED_WORDS = {
    "auto", "break", "case", "char", "const", "continue", "default", "do",
    "double", "else", "enum", "extern", "float", "for", "goto", "if",
    "inline", "int", "long", "register", "restrict", "return", "short",
    "signed", "sizeof", "static", "struct", "switch", "typedef", "union",
    "unsigned", "void", "volatile", "while", "bool", "true", "false",
    "_Alignas", "_Alignof", "_Atomic", "_Bool", "_Complex", "_Generic",
    "_Imaginary", "_Noreturn", "_Static_assert", "_Thread_local",
    "size_t", "NULL",
}


def create_rust_sanitizer(escape_suffix: str = "_") -> NameSanitizer:
    """Create a name sanitizer configured for Rust plus its C header."""
    return NameSanitizer(RUST_RESERVED_WORDS | C_RESERVED_WORDS, RUST_BUILTIN_TYPES, escape_suffix)
