"""
Rust code generator module.

Generates Rust extern "C" scaffolding and the matching C header from a
resolved WIT world.
"""

from .generator import RustGenerator
from .naming import create_rust_sanitizer
from .types import AbiShape, RustType, RustTypeMapper
from .marshal import Marshaller

__all__ = [
    "RustGenerator",
    "RustType",
    "RustTypeMapper",
    "AbiShape",
    "Marshaller",
    "create_rust_sanitizer",
    "create_generator",
]


def create_generator(**kwargs):
    """
    Create a Rust generator.

    Args:
        **kwargs: Configuration overrides (symbol_prefix, type_prefix, ...)

    Returns:
        Configured RustGenerator instance
    """
    return RustGenerator(kwargs or None)
