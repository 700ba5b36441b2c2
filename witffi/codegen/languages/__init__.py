"""
Language-specific code generators.

This module contains generators for different host languages.
"""

from .rust import RustGenerator, create_generator as create_rust_generator

__all__ = ["RustGenerator", "create_rust_generator"]
