"""
Core code generation components.

Provides the data model, classifier, naming and base classes used by all
language generators.
"""

from .errors import (
    GeneratorError,
    LoadError,
    NamingCollision,
    UnsupportedTypeShape,
    WriteFailure,
)
from .generator import CodeGenerator, GeneratedArtifacts, GenerationResult, generate_code
from .schema import (
    Case,
    Field,
    Function,
    Interface,
    Package,
    Param,
    Primitive,
    Resolve,
    SourceLocation,
    TypeDef,
    TypeKind,
    World,
)
from .classify import (
    Classification,
    ClassificationTable,
    Ownership,
    Position,
    ReprKind,
    Representation,
    TypeClassifier,
    classify_world,
)
from .naming import NameSanitizer, NamingCase, NamingContext, NamingRole
from .config import GeneratorConfig, ConfigManager, ConfigError, load_config
from .templates import TemplateEngine, TemplateError

__all__ = [
    # Errors
    "GeneratorError",
    "LoadError",
    "NamingCollision",
    "UnsupportedTypeShape",
    "WriteFailure",
    # Base generator interface
    "CodeGenerator",
    "GeneratedArtifacts",
    "GenerationResult",
    "generate_code",
    # Data model
    "Case",
    "Field",
    "Function",
    "Interface",
    "Package",
    "Param",
    "Primitive",
    "Resolve",
    "SourceLocation",
    "TypeDef",
    "TypeKind",
    "World",
    # Classification
    "Classification",
    "ClassificationTable",
    "Ownership",
    "Position",
    "ReprKind",
    "Representation",
    "TypeClassifier",
    "classify_world",
    # Naming utilities - language-agnostic
    "NameSanitizer",
    "NamingCase",
    "NamingContext",
    "NamingRole",
    # Configuration system
    "GeneratorConfig",
    "ConfigManager",
    "ConfigError",
    "load_config",
    # Template system - language-agnostic
    "TemplateEngine",
    "TemplateError",
]
