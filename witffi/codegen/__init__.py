"""
witffi Code Generation Module

Generates C ABI scaffolding in various host languages from resolved WIT
worlds.
"""

from pathlib import Path
from typing import Any, Dict, Optional, Union

from .registry import (
    GeneratorRegistry,
    RegistryError,
    get_generator,
    get_registry,
    list_supported_languages,
)
from .core.config import ConfigError, GeneratorConfig, ConfigManager, load_config
from .core.errors import GeneratorError, LoadError, WriteFailure
from .core.generator import CodeGenerator, GeneratedArtifacts, GenerationResult, generate_code
from .core.schema import World

# Version info
__version__ = "0.1.0"


def generate_world(
    world: World,
    language: str = "rust",
    config: Optional[Union[GeneratorConfig, Dict[str, Any], str, Path]] = None,
) -> GenerationResult:
    """
    Generate bindings for an already resolved world.

    Args:
        world: Resolved world
        language: Target language name or alias
        config: Generator configuration (object, overrides dict or JSON path)

    Returns:
        GenerationResult with both artifacts
    """
    generator = get_generator(language, config)
    return generate_code(generator, world)


def generate_from_wit(
    wit_path: Union[str, Path],
    language: str = "rust",
    config: Optional[Union[GeneratorConfig, Dict[str, Any], str, Path]] = None,
) -> GenerationResult:
    """
    Load a WIT file or directory and generate bindings for its world.

    Load and configuration errors are reported through the result the same
    way generation errors are.
    """
    from ..loader import load_wit

    try:
        _, world = load_wit(wit_path)
        generator = get_generator(language, config)
    except GeneratorError as e:
        return GenerationResult.error(e.message, exception=e)

    return generate_code(generator, world)


def quick_generate(wit_text: str, language: str = "rust", **options) -> GeneratedArtifacts:
    """
    Quick code generation from WIT source text.

    Args:
        wit_text: WIT source containing exactly one world
        language: Target language
        **options: Generator options

    Returns:
        Generated artifacts

    Raises:
        GeneratorError: If any stage fails
    """
    from ..loader import load_wit_text

    _, world = load_wit_text(wit_text)
    result = generate_world(world, language, options or None)

    if result.success:
        return result.artifacts
    raise result.exception


# Export main interfaces
__all__ = [
    "GeneratorRegistry",
    "RegistryError",
    "CodeGenerator",
    "GeneratedArtifacts",
    "GenerationResult",
    "GeneratorConfig",
    "ConfigManager",
    "ConfigError",
    "GeneratorError",
    "LoadError",
    "WriteFailure",
    "generate_code",
    "generate_world",
    "generate_from_wit",
    "quick_generate",
    "get_generator",
    "get_registry",
    "list_supported_languages",
    "load_config",
]
