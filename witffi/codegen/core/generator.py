"""
Base generator interface for all code generation targets.

Defines the contract that all language generators must implement.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union
from pathlib import Path

from .classify import ClassificationTable, classify_world
from .config import GeneratorConfig, load_config
from .errors import GeneratorError
from .naming import NameSanitizer, NamingContext
from .schema import TypeKind, World
from .templates import TemplateEngine
from ...logging_config import get_logger

logger = get_logger(__name__)

NATIVE_FILENAME = "ffi.rs"
HEADER_FILENAME = "ffi.h"


@dataclass(frozen=True)
class GeneratedArtifacts:
    """The two text bodies produced for one world."""

    native: str
    header: str

    def files(self) -> Dict[str, str]:
        """Map output file name to content, native artifact first."""
        return {NATIVE_FILENAME: self.native, HEADER_FILENAME: self.header}


class CodeGenerator(ABC):
    """Abstract base class for all code generators."""

    def __init__(self, config: Optional[Union[GeneratorConfig, Dict[str, Any]]] = None):
        """Initialize generator with optional configuration."""
        if config is None or isinstance(config, dict):
            config = load_config(self.language_name, config or None)
        self.config = config
        self._template_engine = None

    @property
    @abstractmethod
    def language_name(self) -> str:
        """Return the name of the target language (e.g., 'rust')."""
        pass

    @property
    @abstractmethod
    def file_extension(self) -> str:
        """Return the file extension for the native artifact (e.g., '.rs')."""
        pass

    def get_template_directory(self) -> Optional[Path]:
        """
        Return the directory containing templates for this generator.

        Subclasses should override this to provide their template directory.
        Return None if the generator ships no template files.
        """
        return None

    @property
    def template_engine(self) -> TemplateEngine:
        """Get the template engine for this generator."""
        if self._template_engine is None:
            self._template_engine = TemplateEngine(self.get_template_directory())
        return self._template_engine

    @abstractmethod
    def create_sanitizer(self) -> NameSanitizer:
        """Return a sanitizer loaded with the reserved words of every emitted language."""
        pass

    def create_naming_context(self) -> NamingContext:
        """Fresh naming context for one generation run."""
        return NamingContext(
            self.create_sanitizer(),
            symbol_prefix=self.config.symbol_prefix,
            type_prefix=self.config.type_prefix,
        )

    @abstractmethod
    def generate(self, world: World, table: ClassificationTable) -> GeneratedArtifacts:
        """
        Generate both artifacts for a world.

        Args:
            world: Resolved world to generate bindings for
            table: Classifications for every type the world exports

        Returns:
            The native source and header bodies
        """
        pass

    def validate_world(self, world: World) -> List[str]:
        """
        Collect non-fatal observations about a world.

        Returns:
            List of warning messages (empty if no issues)
        """
        warnings = []

        if not world.exported_functions():
            warnings.append(f"World '{world.name}' exports no functions")

        for ty in world.declared_types():
            if ty.kind == TypeKind.RECORD and not ty.fields:
                warnings.append(
                    f"Record '{ty.qualified_name}' has no fields - a reserved byte is emitted"
                )
            if ty.kind in (TypeKind.VARIANT, TypeKind.ENUM) and not ty.cases:
                warnings.append(f"Type '{ty.qualified_name}' has no cases")

        for name in world.imports:
            warnings.append(f"Import '{name}' is recorded but no bindings are generated for it")

        return warnings

    def format_code(self, code: str) -> str:
        """
        Apply language-specific formatting to generated code.

        Args:
            code: Raw generated code

        Returns:
            Formatted code ending in a single newline
        """
        # Basic cleanup - remove excessive blank lines
        lines = code.split("\n")
        formatted_lines = []
        blank_count = 0

        for line in lines:
            stripped = line.rstrip()
            if not stripped:
                blank_count += 1
                if blank_count <= 1:
                    formatted_lines.append("")
            else:
                blank_count = 0
                formatted_lines.append(stripped)

        return "\n".join(formatted_lines).strip("\n") + "\n"

    # Template helper methods

    def render_template(self, template_name: str, context: Dict[str, Any]) -> str:
        """Render a template with context."""
        return self.template_engine.render_template(template_name, context)


class GenerationResult:
    """Container for generation results and metadata."""

    def __init__(
        self,
        artifacts: Optional[GeneratedArtifacts],
        warnings: List[str] = None,
        metadata: Dict[str, Any] = None,
    ):
        """
        Initialize generation result.

        Args:
            artifacts: Generated artifacts, None on failure
            warnings: Any warnings from generation
            metadata: Additional metadata about generation
        """
        self.artifacts = artifacts
        self.warnings = warnings or []
        self.metadata = metadata or {}
        self.success = True
        self.error_message = None
        self.exception = None

    @property
    def files(self) -> Dict[str, str]:
        return self.artifacts.files() if self.artifacts else {}

    @property
    def stage(self) -> Optional[str]:
        """Pipeline stage that failed, if any."""
        if isinstance(self.exception, GeneratorError):
            return self.exception.stage
        return None

    @classmethod
    def error(cls, message: str, exception: Exception = None,
              metadata: Dict[str, Any] = None) -> "GenerationResult":
        """Create a failed generation result."""
        result = cls(artifacts=None, metadata=metadata)
        result.success = False
        result.error_message = message
        result.exception = exception
        return result


def generate_code(generator: CodeGenerator, world: World) -> GenerationResult:
    """
    Classify and generate a world with error handling.

    Pipeline errors (GeneratorError) become a failed result; anything else
    is a bug and propagates.

    Args:
        generator: Code generator instance
        world: Resolved world

    Returns:
        GenerationResult with artifacts, warnings, and metadata
    """
    metadata = {
        "language": generator.language_name,
        "file_extension": generator.file_extension,
        "world": world.name,
        "interfaces": [iface.name for iface in world.exports],
        "function_count": len(world.exported_functions()),
        "type_count": len(world.declared_types()),
    }

    started = time.perf_counter()
    try:
        warnings = generator.validate_world(world)
        table = classify_world(world)
        artifacts = generator.generate(world, table)
    except GeneratorError as e:
        logger.debug(f"Generation failed at stage {e.stage}: {e.message}")
        return GenerationResult.error(e.message, exception=e, metadata=metadata)

    formatted = GeneratedArtifacts(
        native=generator.format_code(artifacts.native),
        header=generator.format_code(artifacts.header),
    )
    metadata["elapsed_ms"] = round((time.perf_counter() - started) * 1000, 2)

    return GenerationResult(formatted, warnings, metadata)
