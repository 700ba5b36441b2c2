"""
Generator registry.

Maps target language names and their aliases to generator classes and
builds configured generator instances for the pipeline and the CLI.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Type, Union

from .core.config import ConfigError, GeneratorConfig, load_config
from .core.generator import CodeGenerator

ConfigSource = Optional[Union[GeneratorConfig, Dict[str, Any], str, Path]]


class RegistryError(ConfigError):
    """Unknown target language or an invalid registration."""

    pass


@dataclass
class _Registration:
    language: str
    generator_class: Type[CodeGenerator]
    aliases: List[str] = field(default_factory=list)


class GeneratorRegistry:
    """Registry of available code generators."""

    def __init__(self):
        self._registrations: Dict[str, _Registration] = {}
        self._aliases: Dict[str, str] = {}

    def register(self, language: str, generator_class: Type[CodeGenerator],
                 aliases: Optional[List[str]] = None):
        """
        Register a generator under a primary name and optional aliases.

        Registering an already known language again is a no-op.

        Raises:
            RegistryError: If the class is not a CodeGenerator, or an alias
                clashes with another language
        """
        if not (isinstance(generator_class, type) and issubclass(generator_class, CodeGenerator)):
            raise RegistryError("Generator class must inherit from CodeGenerator")

        key = language.lower()
        if key in self._registrations:
            return

        alias_keys = [a.lower() for a in aliases or [] if a.lower() != key]
        for alias in alias_keys:
            if alias in self._registrations:
                raise RegistryError(f"Alias '{alias}' conflicts with existing primary language")
            owner = self._aliases.get(alias)
            if owner is not None and owner != key:
                raise RegistryError(f"Alias '{alias}' already points to '{owner}'")

        self._registrations[key] = _Registration(key, generator_class, alias_keys)
        for alias in alias_keys:
            self._aliases[alias] = key

    def unregister(self, language: str):
        """Remove a language and every alias pointing at it."""
        registration = self._registrations.pop(language.lower(), None)
        if registration is None:
            return
        for alias in registration.aliases:
            self._aliases.pop(alias, None)

    def resolve(self, language: str) -> str:
        """
        Primary name for a language name or alias.

        Raises:
            RegistryError: If nothing is registered under that name
        """
        key = language.lower()
        if key in self._registrations:
            return key
        if key in self._aliases:
            return self._aliases[key]
        raise RegistryError(
            f"No generator registered for language: {language}. "
            f"Available: {', '.join(self.list_languages())}"
        )

    def get_generator_class(self, language: str) -> Type[CodeGenerator]:
        return self._registrations[self.resolve(language)].generator_class

    def create_generator(self, language: str, config: ConfigSource = None) -> CodeGenerator:
        """
        Build a configured generator.

        Args:
            language: Language name or alias
            config: A GeneratorConfig, an overrides dict, a JSON file path,
                or None for the language defaults

        Raises:
            RegistryError: If the language is unknown or config has the wrong type
            ConfigError: If the configuration is invalid
        """
        primary = self.resolve(language)

        if isinstance(config, GeneratorConfig):
            final_config = config
        elif isinstance(config, (str, Path)):
            final_config = load_config(primary, config_file=config)
        elif isinstance(config, dict):
            final_config = load_config(primary, custom_config=config)
        elif config is None:
            final_config = load_config(primary)
        else:
            raise RegistryError(f"Invalid config type: {type(config)}")

        return self._registrations[primary].generator_class(final_config)

    def list_languages(self) -> List[str]:
        return sorted(self._registrations)

    def get_aliases_for_language(self, language: str) -> List[str]:
        registration = self._registrations.get(language.lower())
        return sorted(registration.aliases) if registration else []

    def is_supported(self, language: str) -> bool:
        key = language.lower()
        return key in self._registrations or key in self._aliases

    def get_language_info(self, language: str) -> Dict[str, Any]:
        """Name, class, file extension, aliases and module of a registered generator."""
        primary = self.resolve(language)
        generator_class = self._registrations[primary].generator_class
        generator = generator_class(load_config(primary))

        return {
            "name": generator.language_name,
            "class": generator_class.__name__,
            "file_extension": generator.file_extension,
            "aliases": self.get_aliases_for_language(primary),
            "module": generator_class.__module__,
        }


_global_registry: Optional[GeneratorRegistry] = None


def get_registry() -> GeneratorRegistry:
    """The process-wide registry, populated on first use."""
    global _global_registry
    if _global_registry is None:
        _global_registry = GeneratorRegistry()
        _register_builtin_generators(_global_registry)
    return _global_registry


def _register_builtin_generators(registry: GeneratorRegistry):
    from .languages.rust import RustGenerator

    # "c" selects the same generator: the header is half of its output
    registry.register("rust", RustGenerator, aliases=["rs", "c"])


def get_generator(language: str, config: ConfigSource = None) -> CodeGenerator:
    return get_registry().create_generator(language, config)


def list_supported_languages() -> List[str]:
    return get_registry().list_languages()


def is_language_supported(language: str) -> bool:
    return get_registry().is_supported(language)


def get_language_info(language: str) -> Dict[str, Any]:
    return get_registry().get_language_info(language)


def list_all_language_info() -> Dict[str, Dict[str, Any]]:
    return {language: get_language_info(language) for language in list_supported_languages()}
