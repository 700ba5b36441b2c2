"""
Generator configuration.

Per-language defaults, overridden by an optional JSON file and then by
command-line flags. Prefixes are validated as C identifiers because they
end up in exported symbol and type names.
"""

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .errors import GeneratorError

_C_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class ConfigError(GeneratorError):
    """Exception raised for configuration-related errors."""

    stage = "config"


@dataclass
class GeneratorConfig:
    """Base configuration for code generators."""

    language: str = "rust"
    output_dir: Optional[str] = None

    # Naming settings
    symbol_prefix: str = "witffi"  # C function symbols: witffi_parser_parse
    type_prefix: str = "Ffi"       # C types: FfiNativeRequest
    escape_suffix: str = "_"       # reserved words: type -> type_

    # Additional metadata
    add_comments: bool = True

    # Custom settings (language-specific)
    custom: Dict[str, Any] = field(default_factory=dict)


class ConfigManager:
    """Manages configuration loading and merging."""

    def __init__(self):
        """Initialize configuration manager."""
        self._configs: Dict[str, Dict[str, Any]] = {}
        self._load_defaults()

    def _load_defaults(self):
        """Load default configurations for supported languages."""
        self._configs["rust"] = {
            "language": "rust",
            "symbol_prefix": "witffi",
            "type_prefix": "Ffi",
            "escape_suffix": "_",
            "add_comments": True,
        }

    def get_config(self, language: str, custom_config: Optional[Dict[str, Any]] = None,
                   config_file: Optional[Union[str, Path]] = None) -> GeneratorConfig:
        """
        Get complete configuration for a language.

        Args:
            language: Target language name
            custom_config: Custom configuration overrides (CLI flags)
            config_file: Path to JSON configuration file

        Returns:
            Merged and validated configuration for the language
        """
        base_config = dict(self._configs.get(language, {"language": language}))
        base_config["custom"] = dict(base_config.get("custom", {}))

        if config_file:
            self._merge(base_config, self._load_config_file(config_file))

        if custom_config:
            self._merge(base_config, {k: v for k, v in custom_config.items() if v is not None})

        config = self._dict_to_config(base_config)
        problems = self.validate_config(config)
        if problems:
            raise ConfigError("; ".join(problems))
        return config

    @staticmethod
    def _merge(base: Dict[str, Any], overrides: Dict[str, Any]):
        for key, value in overrides.items():
            if key == "custom" and isinstance(value, dict):
                base.setdefault("custom", {}).update(value)
            else:
                base[key] = value

    def _load_config_file(self, config_path: Union[str, Path]) -> Dict[str, Any]:
        """Load configuration from JSON file."""
        path = Path(config_path)

        if not path.exists():
            raise ConfigError(f"Configuration file not found: {path}")

        if not path.suffix.lower() == '.json':
            raise ConfigError(f"Configuration file must be JSON: {path}")

        try:
            with open(path, 'r', encoding='utf-8') as f:
                config = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in configuration file {path}: {str(e)}")
        except OSError as e:
            raise ConfigError(f"Failed to load configuration file {path}: {str(e)}")

        if not isinstance(config, dict):
            raise ConfigError(f"Configuration file must contain a JSON object: {path}")

        return config

    def _dict_to_config(self, config_dict: Dict[str, Any]) -> GeneratorConfig:
        """Convert dictionary to GeneratorConfig instance."""
        known_fields = set(GeneratorConfig.__dataclass_fields__)

        config_args = {}
        custom_args = {}

        for key, value in config_dict.items():
            if key in known_fields:
                config_args[key] = value
            else:
                custom_args[key] = value

        # Unknown keys are language-specific settings
        if custom_args:
            existing_custom = dict(config_args.get('custom', {}))
            existing_custom.update(custom_args)
            config_args['custom'] = existing_custom

        return GeneratorConfig(**config_args)

    def validate_config(self, config: GeneratorConfig) -> List[str]:
        """
        Validate configuration.

        Returns:
            List of validation problems, empty if the config is usable
        """
        problems = []

        if not _C_IDENTIFIER.match(config.symbol_prefix or ""):
            problems.append(f"Invalid symbol_prefix (must be a C identifier): {config.symbol_prefix!r}")

        if not _C_IDENTIFIER.match(config.type_prefix or ""):
            problems.append(f"Invalid type_prefix (must be a C identifier): {config.type_prefix!r}")

        if not config.escape_suffix or not re.match(r"^[A-Za-z0-9_]+$", config.escape_suffix):
            problems.append(f"Invalid escape_suffix: {config.escape_suffix!r}")

        if not isinstance(config.add_comments, bool):
            problems.append(f"add_comments must be a boolean: {config.add_comments!r}")

        return problems


# Global configuration manager instance
_config_manager = None


def get_config_manager() -> ConfigManager:
    """Get the global configuration manager instance."""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager


def load_config(language: str, custom_config: Optional[Dict[str, Any]] = None,
                config_file: Optional[Union[str, Path]] = None) -> GeneratorConfig:
    """
    Convenience function to load configuration.

    Args:
        language: Target language name
        custom_config: Custom configuration overrides
        config_file: Path to JSON configuration file

    Returns:
        Merged configuration for the language
    """
    manager = get_config_manager()
    return manager.get_config(language, custom_config, config_file)

