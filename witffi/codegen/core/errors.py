"""
Generation-pass error taxonomy.

Every failure of the load → classify → generate → write pipeline is a
GeneratorError carrying the stage it happened in, so callers can report
which step failed without inspecting message text.
"""

from typing import Optional


class GeneratorError(Exception):
    """Base exception for code generation errors."""

    stage = "generate"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class LoadError(GeneratorError):
    """The front-end could not read or resolve the interface description."""

    stage = "load"

    def __init__(self, message: str, path: Optional[str] = None, location=None):
        if location is not None:
            text = f"{location}: {message}"
        elif path:
            text = f"{path}: {message}"
        else:
            text = message
        super().__init__(text)
        self.reason = message
        self.location = location
        self.path = path if path is not None else getattr(location, "path", None)


class UnsupportedTypeShape(GeneratorError):
    """The classifier cannot lower a type to the C ABI."""

    stage = "classify"

    def __init__(self, type_path: str, reason: str):
        super().__init__(f"unsupported type shape '{type_path}': {reason}")
        self.type_path = type_path
        self.reason = reason


class NamingCollision(GeneratorError):
    """Two source identifiers map to the same generated identifier."""

    stage = "naming"

    def __init__(self, first: str, second: str, generated: str, role: str):
        super().__init__(
            f"naming collision: '{first}' and '{second}' both map to "
            f"{role} identifier '{generated}'"
        )
        self.first = first
        self.second = second
        self.generated = generated
        self.role = role


class WriteFailure(GeneratorError):
    """The output sink rejected a write."""

    stage = "write"

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path
