"""witffi: C ABI scaffolding generated from WIT interface descriptions."""

from .codegen import __version__, generate_from_wit, generate_world, quick_generate
from .loader import load_wit, load_wit_text
from .utils import write_artifacts

__all__ = [
    "__version__",
    "generate_from_wit",
    "generate_world",
    "load_wit",
    "load_wit_text",
    "quick_generate",
    "write_artifacts",
]
