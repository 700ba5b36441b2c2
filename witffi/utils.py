"""Utility functions for writing generated artifacts.

Both files of a generation run are written as a pair: each is staged in a
temporary file next to its destination and only moved into place once both
were written successfully.
"""

import os
import tempfile
from pathlib import Path

from .codegen.core.errors import WriteFailure
from .codegen.core.generator import GeneratedArtifacts
from .logging_config import get_logger

logger = get_logger(__name__)


def write_artifacts(output_dir: str | Path, artifacts: GeneratedArtifacts) -> list[Path]:
    """Write the native source and the C header into a directory.

    Args:
        output_dir: Destination directory, created if missing.
        artifacts: Generated file bodies.

    Returns:
        Paths of the written files, native source first.

    Raises:
        WriteFailure: If the directory cannot be created or a file cannot be
            written. Nothing is left behind in that case.
    """
    output_dir = Path(output_dir)
    logger.debug(f"Writing artifacts to {output_dir}")

    try:
        output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.error(f"Cannot create output directory {output_dir}: {e}")
        raise WriteFailure(f"cannot create output directory: {e}", path=str(output_dir)) from e

    staged: list[tuple[Path, Path]] = []
    try:
        for filename, content in artifacts.files().items():
            target = output_dir / filename
            staged.append((_stage(target, content), target))

        for temp_path, target in staged:
            os.replace(temp_path, target)
            logger.info(f"Wrote {target}")
    except WriteFailure:
        _discard(staged)
        raise
    except OSError as e:
        _discard(staged)
        logger.error(f"Error writing to {output_dir}: {e}", exc_info=True)
        raise WriteFailure(f"cannot write output: {e}", path=str(output_dir)) from e

    return [target for _, target in staged]


def _stage(target: Path, content: str) -> Path:
    """Write content to a temporary file beside target and return its path."""
    try:
        fd, temp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=target.parent)
    except OSError as e:
        raise WriteFailure(f"cannot create temporary file for {target.name}: {e}", path=str(target)) from e

    temp_path = Path(temp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
            f.write(content)
    except OSError as e:
        temp_path.unlink(missing_ok=True)
        raise WriteFailure(f"cannot write {target.name}: {e}", path=str(target)) from e
    return temp_path


def _discard(staged: list[tuple[Path, Path]]) -> None:
    for temp_path, _ in staged:
        temp_path.unlink(missing_ok=True)
