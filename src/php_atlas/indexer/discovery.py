"""Source file discovery."""

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def is_excluded(path: str | Path, excluded: list[str] | tuple[str, ...]) -> bool:
    """True if any excluded substring occurs anywhere in the path string."""
    path_str = str(path)
    return any(part and part in path_str for part in excluded)


def discover(
    root: str | Path,
    excluded: list[str] | tuple[str, ...] = (),
    extensions: tuple[str, ...] = (".php",),
) -> list[Path]:
    """Find source files under *root*.

    Args:
        root: Directory to scan, or a single file
        excluded: Substrings; a path containing any of them is skipped
        extensions: File extensions to keep

    Returns:
        Sorted absolute paths
    """
    root = Path(root)
    if root.is_file():
        root = root.resolve()
        if root.suffix in extensions and not is_excluded(root, excluded):
            return [root]
        return []

    if not root.exists():
        logger.warning(f"Scan path does not exist: {root}")
        return []

    files = []
    for ext in extensions:
        for file_path in root.rglob(f"*{ext}"):
            if not file_path.is_file():
                continue
            resolved = file_path.resolve()
            if not is_excluded(resolved, excluded):
                files.append(resolved)

    return sorted(set(files))
