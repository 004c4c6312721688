"""Filesystem path helpers."""

from pathlib import Path


def expand_tilde(path: str | Path) -> Path:
    """Expand a leading ``~`` and make the path absolute.

    Args:
        path: User-supplied path

    Returns:
        Absolute path
    """
    return Path(path).expanduser().absolute()
