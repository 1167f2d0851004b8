"""Path helpers shared by the sync components."""

from pathlib import Path
from typing import Union

PATH_SEPARATOR = "/"


def normalize_label_path(path: str) -> str:
    """Normalize a relative path to the label-path convention.

    Backslashes become forward slashes and empty, ``.`` and surrounding
    separators are dropped.

    Args:
        path: Relative path as produced by the local filesystem

    Returns:
        Normalized ``/``-joined path ("" for the root)

    Examples:
        >>> normalize_label_path("docs\\\\2024/")
        'docs/2024'
        >>> normalize_label_path("./a//b")
        'a/b'
        >>> normalize_label_path("")
        ''
    """
    parts = path.replace("\\", PATH_SEPARATOR).split(PATH_SEPARATOR)
    return PATH_SEPARATOR.join(p for p in parts if p and p != ".")


def split_label_path(path: str) -> list[str]:
    """Split a label-path into its segments ([] for the root)."""
    normalized = normalize_label_path(path)
    return normalized.split(PATH_SEPARATOR) if normalized else []


def join_label_path(parent_path: str, label: str) -> str:
    """Append a label to a label-path.

    Examples:
        >>> join_label_path("", "docs")
        'docs'
        >>> join_label_path("docs", "2024")
        'docs/2024'
    """
    return f"{parent_path}{PATH_SEPARATOR}{label}" if parent_path else label


def parent_label_path(path: str) -> str:
    """Return the label-path of the directory containing ``path``.

    Examples:
        >>> parent_label_path("docs/2024/report.pdf")
        'docs/2024'
        >>> parent_label_path("report.pdf")
        ''
    """
    segments = split_label_path(path)
    return PATH_SEPARATOR.join(segments[:-1])


def relative_label_path(path: Union[str, Path], base_path: Union[str, Path]) -> str:
    """Convert a local path into a label-path relative to ``base_path``.

    Args:
        path: Local path (absolute or relative to the working directory)
        base_path: Watched root directory

    Returns:
        Relative label-path using forward slashes

    Raises:
        ValueError: If ``path`` is not inside ``base_path``
    """
    absolute = Path(path).absolute()
    base = Path(base_path).absolute()
    # as_posix() keeps forward slashes on all platforms
    return normalize_label_path(absolute.relative_to(base).as_posix())
