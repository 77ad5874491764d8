"""Set reconciliation helpers for file name lists and file groups."""

from typing import TYPE_CHECKING, Iterable, Sequence

from .utils import path_key

if TYPE_CHECKING:
    from .groups import FileGroup


def find_missing(current: Iterable[str], baseline: Iterable[str]) -> list[str]:
    """Find files in current that are absent from baseline.

    Paths are compared case-insensitively. The result keeps the order in
    which paths first appear in current, and of several spellings of the
    same path only the first one is kept.

    Args:
        current: File names to check
        baseline: File names that are already known

    Returns:
        List of file names from current that are not in baseline

    Examples:
        >>> find_missing(["a.cgf", "A.CGF.mtl"], ["A.cgf"])
        ['A.CGF.mtl']
        >>> find_missing(["a.cgf"], ["a.cgf"])
        []
    """
    seen = {path_key(path) for path in baseline}
    missing: list[str] = []
    for path in current:
        key = path_key(path)
        if key in seen:
            continue
        seen.add(key)
        missing.append(path)
    return missing


def all_files(groups: Sequence["FileGroup"]) -> list[str]:
    """Return all files that comprise the given file groups, in group order."""
    files: list[str] = []
    for group in groups:
        files.extend(group.get_files())
    return files


def all_main_files(groups: Sequence["FileGroup"]) -> list[str]:
    """Return the main file of each group, in group order."""
    return [group.main_file for group in groups]
