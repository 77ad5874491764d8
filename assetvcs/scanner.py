"""Directory scanning utilities for layer files."""

import logging
from pathlib import Path
from typing import Optional, Sequence

from .utils import LAYER_FILE_EXTENSION, make_path

logger = logging.getLogger(__name__)


def find_files_by_extension(
    directory: Path,
    extension: str,
    recursive: bool = True,
    base_path: Optional[Path] = None,
) -> list[str]:
    """Find files with the given extension below a directory.

    Entries are visited in sorted order and the extension is matched
    case-insensitively. Symlinked directories are not descended into.
    Directories that do not exist or cannot be read contribute
    no files.

    Args:
        directory: Directory to scan
        extension: File extension including the dot (e.g. ".lyr")
        recursive: Whether to descend into subdirectories
        base_path: Base path for calculating relative paths (defaults to directory)

    Returns:
        Relative paths (using forward slashes) of the matching files

    Examples:
        >>> find_files_by_extension(Path("/game"), ".lyr")
        ['Levels/Forest/main.lyr', 'Levels/Forest/terrain/rocks.lyr']
    """
    if base_path is None:
        base_path = directory

    try:
        entries = sorted(directory.iterdir())
    except (FileNotFoundError, NotADirectoryError):
        return []
    except PermissionError:
        logger.debug(f"Skipping unreadable directory: {directory}")
        return []

    suffix = extension.lower()
    files = [
        entry.relative_to(base_path).as_posix()
        for entry in entries
        if entry.is_file() and entry.name.lower().endswith(suffix)
    ]
    if recursive:
        for entry in entries:
            # Symlinked directories may point back up the tree.
            if entry.is_dir() and not entry.is_symlink():
                files = files + find_files_by_extension(
                    entry, extension, recursive, base_path
                )
    return files


class DirectoryScanner:
    """Scans project folders for layer files.

    Examples:
        >>> scanner = DirectoryScanner(Path("/game"))
        >>> scanner.find_layer_files(["Levels/Forest"])
        ['Levels/Forest/main.lyr']
    """

    def __init__(self, project_root: Path, extension: str = LAYER_FILE_EXTENSION):
        """Initialize directory scanner.

        Args:
            project_root: Root that folders and results are relative to
            extension: Extension of the files to look for
        """
        self.project_root = project_root
        self.extension = extension

    def find_files(self, folders: Sequence[str], recursive: bool = True) -> list[str]:
        """Return project paths of matching files in all given folders."""
        files: list[str] = []
        for folder in folders:
            files.extend(
                find_files_by_extension(
                    make_path(self.project_root, folder),
                    self.extension,
                    recursive,
                    base_path=self.project_root,
                )
            )
        return files

    def find_layer_files(self, folders: Sequence[str]) -> list[str]:
        """Return project paths of all layer files in folders, recursively."""
        return self.find_files(folders, recursive=True)
