"""Utility functions and constants for assetvcs."""

from pathlib import Path, PurePosixPath
from typing import Union

# =============================================================================
# Constants
# =============================================================================

# Extension of folder-scoped layer files
LAYER_FILE_EXTENSION: str = ".lyr"

# Extension of asset metadata files
ASSET_METADATA_EXTENSION: str = ".cryasset"

# Default remote service
DEFAULT_API_URL: str = "http://localhost:8080/api/v1"

# Retry configuration for transient errors
DEFAULT_MAX_RETRIES: int = 3
DEFAULT_RETRY_DELAY: float = 1.0  # seconds
DEFAULT_TIMEOUT: float = 30.0  # seconds
MAX_RETRY_DELAY: float = 30.0  # seconds


# =============================================================================
# Path utilities
# =============================================================================


def normalize_path(path: str) -> str:
    """Normalize a project path to forward slashes without leading "./" or "/".

    Examples:
        >>> normalize_path("Levels\\\\Forest\\\\main.lyr")
        'Levels/Forest/main.lyr'
        >>> normalize_path("./Objects/tree.cgf")
        'Objects/tree.cgf'
    """
    normalized = path.replace("\\", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized.lstrip("/")


def path_key(path: str) -> str:
    """Case-insensitive comparison key for a project path."""
    return normalize_path(path).casefold()


def to_project_path(path: Union[str, Path], project_root: Path) -> str:
    """Convert an absolute or relative file system path to a project path.

    Args:
        path: Path on disk (absolute, or relative to the project root)
        project_root: Root directory of the project

    Returns:
        Project-relative path using forward slashes

    Raises:
        ValueError: If an absolute path lies outside the project root
    """
    path = Path(path)
    if path.is_absolute():
        path = path.relative_to(project_root)
    return normalize_path(path.as_posix())


def make_path(project_root: Path, project_path: str) -> Path:
    """Resolve a project path against the project root."""
    return project_root.joinpath(*PurePosixPath(normalize_path(project_path)).parts)
