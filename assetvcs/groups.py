"""File groups: a main file plus the files that depend on it."""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING, Iterable, Optional

from .exceptions import AssetMetadataError
from .utils import make_path, normalize_path, path_key

if TYPE_CHECKING:
    from .layers import Layer

logger = logging.getLogger(__name__)


class FileGroup(ABC):
    """One logical asset on disk: a main file and its dependent files."""

    @property
    @abstractmethod
    def main_file(self) -> str:
        """Project path of the file identifying this group."""

    @abstractmethod
    def get_files(self) -> list[str]:
        """Return the main file followed by all dependent files."""

    @abstractmethod
    def update(self) -> None:
        """Re-derive the dependent files from what is currently on disk."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.main_file!r})"


class SimpleFileGroup(FileGroup):
    """File group with a fixed list of files."""

    def __init__(self, main_file: str, files: Optional[Iterable[str]] = None):
        self._main_file = normalize_path(main_file)
        main_key = path_key(self._main_file)
        # The main file always comes first, whatever position it was given in.
        self._files = [self._main_file] + [
            normalize_path(f) for f in files or [] if path_key(f) != main_key
        ]

    @property
    def main_file(self) -> str:
        return self._main_file

    def get_files(self) -> list[str]:
        return list(self._files)

    def update(self) -> None:
        pass


class LayerFileGroup(SimpleFileGroup):
    """File group of a single layer file."""

    def __init__(self, layer_file: str):
        super().__init__(layer_file)


@dataclass
class Asset:
    """An asset described by a metadata file.

    The metadata file is JSON::

        {"name": "tree", "files": ["tree.cgf", "tree.mtl"]}

    where data files are relative to the folder of the metadata file.
    """

    metadata_file: str
    """Project path of the metadata file"""

    files: list[str] = field(default_factory=list)
    """Project paths of the data files"""

    name: str = ""
    """Display name of the asset"""

    def __post_init__(self) -> None:
        self.metadata_file = normalize_path(self.metadata_file)
        self.files = [normalize_path(f) for f in self.files]
        if not self.name:
            self.name = _asset_name(self.metadata_file)

    @classmethod
    def from_metadata_file(cls, project_root: Path, metadata_file: str) -> "Asset":
        """Load an asset from its metadata file.

        Args:
            project_root: Root of the project
            metadata_file: Project path of the metadata file

        Returns:
            Asset instance

        Raises:
            AssetMetadataError: If the file is missing or malformed
        """
        name, files = read_asset_metadata(project_root, metadata_file)
        return cls(metadata_file=metadata_file, files=files, name=name)


def _asset_name(metadata_file: str) -> str:
    # "Objects/tree.cgf.cryasset" -> "tree"
    return PurePosixPath(metadata_file).name.split(".")[0]


def read_asset_metadata(
    project_root: Path, metadata_file: str
) -> tuple[str, list[str]]:
    """Read name and data files from an asset metadata file.

    Returns:
        Tuple of (name, project paths of the data files)

    Raises:
        AssetMetadataError: If the file is missing or malformed
    """
    metadata_file = normalize_path(metadata_file)
    path = make_path(project_root, metadata_file)
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise AssetMetadataError(f"Asset metadata not found: {metadata_file}") from e
    except (OSError, json.JSONDecodeError) as e:
        raise AssetMetadataError(
            f"Failed to read asset metadata {metadata_file}: {e}"
        ) from e

    if not isinstance(data, dict) or not isinstance(data.get("files", []), list):
        raise AssetMetadataError(f"Invalid asset metadata: {metadata_file}")

    folder = PurePosixPath(metadata_file).parent
    files = [
        normalize_path((folder / str(f)).as_posix()) for f in data.get("files", [])
    ]
    name = data.get("name") or _asset_name(metadata_file)
    return str(name), files


class AssetFileGroup(FileGroup):
    """File group of an asset: the metadata file plus its data files."""

    def __init__(self, asset: Asset, project_root: Path):
        self.project_root = project_root
        self._main_file = asset.metadata_file
        self._files = list(asset.files)

    @property
    def main_file(self) -> str:
        return self._main_file

    def get_files(self) -> list[str]:
        return [self._main_file] + self._files

    def update(self) -> None:
        """Re-read the metadata file from disk.

        A metadata file that is gone (for instance deleted by a pull) or
        unreadable leaves the group with only its main file.
        """
        try:
            _, self._files = read_asset_metadata(self.project_root, self._main_file)
        except AssetMetadataError as e:
            logger.warning(f"Could not update file group: {e}")
            self._files = []


def to_file_groups(assets: Iterable[Asset], project_root: Path) -> list[FileGroup]:
    """Convert assets to file groups."""
    return [AssetFileGroup(asset, project_root) for asset in assets]


def layers_to_file_groups(layers: Iterable["Layer"]) -> list[FileGroup]:
    """Convert layers to file groups."""
    return [LayerFileGroup(layer.file_path) for layer in layers]
