"""Layer files: the layer model and layer synchronization."""

import logging
from concurrent.futures import Future
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Optional, Sequence

from .exceptions import LayerImportError
from .groups import layers_to_file_groups
from .protocols import LayerImporter
from .reconcile import find_missing
from .scanner import DirectoryScanner
from .synchronizer import AssetsSynchronizer, SyncCallback, SyncReport
from .utils import LAYER_FILE_EXTENSION, make_path, normalize_path, path_key

logger = logging.getLogger(__name__)


@dataclass
class Layer:
    """A layer loaded from a layer file."""

    name: str
    """Layer name (file name without extension)"""

    file_path: str
    """Project path of the layer file"""

    modified: bool = False
    """Whether the layer has unsaved changes"""

    def set_modified(self, modified: bool) -> None:
        self.modified = modified


class LayerManager:
    """Registry of the layers loaded in the running project."""

    def __init__(self, project_root: Path):
        self.project_root = project_root
        self._layers: dict[str, Layer] = {}

    @property
    def layers(self) -> list[Layer]:
        return list(self._layers.values())

    def get_layer(self, file_path: str) -> Optional[Layer]:
        return self._layers.get(path_key(file_path))

    def add_layer(self, layer: Layer) -> None:
        self._layers[path_key(layer.file_path)] = layer

    def import_from_file(self, file_path: str) -> Layer:
        """Load the layer stored at a project path.

        An imported layer counts as modified until it is saved or its
        state is reset. Importing a file that is already loaded replaces
        the loaded layer.

        Raises:
            LayerImportError: If the file is missing or not a layer file
        """
        file_path = normalize_path(file_path)
        if not file_path.lower().endswith(LAYER_FILE_EXTENSION):
            raise LayerImportError(f"Not a layer file: {file_path}")
        if not make_path(self.project_root, file_path).is_file():
            raise LayerImportError(f"Layer file not found: {file_path}")

        name = PurePosixPath(file_path).name[: -len(LAYER_FILE_EXTENSION)]
        layer = Layer(name=name, file_path=file_path, modified=True)
        self.add_layer(layer)
        logger.debug(f"Imported layer {name} from {file_path}")
        return layer


@dataclass
class LayerSyncReport:
    """Result of a layer sync."""

    sync: SyncReport
    """Report of the wrapped asset sync"""

    imported: list[str] = field(default_factory=list)
    """Project paths of layer files imported after the sync"""

    failed: list[str] = field(default_factory=list)
    """Project paths of new layer files that could not be imported"""

    def to_dict(self) -> dict:
        return {
            **self.sync.to_dict(),
            "imported": list(self.imported),
            "failed": list(self.failed),
        }


class LayerSynchronizer:
    """Syncs layers and imports layer files that the sync brought in."""

    def __init__(
        self,
        synchronizer: AssetsSynchronizer,
        scanner: DirectoryScanner,
        importer: LayerImporter,
    ):
        """Initialize the layer synchronizer.

        Args:
            synchronizer: Synchronizer running the actual sync
            scanner: Scanner finding layer files in folders
            importer: Importer loading new layer files
        """
        self.synchronizer = synchronizer
        self.scanner = scanner
        self.importer = importer

    def sync_layers(
        self,
        layers: Sequence[Layer],
        folders: Optional[Sequence[str]] = None,
        callback: Optional[SyncCallback] = None,
    ) -> "Future[LayerSyncReport]":
        """Sync layers and folders, then import newly appeared layer files.

        Args:
            layers: Layers whose files should be synced
            folders: Folders to pull as a whole
            callback: Called exactly once after the new layers were imported

        Returns:
            Future resolving to a LayerSyncReport after the callback has run
        """
        folders = list(folders or [])
        original_files = self.scanner.find_layer_files(folders)
        result: "Future[LayerSyncReport]" = Future()

        def on_sync(sync_future: "Future[SyncReport]") -> None:
            error = sync_future.exception()
            report = LayerSyncReport(
                sync=sync_future.result() if error is None else SyncReport()
            )
            try:
                self._import_new_layers(folders, original_files, report)
            except Exception as e:
                logger.exception("Importing new layer files failed")
                if error is None:
                    error = e

            # The callback runs once, whatever happened above.
            try:
                if callback is not None:
                    callback()
            finally:
                if error is not None:
                    result.set_exception(error)
                else:
                    result.set_result(report)

        self.synchronizer.sync(
            layers_to_file_groups(layers), folders
        ).add_done_callback(on_sync)
        return result

    def _import_new_layers(
        self,
        folders: list[str],
        original_files: list[str],
        report: LayerSyncReport,
    ) -> None:
        new_files = self.scanner.find_layer_files(folders)
        for file_path in find_missing(new_files, original_files):
            if self._import_layer(file_path):
                report.imported.append(file_path)
            else:
                report.failed.append(file_path)

    def _import_layer(self, file_path: str) -> bool:
        logger.info(f"Importing just downloaded layer file {file_path}.")
        try:
            layer = self.importer.import_from_file(file_path)
        except LayerImportError as e:
            logger.error(f"Failed to import layer file {file_path}: {e}")
            return False
        # A layer that was just pulled has no local changes.
        layer.set_modified(False)
        return True
