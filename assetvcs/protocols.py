"""Capabilities consumed by the synchronizers.

Any object with matching methods can be passed in; the concrete
implementations shipped with assetvcs are StatusCache, RemotePullClient
and LayerManager.
"""

from concurrent.futures import Future
from typing import Any, Protocol, Sequence

from .groups import FileGroup
from .status import RemoteStatus


class StatusProvider(Protocol):
    """Source of remote status for file groups."""

    def refresh_status(
        self, groups: Sequence[FileGroup], folders: Sequence[str] = ()
    ) -> "Future[Any]":
        """Start fetching the status of groups; the future resolves when cached."""
        ...

    def has_status(self, group: FileGroup, mask: RemoteStatus) -> bool:
        """Check the cached status of a group against mask."""
        ...


class PullClient(Protocol):
    """Fetches the latest remote content of files and folders."""

    def pull(self, files: Sequence[str], folders: Sequence[str]) -> "Future[Any]":
        """Start a pull; the future resolves when it has finished."""
        ...


class LayerHandle(Protocol):
    """A layer loaded into the running layer model."""

    def set_modified(self, modified: bool) -> None: ...


class LayerImporter(Protocol):
    """Loads layer files into the running layer model."""

    def import_from_file(self, path: str) -> LayerHandle:
        """Import the layer stored at the given project path."""
        ...
