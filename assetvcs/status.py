"""Remote status flags and the caching status provider."""

import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from enum import IntFlag
from typing import Callable, Iterable, Optional, Sequence

from .groups import FileGroup
from .reconcile import all_files
from .utils import path_key

logger = logging.getLogger(__name__)


class RemoteStatus(IntFlag):
    """How a file differs from the remote source of truth."""

    NONE = 0
    UPDATED_REMOTELY = 1 << 0
    DELETED_REMOTELY = 1 << 1
    ADDED_REMOTELY = 1 << 2
    MODIFIED_LOCALLY = 1 << 3
    ADDED_LOCALLY = 1 << 4
    DELETED_LOCALLY = 1 << 5
    CHECKED_OUT_REMOTELY = 1 << 6
    CONFLICTED = 1 << 7
    UNTRACKED = 1 << 8

    @classmethod
    def from_names(cls, names: Iterable[str]) -> "RemoteStatus":
        """Combine lower-case flag names (as sent by the server) into flags.

        Unknown names are ignored.

        Examples:
            >>> status = RemoteStatus.from_names(["updated_remotely", "conflicted"])
            >>> status == RemoteStatus.UPDATED_REMOTELY | RemoteStatus.CONFLICTED
            True
        """
        status = cls.NONE
        for name in names:
            member = cls.__members__.get(name.upper())
            if member is None:
                logger.debug(f"Ignoring unknown status flag: {name}")
                continue
            status |= member
        return status

    def to_names(self) -> list[str]:
        """Return the lower-case names of all flags that are set."""
        return [
            name.lower()
            for name, member in type(self).__members__.items()
            if member and member in self
        ]


StatusFetcher = Callable[[list[str], list[str]], dict[str, RemoteStatus]]


class StatusCache:
    """Status provider that caches per-file remote status.

    Refreshes run on an executor (a private single-worker pool unless one
    is supplied) and resolve the returned future once the cache has been
    updated. Reads through :meth:`has_status` are synchronous.
    """

    def __init__(
        self,
        fetch_status: StatusFetcher,
        executor: Optional[Executor] = None,
    ):
        """Initialize the status cache.

        Args:
            fetch_status: Callable(files, folders) returning a mapping of
                project path to RemoteStatus
            executor: Executor running the fetches
        """
        self._fetch_status = fetch_status
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="assetvcs-status"
        )
        self._statuses: dict[str, RemoteStatus] = {}
        self._lock = threading.Lock()

    def refresh_status(
        self, groups: Sequence[FileGroup], folders: Sequence[str] = ()
    ) -> "Future[None]":
        """Fetch the remote status of every file in groups (and folders)."""
        files = all_files(groups)
        return self._executor.submit(self._refresh, files, list(folders))

    def _refresh(self, files: list[str], folders: list[str]) -> None:
        if not files and not folders:
            return
        statuses = self._fetch_status(files, folders)
        with self._lock:
            # Files the server did not report on are in sync.
            for file in files:
                self._statuses[path_key(file)] = RemoteStatus.NONE
            for path, status in statuses.items():
                self._statuses[path_key(path)] = status
        logger.debug(f"Refreshed status of {len(files)} file(s)")

    def get_status(self, path: str) -> RemoteStatus:
        """Return the cached status of a single file."""
        with self._lock:
            return self._statuses.get(path_key(path), RemoteStatus.NONE)

    def set_status(self, path: str, status: RemoteStatus) -> None:
        """Override the cached status of a single file."""
        with self._lock:
            self._statuses[path_key(path)] = status

    def get_group_status(self, group: FileGroup) -> RemoteStatus:
        """Return the union of the statuses of all files of a group."""
        status = RemoteStatus.NONE
        for file in group.get_files():
            status |= self.get_status(file)
        return status

    def has_status(self, group: FileGroup, mask: RemoteStatus) -> bool:
        """Check whether any file of the group has one of the flags in mask."""
        return bool(self.get_group_status(group) & mask)

    def clear(self) -> None:
        """Forget all cached statuses."""
        with self._lock:
            self._statuses.clear()

    def close(self) -> None:
        """Shut down the private executor, if any."""
        if self._owns_executor:
            self._executor.shutdown(wait=True)
