"""Synchronization of asset file groups with the remote version control backend.

A sync runs as a small state machine. Each step either finishes
immediately or hands back the future of a status refresh or pull; the
machine resumes in that future's done-callback. Steps never overlap, so
a session's state is only ever touched by one step at a time.
"""

import logging
from concurrent.futures import Future
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional, Sequence

from .config import config
from .groups import Asset, FileGroup, to_file_groups
from .protocols import PullClient, StatusProvider
from .reconcile import all_files, all_main_files, find_missing
from .status import RemoteStatus

logger = logging.getLogger(__name__)

SyncCallback = Callable[[], None]


class SyncStep(str, Enum):
    """Steps of a sync session, in execution order."""

    REFRESH_STATUS = "refresh_status"
    """Ask the status provider about all groups"""

    FILTER_RELEVANT = "filter_relevant"
    """Drop groups that are neither updated nor deleted remotely"""

    PARTITION_DELETED = "partition_deleted"
    """Move remotely deleted groups behind all others"""

    BROAD_PULL = "broad_pull"
    """Pull every file of the remaining groups plus the folders"""

    REFRESH_GROUPS = "refresh_groups"
    """Re-read groups from disk and drop the deleted ones"""

    NARROW_PULL = "narrow_pull"
    """Pull files that only became known after the refresh"""

    COMPLETE = "complete"
    """Run the completion callback"""

    DONE = "done"


@dataclass
class PullRequest:
    """Files and folders requested by one pull."""

    files: list[str]
    folders: list[str]

    def to_dict(self) -> dict:
        return {"files": list(self.files), "folders": list(self.folders)}


@dataclass
class SyncReport:
    """What a sync session did.

    Pull outcomes are not inspected, so this records what was requested,
    not what the backend managed to transfer.
    """

    requested: list[str] = field(default_factory=list)
    """Main files of all groups passed in"""

    synced: list[str] = field(default_factory=list)
    """Main files of groups updated or deleted remotely"""

    deleted: list[str] = field(default_factory=list)
    """Main files of groups deleted remotely"""

    discovered: list[str] = field(default_factory=list)
    """Files that only appeared after the post-pull refresh"""

    pulls: list[PullRequest] = field(default_factory=list)
    """Pulls issued, in order"""

    def to_dict(self) -> dict:
        """Convert report to dictionary for JSON output."""
        return {
            "requested": list(self.requested),
            "synced": list(self.synced),
            "deleted": list(self.deleted),
            "discovered": list(self.discovered),
            "pulls": [pull.to_dict() for pull in self.pulls],
        }


@dataclass
class SyncSession:
    """State carried from one step of a sync to the next."""

    groups: list[FileGroup]
    folders: list[str]
    callback: SyncCallback
    future: "Future[SyncReport]" = field(default_factory=Future)
    report: SyncReport = field(default_factory=SyncReport)
    step: SyncStep = SyncStep.REFRESH_STATUS
    original_files: list[str] = field(default_factory=list)
    deleted_boundary: int = 0
    error: Optional[BaseException] = None


def _noop() -> None:
    pass


class AssetsSynchronizer:
    """Brings file groups and folders up to date with the remote.

    Examples:
        >>> synchronizer = AssetsSynchronizer(status_cache, pull_client)
        >>> future = synchronizer.sync(groups, ["Levels/Forest"])
        >>> report = future.result()
        >>> print(f"{len(report.pulls)} pull(s)")
    """

    def __init__(
        self,
        status_provider: StatusProvider,
        pull_client: PullClient,
        project_root: Optional[Path] = None,
    ):
        """Initialize the synchronizer.

        Args:
            status_provider: Source of remote status for file groups
            pull_client: Client fetching the latest remote content
            project_root: Project root for loading assets (defaults to the
                configured project root)
        """
        self.status_provider = status_provider
        self.pull_client = pull_client
        self.project_root = project_root or config.project_root

    def sync(
        self,
        groups: Sequence[FileGroup],
        folders: Optional[Sequence[str]] = None,
        callback: Optional[SyncCallback] = None,
    ) -> "Future[SyncReport]":
        """Sync file groups and folders with the remote.

        Only groups updated or deleted remotely are pulled. After the
        pull the groups are re-read from disk, remotely deleted groups are
        dropped, and files the refreshed groups reference for the first
        time are pulled in a second, narrower pull.

        Args:
            groups: File groups to sync
            folders: Folders to pull as a whole, including files that no
                group knows about yet
            callback: Called exactly once when the sync has finished

        Returns:
            Future resolving to a SyncReport after the callback has run
        """
        session = SyncSession(
            groups=list(groups),
            folders=list(folders or []),
            callback=callback or _noop,
        )
        session.report.requested = all_main_files(session.groups)
        logger.debug(
            f"Starting sync of {len(session.groups)} group(s) "
            f"and {len(session.folders)} folder(s)"
        )
        self._run(session)
        return session.future

    def sync_assets(
        self,
        assets: Sequence[Asset],
        folders: Optional[Sequence[str]] = None,
        callback: Optional[SyncCallback] = None,
    ) -> "Future[SyncReport]":
        """Sync assets and folders."""
        return self.sync(to_file_groups(assets, self.project_root), folders, callback)

    def sync_group(
        self, group: FileGroup, callback: Optional[SyncCallback] = None
    ) -> "Future[SyncReport]":
        """Sync a single file group."""
        return self.sync([group], [], callback)

    def sync_folders(
        self, folders: Sequence[str], callback: Optional[SyncCallback] = None
    ) -> "Future[SyncReport]":
        """Sync whole folders."""
        return self.sync([], folders, callback)

    # =========================
    # State machine
    # =========================

    def _run(self, session: SyncSession) -> None:
        """Execute steps until one has to wait or the session is done."""
        while session.step is not SyncStep.DONE:
            handler = getattr(self, f"_step_{session.step.value}")
            try:
                pending = handler(session)
            except Exception as e:
                if session.step is SyncStep.DONE:
                    # Raised by the caller's callback; the future is resolved.
                    raise
                logger.exception(f"Sync failed during {session.step.value}")
                session.error = e
                session.step = SyncStep.COMPLETE
                continue

            if pending is not None:
                pending.add_done_callback(
                    lambda future: self._resume(session, future)
                )
                return

    def _resume(self, session: SyncSession, future: "Future[Any]") -> None:
        if future.cancelled():
            logger.warning(f"Request before {session.step.value} was cancelled")
        elif future.exception() is not None:
            logger.warning(
                f"Request before {session.step.value} failed: {future.exception()}"
            )
        self._run(session)

    def _pull(
        self, session: SyncSession, files: list[str], folders: list[str]
    ) -> "Future[Any]":
        session.report.pulls.append(PullRequest(list(files), list(folders)))
        logger.debug(f"Pulling {len(files)} file(s) and {len(folders)} folder(s)")
        return self.pull_client.pull(list(files), list(folders))

    def _step_refresh_status(self, session: SyncSession) -> "Future[Any]":
        session.step = SyncStep.FILTER_RELEVANT
        # Folders are pulled as a whole, their status is not needed.
        return self.status_provider.refresh_status(list(session.groups), [])

    def _step_filter_relevant(self, session: SyncSession) -> Optional["Future[Any]"]:
        mask = RemoteStatus.UPDATED_REMOTELY | RemoteStatus.DELETED_REMOTELY
        session.groups = [
            group
            for group in session.groups
            if self.status_provider.has_status(group, mask)
        ]
        session.report.synced = all_main_files(session.groups)

        if session.groups:
            session.step = SyncStep.PARTITION_DELETED
            return None

        session.step = SyncStep.COMPLETE
        if not session.folders:
            logger.debug("No group changed remotely, nothing to pull")
            return None
        return self._pull(session, [], session.folders)

    def _step_partition_deleted(self, session: SyncSession) -> None:
        kept: list[FileGroup] = []
        deleted: list[FileGroup] = []
        for group in session.groups:
            if self.status_provider.has_status(group, RemoteStatus.DELETED_REMOTELY):
                deleted.append(group)
            else:
                kept.append(group)

        session.groups = kept + deleted
        session.deleted_boundary = len(kept)
        session.report.deleted = all_main_files(deleted)
        session.step = SyncStep.BROAD_PULL

    def _step_broad_pull(self, session: SyncSession) -> "Future[Any]":
        session.original_files = all_files(session.groups)
        session.step = SyncStep.REFRESH_GROUPS
        return self._pull(session, session.original_files, session.folders)

    def _step_refresh_groups(self, session: SyncSession) -> None:
        # Pulled content may reference files the groups did not know about.
        for group in session.groups:
            group.update()

        # The pull removed the local files of remotely deleted groups.
        removed = len(session.groups) - session.deleted_boundary
        if removed:
            logger.debug(f"Dropping {removed} remotely deleted group(s)")
            del session.groups[session.deleted_boundary :]

        session.step = (
            SyncStep.NARROW_PULL if session.groups else SyncStep.COMPLETE
        )

    def _step_narrow_pull(self, session: SyncSession) -> Optional["Future[Any]"]:
        missing = find_missing(all_files(session.groups), session.original_files)
        session.report.discovered = missing
        session.step = SyncStep.COMPLETE
        if not missing:
            return None
        return self._pull(session, missing, [])

    def _step_complete(self, session: SyncSession) -> None:
        session.step = SyncStep.DONE
        logger.debug(f"Sync finished after {len(session.report.pulls)} pull(s)")
        try:
            session.callback()
        finally:
            if session.error is not None:
                session.future.set_exception(session.error)
            else:
                session.future.set_result(session.report)
