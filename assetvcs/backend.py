"""Asynchronous wrappers around the API client."""

import logging
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Optional, Sequence

from .api import PullResult, VCSClient
from .status import StatusCache

logger = logging.getLogger(__name__)


class RemotePullClient:
    """Pull capability running VCSClient.get_latest on an executor."""

    def __init__(self, client: VCSClient, executor: Optional[Executor] = None):
        """Initialize the pull client.

        Args:
            client: API client performing the pulls
            executor: Executor running the pulls (defaults to a private
                single-worker pool, so pulls never overlap)
        """
        self.client = client
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="assetvcs-pull"
        )

    def pull(
        self, files: Sequence[str], folders: Sequence[str]
    ) -> "Future[PullResult]":
        """Start pulling files and folders."""
        return self._executor.submit(self._pull, list(files), list(folders))

    def _pull(self, files: list[str], folders: list[str]) -> PullResult:
        result = self.client.get_latest(files, folders)
        logger.debug(
            f"Pulled {len(result.downloaded)} file(s), "
            f"removed {len(result.deleted)} file(s)"
        )
        return result

    def close(self) -> None:
        """Shut down the private executor, if any."""
        if self._owns_executor:
            self._executor.shutdown(wait=True)


def create_status_cache(
    client: VCSClient, executor: Optional[Executor] = None
) -> StatusCache:
    """Create a status cache fetching statuses through the API client."""
    return StatusCache(client.get_status, executor)
