"""Shared fakes for the synchronizer tests."""

from concurrent.futures import Future
from typing import Callable, Optional, Sequence

import pytest

from assetvcs.groups import FileGroup
from assetvcs.status import RemoteStatus


class FakeFileGroup(FileGroup):
    """File group whose file list changes to files_after_update on update()."""

    def __init__(
        self,
        main_file: str,
        files: Optional[Sequence[str]] = None,
        files_after_update: Optional[Sequence[str]] = None,
    ):
        self._main_file = main_file
        self._files = list(files) if files is not None else [main_file]
        self._files_after_update = files_after_update
        self.update_count = 0

    @property
    def main_file(self) -> str:
        return self._main_file

    def get_files(self) -> list[str]:
        return list(self._files)

    def update(self) -> None:
        self.update_count += 1
        if self._files_after_update is not None:
            self._files = list(self._files_after_update)


def _completed(result=None) -> Future:
    future: Future = Future()
    future.set_result(result)
    return future


class FakeStatusProvider:
    """Status provider answering from a dict keyed by main file."""

    def __init__(self, statuses: Optional[dict[str, RemoteStatus]] = None):
        self.statuses = statuses or {}
        self.refresh_calls: list[tuple[list[str], list[str]]] = []
        self.defer = False
        self.pending: list[Future] = []

    def refresh_status(self, groups, folders=()) -> Future:
        self.refresh_calls.append(
            ([group.main_file for group in groups], list(folders))
        )
        if self.defer:
            future: Future = Future()
            self.pending.append(future)
            return future
        return _completed()

    def has_status(self, group: FileGroup, mask: RemoteStatus) -> bool:
        return bool(self.statuses.get(group.main_file, RemoteStatus.NONE) & mask)


class FakePullClient:
    """Pull client recording every pull.

    on_pull is invoked with (files, folders) before the future resolves,
    standing in for the files the pull writes to disk.
    """

    def __init__(
        self, on_pull: Optional[Callable[[list[str], list[str]], None]] = None
    ):
        self.on_pull = on_pull
        self.calls: list[tuple[list[str], list[str]]] = []
        self.defer = False
        self.fail_with: Optional[Exception] = None
        self.pending: list[Future] = []

    def pull(self, files, folders) -> Future:
        self.calls.append((list(files), list(folders)))
        if self.on_pull is not None:
            self.on_pull(list(files), list(folders))
        future: Future = Future()
        if self.defer:
            self.pending.append(future)
        elif self.fail_with is not None:
            future.set_exception(self.fail_with)
        else:
            future.set_result(None)
        return future

    def complete_next(self) -> None:
        self.pending.pop(0).set_result(None)


class CallbackCounter:
    """Callable counting how often it was invoked."""

    def __init__(self):
        self.calls = 0

    def __call__(self) -> None:
        self.calls += 1


@pytest.fixture
def status_provider():
    """Create a fake status provider."""
    return FakeStatusProvider()


@pytest.fixture
def pull_client():
    """Create a fake pull client."""
    return FakePullClient()


@pytest.fixture
def callback():
    """Create a counting callback."""
    return CallbackCounter()
