"""Tests for the AssetsSynchronizer state machine."""

import json
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path

import pytest
from conftest import FakeFileGroup, FakePullClient, FakeStatusProvider

from assetvcs.groups import Asset
from assetvcs.status import RemoteStatus
from assetvcs.synchronizer import AssetsSynchronizer, PullRequest, SyncReport

UPDATED = RemoteStatus.UPDATED_REMOTELY
DELETED = RemoteStatus.DELETED_REMOTELY


@pytest.fixture
def synchronizer(status_provider, pull_client, tmp_path):
    """Create a synchronizer wired to the fakes."""
    return AssetsSynchronizer(status_provider, pull_client, tmp_path)


class TestScenarios:
    """End-to-end scenarios of a single sync."""

    def test_empty_sync(self, synchronizer, pull_client, callback):
        """No groups and no folders: callback fires, nothing is pulled."""
        future = synchronizer.sync([], [], callback)

        assert callback.calls == 1
        assert pull_client.calls == []
        assert future.done()
        assert future.result().pulls == []

    def test_folder_only(self, synchronizer, pull_client, callback):
        """Only folders: a single pull of the folders, then the callback."""
        synchronizer.sync([], ["Levels/Forest"], callback)

        assert pull_client.calls == [([], ["Levels/Forest"])]
        assert callback.calls == 1

    def test_unchanged_group_is_skipped(
        self, synchronizer, status_provider, pull_client, callback
    ):
        """A group without remote changes is filtered out."""
        group = FakeFileGroup("a.cgf")
        status_provider.statuses = {"a.cgf": RemoteStatus.NONE}

        report = synchronizer.sync([group], [], callback).result()

        assert pull_client.calls == []
        assert callback.calls == 1
        assert group.update_count == 0
        assert report.requested == ["a.cgf"]
        assert report.synced == []

    def test_locally_modified_group_is_skipped(
        self, synchronizer, status_provider, pull_client, callback
    ):
        """Only remote updates and deletions make a group relevant."""
        group = FakeFileGroup("a.cgf")
        status_provider.statuses = {
            "a.cgf": RemoteStatus.MODIFIED_LOCALLY | RemoteStatus.CONFLICTED
        }

        synchronizer.sync([group], [], callback)

        assert pull_client.calls == []
        assert callback.calls == 1

    def test_discovery_triggers_narrow_pull(
        self, synchronizer, status_provider, pull_client, callback
    ):
        """Files referenced only after the refresh are pulled in a second pull."""
        group = FakeFileGroup(
            "a.cgf", ["a.cgf"], files_after_update=["a.cgf", "a.cgf.mtl"]
        )
        status_provider.statuses = {"a.cgf": UPDATED}

        report = synchronizer.sync([group], [], callback).result()

        assert pull_client.calls == [(["a.cgf"], []), (["a.cgf.mtl"], [])]
        assert callback.calls == 1
        assert group.update_count == 1
        assert report.discovered == ["a.cgf.mtl"]

    def test_no_discovery_no_narrow_pull(
        self, synchronizer, status_provider, pull_client, callback
    ):
        """Without new files only the broad pull happens."""
        group = FakeFileGroup("a.cgf", ["a.cgf", "a.mtl"])
        status_provider.statuses = {"a.cgf": UPDATED}

        synchronizer.sync([group], ["Textures"], callback)

        assert pull_client.calls == [(["a.cgf", "a.mtl"], ["Textures"])]
        assert callback.calls == 1

    def test_deleted_group(self, synchronizer, status_provider, pull_client, callback):
        """A remotely deleted group is pulled once and then dropped."""
        group = FakeFileGroup("b.cgf", files_after_update=["b.cgf", "b.cgf.mtl"])
        status_provider.statuses = {"b.cgf": DELETED}

        report = synchronizer.sync([group], [], callback).result()

        assert pull_client.calls == [(["b.cgf"], [])]
        assert callback.calls == 1
        assert report.deleted == ["b.cgf"]
        assert report.discovered == []


class TestFilteringAndPartitioning:
    """Tests for relevance filtering and the deletion partition."""

    def test_only_relevant_groups_are_pulled(
        self, synchronizer, status_provider, pull_client
    ):
        """Unchanged groups are left out of the broad pull, folders stay."""
        groups = [
            FakeFileGroup("a.cgf"),
            FakeFileGroup("n.cgf"),
            FakeFileGroup("c.cgf"),
        ]
        status_provider.statuses = {"a.cgf": UPDATED, "c.cgf": DELETED}

        synchronizer.sync(groups, ["Levels"])

        assert pull_client.calls == [(["a.cgf", "c.cgf"], ["Levels"])]
        assert groups[1].update_count == 0

    def test_partition_is_stable(self, synchronizer, status_provider, pull_client):
        """Deleted groups move to the back without reordering either side."""
        groups = [
            FakeFileGroup("d1.cgf"),
            FakeFileGroup("u1.cgf"),
            FakeFileGroup("d2.cgf"),
            FakeFileGroup("u2.cgf"),
        ]
        status_provider.statuses = {
            "d1.cgf": DELETED,
            "u1.cgf": UPDATED,
            "d2.cgf": DELETED | UPDATED,
            "u2.cgf": UPDATED,
        }

        report = synchronizer.sync(groups, []).result()

        assert pull_client.calls[0] == (
            ["u1.cgf", "u2.cgf", "d1.cgf", "d2.cgf"],
            [],
        )
        assert report.synced == ["d1.cgf", "u1.cgf", "d2.cgf", "u2.cgf"]
        assert report.deleted == ["d1.cgf", "d2.cgf"]

    def test_deleted_groups_never_reach_narrow_pull(
        self, synchronizer, status_provider, pull_client
    ):
        """Files revealed by a deleted group's refresh are not pulled."""
        updated = FakeFileGroup("a.cgf", files_after_update=["a.cgf", "a.mtl"])
        deleted = FakeFileGroup("b.cgf", files_after_update=["b.cgf", "b.mtl"])
        status_provider.statuses = {"a.cgf": UPDATED, "b.cgf": DELETED}

        report = synchronizer.sync([deleted, updated], []).result()

        assert pull_client.calls == [(["a.cgf", "b.cgf"], []), (["a.mtl"], [])]
        assert report.discovered == ["a.mtl"]
        # Every group is refreshed, including the deleted one.
        assert deleted.update_count == 1

    def test_only_deleted_groups_with_folders(
        self, synchronizer, status_provider, pull_client, callback
    ):
        """All groups deleted: one broad pull including folders, no second pull."""
        groups = [FakeFileGroup("x.cgf"), FakeFileGroup("y.cgf")]
        status_provider.statuses = {"x.cgf": DELETED, "y.cgf": DELETED}

        synchronizer.sync(groups, ["Objects"], callback)

        assert pull_client.calls == [(["x.cgf", "y.cgf"], ["Objects"])]
        assert callback.calls == 1

    def test_status_is_requested_without_folders(
        self, synchronizer, status_provider
    ):
        """Status is refreshed for the groups only."""
        groups = [FakeFileGroup("a.cgf"), FakeFileGroup("b.cgf")]

        synchronizer.sync(groups, ["Levels/Forest"])

        assert status_provider.refresh_calls == [(["a.cgf", "b.cgf"], [])]


class TestNarrowPull:
    """Tests for the diff computed before the second pull."""

    def test_case_insensitive_diff(self, synchronizer, status_provider, pull_client):
        """A file already pulled under another spelling is not pulled again."""
        group = FakeFileGroup(
            "Objects/a.cgf",
            ["Objects/a.cgf"],
            files_after_update=["objects/A.CGF", "Objects/a.mtl"],
        )
        status_provider.statuses = {"Objects/a.cgf": UPDATED}

        synchronizer.sync([group], [])

        assert pull_client.calls[1] == (["Objects/a.mtl"], [])

    def test_narrow_pull_has_no_folders(
        self, synchronizer, status_provider, pull_client
    ):
        """The second pull is limited to the new files."""
        group = FakeFileGroup("a.cgf", files_after_update=["a.cgf", "a.mtl"])
        status_provider.statuses = {"a.cgf": UPDATED}

        synchronizer.sync([group], ["Levels", "Textures"])

        assert pull_client.calls == [
            (["a.cgf"], ["Levels", "Textures"]),
            (["a.mtl"], []),
        ]

    def test_files_dropped_by_refresh_are_ignored(
        self, synchronizer, status_provider, pull_client
    ):
        """Files a group no longer references do not trigger a pull."""
        group = FakeFileGroup(
            "a.cgf", ["a.cgf", "old.mtl"], files_after_update=["a.cgf"]
        )
        status_provider.statuses = {"a.cgf": UPDATED}

        synchronizer.sync([group], [])

        assert len(pull_client.calls) == 1

    def test_report_lists_pulls(self, synchronizer, status_provider):
        """The report records every pull in order."""
        group = FakeFileGroup("a.cgf", files_after_update=["a.cgf", "a.mtl"])
        status_provider.statuses = {"a.cgf": UPDATED}

        report = synchronizer.sync([group], ["F"]).result()

        assert report.pulls == [
            PullRequest(["a.cgf"], ["F"]),
            PullRequest(["a.mtl"], []),
        ]
        assert report.to_dict()["pulls"][1] == {"files": ["a.mtl"], "folders": []}


class TestAsynchronousCompletion:
    """Tests with capabilities that complete later."""

    def test_steps_wait_for_status(self, synchronizer, status_provider, pull_client):
        """Nothing is pulled before the status refresh has completed."""
        status_provider.defer = True
        status_provider.statuses = {"a.cgf": UPDATED}
        group = FakeFileGroup("a.cgf")

        future = synchronizer.sync([group], [])

        assert pull_client.calls == []
        assert not future.done()

        status_provider.pending.pop().set_result(None)

        assert pull_client.calls == [(["a.cgf"], [])]
        assert future.done()

    def test_refresh_waits_for_broad_pull(
        self, synchronizer, status_provider, pull_client, callback
    ):
        """Groups are refreshed only after the broad pull completed."""
        pull_client.defer = True
        group = FakeFileGroup("a.cgf", files_after_update=["a.cgf", "a.mtl"])
        status_provider.statuses = {"a.cgf": UPDATED}

        future = synchronizer.sync([group], [], callback)

        assert group.update_count == 0
        assert len(pull_client.calls) == 1

        pull_client.complete_next()

        assert group.update_count == 1
        assert len(pull_client.calls) == 2
        assert callback.calls == 0
        assert not future.done()

        pull_client.complete_next()

        assert callback.calls == 1
        assert future.done()

    def test_callback_runs_once_on_folder_pull(
        self, synchronizer, pull_client, callback
    ):
        """The folder-only branch waits for its pull before the callback."""
        pull_client.defer = True

        synchronizer.sync([], ["Levels"], callback)
        assert callback.calls == 0

        pull_client.complete_next()
        assert callback.calls == 1

    def test_threaded_capabilities(self, tmp_path):
        """Capabilities completing on worker threads resolve the future."""
        executor = ThreadPoolExecutor(max_workers=1)
        calls = []

        class ThreadedStatus(FakeStatusProvider):
            def refresh_status(self, groups, folders=()):
                return executor.submit(lambda: None)

        class ThreadedPull:
            def pull(self, files, folders):
                calls.append((list(files), list(folders)))
                return executor.submit(lambda: None)

        group = FakeFileGroup("a.cgf", files_after_update=["a.cgf", "a.mtl"])
        status = ThreadedStatus({"a.cgf": UPDATED})
        synchronizer = AssetsSynchronizer(status, ThreadedPull(), tmp_path)

        try:
            report = synchronizer.sync([group], []).result(timeout=5)
        finally:
            executor.shutdown(wait=True)

        assert calls == [(["a.cgf"], []), (["a.mtl"], [])]
        assert report.discovered == ["a.mtl"]


class TestFailures:
    """Tests for failing capabilities and steps."""

    def test_failed_pull_still_completes(
        self, synchronizer, status_provider, pull_client, callback
    ):
        """A pull that fails is treated as finished."""
        pull_client.fail_with = RuntimeError("connection lost")
        group = FakeFileGroup("a.cgf", files_after_update=["a.cgf", "a.mtl"])
        status_provider.statuses = {"a.cgf": UPDATED}

        report = synchronizer.sync([group], [], callback).result()

        assert callback.calls == 1
        assert len(report.pulls) == 2

    def test_failed_status_refresh_still_completes(
        self, synchronizer, pull_client, callback
    ):
        """A status refresh that fails leaves every group unchanged."""

        class FailingStatus(FakeStatusProvider):
            def refresh_status(self, groups, folders=()):
                future: Future = Future()
                future.set_exception(RuntimeError("timeout"))
                return future

        synchronizer.status_provider = FailingStatus()

        synchronizer.sync([FakeFileGroup("a.cgf")], [], callback)

        assert callback.calls == 1
        assert pull_client.calls == []

    def test_failing_step_runs_callback_once(
        self, synchronizer, status_provider, callback
    ):
        """An error inside a step still fires the callback exactly once."""

        class BrokenGroup(FakeFileGroup):
            def update(self):
                raise OSError("disk gone")

        status_provider.statuses = {"a.cgf": UPDATED}

        future = synchronizer.sync([BrokenGroup("a.cgf")], [], callback)

        assert callback.calls == 1
        assert isinstance(future.exception(), OSError)


class TestConvenienceEntryPoints:
    """Tests for sync_group, sync_folders and sync_assets."""

    def test_sync_group(self, synchronizer, status_provider, pull_client, callback):
        """A single group is synced without folders."""
        status_provider.statuses = {"a.cgf": UPDATED}

        synchronizer.sync_group(FakeFileGroup("a.cgf"), callback)

        assert pull_client.calls == [(["a.cgf"], [])]
        assert callback.calls == 1

    def test_sync_folders(self, synchronizer, pull_client, callback):
        """Folders alone are pulled as a whole."""
        synchronizer.sync_folders(["Levels/Forest", "Textures"], callback)

        assert pull_client.calls == [([], ["Levels/Forest", "Textures"])]
        assert callback.calls == 1

    def test_sync_assets_discovers_new_data_files(self, tmp_path: Path):
        """Assets pulled with a new data file get it in the narrow pull."""
        objects = tmp_path / "Objects"
        objects.mkdir()
        metadata = objects / "tree.cgf.cryasset"
        metadata.write_text(json.dumps({"name": "tree", "files": ["tree.cgf"]}))

        def write_new_metadata(files, folders):
            metadata.write_text(
                json.dumps({"name": "tree", "files": ["tree.cgf", "tree.mtl"]})
            )

        pull_client = FakePullClient(on_pull=write_new_metadata)
        status = FakeStatusProvider({"Objects/tree.cgf.cryasset": UPDATED})
        synchronizer = AssetsSynchronizer(status, pull_client, tmp_path)
        asset = Asset.from_metadata_file(tmp_path, "Objects/tree.cgf.cryasset")

        report = synchronizer.sync_assets([asset]).result()

        assert pull_client.calls == [
            (["Objects/tree.cgf.cryasset", "Objects/tree.cgf"], []),
            (["Objects/tree.mtl"], []),
        ]
        assert report.discovered == ["Objects/tree.mtl"]


class TestSyncReport:
    """Tests for SyncReport."""

    def test_to_dict(self):
        """Report converts to a JSON friendly dict."""
        report = SyncReport(
            requested=["a.cgf"],
            synced=["a.cgf"],
            pulls=[PullRequest(["a.cgf"], [])],
        )

        assert report.to_dict() == {
            "requested": ["a.cgf"],
            "synced": ["a.cgf"],
            "deleted": [],
            "discovered": [],
            "pulls": [{"files": ["a.cgf"], "folders": []}],
        }
