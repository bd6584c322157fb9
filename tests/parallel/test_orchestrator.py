"""Tests for ParallelUploadManager."""

import threading
import time
from pathlib import Path
from typing import Any

import pytest

from sitepush.core.progress import UploadProgress, UploadStats
from sitepush.deploy.config import DeploymentConfiguration, SiteCatalog
from sitepush.errors import DuplicateSitesError, InvalidSitesError, UploadOperationError
from sitepush.parallel.orchestrator import (
    ParallelUploadManager,
    ParallelUploadProgress,
    SiteUploadResult,
)
from sitepush.storage.client import InMemoryObjectClient
from sitepush.storage.credentials import ProfileValidator
from sitepush.storage.manager import ClientManager
from sitepush.transfer.uploader import SiteUploader


def no_sleep(_: float) -> None:
    pass


def make_sites(root: Path, names: list[str]) -> SiteCatalog:
    for name in names:
        site = root / name
        site.mkdir(parents=True)
        (site / "index.html").write_text(f"<h1>{name}</h1>")
        (site / "style.css").write_text("body {}")
    return SiteCatalog(root)


class ConcurrencyTracker:
    """Uploader stand-in that records how many uploads overlap."""

    def __init__(self, delay: float = 0.05) -> None:
        self.delay = delay
        self.lock = threading.Lock()
        self.active = 0
        self.max_active = 0
        self.started: list[str] = []
        self.closed = 0

    def factory(self, deployment: DeploymentConfiguration, manager: ClientManager) -> Any:
        return _TrackingUploader(self)


class _TrackingUploader:
    def __init__(self, tracker: ConcurrencyTracker) -> None:
        self.tracker = tracker

    def upload_directory(self, directory: Path, site_prefix: str, **kwargs: Any) -> UploadStats:
        with self.tracker.lock:
            self.tracker.active += 1
            self.tracker.max_active = max(self.tracker.max_active, self.tracker.active)
            self.tracker.started.append(site_prefix)
        time.sleep(self.tracker.delay)
        with self.tracker.lock:
            self.tracker.active -= 1
        return UploadStats(total_files=1, uploaded_files=1)

    def close(self) -> None:
        with self.tracker.lock:
            self.tracker.closed += 1


@pytest.fixture
def store() -> InMemoryObjectClient:
    return InMemoryObjectClient()


@pytest.fixture
def client_manager(store: InMemoryObjectClient) -> ClientManager:
    return ClientManager(
        client_factory=lambda profile, region, transport: store,
        profile_validator=ProfileValidator(list_profiles=lambda: ["development"]),
        environ={},
    )


def real_uploader(deployment: DeploymentConfiguration, manager: ClientManager) -> SiteUploader:
    return SiteUploader(
        deployment.upload,
        profile=deployment.profile_name,
        client_manager=manager,
        sleep=no_sleep,
    )


class TestUploadSites:
    """Tests for upload_sites()."""

    def test_all_sites_uploaded(self, tmp_path: Path, store: InMemoryObjectClient, client_manager: ClientManager) -> None:
        """Should upload every site's files under its own prefix."""
        catalog = make_sites(tmp_path, ["blog", "docs"])
        manager = ParallelUploadManager(
            2, catalog=catalog, client_manager=client_manager, environ={}, uploader_factory=real_uploader
        )

        results = manager.upload_sites(["blog", "docs"])

        assert sorted(r.site_name for r in results) == ["blog", "docs"]
        assert all(r.succeeded for r in results)
        assert ("sitepush-dev", "sites/blog/index.html") in store.objects
        assert ("sitepush-dev", "sites/docs/style.css") in store.objects

    def test_failure_is_isolated(self, tmp_path: Path, store: InMemoryObjectClient, client_manager: ClientManager) -> None:
        """Should not let a site whose writes always fail affect the others."""
        catalog = make_sites(tmp_path, ["A", "B", "C"])
        store.fail_always("put_object", key_prefix="sites/B/")
        manager = ParallelUploadManager(
            3, catalog=catalog, client_manager=client_manager, environ={}, uploader_factory=real_uploader
        )

        results = {r.site_name: r for r in manager.upload_sites(["A", "B", "C"])}

        assert results["A"].succeeded
        assert results["C"].succeeded
        assert not results["B"].succeeded
        assert isinstance(results["B"].error, UploadOperationError)
        assert results["A"].stats is not None
        assert results["A"].stats.uploaded_files == 2

        progress = manager.current_progress()
        assert progress.completed_sites == 2
        assert progress.failed_sites == 1
        assert progress.is_complete

    def test_concurrency_ceiling(self, tmp_path: Path, client_manager: ClientManager) -> None:
        """Should never run more than max_concurrent_uploads sites at once."""
        names = ["s1", "s2", "s3", "s4", "s5"]
        catalog = make_sites(tmp_path, names)
        tracker = ConcurrencyTracker()
        manager = ParallelUploadManager(
            2, catalog=catalog, client_manager=client_manager, environ={}, uploader_factory=tracker.factory
        )

        results = manager.upload_sites(names)

        assert len(results) == 5
        assert tracker.max_active == 2
        assert tracker.closed == 5
        assert manager.active_uploads() == set()

    def test_single_slot_runs_in_order(self, tmp_path: Path, client_manager: ClientManager) -> None:
        """Should run sites sequentially in the given order with one slot."""
        names = ["c", "a", "b"]
        catalog = make_sites(tmp_path, names)
        tracker = ConcurrencyTracker(delay=0)
        manager = ParallelUploadManager(
            1, catalog=catalog, client_manager=client_manager, environ={}, uploader_factory=tracker.factory
        )

        results = manager.upload_sites(names)

        assert tracker.started == ["c", "a", "b"]
        assert [r.site_name for r in results] == ["c", "a", "b"]
        assert tracker.max_active == 1

    def test_progress_callback_receives_copies(self, tmp_path: Path, client_manager: ClientManager) -> None:
        """Should call the callback once per site with independent snapshots."""
        names = ["a", "b", "c"]
        catalog = make_sites(tmp_path, names)
        tracker = ConcurrencyTracker(delay=0.01)
        manager = ParallelUploadManager(
            2, catalog=catalog, client_manager=client_manager, environ={}, uploader_factory=tracker.factory
        )
        snapshots: list[ParallelUploadProgress] = []

        manager.upload_sites(names, progress_callback=snapshots.append)

        assert [s.completed_sites for s in snapshots] == [1, 2, 3]
        assert all(s.total_sites == 3 for s in snapshots)
        assert snapshots[0] is not snapshots[1]
        assert len(snapshots[0].site_results) == 1
        assert snapshots[-1].progress_percentage == 100.0

    def test_failing_callback_does_not_stop_batch(self, tmp_path: Path, client_manager: ClientManager) -> None:
        """Should upload every site even when the progress callback raises."""
        names = ["a", "b", "c", "d"]
        catalog = make_sites(tmp_path, names)
        tracker = ConcurrencyTracker(delay=0.05)
        manager = ParallelUploadManager(
            2, catalog=catalog, client_manager=client_manager, environ={}, uploader_factory=tracker.factory
        )
        calls: list[int] = []

        def broken_callback(progress: ParallelUploadProgress) -> None:
            calls.append(progress.completed_sites)
            raise RuntimeError("display went away")

        results = manager.upload_sites(names, progress_callback=broken_callback)

        assert sorted(r.site_name for r in results) == names
        assert all(r.succeeded for r in results)
        assert calls == [1, 2, 3, 4]
        assert manager.active_uploads() == set()
        assert manager.current_progress().completed_sites == 4

    def test_base_exception_in_worker_becomes_failure(self, tmp_path: Path, client_manager: ClientManager) -> None:
        """Should report a worker interrupted by a BaseException instead of hanging."""

        class Interrupted(BaseException):
            pass

        class Interrupting:
            def __init__(self, site_prefix_to_fail: str) -> None:
                self.site_prefix_to_fail = site_prefix_to_fail

            def upload_directory(self, directory: Path, site_prefix: str, **kwargs: Any) -> UploadStats:
                if site_prefix == self.site_prefix_to_fail:
                    raise Interrupted("stop")
                return UploadStats(total_files=1, uploaded_files=1)

            def close(self) -> None:
                pass

        names = ["a", "b", "c"]
        catalog = make_sites(tmp_path, names)
        manager = ParallelUploadManager(
            2, catalog=catalog, client_manager=client_manager, environ={},
            uploader_factory=lambda deployment, cm: Interrupting("b"),  # type: ignore[arg-type,return-value]
        )

        results = {r.site_name: r for r in manager.upload_sites(names)}

        assert set(results) == {"a", "b", "c"}
        assert results["a"].succeeded
        assert results["c"].succeeded
        assert isinstance(results["b"].error, Interrupted)
        assert manager.current_progress().failed_sites == 1

    def test_dry_run_makes_no_calls(self, tmp_path: Path, store: InMemoryObjectClient, client_manager: ClientManager) -> None:
        """Should report files without touching storage on a dry run."""
        catalog = make_sites(tmp_path, ["blog"])
        manager = ParallelUploadManager(
            1, catalog=catalog, client_manager=client_manager, environ={}, uploader_factory=real_uploader
        )

        results = manager.upload_sites(["blog"], dry_run=True)

        assert results[0].stats is not None
        assert results[0].stats.uploaded_files == 2
        assert store.calls == []

    def test_missing_site_directory_is_a_failure(self, tmp_path: Path, client_manager: ClientManager) -> None:
        """Should fail only the configured site that has no directory."""
        make_sites(tmp_path, ["blog"])
        catalog = SiteCatalog(tmp_path, configured_sites=["ghost"])
        tracker = ConcurrencyTracker(delay=0)
        manager = ParallelUploadManager(
            2, catalog=catalog, client_manager=client_manager, environ={}, uploader_factory=tracker.factory
        )

        results = {r.site_name: r for r in manager.upload_sites(["blog", "ghost"])}

        assert results["blog"].succeeded
        assert "Site directory not found" in (results["ghost"].error_message or "")


class TestValidation:
    """Tests for fail-fast input validation."""

    def test_invalid_site_rejected_before_work(self, tmp_path: Path, client_manager: ClientManager) -> None:
        """Should raise for unknown names before any upload starts."""
        catalog = make_sites(tmp_path, ["blog"])
        tracker = ConcurrencyTracker(delay=0)
        manager = ParallelUploadManager(
            2, catalog=catalog, client_manager=client_manager, environ={}, uploader_factory=tracker.factory
        )

        with pytest.raises(InvalidSitesError) as exc_info:
            manager.upload_sites(["blog", "nope"])

        assert exc_info.value.invalid == ["nope"]
        assert tracker.started == []

    def test_duplicates_rejected(self, tmp_path: Path, client_manager: ClientManager) -> None:
        """Should raise for duplicate names."""
        catalog = make_sites(tmp_path, ["blog"])
        manager = ParallelUploadManager(2, catalog=catalog, client_manager=client_manager, environ={})
        with pytest.raises(DuplicateSitesError):
            manager.upload_sites(["blog", "blog"])

    def test_ceiling_must_be_positive(self) -> None:
        """Should reject a ceiling below one."""
        with pytest.raises(ValueError):
            ParallelUploadManager(0)

    def test_empty_list(self, tmp_path: Path, client_manager: ClientManager) -> None:
        """Should complete an empty batch immediately."""
        manager = ParallelUploadManager(2, catalog=SiteCatalog(tmp_path), client_manager=client_manager, environ={})
        assert manager.upload_sites([]) == []
        assert manager.current_progress().is_complete


class TestProgressTypes:
    """Tests for result and progress value types."""

    def test_success_rate(self) -> None:
        """Should compute the success rate as completed over total."""
        progress = ParallelUploadProgress(total_sites=4)
        progress.record(SiteUploadResult("a", UploadStats(), 1.0))
        progress.record(SiteUploadResult("b", RuntimeError("x"), 1.0))
        assert progress.success_rate == 0.25
        assert progress.progress_percentage == 50.0
        assert not progress.is_complete

    def test_error_message_falls_back_to_type(self) -> None:
        """Should use the exception type name for an empty message."""
        result = SiteUploadResult("a", RuntimeError(), 0.0)
        assert result.error_message == "RuntimeError"
        assert result.stats is None

    def test_close_only_shuts_down_owned_manager(self, client_manager: ClientManager) -> None:
        """Should leave a borrowed client manager open."""
        manager = ParallelUploadManager(1, client_manager=client_manager)
        manager.close()
        assert not client_manager.closed


def test_upload_progress_fresh_per_site(tmp_path: Path, client_manager: ClientManager) -> None:
    """Should give each site its own progress counters."""
    seen: list[UploadProgress] = []

    class Recording:
        def upload_directory(self, directory: Path, site_prefix: str, **kwargs: Any) -> UploadStats:
            seen.append(kwargs["progress"])
            return UploadStats()

        def close(self) -> None:
            pass

    catalog = make_sites(tmp_path, ["a", "b"])
    manager = ParallelUploadManager(
        2, catalog=catalog, client_manager=client_manager, environ={},
        uploader_factory=lambda deployment, cm: Recording(),  # type: ignore[arg-type,return-value]
    )
    manager.upload_sites(["a", "b"])
    assert len(seen) == 2
    assert seen[0] is not seen[1]
