"""Concurrent upload of several sites under a concurrency ceiling.

This module provides:
- ParallelUploadManager: Runs one worker thread per site, never more than the ceiling
- SiteUploadResult: Outcome of one site's upload
- ParallelUploadProgress: Aggregate progress across all sites of a batch
"""

from __future__ import annotations

import copy
import logging
import queue
import threading
import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field

from sitepush.core.progress import UploadProgress, UploadStats
from sitepush.deploy.config import (
    ConfigurationFile,
    DeploymentConfiguration,
    SiteCatalog,
    resolve_deployment,
)
from sitepush.storage.manager import ClientManager
from sitepush.transfer.uploader import ExcludePredicate, SiteUploader

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENT_UPLOADS = 3

SiteOutcome = UploadStats | BaseException
UploaderFactory = Callable[[DeploymentConfiguration, ClientManager], SiteUploader]
ProgressCallback = Callable[["ParallelUploadProgress"], None]


@dataclass(frozen=True)
class SiteUploadResult:
    """Result of uploading one site.

    Attributes:
        site_name: Name of the site.
        outcome: Final UploadStats on success, the raised exception on failure.
        duration: Elapsed seconds.
    """

    site_name: str
    outcome: SiteOutcome
    duration: float

    @property
    def succeeded(self) -> bool:
        return isinstance(self.outcome, UploadStats)

    @property
    def stats(self) -> UploadStats | None:
        return self.outcome if isinstance(self.outcome, UploadStats) else None

    @property
    def error(self) -> BaseException | None:
        return None if isinstance(self.outcome, UploadStats) else self.outcome

    @property
    def error_message(self) -> str | None:
        """Human-readable description of the failure."""
        error = self.error
        if error is None:
            return None
        return str(error) or type(error).__name__


@dataclass
class ParallelUploadProgress:
    """Progress of a batch of site uploads.

    completed_sites + failed_sites never exceeds total_sites.
    """

    total_sites: int = 0
    completed_sites: int = 0
    failed_sites: int = 0
    site_results: dict[str, SiteOutcome] = field(default_factory=dict)

    @property
    def is_complete(self) -> bool:
        return self.total_sites == 0 or self.completed_sites + self.failed_sites >= self.total_sites

    @property
    def success_rate(self) -> float:
        """Fraction of all sites that succeeded (0.0 to 1.0)."""
        if self.total_sites <= 0:
            return 0.0
        return self.completed_sites / self.total_sites

    @property
    def progress_percentage(self) -> float:
        """Percentage of sites that have reported (0.0 to 100.0)."""
        if self.total_sites <= 0:
            return 0.0
        return (self.completed_sites + self.failed_sites) / self.total_sites * 100.0

    def record(self, result: SiteUploadResult) -> None:
        """Record a finished site."""
        self.site_results[result.site_name] = result.outcome
        if result.succeeded:
            self.completed_sites += 1
        else:
            self.failed_sites += 1

    def copy(self) -> ParallelUploadProgress:
        return ParallelUploadProgress(
            total_sites=self.total_sites,
            completed_sites=self.completed_sites,
            failed_sites=self.failed_sites,
            site_results=copy.copy(self.site_results),
        )


def _default_uploader(deployment: DeploymentConfiguration, manager: ClientManager) -> SiteUploader:
    return SiteUploader(
        deployment.upload,
        profile=deployment.profile_name,
        client_manager=manager,
    )


class ParallelUploadManager:
    """Uploads several sites concurrently.

    Up to ``max_concurrent_uploads`` worker threads run at once. Each finished
    worker puts its result on a queue; the calling thread records it, reports
    progress and starts exactly one more worker while sites remain. A failing
    site becomes a failure result and never stops the others.

    Usage:
        manager = ParallelUploadManager(max_concurrent_uploads=3)
        results = manager.upload_sites(["blog", "docs", "shop"])
        for result in results:
            print(result.site_name, result.succeeded)
        manager.close()
    """

    def __init__(
        self,
        max_concurrent_uploads: int = DEFAULT_MAX_CONCURRENT_UPLOADS,
        catalog: SiteCatalog | None = None,
        client_manager: ClientManager | None = None,
        config_file: ConfigurationFile | None = None,
        environ: Mapping[str, str] | None = None,
        uploader_factory: UploaderFactory | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            max_concurrent_uploads: Concurrency ceiling (at least 1).
            catalog: Known sites and their directories (defaults to ./Public).
            client_manager: Shared client manager; one is created if omitted.
            config_file: Parsed deployment configuration file, if any.
            environ: Environment variables for deployment resolution.
            uploader_factory: Builds the uploader for a site's deployment.

        Raises:
            ValueError: If max_concurrent_uploads is less than 1.
        """
        if max_concurrent_uploads < 1:
            raise ValueError(
                f"max_concurrent_uploads must be at least 1, got {max_concurrent_uploads}"
            )
        self._max_concurrent = max_concurrent_uploads
        self._catalog = catalog or SiteCatalog()
        self._owns_client_manager = client_manager is None
        self._client_manager = client_manager or ClientManager(environ=environ)
        self._config_file = config_file
        self._environ = environ
        self._uploader_factory = uploader_factory or _default_uploader

        self._lock = threading.Lock()
        self._active: set[str] = set()
        self._progress = ParallelUploadProgress()

    @property
    def max_concurrent_uploads(self) -> int:
        return self._max_concurrent

    @property
    def client_manager(self) -> ClientManager:
        return self._client_manager

    def active_uploads(self) -> set[str]:
        """Names of the sites currently uploading."""
        with self._lock:
            return set(self._active)

    def current_progress(self) -> ParallelUploadProgress:
        """A copy of the batch progress."""
        with self._lock:
            return self._progress.copy()

    def upload_sites(
        self,
        site_names: Iterable[str],
        dry_run: bool = False,
        exclude: ExcludePredicate | None = None,
        progress_callback: ProgressCallback | None = None,
        profile: str | None = None,
        environment: str | None = None,
    ) -> list[SiteUploadResult]:
        """Upload every site and return one result per site.

        Args:
            site_names: Sites to upload. Validated before any work starts.
            dry_run: Log what would be uploaded without remote calls.
            exclude: File exclusion predicate applied inside every site.
            progress_callback: Called with a progress copy after each site finishes.
                Errors it raises are logged and do not interrupt the batch.
            profile: Credential profile overriding the resolved one.
            environment: Deployment environment name.

        Returns:
            Results in completion order.

        Raises:
            InvalidSitesError: If any site name is unknown.
            DuplicateSitesError: If a site is listed more than once.
        """
        names = self._catalog.validate(site_names)
        logger.info(
            f"Starting parallel upload for {len(names)} site(s) "
            f"(max {self._max_concurrent} concurrent)"
        )
        if dry_run:
            logger.info("DRY RUN MODE - No files will be uploaded")

        with self._lock:
            self._progress = ParallelUploadProgress(total_sites=len(names))
            self._active.clear()

        results_queue: queue.Queue[SiteUploadResult] = queue.Queue()
        results: list[SiteUploadResult] = []
        pending = iter(names)
        in_flight = 0
        start_time = time.monotonic()

        def start_next() -> bool:
            site_name = next(pending, None)
            if site_name is None:
                return False
            with self._lock:
                self._active.add(site_name)
                active_count = len(self._active)
            logger.debug(f"Started upload for site: {site_name} (active: {active_count})")
            thread = threading.Thread(
                target=self._run_worker,
                args=(site_name, dry_run, exclude, profile, environment, results_queue),
                name=f"SiteUpload-{site_name}",
                daemon=True,
            )
            thread.start()
            return True

        for _ in range(self._max_concurrent):
            if not start_next():
                break
            in_flight += 1

        while in_flight:
            result = results_queue.get()
            in_flight -= 1
            results.append(result)

            with self._lock:
                self._active.discard(result.site_name)
                self._progress.record(result)
                snapshot = self._progress.copy()

            if progress_callback is not None:
                try:
                    progress_callback(snapshot)
                except Exception as e:
                    logger.warning(f"Progress callback failed: {e}")

            if start_next():
                in_flight += 1

        self._log_final_results(results, time.monotonic() - start_time, dry_run)
        return results

    def _run_worker(
        self,
        site_name: str,
        dry_run: bool,
        exclude: ExcludePredicate | None,
        profile: str | None,
        environment: str | None,
        results_queue: queue.Queue[SiteUploadResult],
    ) -> None:
        """Thread target: upload one site and report the result.

        Exactly one result is queued per worker, even when the upload is
        interrupted by a BaseException that _upload_site does not capture.
        """
        start_time = time.monotonic()
        try:
            result = self._upload_site(site_name, dry_run, exclude, profile, environment)
        except BaseException as e:
            duration = time.monotonic() - start_time
            logger.error(f"{site_name} worker aborted after {duration:.1f}s: {e!r}")
            result = SiteUploadResult(site_name, e, duration)
        results_queue.put(result)

    def _upload_site(
        self,
        site_name: str,
        dry_run: bool,
        exclude: ExcludePredicate | None,
        profile: str | None,
        environment: str | None,
    ) -> SiteUploadResult:
        """Upload one site, capturing any failure in the result."""
        start_time = time.monotonic()
        try:
            deployment = resolve_deployment(
                explicit_environment=environment,
                profile=profile,
                environ=self._environ,
                site_name=site_name,
                config_file=self._config_file,
            )
            deployment.validate()
            directory = self._catalog.site_directory(site_name)

            uploader = self._uploader_factory(deployment, self._client_manager)
            try:
                stats = uploader.upload_directory(
                    directory,
                    site_name,
                    dry_run=dry_run,
                    progress=UploadProgress(),
                    exclude=exclude,
                )
            finally:
                uploader.close()
        except Exception as e:
            duration = time.monotonic() - start_time
            logger.error(f"{site_name} failed after {duration:.1f}s: {e}")
            return SiteUploadResult(site_name, e, duration)

        duration = time.monotonic() - start_time
        logger.info(f"{site_name}: {stats.uploaded_files} files in {duration:.1f}s")
        return SiteUploadResult(site_name, stats, duration)

    def _log_final_results(
        self, results: list[SiteUploadResult], duration: float, dry_run: bool
    ) -> None:
        succeeded = [r for r in results if r.succeeded]
        failed = [r for r in results if not r.succeeded]

        logger.info(f"Parallel upload completed in {duration:.1f}s")
        logger.info(f"Results: {len(succeeded)} successful, {len(failed)} failed")
        action = "Would upload" if dry_run else "Uploaded"
        for result in succeeded:
            stats = result.stats
            assert stats is not None
            logger.info(f"  {result.site_name}: {action} {stats.uploaded_files} files")
        for result in failed:
            logger.error(f"  {result.site_name}: {result.error_message}")

    def close(self) -> None:
        """Shut down the client manager if this instance created it."""
        if self._owns_client_manager:
            self._client_manager.shutdown()
