"""Core sync engine wiring the mirror, the dispatcher and the watcher."""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Optional, Union

from ..exceptions import GriveError
from ..store import ROOT_ID, RemoteStore
from .dispatcher import ChangeDispatcher, DispatchOutcome, DispatchResult, EventKind
from .materializer import DirectoryMaterializer
from .mirror import HydrationReport, RemoteTreeMirror
from .operations import SyncOperations
from .resolver import PathResolver
from .scanner import DirectoryScanner
from .watcher import DirectoryWatcher

logger = logging.getLogger(__name__)


class SyncEngine:
    """One-way sync of newly created local files to the remote store."""

    def __init__(
        self,
        store: RemoteStore,
        directory: Union[str, Path],
        max_workers: int = 4,
        initial_scan: bool = True,
        strict_paths: bool = False,
        ignore_patterns: Optional[list[str]] = None,
        exclude_dot_files: bool = False,
    ):
        """Initialize sync engine.

        Args:
            store: Remote store (DriveClient or MemoryStore)
            directory: Local directory to mirror
            max_workers: Threads used for hydration and event dispatch
            initial_scan: Treat files present at start-up as created
            strict_paths: Fail instead of warning on ambiguous remote paths
            ignore_patterns: Glob patterns of local paths to leave alone
            exclude_dot_files: Whether to skip hidden files and directories
        """
        self.store = store
        self.directory = Path(directory).absolute()
        self.max_workers = max_workers
        self.initial_scan = initial_scan
        self.strict_paths = strict_paths
        self.scanner = DirectoryScanner(
            ignore_patterns=ignore_patterns, exclude_dot_files=exclude_dot_files
        )

        self.mirror: Optional[RemoteTreeMirror] = None
        self.resolver: Optional[PathResolver] = None
        self.dispatcher: Optional[ChangeDispatcher] = None
        self.stats: dict[str, int] = {outcome.value: 0 for outcome in DispatchOutcome}

        self._executor: Optional[ThreadPoolExecutor] = None
        self._watcher: Optional[DirectoryWatcher] = None
        self._stats_lock = threading.Lock()
        self._inflight: dict[Path, Future[DispatchResult]] = {}
        self._inflight_lock = threading.Lock()

    def load_mirror(self) -> HydrationReport:
        """Fetch the remote root and hydrate the whole mirror.

        Returns:
            HydrationReport of the initial hydration
        """
        root = self.store.get_node(ROOT_ID)
        self.mirror = RemoteTreeMirror(root, self.store, max_workers=self.max_workers)

        start_time = time.time()
        report = self.mirror.hydrate()
        elapsed = time.time() - start_time

        self.resolver = PathResolver(self.mirror, strict=self.strict_paths)
        materializer = DirectoryMaterializer(self.mirror, self.store, self.resolver)
        operations = SyncOperations(self.store, self.mirror)
        self.dispatcher = ChangeDispatcher(
            self.directory, self.mirror, self.resolver, materializer, operations
        )

        logger.info(
            f"Retrieved remote tree: {len(self.mirror)} node(s) in {elapsed:.2f}s"
        )
        if not report.ok:
            logger.warning(
                f"Remote tree is incomplete: {len(report.failures)} folder(s) "
                "could not be listed"
            )
        return report

    def start(self, watch: bool = True) -> HydrationReport:
        """Load the mirror, start watching and replay existing files.

        The watcher is started before the initial scan so that no file
        created in between is missed. A file seen by both is dispatched
        once: a creation event for a path that is still being dispatched
        joins the pending dispatch.

        Args:
            watch: Whether to start the filesystem watcher

        Returns:
            HydrationReport of the initial hydration

        Raises:
            ValueError: If the local directory is missing or not a directory
        """
        if not self.directory.exists():
            raise ValueError(f"Local directory does not exist: {self.directory}")
        if not self.directory.is_dir():
            raise ValueError(f"Local path is not a directory: {self.directory}")

        report = self.load_mirror()
        self._executor = ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="pygrive-dispatch"
        )

        if watch:
            self._watcher = DirectoryWatcher(self.directory, self.submit)
            self._watcher.start()

        if self.initial_scan:
            self.scan_existing()
        return report

    def scan_existing(self) -> list["Future[DispatchResult]"]:
        """Dispatch a creation event for every file already on disk."""
        local_files = self.scanner.scan_local(self.directory)
        logger.info(f"Found {len(local_files)} local file(s)")
        return [self.submit(EventKind.CREATED, f.path) for f in local_files]

    def submit(
        self, kind: Union[EventKind, str], path: Union[str, Path]
    ) -> "Future[DispatchResult]":
        """Queue an event; events are dispatched independently of each other.

        Raises:
            GriveError: If the engine has not been started
        """
        if self.dispatcher is None or self._executor is None:
            raise GriveError("Sync engine is not started")

        path = Path(path)
        if self.scanner.should_ignore(path.absolute(), self.directory):
            result = DispatchResult(DispatchOutcome.IGNORED, str(path))
            future: Future[DispatchResult] = Future()
            future.set_result(self._record(result))
            return future

        kind = EventKind(kind)
        if kind is not EventKind.CREATED:
            return self._executor.submit(self._dispatch, kind, path)

        key = path.absolute()
        with self._inflight_lock:
            pending = self._inflight.get(key)
            if pending is not None:
                logger.debug(f"'{path}' is already being dispatched")
                return pending
            future = self._executor.submit(self._dispatch, kind, path)
            self._inflight[key] = future
        future.add_done_callback(lambda f: self._forget(key, f))
        return future

    def _forget(self, key: Path, future: "Future[DispatchResult]") -> None:
        with self._inflight_lock:
            if self._inflight.get(key) is future:
                del self._inflight[key]

    def _dispatch(self, kind: EventKind, path: Path) -> DispatchResult:
        assert self.dispatcher is not None
        try:
            result = self.dispatcher.dispatch(kind, path)
        except Exception as e:
            logger.exception(f"Unexpected error while dispatching '{path}'")
            result = DispatchResult(DispatchOutcome.FAILED, str(path), error=e)
        return self._record(result)

    def _record(self, result: DispatchResult) -> DispatchResult:
        with self._stats_lock:
            self.stats[result.outcome.value] += 1
        return result

    def stop(self, wait: bool = True) -> None:
        """Stop watching and finish (or drop) queued events."""
        if self._watcher is not None:
            self._watcher.stop()
            self._watcher = None
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None
        logger.debug(f"Sync engine stopped: {self.stats}")

    def run_forever(self, poll_interval: float = 1.0) -> None:
        """Start the engine and block until interrupted."""
        self.start()
        try:
            while True:
                time.sleep(poll_interval)
        except KeyboardInterrupt:
            logger.info("Interrupted, shutting down")
        finally:
            self.stop()
