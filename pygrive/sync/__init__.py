"""Sync engine for pygrive - one-way local to remote mirroring."""

from .dispatcher import ChangeDispatcher, DispatchOutcome, DispatchResult, EventKind
from .engine import SyncEngine
from .materializer import DirectoryMaterializer
from .mirror import HydrationFailure, HydrationReport, RemoteTreeMirror
from .operations import SyncOperations
from .resolver import ClosestAncestor, PathResolver, ResolveResult
from .scanner import DirectoryScanner, LocalFile
from .watcher import DirectoryWatcher, LocalChangeHandler

__all__ = [
    "SyncEngine",
    "ChangeDispatcher",
    "DispatchOutcome",
    "DispatchResult",
    "EventKind",
    "DirectoryMaterializer",
    "HydrationFailure",
    "HydrationReport",
    "RemoteTreeMirror",
    "SyncOperations",
    "ClosestAncestor",
    "PathResolver",
    "ResolveResult",
    "DirectoryScanner",
    "LocalFile",
    "DirectoryWatcher",
    "LocalChangeHandler",
]
