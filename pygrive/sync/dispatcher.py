"""Route local filesystem events to the reconciliation components."""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Union

from ..exceptions import GriveError
from ..models import RemoteNode
from ..utils import parent_label_path, relative_label_path
from .materializer import DirectoryMaterializer
from .mirror import RemoteTreeMirror
from .operations import SyncOperations
from .resolver import PathResolver

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    """Kinds of local filesystem notifications."""

    CREATED = "created"
    """A file was created"""

    CREATED_DIRECTORY = "created_directory"
    """A directory was created"""

    MODIFIED = "modified"
    """A file's content changed"""

    REMOVED = "removed"
    """A file was deleted"""

    REMOVED_DIRECTORY = "removed_directory"
    """A directory was deleted"""

    ERRORED = "errored"
    """The watcher reported an error"""


class DispatchOutcome(str, Enum):
    """What the dispatcher did with an event."""

    UPLOADED = "uploaded"
    """File uploaded (missing folders created first)"""

    ALREADY_PRESENT = "already_present"
    """A remote file already exists at the same path"""

    SKIPPED_DIRECTORY_COLLISION = "skipped_directory_collision"
    """A remote folder occupies the file's path (or its parent is a file)"""

    SKIPPED_OUTSIDE_ROOT = "skipped_outside_root"
    """The path is not below the watched directory"""

    IGNORED = "ignored"
    """The path matches an ignore rule"""

    DEFERRED = "deferred"
    """The event kind is not handled"""

    FAILED = "failed"
    """A remote call or local read failed; see ``error``"""


@dataclass
class DispatchResult:
    """Outcome of dispatching one event."""

    outcome: DispatchOutcome
    relative_path: str
    node: Optional[RemoteNode] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        """Whether the event was handled without error."""
        return self.outcome is not DispatchOutcome.FAILED


class ChangeDispatcher:
    """Reacts to local file creations by mirroring them remotely.

    Every ``EventKind`` has an entry in the dispatch table. Only file
    creation is handled; modification, removal, directory creation and
    watcher errors are deferred and left untouched.
    """

    def __init__(
        self,
        directory: Union[str, Path],
        mirror: RemoteTreeMirror,
        resolver: PathResolver,
        materializer: DirectoryMaterializer,
        operations: SyncOperations,
    ):
        self.directory = Path(directory).absolute()
        self.mirror = mirror
        self.resolver = resolver
        self.materializer = materializer
        self.operations = operations
        self._handlers: dict[EventKind, Callable[[Path], DispatchResult]] = {
            EventKind.CREATED: self._on_created,
            EventKind.CREATED_DIRECTORY: self._defer,
            EventKind.MODIFIED: self._defer,
            EventKind.REMOVED: self._defer,
            EventKind.REMOVED_DIRECTORY: self._defer,
            EventKind.ERRORED: self._defer,
        }

    def relative_path(self, absolute_path: Union[str, Path]) -> str:
        """Convert a local path to a label-path relative to the watched root.

        Raises:
            ValueError: If the path is outside the watched directory
        """
        return relative_label_path(absolute_path, self.directory)

    def dispatch(
        self, kind: Union[EventKind, str], absolute_path: Union[str, Path]
    ) -> DispatchResult:
        """Handle a single filesystem event.

        Remote failures are logged and reported as ``FAILED``; this method
        does not raise for them.

        Args:
            kind: Event kind
            absolute_path: Local path the event refers to

        Returns:
            DispatchResult describing what happened
        """
        kind = EventKind(kind)
        return self._handlers[kind](Path(absolute_path))

    def _defer(self, path: Path) -> DispatchResult:
        logger.debug(f"Ignoring event for '{path}': event kind not handled")
        return DispatchResult(DispatchOutcome.DEFERRED, str(path))

    def _existing(self, relative: str, node: RemoteNode) -> DispatchResult:
        if node.is_directory:
            logger.warning(
                f"Skipping '{relative}': a remote folder exists at this path"
            )
            return DispatchResult(
                DispatchOutcome.SKIPPED_DIRECTORY_COLLISION, relative, node=node
            )
        logger.debug(f"'{relative}' already exists remotely")
        return DispatchResult(DispatchOutcome.ALREADY_PRESENT, relative, node=node)

    def _on_created(self, path: Path) -> DispatchResult:
        try:
            relative = self.relative_path(path)
        except ValueError:
            relative = ""
        if not relative:
            logger.warning(f"Ignoring '{path}': not inside {self.directory}")
            return DispatchResult(DispatchOutcome.SKIPPED_OUTSIDE_ROOT, str(path))

        try:
            result = self.resolver.resolve(relative)
            if result.node is not None:
                return self._existing(relative, result.node)

            parent = self.materializer.materialize(parent_label_path(relative))
            if not parent.is_directory:
                logger.warning(
                    f"Skipping '{relative}': remote parent '{parent.title}' is a file"
                )
                return DispatchResult(
                    DispatchOutcome.SKIPPED_DIRECTORY_COLLISION, relative, node=parent
                )

            # The parent may only now have been listed.
            self.mirror.ensure_fetched(parent)
            existing = self.mirror.find_child(parent, path.name)
            if existing is not None:
                return self._existing(relative, existing)

            logger.info(f"Creating '{relative}' in '{parent.title}'")
            node = self.operations.upload_file(path, parent)
            return DispatchResult(DispatchOutcome.UPLOADED, relative, node=node)

        except GriveError as e:
            logger.error(f"Failed to sync '{relative}': {e}")
            return DispatchResult(DispatchOutcome.FAILED, relative, error=e)
