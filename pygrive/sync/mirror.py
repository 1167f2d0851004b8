"""In-memory mirror of the remote node graph."""

import logging
import threading
from collections.abc import Iterator
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Optional

from ..exceptions import GriveAPIError
from ..models import RemoteNode
from ..store import RemoteStore
from ..utils import PATH_SEPARATOR

logger = logging.getLogger(__name__)


@dataclass
class HydrationFailure:
    """A folder whose listing failed during hydration."""

    node: RemoteNode
    """Folder that could not be listed (its subtree stays unfetched)"""

    error: Exception
    """Error raised by the remote store"""


@dataclass
class HydrationReport:
    """Outcome of a hydration run."""

    folders_fetched: int = 0
    """Number of folders whose children were listed successfully"""

    nodes_added: int = 0
    """Number of nodes registered in the mirror"""

    failures: list[HydrationFailure] = field(default_factory=list)
    """Folders that could not be listed"""

    @property
    def ok(self) -> bool:
        """Whether every listing succeeded."""
        return not self.failures


class _WaitGroup:
    """Counting barrier: wait() returns once every add() has a done()."""

    def __init__(self) -> None:
        self._count = 0
        self._cond = threading.Condition()

    def add(self, n: int = 1) -> None:
        with self._cond:
            self._count += n

    def done(self) -> None:
        with self._cond:
            self._count -= 1
            if self._count <= 0:
                self._cond.notify_all()

    def wait(self) -> None:
        with self._cond:
            while self._count > 0:
                self._cond.wait()


class RemoteTreeMirror:
    """Lazily hydrated copy of the remote graph rooted at a single node.

    The mirror only ever grows: nodes are registered during hydration or
    after this process creates them, and never removed. A folder's child
    map is ``None`` until a complete listing has been assigned to it.
    """

    def __init__(
        self,
        root: RemoteNode,
        store: RemoteStore,
        max_workers: Optional[int] = None,
    ):
        """Initialize the mirror.

        Args:
            root: Remote root folder (as returned by ``get_node("root")``)
            store: Remote store used for listings
            max_workers: Size of the hydration thread pool
        """
        root.parent_id = None
        self.root = root
        self.store = store
        self.max_workers = max_workers
        self._lock = threading.RLock()
        self._index: dict[str, RemoteNode] = {root.id: root}

    def __len__(self) -> int:
        with self._lock:
            return len(self._index)

    def __contains__(self, node_id: object) -> bool:
        with self._lock:
            return node_id in self._index

    def get(self, node_id: str) -> Optional[RemoteNode]:
        """Look up a registered node by id."""
        with self._lock:
            return self._index.get(node_id)

    def iter_nodes(self) -> Iterator[RemoteNode]:
        """Iterate over a snapshot of every registered node."""
        with self._lock:
            nodes = list(self._index.values())
        return iter(nodes)

    def children_of(self, node: RemoteNode) -> list[RemoteNode]:
        """Snapshot of a folder's children in insertion order."""
        with self._lock:
            if not node.children:
                return []
            return list(node.children.values())

    def find_child(
        self, parent: RemoteNode, title: str, directories_only: bool = False
    ) -> Optional[RemoteNode]:
        """Return the first child of ``parent`` labelled ``title``.

        Args:
            parent: Folder to search
            title: Label to match exactly
            directories_only: Ignore non-folder children

        Returns:
            Matching node or None
        """
        for child in self.children_of(parent):
            if child.title != title:
                continue
            if directories_only and not child.is_directory:
                continue
            return child
        return None

    def label_path(self, node: RemoteNode) -> str:
        """Compute the ``/``-joined label-path of a node ("" for the root).

        Raises:
            KeyError: If the node (or one of its ancestors) is not in the mirror
        """
        labels: list[str] = []
        with self._lock:
            current = self._index[node.id]
            while current.parent_id is not None:
                labels.append(current.title)
                current = self._index[current.parent_id]
        return PATH_SEPARATOR.join(reversed(labels))

    def add_child(self, parent: RemoteNode, child: RemoteNode) -> RemoteNode:
        """Register a node created by this process under ``parent``.

        New folders get an empty child map since they are known to be empty.

        Args:
            parent: Fetched folder receiving the node
            child: Node returned by the remote store

        Returns:
            The registered node (the existing one if the id is already known)

        Raises:
            ValueError: If ``parent`` is not a fetched folder of this mirror
        """
        with self._lock:
            existing = self._index.get(child.id)
            if existing is not None:
                return existing
            if parent.id not in self._index or not parent.is_directory:
                raise ValueError(f"'{parent.title}' is not a folder of this mirror")
            if parent.children is None:
                raise ValueError(f"Folder '{parent.title}' has not been fetched yet")

            child.parent_id = parent.id
            if child.is_directory and child.children is None:
                child.children = {}
            parent.children[child.id] = child
            self._index[child.id] = child
        return child

    def ensure_fetched(self, node: RemoteNode) -> None:
        """Hydrate ``node`` if its children have not been fetched.

        Raises:
            GriveAPIError: If listing ``node`` itself failed
        """
        if node.is_fetched or not node.is_directory:
            return
        report = self.hydrate(node)
        for failure in report.failures:
            if failure.node is node:
                raise GriveAPIError(
                    f"Could not list folder '{node.title}': {failure.error}"
                ) from failure.error

    def hydrate(self, node: Optional[RemoteNode] = None) -> HydrationReport:
        """Fetch the subtree below ``node`` (default: the root).

        Listings fan out over a thread pool; the call returns once every
        recursively spawned listing has finished. A failed listing is
        logged and recorded in the report and its subtree is not explored.

        Args:
            node: Folder to hydrate

        Returns:
            HydrationReport describing what was fetched
        """
        node = node or self.root
        report = HydrationReport()
        report_lock = threading.Lock()
        pending = _WaitGroup()

        with ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="pygrive-hydrate"
        ) as pool:

            def spawn(folder: RemoteNode) -> None:
                pending.add()
                pool.submit(run, folder)

            def run(folder: RemoteNode) -> None:
                try:
                    for child in self._fetch_children(folder, report, report_lock):
                        spawn(child)
                except Exception as e:
                    logger.exception(f"Unexpected error hydrating '{folder.title}'")
                    with report_lock:
                        report.failures.append(HydrationFailure(folder, e))
                finally:
                    pending.done()

            spawn(node)
            pending.wait()

        logger.debug(
            f"Hydrated '{node.title}': {report.folders_fetched} folder(s), "
            f"{report.nodes_added} node(s), {len(report.failures)} failure(s)"
        )
        return report

    def _fetch_children(
        self,
        folder: RemoteNode,
        report: HydrationReport,
        report_lock: threading.Lock,
    ) -> list[RemoteNode]:
        """List one folder and merge the result into the mirror.

        Returns:
            Child folders that should be hydrated next
        """
        try:
            listed = self.store.list_children(folder.id, exclude_trashed=True)
        except GriveAPIError as e:
            logger.warning(f"Failed to list remote folder '{folder.title}': {e}")
            with report_lock:
                report.failures.append(HydrationFailure(folder, e))
            return []

        added = 0
        with self._lock:
            # Build the complete map before publishing it
            children = dict(folder.children) if folder.children is not None else {}
            for child in listed:
                if child.trashed or child.id in children:
                    continue
                if child.id in self._index:
                    # Already mirrored under another parent
                    logger.debug(
                        f"Skipping '{child.title}' ({child.id}): already mirrored"
                    )
                    continue
                child.parent_id = folder.id
                children[child.id] = child
                self._index[child.id] = child
                added += 1
            folder.children = children
            subfolders = [c for c in children.values() if c.is_directory]

        with report_lock:
            report.folders_fetched += 1
            report.nodes_added += added
        return subfolders
