"""Remote store capability interface and an in-memory implementation."""

import itertools
import logging
import threading
import time
from pathlib import Path
from typing import Optional, Protocol, Union

from .exceptions import (
    GriveAPIError,
    GriveFileNotFoundError,
    GriveNotFoundError,
    GriveUploadError,
)
from .mime_types import FOLDER_MIME_TYPE
from .models import RemoteNode

logger = logging.getLogger(__name__)

ROOT_ID = "root"
"""Well-known identifier of the remote root folder"""


class RemoteStore(Protocol):
    """The three operations the sync engine needs from a remote store."""

    def list_children(
        self, parent_id: str, exclude_trashed: bool = True
    ) -> list[RemoteNode]:
        """List direct children of a folder."""
        ...

    def get_node(self, node_id: str) -> RemoteNode:
        """Fetch a single node by id."""
        ...

    def insert_node(
        self,
        parent_id: str,
        title: str,
        mime_type: str,
        content_path: Optional[Path] = None,
    ) -> RemoteNode:
        """Create a folder (no content) or a file (with content)."""
        ...


class MemoryStore:
    """Thread-safe in-memory remote store.

    Used by the test-suite and by ``pygrive watch --dry-run``. Every
    successful insert is recorded in ``inserted`` in call order.

    Examples:
        >>> store = MemoryStore()
        >>> docs = store.insert_node(ROOT_ID, "docs", FOLDER_MIME_TYPE)
        >>> [n.title for n in store.list_children(ROOT_ID)]
        ['docs']
    """

    def __init__(self, delay: float = 0.0, store_content: bool = True):
        """Initialize the store with an empty root folder.

        Args:
            delay: Seconds to sleep inside every call (widens race windows)
            store_content: Whether uploaded file bytes are kept in ``contents``
        """
        self.delay = delay
        self.store_content = store_content
        self.fail_on: set[tuple[str, str]] = set()
        self.inserted: list[RemoteNode] = []
        self.contents: dict[str, bytes] = {}
        self.calls: list[tuple[str, str]] = []
        self._nodes: dict[str, RemoteNode] = {
            ROOT_ID: RemoteNode(
                id=ROOT_ID, title="My Drive", mime_type=FOLDER_MIME_TYPE
            )
        }
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def _enter(self, operation: str, key: str) -> None:
        with self._lock:
            self.calls.append((operation, key))
        if self.delay:
            time.sleep(self.delay)
        if (operation, key) in self.fail_on:
            raise GriveAPIError(f"Injected failure: {operation} {key}")

    def add(
        self,
        parent_id: str,
        title: str,
        mime_type: str = FOLDER_MIME_TYPE,
        trashed: bool = False,
    ) -> RemoteNode:
        """Seed a node without recording it as an insert.

        Args:
            parent_id: Parent folder id
            title: Node label
            mime_type: Content type (defaults to a folder)
            trashed: Whether the node sits in the trash

        Returns:
            Detached copy of the stored node
        """
        with self._lock:
            node = RemoteNode(
                id=f"node-{next(self._ids)}",
                title=title,
                mime_type=mime_type,
                parent_id=parent_id,
                trashed=trashed,
            )
            self._nodes[node.id] = node
        return self._copy(node)

    def fail(self, operation: str, key: str) -> None:
        """Make ``operation`` ("list", "get", "insert") fail for ``key``.

        ``key`` is the parent id for list, the node id for get and the title
        for insert.
        """
        self.fail_on.add((operation, key))

    @staticmethod
    def _copy(node: RemoteNode) -> RemoteNode:
        return RemoteNode(
            id=node.id,
            title=node.title,
            mime_type=node.mime_type,
            parent_id=node.parent_id,
            trashed=node.trashed,
        )

    def list_children(
        self, parent_id: str, exclude_trashed: bool = True
    ) -> list[RemoteNode]:
        self._enter("list", parent_id)
        with self._lock:
            if parent_id not in self._nodes:
                raise GriveNotFoundError(f"Folder not found: {parent_id}")
            return [
                self._copy(node)
                for node in self._nodes.values()
                if node.parent_id == parent_id
                and not (exclude_trashed and node.trashed)
            ]

    def get_node(self, node_id: str) -> RemoteNode:
        self._enter("get", node_id)
        with self._lock:
            node = self._nodes.get(node_id)
            if node is None:
                raise GriveNotFoundError(f"Node not found: {node_id}")
            return self._copy(node)

    def insert_node(
        self,
        parent_id: str,
        title: str,
        mime_type: str,
        content_path: Optional[Union[str, Path]] = None,
    ) -> RemoteNode:
        self._enter("insert", title)

        content = None
        if content_path is not None:
            path = Path(content_path)
            try:
                content = path.read_bytes()
            except FileNotFoundError as e:
                raise GriveFileNotFoundError(str(path)) from e
            except OSError as e:
                raise GriveUploadError(f"Failed to read {path}: {e}") from e

        with self._lock:
            parent = self._nodes.get(parent_id)
            if parent is None:
                raise GriveNotFoundError(f"Parent folder not found: {parent_id}")
            if not parent.is_directory:
                raise GriveAPIError(f"Parent is not a folder: {parent_id}")

            node = RemoteNode(
                id=f"node-{next(self._ids)}",
                title=title,
                mime_type=mime_type,
                parent_id=parent_id,
            )
            self._nodes[node.id] = node
            self.inserted.append(self._copy(node))
            if content is not None and self.store_content:
                self.contents[node.id] = content

        logger.debug(f"MemoryStore: inserted '{title}' ({node.id}) under {parent_id}")
        return self._copy(node)

    def children_titled(self, parent_id: str, title: str) -> list[RemoteNode]:
        """Return every stored child of ``parent_id`` labelled ``title``."""
        with self._lock:
            return [
                self._copy(node)
                for node in self._nodes.values()
                if node.parent_id == parent_id and node.title == title
            ]
