"""Create missing remote folder chains."""

import logging
import threading
from concurrent.futures import Future

from ..mime_types import FOLDER_MIME_TYPE
from ..models import RemoteNode
from ..store import RemoteStore
from ..utils import join_label_path, normalize_label_path, split_label_path
from .mirror import RemoteTreeMirror
from .resolver import PathResolver, ResolveResult

logger = logging.getLogger(__name__)


class DirectoryMaterializer:
    """Creates the remote folders needed for a local directory path.

    Folders are created one segment at a time since every new folder's id
    is the parent reference of the next one. Creations are single-flight
    per label-path: concurrent callers that need the same missing folder
    wait for one shared creation instead of issuing their own.
    """

    def __init__(
        self,
        mirror: RemoteTreeMirror,
        store: RemoteStore,
        resolver: PathResolver,
    ):
        """Initialize the materializer.

        Args:
            mirror: Mirror that receives the created folders
            store: Remote store used to create folders
            resolver: Resolver over the same mirror
        """
        self.mirror = mirror
        self.store = store
        self.resolver = resolver
        self._lock = threading.Lock()
        self._in_flight: dict[str, Future] = {}

    @property
    def in_flight(self) -> list[str]:
        """Label-paths of folders currently being created."""
        with self._lock:
            return sorted(self._in_flight)

    def materialize(self, relative_path: str) -> RemoteNode:
        """Make sure the folder chain for ``relative_path`` exists remotely.

        Args:
            relative_path: Directory path relative to the watched root

        Returns:
            The node at ``relative_path``; the existing one when the path
            already resolves (which may be a file, callers check the type)

        Raises:
            GriveAPIError: If a listing or a folder creation failed
        """
        target = normalize_label_path(relative_path)
        result = self._resolve_fetched(target)
        if result.node is not None:
            return result.node

        ancestor = result.ancestor
        missing = split_label_path(target)[ancestor.depth :]
        logger.debug(
            f"Materializing '{target}': {len(missing)} folder(s) missing below "
            f"'{ancestor.path or '/'}'"
        )

        current = ancestor.node
        current_path = ancestor.path
        for label in missing:
            current_path = join_label_path(current_path, label)
            current = self._create_folder(current, label, current_path)
        return current

    def _resolve_fetched(self, target: str) -> ResolveResult:
        """Resolve ``target``, hydrating unfetched ancestors on the way."""
        while True:
            result = self.resolver.resolve(target)
            if result.found or result.ancestor.node.is_fetched:
                return result
            self.mirror.ensure_fetched(result.ancestor.node)

    def _create_folder(self, parent: RemoteNode, label: str, path: str) -> RemoteNode:
        with self._lock:
            existing = self.mirror.find_child(parent, label, directories_only=True)
            if existing is not None:
                return existing
            future = self._in_flight.get(path)
            owner = future is None
            if owner:
                future = Future()
                self._in_flight[path] = future

        if not owner:
            logger.debug(f"Waiting for in-flight creation of '{path}'")
            return future.result()

        try:
            created = self.store.insert_node(parent.id, label, FOLDER_MIME_TYPE)
            node = self.mirror.add_child(parent, created)
        except Exception as e:
            future.set_exception(e)
            raise
        else:
            logger.info(f"Created remote folder '{path}' ({node.id})")
            future.set_result(node)
            return node
        finally:
            with self._lock:
                self._in_flight.pop(path, None)
