"""Resolve local relative paths to nodes of the remote mirror."""

import logging
import threading
from dataclasses import dataclass
from typing import Optional

from ..exceptions import GriveAmbiguousPathError
from ..models import RemoteNode
from ..utils import join_label_path, normalize_label_path, split_label_path
from .mirror import RemoteTreeMirror

logger = logging.getLogger(__name__)


@dataclass
class ClosestAncestor:
    """Deepest existing folder whose label-path prefixes the target."""

    node: RemoteNode
    """The folder (the root when nothing deeper matched)"""

    path: str = ""
    """Label-path of the folder"""

    depth: int = 0
    """Number of target segments the folder covers"""


@dataclass
class ResolveResult:
    """Result of resolving a label-path."""

    path: str
    """Normalized target path"""

    node: Optional[RemoteNode]
    """Node whose label-path equals the target, None when not found"""

    ancestor: ClosestAncestor
    """Closest existing ancestor folder"""

    @property
    def found(self) -> bool:
        """Whether the target exists in the mirror."""
        return self.node is not None


class PathResolver:
    """Walks the mirror to find the node matching a relative path.

    The walk is depth first; when several siblings carry the same label the
    first one in mirror order wins. Such collisions are logged, or raised
    as ``GriveAmbiguousPathError`` when ``strict`` is set.
    """

    def __init__(self, mirror: RemoteTreeMirror, strict: bool = False):
        self.mirror = mirror
        self.strict = strict
        self._warned: set[str] = set()
        self._warned_lock = threading.Lock()

    def resolve(self, relative_path: str) -> ResolveResult:
        """Resolve a relative path.

        Args:
            relative_path: Path relative to the watched root ("" for the root)

        Returns:
            ResolveResult with the matching node (or None) and the closest
            existing ancestor folder

        Raises:
            GriveAmbiguousPathError: In strict mode, on duplicate labels
        """
        target = normalize_label_path(relative_path)
        segments = split_label_path(target)
        ancestor = ClosestAncestor(node=self.mirror.root)

        if not segments:
            return ResolveResult(path=target, node=self.mirror.root, ancestor=ancestor)

        node = self._walk(self.mirror.root, "", 0, target, segments, ancestor)
        return ResolveResult(path=target, node=node, ancestor=ancestor)

    def _walk(
        self,
        folder: RemoteNode,
        parent_path: str,
        depth: int,
        target: str,
        segments: list[str],
        ancestor: ClosestAncestor,
    ) -> Optional[RemoteNode]:
        if depth >= len(segments):
            return None

        label = segments[depth]
        is_last = depth == len(segments) - 1
        matching = [c for c in self.mirror.children_of(folder) if c.title == label]
        self._check_ambiguity(parent_path, label, matching, is_last)

        for child in matching:
            current_path = join_label_path(parent_path, child.title)
            if current_path == target:
                return child
            if not child.is_directory:
                continue

            # current_path is a genuine prefix of the target
            if depth + 1 > ancestor.depth:
                ancestor.node = child
                ancestor.path = current_path
                ancestor.depth = depth + 1

            found = self._walk(
                child, current_path, depth + 1, target, segments, ancestor
            )
            if found is not None:
                return found

        return None

    def _check_ambiguity(
        self,
        parent_path: str,
        label: str,
        matching: list[RemoteNode],
        is_last: bool,
    ) -> None:
        candidates = matching if is_last else [c for c in matching if c.is_directory]
        if len(candidates) < 2:
            return

        path = join_label_path(parent_path, label)
        if self.strict:
            raise GriveAmbiguousPathError(path, label, len(candidates))

        with self._warned_lock:
            if path in self._warned:
                return
            self._warned.add(path)
        logger.warning(
            f"Ambiguous remote path '{path}': {len(candidates)} siblings share "
            f"this label, using the first one ({candidates[0].id})"
        )
