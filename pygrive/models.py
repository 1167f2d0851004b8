"""Data models for remote store nodes."""

from dataclasses import dataclass, field
from typing import Any, Optional

from .mime_types import FOLDER_MIME_TYPE


@dataclass(eq=False)
class RemoteNode:
    """A node of the remote store graph.

    Nodes compare by identity; two nodes are the same remote object
    when their ``id`` matches.
    """

    id: str
    """Opaque identifier, unique within a mirror"""

    title: str
    """Display label used to build label-paths"""

    mime_type: str
    """Content type; folders carry ``FOLDER_MIME_TYPE``"""

    parent_id: Optional[str] = None
    """Identifier of the (single) parent node, None for the root"""

    trashed: bool = False
    """Whether the remote store marks the node as discarded"""

    children: Optional[dict[str, "RemoteNode"]] = field(default=None, repr=False)
    """Child nodes keyed by id; None until the folder has been fetched"""

    @property
    def is_directory(self) -> bool:
        """Whether this node is a folder."""
        return self.mime_type == FOLDER_MIME_TYPE

    @property
    def is_fetched(self) -> bool:
        """Whether the child map has been fully populated."""
        return self.children is not None

    @property
    def is_root(self) -> bool:
        """Whether this node has no parent."""
        return self.parent_id is None

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "RemoteNode":
        """Create a node from a remote file resource.

        Args:
            data: File resource as returned by the remote API

        Returns:
            RemoteNode instance (children not fetched)
        """
        parents = data.get("parents") or []
        parent_id = None
        if parents:
            first = parents[0]
            parent_id = first.get("id") if isinstance(first, dict) else str(first)

        labels = data.get("labels") or {}
        trashed = bool(labels.get("trashed", data.get("trashed", False)))

        return cls(
            id=str(data["id"]),
            title=data.get("title", ""),
            mime_type=data.get("mimeType", ""),
            parent_id=parent_id,
            trashed=trashed,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert node to a dictionary for JSON output."""
        return {
            "id": self.id,
            "title": self.title,
            "mime_type": self.mime_type,
            "parent_id": self.parent_id,
            "is_directory": self.is_directory,
        }
