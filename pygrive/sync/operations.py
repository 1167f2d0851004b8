"""Upload operations for the sync engine."""

import logging
from pathlib import Path
from typing import Union

from ..exceptions import GriveFileNotFoundError, GriveUploadError
from ..mime_types import detect_mime_type
from ..models import RemoteNode
from ..store import RemoteStore
from .mirror import RemoteTreeMirror

logger = logging.getLogger(__name__)


class SyncOperations:
    """Uploads local files and keeps the mirror up to date."""

    def __init__(self, store: RemoteStore, mirror: RemoteTreeMirror):
        """Initialize sync operations.

        Args:
            store: Remote store receiving the uploads
            mirror: Mirror in which uploaded nodes are registered
        """
        self.store = store
        self.mirror = mirror

    def upload_file(
        self, local_path: Union[str, Path], parent: RemoteNode
    ) -> RemoteNode:
        """Upload a local file as a new child of ``parent``.

        The content type comes from the file extension. The upload is all
        or nothing: on failure nothing is registered in the mirror.

        Args:
            local_path: File to upload
            parent: Remote folder receiving the file

        Returns:
            The uploaded node, registered under ``parent``

        Raises:
            GriveFileNotFoundError: If the local file does not exist
            GriveUploadError: If ``parent`` is not a folder
            GriveAPIError: If the remote store rejected the upload
        """
        path = Path(local_path)
        if not path.is_file():
            raise GriveFileNotFoundError(str(path))
        if not parent.is_directory:
            raise GriveUploadError(
                f"Cannot upload '{path.name}' into '{parent.title}': not a folder"
            )

        self.mirror.ensure_fetched(parent)

        mime_type = detect_mime_type(path)
        logger.debug(f"Uploading '{path}' as {mime_type} into '{parent.title}'")
        created = self.store.insert_node(
            parent.id, path.name, mime_type, content_path=path
        )
        node = self.mirror.add_child(parent, created)
        logger.info(f"Uploaded '{path.name}' to '{parent.title}' ({node.id})")
        return node
