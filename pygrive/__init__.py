"""pygrive - mirror newly created local files to a remote drive."""

from .api import DriveClient
from .exceptions import (
    GriveAmbiguousPathError,
    GriveAPIError,
    GriveAuthenticationError,
    GriveConfigError,
    GriveError,
    GriveFileNotFoundError,
    GriveInvalidResponseError,
    GriveNetworkError,
    GriveNotFoundError,
    GrivePermissionError,
    GriveRateLimitError,
    GriveUploadError,
)
from .models import RemoteNode
from .store import ROOT_ID, MemoryStore, RemoteStore

__version__ = "0.1.0"

__all__ = [
    "DriveClient",
    "MemoryStore",
    "RemoteNode",
    "RemoteStore",
    "ROOT_ID",
    "GriveError",
    "GriveAmbiguousPathError",
    "GriveAPIError",
    "GriveAuthenticationError",
    "GriveConfigError",
    "GriveFileNotFoundError",
    "GriveInvalidResponseError",
    "GriveNetworkError",
    "GriveNotFoundError",
    "GrivePermissionError",
    "GriveRateLimitError",
    "GriveUploadError",
]
