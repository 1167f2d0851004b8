"""Exceptions raised by pygrive."""


class GriveError(Exception):
    """Base exception for all pygrive errors."""


class GriveConfigError(GriveError):
    """Configuration is missing or malformed."""


class GriveAPIError(GriveError):
    """A call to the remote store failed."""


class GriveAuthenticationError(GriveAPIError):
    """Access token is invalid, expired, or could not be refreshed."""


class GrivePermissionError(GriveAPIError):
    """The remote store refused access to a resource."""


class GriveNotFoundError(GriveAPIError):
    """The requested remote resource does not exist."""


class GriveRateLimitError(GriveAPIError):
    """The remote store throttled the request."""


class GriveNetworkError(GriveAPIError):
    """Transport level failure talking to the remote store."""


class GriveInvalidResponseError(GriveAPIError):
    """The remote store returned something that is not the expected JSON."""


class GriveUploadError(GriveAPIError):
    """Uploading file content failed."""


class GriveFileNotFoundError(GriveError):
    """A local file could not be found."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Local file not found: {path}")


class GriveAmbiguousPathError(GriveError):
    """Several remote siblings share the label needed to resolve a path."""

    def __init__(self, path: str, label: str, count: int):
        self.path = path
        self.label = label
        self.count = count
        super().__init__(
            f"Ambiguous remote path '{path}': {count} siblings are labelled '{label}'"
        )
