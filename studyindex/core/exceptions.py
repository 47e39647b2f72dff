"""Exception classes for the collection engine."""


class StudyIndexError(Exception):
    """Base exception for collection engine errors."""

    pass


class ManifestError(StudyIndexError):
    """Raised when the collections manifest is missing or unreadable."""

    def __init__(self, path: str, details: str = ""):
        """Initialize with manifest path and details."""
        self.path = path
        message = f"Failed to load collections manifest {path}"
        if details:
            message += f": {details}"
        super().__init__(message)


class LoadError(StudyIndexError):
    """Raised when a collection document cannot be loaded."""

    def __init__(self, key: str, reason: str, status: int | None = None):
        """Initialize with collection key, reason and optional HTTP status."""
        self.key = key
        self.reason = reason
        self.status = status
        message = f"Failed to load collection {key}: {reason}"
        if status is not None:
            message += f" (status {status})"
        super().__init__(message)


class MetadataLookupFailure(StudyIndexError):
    """Raised when a folder metadata declaration cannot be read.

    The metadata resolver handles this internally by falling back to the
    parent folder, so it never reaches engine callers.
    """

    def __init__(self, path: str, details: str = ""):
        """Initialize with metadata file path and details."""
        self.path = path
        message = f"Unreadable folder metadata at {path}"
        if details:
            message += f": {details}"
        super().__init__(message)


class SetNotFoundError(LoadError):
    """Raised when a collection set id is not declared for its folder."""

    def __init__(self, folder: str, set_id: str, reason: str | None = None):
        """Initialize with base folder and set id."""
        self.folder = folder
        self.set_id = set_id
        super().__init__(
            f"{folder or '(root)'}/{set_id}",
            reason or f"collection set not found: {set_id}",
        )


class FetchError(StudyIndexError):
    """Raised by fetchers when a resource cannot be reached at all."""

    def __init__(self, path: str, details: str = ""):
        """Initialize with resource path and details."""
        self.path = path
        message = f"Failed to fetch {path}"
        if details:
            message += f": {details}"
        super().__init__(message)
