class UploadError(Exception):
    """Base class for every terminal upload failure."""

    pass


class InvalidArgumentError(UploadError, ValueError):
    """Raised when an upload request is malformed (empty names, negative size)."""

    pass


class ObjectExistsError(UploadError, FileExistsError):
    """Raised when the destination object already exists."""

    def __init__(self, bucket: str, object_name: str) -> None:
        super().__init__(f"Object '{object_name}' already exists in bucket '{bucket}'")
        self.bucket = bucket
        self.object_name = object_name


class UploadIOError(UploadError, OSError):
    """Raised when creating, copying into or flushing the destination fails."""

    pass


class ShortTransferError(UploadIOError):
    """Raised when the producer closed before the declared size was sent."""

    def __init__(self, expected: int, received: int) -> None:
        super().__init__(f"Short transfer: expected {expected} bytes, got {received}")
        self.expected = expected
        self.received = received


class DigestMismatchError(UploadIOError):
    """Raised when the uploaded bytes do not match the declared MD5 digest."""

    pass


class PipeClosedError(Exception):
    """Raised on read/write of a pipe end that has been closed."""

    pass


class DoubleReleaseError(RuntimeError):
    """Raised when a write handle is released more than once.

    This is a programming error, not an upload failure; nothing in the
    library catches it.
    """

    pass


class BlobNotFoundError(Exception):
    """Raised when a requested blob does not exist."""

    pass
