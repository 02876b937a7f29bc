from __future__ import annotations


class UploadError(Exception):
    """Base exception for uploader operations."""

    message_key: str | None = None


class IntegrityError(UploadError):
    """The file's extension is not on the uploader's allow-list."""

    message_key = "carrierwave_integrity_error"


class ProcessingError(UploadError):
    """A processing step failed on the cached file."""

    message_key = "carrierwave_processing_error"


class StorageError(UploadError):
    def __init__(self, message: str, *, path: str | None = None):
        super().__init__(message)
        self.path = path
