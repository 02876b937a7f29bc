"""Mount file uploaders on SQLAlchemy models."""

from filemount.features.mounting import (
    Attachable,
    Mount,
    RecordInvalidError,
    destroy_record,
    presence_of,
    register_lifecycle,
    reload_record,
    save_record,
    save_record_or_raise,
    size_of,
)
from filemount.features.uploads import (
    FileStorage,
    IntegrityError,
    ProcessingError,
    StorageError,
    UploadError,
    Uploader,
)

__version__ = "0.1.0"

__all__ = [
    "Attachable",
    "FileStorage",
    "IntegrityError",
    "Mount",
    "ProcessingError",
    "RecordInvalidError",
    "StorageError",
    "UploadError",
    "Uploader",
    "destroy_record",
    "presence_of",
    "register_lifecycle",
    "reload_record",
    "save_record",
    "save_record_or_raise",
    "size_of",
]
