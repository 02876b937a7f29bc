from .errors import IntegrityError, ProcessingError, StorageError, UploadError
from .filenames import file_extension, sanitize_filename
from .schemas import UploaderJson, VersionUrl
from .storage import FileStorage, Storage, get_storage
from .uploader import Processor, Uploader, generate_cache_id

__all__ = [
    "FileStorage",
    "IntegrityError",
    "ProcessingError",
    "Processor",
    "Storage",
    "StorageError",
    "UploadError",
    "Uploader",
    "UploaderJson",
    "VersionUrl",
    "file_extension",
    "generate_cache_id",
    "get_storage",
    "sanitize_filename",
]
