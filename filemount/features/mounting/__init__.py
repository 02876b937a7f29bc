from .errors import MountConfigurationError, MountingDomainError, RecordInvalidError
from .lifecycle import AttachmentLifecycle, LifecycleObserver, register_lifecycle
from .mount import Attachable, Mount
from .repo import destroy_record, reload_record, save_record, save_record_or_raise
from .state import AttachmentState, MountConfig
from .validation import ValidationErrors, presence_of, size_of

__all__ = [
    "Attachable",
    "AttachmentLifecycle",
    "AttachmentState",
    "LifecycleObserver",
    "Mount",
    "MountConfig",
    "MountConfigurationError",
    "MountingDomainError",
    "RecordInvalidError",
    "ValidationErrors",
    "destroy_record",
    "presence_of",
    "register_lifecycle",
    "reload_record",
    "save_record",
    "save_record_or_raise",
    "size_of",
]
