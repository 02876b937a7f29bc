from __future__ import annotations

import logging
import weakref
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from sqlalchemy.orm.attributes import flag_dirty

from filemount.core.config import get_settings
from filemount.features.uploads import (
    IntegrityError,
    ProcessingError,
    Storage,
    StorageError,
    Uploader,
    UploadError,
)

if TYPE_CHECKING:
    from .validation import ValidationErrors

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MountConfig:
    name: str
    uploader_cls: type[Uploader]
    column: str
    remove_previous_files: bool | None = None
    options: dict[str, Any] = field(default_factory=dict)

    def should_remove_previous_files(self) -> bool:
        if self.remove_previous_files is None:
            return get_settings().remove_previous_files
        return self.remove_previous_files


def _is_empty_assignment(value: Any) -> bool:
    if value is None:
        return True
    return isinstance(value, str) and not value.strip()


class AttachmentState:
    """Attachment bookkeeping for one mounted attribute of one record.

    ``committed_paths`` holds the store paths of the file as it was last
    persisted, resolved when the record was loaded or committed, so stale-file
    cleanup never has to recompute them from model fields that may since have
    changed. ``staged_paths`` holds the paths written by a flush that has not
    been committed yet. Until the transaction ends, ``written_paths`` and
    ``backups`` record every store path the flushes wrote and the copies of
    whatever those writes replaced.
    """

    def __init__(self, record: Any, config: MountConfig):
        self._record_ref = weakref.ref(record)
        self.config = config
        self.current: Uploader | None = None
        self.changed = False
        self.pending_removal = False
        self.error: UploadError | None = None
        self.committed_paths: list[str] = []
        self.staged_paths: list[str] | None = None
        self.written_paths: list[str] = []
        self.backups: dict[str, str] = {}
        self.staged_uploaders: list[Uploader] = []
        self._staging_storage: Storage | None = None
        self._retrieved_for: str | None = None

    @property
    def record(self) -> Any:
        record = self._record_ref()
        if record is None:
            raise ReferenceError(f"Record owning '{self.config.name}' no longer exists.")
        return record

    @property
    def name(self) -> str:
        return self.config.name

    def build_uploader(self) -> Uploader:
        return self.config.uploader_cls(self.record, self.config.name)

    # Column access

    def read_column(self) -> str | None:
        return getattr(self.record, self.config.column)

    def write_column(self, value: str) -> None:
        setattr(self.record, self.config.column, value)

    def _loaded_column(self) -> str | None:
        # Only what is already loaded, so event handlers never trigger IO.
        return self.record.__dict__.get(self.config.column)

    # Accessors

    def get(self) -> Uploader:
        if self.current is not None and self._retrieved_for is None:
            return self.current

        identifier = self.read_column()
        if not identifier:
            self.current = None
            self._retrieved_for = None
            return self.build_uploader()

        if self.current is None or self._retrieved_for != identifier:
            uploader = self.build_uploader()
            uploader.retrieve_from_store(identifier)
            self.current = uploader
            self._retrieved_for = identifier
        return self.current

    def set(self, file: Any) -> None:
        if _is_empty_assignment(file):
            return

        uploader = self.build_uploader()
        self.error = None
        try:
            uploader.cache(file)
        except IntegrityError as exc:
            logger.debug("Rejected file for %s: %s", self.name, exc)
            self.error = exc
        except ProcessingError as exc:
            logger.debug("Processing failed for %s: %s", self.name, exc)
            self.error = exc

        if uploader.cached:
            self.current = uploader
            self._retrieved_for = None
            self.changed = True
        flag_dirty(self.record)

    @property
    def remove(self) -> bool:
        return self.pending_removal

    @remove.setter
    def remove(self, value: Any) -> None:
        self.pending_removal = bool(value) and value not in ("0", "false")
        if self.pending_removal:
            flag_dirty(self.record)

    def add_errors_to(self, errors: ValidationErrors) -> None:
        if self.error is not None and self.error.message_key:
            errors.add(self.name, self.error.message_key)

    # Lifecycle

    def capture_committed(self) -> None:
        identifier = self._loaded_column()
        if identifier:
            self.committed_paths = self.build_uploader().paths_for(identifier)
        else:
            self.committed_paths = []

    def reset(self, *, keep_pending: bool = False) -> None:
        """Forget in-memory attachment data and recapture the committed paths.

        With ``keep_pending`` an unsaved assignment or removal request survives,
        which is what an implicit attribute reload after expiry wants.
        """
        if not (keep_pending and (self.changed or self.pending_removal)):
            self.current = None
            self.changed = False
            self.pending_removal = False
            self.error = None
            self.staged_paths = None
            self._retrieved_for = None
        self.capture_committed()

    def persisted_paths(self) -> list[str]:
        paths = list(self.committed_paths)
        for path in self.staged_paths or []:
            if path not in paths:
                paths.append(path)
        return paths

    def stage_removal(self) -> list[str]:
        """Clear the column and return the paths that should be deleted on commit."""
        doomed = self.persisted_paths()
        if not doomed:
            identifier = self.read_column()
            if identifier:
                doomed = self.build_uploader().paths_for(identifier)
        self.write_column("")
        self.current = None
        self._retrieved_for = None
        self.staged_paths = []
        return doomed

    def stage_store(self) -> list[str]:
        """Store the assigned file, write its identifier and return stale paths.

        Files about to be overwritten are copied aside first and the cached
        copy is kept, so ``rollback_staging()`` can put everything back.
        """
        uploader = self.current
        if uploader is None or uploader.blank or self._retrieved_for is not None:
            return []

        storage = uploader.get_storage()
        self._staging_storage = storage
        identifier = uploader.filename()
        fresh: list[str] = []
        for path in uploader.paths_for(identifier) if identifier else []:
            if path in self.written_paths:
                continue
            if storage.exists(path):
                backup = f"{path}.{uploader.cache_id}.previous"
                storage.copy(path, backup)
                self.backups[path] = backup
            self.written_paths.append(path)
            fresh.append(path)

        try:
            uploader.store(identifier, keep_cache=True)
        except StorageError:
            uploader.restore_cache()
            self._revert_writes(storage, fresh)
            raise
        self._track_staged(uploader)
        if uploader.identifier is None:
            return []
        self.write_column(uploader.identifier)

        new_paths = uploader.stored_paths()
        previous = self.persisted_paths()
        self.staged_paths = new_paths
        if not self.config.should_remove_previous_files():
            return []
        return [path for path in previous if path not in new_paths]

    def _track_staged(self, uploader: Uploader) -> None:
        if not any(item is uploader for item in self.staged_uploaders):
            self.staged_uploaders.append(uploader)

    def _revert_writes(self, storage: Storage, paths: list[str]) -> None:
        for path in reversed(paths):
            backup = self.backups.pop(path, None)
            if backup is None:
                storage.delete(path)
                continue
            storage.copy(backup, path)
            storage.delete(backup)
            logger.debug("Restored %s from %s.", path, backup)
        for path in paths:
            if path in self.written_paths:
                self.written_paths.remove(path)

    def finalize_commit(self) -> None:
        if self.staged_paths is not None:
            self.committed_paths = self.staged_paths
        if self._staging_storage is not None:
            for backup in self.backups.values():
                self._staging_storage.delete(backup)
        for uploader in self.staged_uploaders:
            uploader.release_cache()
        self.backups = {}
        self.written_paths = []
        self.staged_uploaders = []
        self._staging_storage = None
        self.staged_paths = None
        self.changed = False
        self.pending_removal = False
        self.error = None

    def rollback_staging(self) -> None:
        """Undo what flushes in the rolled back transaction wrote to the store.

        Overwritten files get their previous content back, newly written
        files are deleted and the assigned file returns to the cache.
        """
        if self._staging_storage is not None:
            self._revert_writes(self._staging_storage, list(self.written_paths))
        for uploader in self.staged_uploaders:
            uploader.restore_cache()
        self.staged_uploaders = []
        self._staging_storage = None
        self.staged_paths = None
        if self.current is not None and self.current.cached:
            self.changed = True

    def mark_pending(self) -> None:
        """Flag the record dirty again when it still has work for the next flush."""
        record = self._record_ref()
        if record is not None and (self.changed or self.pending_removal):
            flag_dirty(record)

    def finalize_destroy(self) -> None:
        self.current = None
        self._retrieved_for = None
        self.committed_paths = []
        self.staged_paths = None
        self.changed = False
        self.pending_removal = False
