"""Attachment lifecycle around SQLAlchemy flush, commit, rollback and delete.

The coordinator is written against ``LifecycleObserver``; ``register_lifecycle``
adapts SQLAlchemy session and instance events onto it. Listening on the
``Session`` class covers ``AsyncSession`` as well, since async sessions drive a
synchronous ``Session`` underneath.

Per save:

* ``before_validation`` adds integrity/processing errors captured at
  assignment time, then runs the model's validators.
* ``before_flush`` refuses to flush invalid records (``RecordInvalidError``),
  stores newly cached files while keeping their cached copies, backs up any
  stored file they overwrite, writes identifiers to their columns and schedules
  removal of stale files and of files belonging to deleted records.
* ``after_commit`` performs the scheduled removals, drops the kept cache
  copies and backups, and settles the attachment states.
* ``after_rollback`` forgets the scheduled removals, deletes what the
  transaction wrote to the store, restores overwritten files from their
  backups and returns assigned files to the cache so they can be saved again.

Two concurrent saves of the same row are not serialized here; that is left to
the database's own locking.
"""

from __future__ import annotations

import logging
from threading import Lock
from typing import Any, Protocol

from sqlalchemy import event
from sqlalchemy.orm import Session, SessionTransaction

from filemount.features.uploads import Storage

from .errors import RecordInvalidError
from .mount import Attachable
from .state import AttachmentState

logger = logging.getLogger(__name__)

_REMOVALS_KEY = "filemount.pending_removals"
_FLUSHED_KEY = "filemount.flushed_states"
_DESTROYED_KEY = "filemount.destroyed_states"
_ROLLED_BACK_KEY = "filemount.rolled_back_states"


class LifecycleObserver(Protocol):
    def before_validation(self, record: Attachable) -> None: ...

    def before_flush(self, session: Session) -> None: ...

    def after_commit(self, session: Session) -> None: ...

    def after_rollback(self, session: Session) -> None: ...

    def after_soft_rollback(self, session: Session, previous_transaction: SessionTransaction) -> None: ...

    def after_load(self, record: Attachable) -> None: ...

    def after_refresh(self, record: Attachable) -> None: ...


def _pending_removals(session: Session) -> dict[str, Storage]:
    return session.info.setdefault(_REMOVALS_KEY, {})


def _tracked(session: Session, key: str) -> list[AttachmentState]:
    return session.info.setdefault(key, [])


def _track(states: list[AttachmentState], state: AttachmentState) -> None:
    if not any(item is state for item in states):
        states.append(state)


class AttachmentLifecycle:
    def before_validation(self, record: Attachable) -> None:
        record.validate()

    def before_flush(self, session: Session) -> None:
        candidates = [
            record
            for record in (*session.new, *session.dirty)
            if isinstance(record, Attachable)
        ]

        # Validate everything first so an invalid record leaves nothing half-stored.
        for record in candidates:
            self.before_validation(record)
            if record.errors:
                raise RecordInvalidError(record, record.errors.full_messages)

        for record in candidates:
            self._persist(session, record)

        for record in session.deleted:
            if isinstance(record, Attachable):
                self._schedule_destroy(session, record)

    def _persist(self, session: Session, record: Attachable) -> None:
        removals = _pending_removals(session)
        flushed = _tracked(session, _FLUSHED_KEY)
        for state in record.loaded_attachments():
            storage = state.build_uploader().get_storage()
            if state.pending_removal:
                for path in state.stage_removal():
                    removals[path] = storage
                _track(flushed, state)
                continue
            if not state.changed:
                continue
            _track(flushed, state)
            for path in state.stage_store():
                removals[path] = storage

    def _schedule_destroy(self, session: Session, record: Attachable) -> None:
        removals = _pending_removals(session)
        destroyed = _tracked(session, _DESTROYED_KEY)
        for state in record.attachments():
            uploader = state.get()
            paths = state.persisted_paths() or uploader.stored_paths()
            storage = uploader.get_storage()
            for path in paths:
                removals[path] = storage
            _track(destroyed, state)

    def after_commit(self, session: Session) -> None:
        removals = session.info.pop(_REMOVALS_KEY, {})
        flushed = session.info.pop(_FLUSHED_KEY, [])
        destroyed = session.info.pop(_DESTROYED_KEY, [])

        for state in flushed:
            state.finalize_commit()
        for state in destroyed:
            state.finalize_destroy()

        for path, storage in removals.items():
            if storage.delete(path):
                logger.info("Removed stale attachment file %s.", path)

    def after_rollback(self, session: Session) -> None:
        dropped = session.info.pop(_REMOVALS_KEY, {})
        flushed = session.info.pop(_FLUSHED_KEY, [])
        session.info.pop(_DESTROYED_KEY, None)
        rolled_back = _tracked(session, _ROLLED_BACK_KEY)
        for state in flushed:
            state.rollback_staging()
            _track(rolled_back, state)
        if flushed:
            logger.debug("Rollback returned %d staged attachment(s) to the cache.", len(flushed))
        if dropped:
            logger.debug("Rollback dropped %d scheduled attachment removal(s).", len(dropped))

    def after_soft_rollback(self, session: Session, previous_transaction: SessionTransaction) -> None:
        # The session is only safe to dirty once the outermost transaction has closed.
        if previous_transaction.parent is not None:
            return
        for state in session.info.pop(_ROLLED_BACK_KEY, []):
            state.mark_pending()

    def after_load(self, record: Attachable) -> None:
        for state in record.attachments():
            state.reset()

    def after_refresh(self, record: Attachable) -> None:
        for state in record.loaded_attachments():
            state.reset(keep_pending=True)


_register_lock = Lock()
_registered: LifecycleObserver | None = None


def register_lifecycle(observer: LifecycleObserver | None = None) -> LifecycleObserver:
    """Attach ``observer`` (default ``AttachmentLifecycle``) to SQLAlchemy events once."""
    global _registered
    if _registered is not None:
        return _registered

    with _register_lock:
        if _registered is not None:
            return _registered
        active = observer or AttachmentLifecycle()

        def _before_flush(session: Session, flush_context: Any, instances: Any) -> None:
            active.before_flush(session)

        def _after_commit(session: Session) -> None:
            active.after_commit(session)

        def _after_rollback(session: Session) -> None:
            active.after_rollback(session)

        def _after_soft_rollback(session: Session, previous_transaction: SessionTransaction) -> None:
            active.after_soft_rollback(session, previous_transaction)

        def _on_load(target: Attachable, context: Any) -> None:
            active.after_load(target)

        def _on_refresh(target: Attachable, context: Any, attrs: Any) -> None:
            active.after_refresh(target)

        event.listen(Session, "before_flush", _before_flush)
        event.listen(Session, "after_commit", _after_commit)
        event.listen(Session, "after_rollback", _after_rollback)
        event.listen(Session, "after_soft_rollback", _after_soft_rollback)
        event.listen(Attachable, "load", _on_load, propagate=True)
        event.listen(Attachable, "refresh", _on_refresh, propagate=True)
        _registered = active
        return active


__all__ = [
    "AttachmentLifecycle",
    "LifecycleObserver",
    "register_lifecycle",
]
