from __future__ import annotations

import logging
import shutil
import time
from collections.abc import Callable
from pathlib import Path
from typing import Protocol, TypeVar

from filemount.core.config import get_settings

from .errors import StorageError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Storage(Protocol):
    def copy(self, source: str, destination: str) -> None: ...

    def delete(self, path: str) -> bool: ...

    def exists(self, path: str) -> bool: ...

    def url(self, path: str) -> str | None: ...


def _with_retries(operation: str, path: str, func: Callable[[], T]) -> T:
    settings = get_settings()
    attempts = settings.storage_retry_attempts
    for attempt in range(1, attempts + 1):
        try:
            return func()
        except OSError as exc:
            if attempt >= attempts:
                raise StorageError(
                    f"Could not {operation} '{path}' after {attempts} attempt(s): {exc}",
                    path=path,
                ) from exc
            logger.warning(
                "Storage %s failed for %s (attempt %d/%d); retrying.",
                operation,
                path,
                attempt,
                attempts,
                exc_info=True,
            )
            time.sleep(settings.storage_retry_backoff_seconds * attempt)
    raise AssertionError("unreachable")


class FileStorage:
    """Permanent storage on the local filesystem."""

    def copy(self, source: str, destination: str) -> None:
        def _copy() -> None:
            target = Path(destination)
            target.parent.mkdir(parents=True, exist_ok=True)
            if Path(source).resolve() == target.resolve():
                return
            shutil.copyfile(source, target)

        _with_retries("copy", destination, _copy)

    def delete(self, path: str) -> bool:
        def _delete() -> bool:
            try:
                Path(path).unlink()
            except FileNotFoundError:
                logger.warning("File %s was already removed.", path)
                return False
            return True

        return _with_retries("delete", path, _delete)

    def exists(self, path: str) -> bool:
        return Path(path).is_file()

    def url(self, path: str) -> str | None:
        return None


_default_storage: Storage = FileStorage()


def get_storage() -> Storage:
    return _default_storage
