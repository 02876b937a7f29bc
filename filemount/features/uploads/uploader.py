from __future__ import annotations

import itertools
import logging
import os
import shutil
import threading
import time
import weakref
from collections.abc import Callable
from pathlib import Path
from typing import Any, BinaryIO, ClassVar, Union

from filemount.core.config import get_settings

from .errors import IntegrityError, ProcessingError, StorageError
from .filenames import file_extension, sanitize_filename, version_filename
from .schemas import UploaderJson, VersionUrl
from .storage import Storage, get_storage

logger = logging.getLogger(__name__)

Processor = Union[str, Callable[["Uploader"], Any]]

_cache_counter = itertools.count(1)
_cache_counter_lock = threading.Lock()


def generate_cache_id() -> str:
    with _cache_counter_lock:
        sequence = next(_cache_counter)
    return f"{int(time.time())}-{os.getpid()}-{sequence:04d}"


def _open_source(file: Any) -> tuple[str, BinaryIO, bool]:
    """Return ``(original name, binary stream, should_close)`` for an assignable value."""
    if isinstance(file, (str, os.PathLike)):
        path = Path(file)
        return path.name, path.open("rb"), True
    upload_name = getattr(file, "filename", None)
    upload_stream = getattr(file, "file", None)
    if upload_name is not None and upload_stream is not None:
        return str(upload_name), upload_stream, False
    if hasattr(file, "read"):
        return os.path.basename(str(getattr(file, "name", "") or "")), file, False
    raise TypeError(f"Cannot cache object of type {type(file).__name__!r}.")


class Uploader:
    """One file attached to one model attribute.

    The uploader is always in exactly one of three states: blank, cached
    (``cache_path`` set) or stored (``store_path`` and ``identifier`` set).
    Subclasses customise it through class attributes and by overriding
    ``filename()``, ``store_dir()`` or ``cache_dir()``.
    """

    extension_allowlist: ClassVar[tuple[str, ...] | None] = None
    processors: ClassVar[tuple[Processor, ...]] = ()
    versions: ClassVar[dict[str, type[Uploader]]] = {}
    storage: ClassVar[Storage | None] = None
    root: ClassVar[str | None] = None

    def __init__(
        self,
        model: Any = None,
        mounted_as: str | None = None,
        *,
        version_name: str | None = None,
    ):
        self._model_ref = weakref.ref(model) if model is not None else None
        self.mounted_as = mounted_as
        self.version_name = version_name
        self.original_filename: str | None = None
        self.cache_id: str | None = None
        self.cache_path: str | None = None
        self.retained_cache_path: str | None = None
        self.store_path: str | None = None
        self.identifier: str | None = None
        self.version_uploaders: dict[str, Uploader] = {
            name: version_cls(model, mounted_as, version_name=name)
            for name, version_cls in type(self).versions.items()
        }

    @classmethod
    def add_version(cls, name: str, *processors: Processor) -> type[Uploader]:
        version_cls = type(
            f"{cls.__name__}{name.title().replace('_', '')}Version",
            (cls,),
            {"processors": tuple(processors), "versions": {}},
        )
        cls.versions = {**cls.versions, name: version_cls}
        return version_cls

    @property
    def model(self) -> Any:
        if self._model_ref is None:
            return None
        return self._model_ref()

    # Configuration hooks

    def root_path(self) -> Path:
        return Path(self.root or get_settings().root_path)

    def store_dir(self) -> str:
        return get_settings().store_dir

    def cache_dir(self) -> str:
        return get_settings().cache_dir

    def filename(self) -> str | None:
        return self.original_filename

    def get_storage(self) -> Storage:
        return self.storage or get_storage()

    # State

    @property
    def cached(self) -> bool:
        return self.cache_path is not None

    @property
    def stored(self) -> bool:
        return self.store_path is not None

    @property
    def blank(self) -> bool:
        return self.current_path is None

    @property
    def current_path(self) -> str | None:
        return self.store_path or self.cache_path

    @property
    def extension(self) -> str:
        return file_extension(self.current_path)

    def get_version(self, name: str) -> Uploader:
        return self.version_uploaders[name]

    def full_filename(self, name: str) -> str:
        if self.version_name:
            return version_filename(self.version_name, name)
        return name

    def store_path_for(self, identifier: str) -> str:
        return str(self.root_path() / self.store_dir() / self.full_filename(identifier))

    # Operations

    def cache(self, file: Any) -> None:
        original_name, stream, should_close = _open_source(file)
        try:
            original = sanitize_filename(original_name)
            self.check_integrity(original)
            cache_id = generate_cache_id()
            self._write_cache(stream, original, cache_id)
        finally:
            if should_close:
                stream.close()

        self.process()
        for version in self.version_uploaders.values():
            version.cache_from(self)

    def cache_from(self, parent: Uploader) -> None:
        if parent.cache_path is None or parent.original_filename is None or parent.cache_id is None:
            return
        with open(parent.cache_path, "rb") as stream:
            self._write_cache(stream, parent.original_filename, parent.cache_id)
        self.process()

    def _write_cache(self, stream: BinaryIO, original: str, cache_id: str) -> None:
        target = self.root_path() / self.cache_dir() / cache_id / self.full_filename(original)
        if hasattr(stream, "seek"):
            try:
                stream.seek(0)
            except (OSError, ValueError):
                pass
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with target.open("wb") as out:
                shutil.copyfileobj(stream, out)
        except OSError as exc:
            raise StorageError(f"Could not write cache file '{target}': {exc}", path=str(target)) from exc

        self.original_filename = original
        self.cache_id = cache_id
        self.cache_path = str(target)
        self.store_path = None
        self.identifier = None
        logger.debug("Cached %s for %s at %s.", original, self.mounted_as, target)

    def check_integrity(self, filename: str) -> None:
        allowlist = self.extension_allowlist
        if allowlist is None:
            return
        extension = file_extension(filename)
        allowed = {item.lower().lstrip(".") for item in allowlist}
        if extension not in allowed:
            raise IntegrityError(
                f"You are not allowed to upload {extension or 'extensionless'!r} files, "
                f"allowed types: {', '.join(sorted(allowed))}."
            )

    def process(self) -> None:
        for processor in self.processors:
            try:
                if isinstance(processor, str):
                    getattr(self, processor)()
                else:
                    processor(self)
            except ProcessingError:
                raise
            except Exception as exc:
                raise ProcessingError(f"Processor {processor!r} failed: {exc}") from exc

    def store(self, name: str | None = None, *, keep_cache: bool = False) -> None:
        """Copy the cached file into the store.

        With ``keep_cache`` the cached copy survives until ``release_cache()``
        so ``restore_cache()`` can undo the store.
        """
        if self.cache_path is None:
            return
        identifier = name or self.filename()
        if not identifier:
            raise StorageError("Cannot store a file without a filename.", path=self.cache_path)

        cache_path = self.cache_path
        target = self.store_path_for(identifier)
        self.get_storage().copy(cache_path, target)
        if keep_cache:
            self.retained_cache_path = cache_path
        else:
            Path(cache_path).unlink(missing_ok=True)

        self.store_path = target
        self.identifier = identifier
        self.cache_path = None
        logger.debug("Stored %s for %s at %s.", identifier, self.mounted_as, target)

        for version in self.version_uploaders.values():
            version.store(identifier, keep_cache=keep_cache)

    def restore_cache(self) -> None:
        for version in self.version_uploaders.values():
            version.restore_cache()
        if self.retained_cache_path is None:
            return
        self.cache_path = self.retained_cache_path
        self.retained_cache_path = None
        self.store_path = None
        self.identifier = None
        logger.debug("Returned %s to the cache at %s.", self.mounted_as, self.cache_path)

    def release_cache(self) -> None:
        for version in self.version_uploaders.values():
            version.release_cache()
        if self.retained_cache_path is None:
            return
        Path(self.retained_cache_path).unlink(missing_ok=True)
        self.retained_cache_path = None

    def retrieve_from_store(self, identifier: str) -> None:
        self.store_path = self.store_path_for(identifier)
        self.identifier = identifier
        self.cache_path = None
        for version in self.version_uploaders.values():
            version.retrieve_from_store(identifier)

    def remove(self) -> None:
        for version in self.version_uploaders.values():
            version.remove()
        if self.store_path is None:
            return
        path = self.store_path
        if self.get_storage().delete(path):
            logger.info("Removed %s.", path)
        self.store_path = None
        self.identifier = None

    def stored_paths(self) -> list[str]:
        """Paths of this file and all of its versions as currently stored."""
        paths = [self.store_path] if self.store_path else []
        for version in self.version_uploaders.values():
            paths.extend(version.stored_paths())
        return paths

    def paths_for(self, identifier: str) -> list[str]:
        paths = [self.store_path_for(identifier)]
        for version in self.version_uploaders.values():
            paths.extend(version.paths_for(identifier))
        return paths

    # Content and serialization

    def read(self) -> bytes | None:
        if self.current_path is None:
            return None
        return Path(self.current_path).read_bytes()

    @property
    def size(self) -> int:
        if self.current_path is None:
            return 0
        try:
            return Path(self.current_path).stat().st_size
        except FileNotFoundError:
            return 0

    @property
    def url(self) -> str | None:
        path = self.current_path
        if path is None:
            return None
        remote = self.get_storage().url(path)
        if remote:
            return remote
        relative = os.path.relpath(os.path.abspath(path), os.path.abspath(self.root_path()))
        return f"{get_settings().base_url.rstrip('/')}/{Path(relative).as_posix()}"

    def as_json(self) -> dict[str, object]:
        payload = UploaderJson(
            url=self.url,
            versions={
                name: VersionUrl(url=version.url)
                for name, version in self.version_uploaders.items()
            },
        )
        return payload.to_payload()

    def __str__(self) -> str:
        return self.url or ""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} mounted_as={self.mounted_as!r} path={self.current_path!r}>"


__all__ = [
    "Processor",
    "Uploader",
    "generate_cache_id",
]
