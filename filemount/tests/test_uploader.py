from __future__ import annotations

import io
import os
from pathlib import Path
from types import SimpleNamespace

import pytest

from filemount.features.uploads import (
    IntegrityError,
    ProcessingError,
    StorageError,
    Uploader,
    generate_cache_id,
)


class _Model:
    def __init__(self, name: str):
        self.name = name


class PictureUploader(Uploader):
    extension_allowlist = ("jpg", "jpeg", "png")


def test_cache_copies_path_into_cache_dir(stub_file, public_path):
    uploader = Uploader()
    uploader.cache(stub_file("test.jpeg"))

    assert uploader.cached is True
    assert uploader.stored is False
    assert uploader.blank is False
    assert uploader.current_path.startswith(public_path("uploads/tmp"))
    assert uploader.current_path.endswith("test.jpeg")
    assert uploader.read() == b"this is stuff"
    assert uploader.size == len(b"this is stuff")
    assert uploader.extension == "jpeg"
    assert uploader.identifier is None


def test_cache_accepts_file_like_objects():
    stream = io.BytesIO(b"payload")
    stream.name = "/somewhere/report.pdf"
    uploader = Uploader()
    uploader.cache(stream)

    assert Path(uploader.current_path).name == "report.pdf"
    assert uploader.read() == b"payload"


def test_cache_accepts_upload_objects():
    upload = SimpleNamespace(filename="../../etc/pass wd?.txt", file=io.BytesIO(b"secret"))
    uploader = Uploader()
    uploader.cache(upload)

    assert Path(uploader.current_path).name == "pass wd_.txt"
    assert uploader.read() == b"secret"


def test_cache_rejects_unsupported_values():
    with pytest.raises(TypeError):
        Uploader().cache(12345)


def test_cache_ids_are_unique_within_a_process():
    first = generate_cache_id()
    second = generate_cache_id()

    assert first != second
    assert first.split("-")[1] == str(os.getpid())


def test_integrity_error_for_disallowed_extension_writes_nothing(stub_file, public_path):
    uploader = PictureUploader()

    with pytest.raises(IntegrityError) as excinfo:
        uploader.cache(stub_file("bork.txt"))

    assert excinfo.value.message_key == "carrierwave_integrity_error"
    assert uploader.blank is True
    assert not os.path.exists(public_path("uploads/tmp"))


def test_integrity_check_is_case_insensitive(stub_file):
    uploader = PictureUploader()
    uploader.cache(stub_file("SHOUT.JPG"))

    assert uploader.cached is True


def test_processors_run_in_order_on_cached_file(stub_file):
    calls = []

    class UpcasingUploader(Uploader):
        processors = ("upcase", lambda uploader: calls.append("lambda"))

        def upcase(self):
            calls.append("upcase")
            path = Path(self.current_path)
            path.write_bytes(path.read_bytes().upper())

    uploader = UpcasingUploader()
    uploader.cache(stub_file("test.jpeg"))

    assert calls == ["upcase", "lambda"]
    assert uploader.read() == b"THIS IS STUFF"


def test_processor_failures_become_processing_errors(stub_file):
    def explode(uploader):
        raise ValueError("bad pixels")

    class ExplodingUploader(Uploader):
        processors = (explode,)

    uploader = ExplodingUploader()
    with pytest.raises(ProcessingError) as excinfo:
        uploader.cache(stub_file("test.jpeg"))

    assert "bad pixels" in str(excinfo.value)
    assert isinstance(excinfo.value.__cause__, ValueError)
    assert uploader.cached is True


def test_store_moves_cached_file_to_store_dir(stub_file, public_path):
    uploader = Uploader()
    uploader.cache(stub_file("test.jpeg"))
    cache_path = uploader.current_path
    uploader.store()

    assert uploader.stored is True
    assert uploader.cached is False
    assert uploader.identifier == "test.jpeg"
    assert uploader.current_path == public_path("uploads/test.jpeg")
    assert not os.path.exists(cache_path)
    assert Path(public_path("uploads/test.jpeg")).read_bytes() == b"this is stuff"


def test_store_without_cache_is_a_no_op():
    uploader = Uploader()
    uploader.store()

    assert uploader.blank is True


def test_store_uses_filename_from_model_at_store_time(stub_file, public_path):
    class NamedUploader(Uploader):
        def filename(self):
            return self.model.name + Path(super().filename()).suffix

    model = _Model("jonas")
    uploader = NamedUploader(model, "image")
    uploader.cache(stub_file("test.jpeg"))
    model.name = "jose"
    uploader.store()

    assert uploader.identifier == "jose.jpeg"
    assert uploader.current_path == public_path("uploads/jose.jpeg")


def test_store_raises_when_filename_is_empty(stub_file):
    class NamelessUploader(Uploader):
        def filename(self):
            return None

    uploader = NamelessUploader()
    uploader.cache(stub_file("test.jpeg"))

    with pytest.raises(StorageError):
        uploader.store()
    assert uploader.cached is True


def test_remove_deletes_stored_file_and_tolerates_missing(stub_file, public_path):
    uploader = Uploader()
    uploader.cache(stub_file("test.jpeg"))
    uploader.store()
    os.remove(public_path("uploads/test.jpeg"))

    uploader.remove()

    assert uploader.blank is True


def test_retrieve_from_store_resolves_path_without_io(public_path):
    uploader = Uploader()
    uploader.retrieve_from_store("missing.png")

    assert uploader.current_path == public_path("uploads/missing.png")
    assert uploader.size == 0
    assert uploader.url == "/uploads/missing.png"


def test_url_uses_base_url(monkeypatch, stub_file):
    from filemount.core.config import get_settings

    monkeypatch.setenv("FILEMOUNT_BASE_URL", "https://cdn.example.com/")
    get_settings.cache_clear()
    uploader = Uploader()
    uploader.retrieve_from_store("test.jpeg")

    assert uploader.url == "https://cdn.example.com/uploads/test.jpeg"
    assert str(uploader) == "https://cdn.example.com/uploads/test.jpeg"


def test_blank_uploader_serializes_to_empty_url():
    uploader = Uploader()

    assert uploader.url is None
    assert str(uploader) == ""
    assert uploader.as_json() == {"url": None}
    assert uploader.read() is None


def test_add_version_registers_processed_rendition(stub_file, public_path):
    class AvatarUploader(Uploader):
        pass

    def shrink(uploader):
        path = Path(uploader.current_path)
        path.write_bytes(path.read_bytes()[:4])

    AvatarUploader.add_version("small_thumb", shrink)
    uploader = AvatarUploader()
    uploader.cache(stub_file("test.jpeg"))
    uploader.store()

    version = uploader.get_version("small_thumb")
    assert version.current_path == public_path("uploads/small_thumb_test.jpeg")
    assert version.read() == b"this"
    assert uploader.read() == b"this is stuff"
    assert uploader.as_json() == {
        "url": "/uploads/test.jpeg",
        "small_thumb": {"url": "/uploads/small_thumb_test.jpeg"},
    }
    assert Uploader.versions == {}

    uploader.remove()
    assert not os.path.exists(public_path("uploads/small_thumb_test.jpeg"))
    assert not os.path.exists(public_path("uploads/test.jpeg"))


def test_cache_write_failure_becomes_storage_error(monkeypatch, stub_file, public_path):
    from filemount.features.uploads import uploader as uploader_module

    def broken_copy(source, target):
        raise OSError("disk full")

    monkeypatch.setattr(uploader_module.shutil, "copyfileobj", broken_copy)
    uploader = Uploader()

    with pytest.raises(StorageError) as excinfo:
        uploader.cache(stub_file("test.jpeg"))

    assert excinfo.value.path.startswith(public_path("uploads/tmp"))
    assert isinstance(excinfo.value.__cause__, OSError)
    assert uploader.blank is True


def test_store_keeping_cache_can_be_undone(stub_file, public_path):
    uploader = Uploader()
    uploader.cache(stub_file("test.jpeg"))
    cache_path = uploader.current_path

    uploader.store(keep_cache=True)
    assert uploader.current_path == public_path("uploads/test.jpeg")
    assert os.path.exists(cache_path)

    uploader.restore_cache()
    assert uploader.cached is True
    assert uploader.identifier is None
    assert uploader.current_path == cache_path

    uploader.store(keep_cache=True)
    uploader.release_cache()
    assert not os.path.exists(cache_path)
    assert uploader.stored is True
