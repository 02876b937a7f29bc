from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

import pytest

from filemount.core.config import get_settings
from filemount.db import Base, build_engine, build_sessionmaker

from . import models  # noqa: F401  registers the test tables on Base.metadata

STUB_CONTENTS = {
    "test.jpeg": b"this is stuff",
    "test.jpg": b"this is stuff",
    "landscape.jpg": b"a picture of the sea",
    "bork.txt": b"bork bork bork bork bork bork bork bork bork bork",
}


@pytest.fixture(autouse=True)
def upload_root(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    root = tmp_path / "public"
    monkeypatch.setenv("FILEMOUNT_ROOT", str(root))
    monkeypatch.setenv("FILEMOUNT_STORAGE_RETRY_BACKOFF", "0")
    monkeypatch.delenv("FILEMOUNT_REMOVE_PREVIOUS_FILES", raising=False)
    monkeypatch.delenv("FILEMOUNT_LOCALE", raising=False)
    get_settings.cache_clear()
    yield root
    get_settings.cache_clear()


@pytest.fixture
def public_path(upload_root: Path) -> Callable[[str], str]:
    def _public_path(relative: str) -> str:
        return str(upload_root / relative)

    return _public_path


@pytest.fixture
def stub_file(tmp_path: Path) -> Callable[..., Path]:
    fixtures = tmp_path / "fixtures"
    fixtures.mkdir(exist_ok=True)

    def _stub_file(name: str, content: bytes | None = None) -> Path:
        path = fixtures / name
        path.write_bytes(content if content is not None else STUB_CONTENTS.get(name, b"stub"))
        return path

    return _stub_file


@pytest.fixture
def run_with_db() -> Callable[[Callable[[Any], Awaitable[Any]]], Any]:
    def _run(scenario: Callable[[Any], Awaitable[Any]]) -> Any:
        async def _main() -> Any:
            engine = build_engine("sqlite+aiosqlite:///:memory:")
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            try:
                return await scenario(build_sessionmaker(engine))
            finally:
                await engine.dispose()

        return asyncio.run(_main())

    return _run
