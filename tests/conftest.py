from pathlib import Path
from typing import Callable

import pytest

from transcache import CacheEntry, CacheOptions, SyncFileStorage


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    return tmp_path / "cache"


@pytest.fixture
def options(cache_dir: Path) -> CacheOptions:
    return CacheOptions(base_path=cache_dir)


@pytest.fixture
def storage(cache_dir: Path) -> SyncFileStorage:
    return SyncFileStorage(cache_dir)


@pytest.fixture
def make_entry() -> Callable[..., CacheEntry]:
    def _make_entry(**kwargs: object) -> CacheEntry:
        defaults: dict = {
            "url": "https://example.com/resource",
            "status_code": 200,
            "etag": '"v1"',
            "digest": "0" * 32,
            "last_updated_at": 1000.0,
            "headers": {"Content-Type": "text/plain", "Content-Length": "5"},
            "body": b"hello",
        }
        defaults.update(kwargs)
        return CacheEntry(**defaults)

    return _make_entry
