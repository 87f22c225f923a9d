import gzip
import os
from datetime import datetime
from typing import List
from zoneinfo import ZoneInfo

import httpx
import pytest
from httpx import ByteStream, MockTransport
from inline_snapshot import snapshot
from time_machine import travel

from transcache import CacheOptions, ConfigError, generate_key
from transcache.httpx import AsyncCacheClient, AsyncCacheTransport

URL = "https://example.com/resource"


class AsyncOrigin:
    def __init__(self, body: bytes = b"hello", etag: str = '"v1"') -> None:
        self.body = body
        self.etag = etag
        self.requests: List[httpx.Request] = []

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.headers.get("If-None-Match") == self.etag:
            return httpx.Response(304, headers={"ETag": self.etag})
        return httpx.Response(200, headers={"ETag": self.etag, "Content-Type": "text/plain"}, content=self.body)


@pytest.mark.anyio
@travel(datetime(2024, 1, 1, 0, 0, 0, tzinfo=ZoneInfo("UTC")), tick=False)
async def test_simple_caching(options: CacheOptions, caplog: pytest.LogCaptureFixture) -> None:
    origin = AsyncOrigin()
    client = AsyncCacheClient(options=options, transport=MockTransport(origin))

    with caplog.at_level("DEBUG", logger="transcache.proxy"):
        first = await client.get(URL)
        response = await client.get(URL)

    assert caplog.messages == snapshot(
        [
            "Fetching https://example.com/resource",
            "Handling state: IdleClient",
            "Handling state: CacheMiss",
            "Handling state: StoreAndUse",
            "Fetched https://example.com/resource from server",
            "Storing response in cache",
            "Fetching https://example.com/resource",
            "Handling state: IdleClient",
            "Handling state: NeedRevalidation",
            "Handling state: NeedToBeUpdated",
            "Fetched https://example.com/resource from cache",
            "Storing response in cache",
        ]
    )
    assert first.text == response.text == "hello"
    assert response.headers["x-cached"] == "1"
    assert response.extensions == snapshot(
        {
            "transcache_from_cache": True,
            "transcache_revalidated": True,
            "transcache_stored": True,
            "transcache_content_unchanged": True,
        }
    )
    await client.aclose()


@pytest.mark.anyio
async def test_encoded_content_caching(options: CacheOptions) -> None:
    data = gzip.compress(b"a" * 1000)
    mocked_responses = [
        httpx.Response(
            200,
            stream=ByteStream(data),
            headers={
                "Content-Encoding": "gzip",
                "Content-Type": "text/plain",
                "Content-Length": str(len(data)),
            },
        )
    ]

    async def handler(request: httpx.Request) -> httpx.Response:
        if not mocked_responses:
            raise RuntimeError("No more mocked responses available")
        return mocked_responses.pop(0)

    async with AsyncCacheClient(
        options=CacheOptions(base_path=options.base_path, no_update=60),
        transport=MockTransport(handler=handler),
    ) as client:
        # First request - should fetch from the mocked transport and store in cache
        async with client.stream("GET", URL) as response:
            response_data = b"".join([chunk async for chunk in response.aiter_raw()])
            assert data == response_data

        # Second request - should be served from cache without the transport
        response = await client.get(URL)
        assert response.content == b"a" * 1000
        assert response.headers["x-cached"] == "1"


@pytest.mark.anyio
async def test_post_bypasses_the_cache(options: CacheOptions) -> None:
    origin = AsyncOrigin()
    async with AsyncCacheClient(options=options, transport=MockTransport(origin)) as client:
        response = await client.post(URL, content=b"data")

    assert response.status_code == 200
    assert "transcache_from_cache" not in response.extensions
    assert os.listdir(options.base_path) == [".gitignore"]


@pytest.mark.anyio
async def test_transport_aclose_removes_old_entries(options: CacheOptions) -> None:
    transport = AsyncCacheTransport(next_transport=MockTransport(AsyncOrigin()), options=options)
    async with httpx.AsyncClient(transport=transport) as client:
        await client.get(URL)

    path = os.path.join(options.base_path, generate_key(URL))
    assert os.path.exists(path)

    transport = AsyncCacheTransport(next_transport=MockTransport(AsyncOrigin()), options=options)
    os.utime(path, (1_700_000_000, 1_700_000_000))
    with travel(1_700_000_000 + 193 * 3600, tick=False):
        await transport.aclose()

    assert not os.path.exists(path)


def test_client_requires_options() -> None:
    with pytest.raises(ConfigError):
        AsyncCacheClient()
