"""
Tests for the cache state machine.

Test Categories:
---------------
1. IdleClient: choosing between the cache, revalidation and a plain fetch
2. CacheMiss: storing responses
3. NeedRevalidation: 304 handling, approval and unchanged content
"""

from dataclasses import replace
from pathlib import Path
from typing import Callable, Dict, Optional

import pytest

from transcache import CacheEntry, CacheOptions, Headers, Request, Response
from transcache._core._spec import (
    CacheMiss,
    CouldNotBeStored,
    FromCache,
    IdleClient,
    NeedRevalidation,
    NeedToBeUpdated,
    StoreAndUse,
    content_digest,
)
from transcache._utils import generate_http_date

URL = "https://example.com/resource"
NOW = 1_700_000_000

# =============================================================================
# Test Fixtures and Helpers
# =============================================================================


def create_request(url: str = URL, headers: Optional[Dict[str, str]] = None) -> Request:
    return Request(method="GET", url=url, headers=Headers(headers or {}), metadata={})


def create_response(
    status_code: int = 200,
    headers: Optional[Dict[str, str]] = None,
    body: bytes = b"",
) -> Response:
    return Response(
        status_code=status_code,
        headers=Headers(headers or {}),
        stream=iter([body]),
        metadata={},
    )


@pytest.fixture
def stored(make_entry: Callable[..., CacheEntry]) -> CacheEntry:
    return make_entry(
        url=URL,
        etag='"v1"',
        digest=content_digest(b"hello"),
        last_updated_at=NOW - 3600,
        headers={
            "Content-Type": "text/plain",
            "Content-Length": "5",
            "Last-Modified": "Mon, 13 Nov 2023 20:00:00 GMT",
            "Date": "Mon, 13 Nov 2023 21:00:00 GMT",
        },
        body=b"hello",
    )


# =============================================================================
# Test Suite 1: IdleClient
# =============================================================================


class TestIdleClient:
    def test_nothing_stored(self, options: CacheOptions) -> None:
        request = create_request()

        next_state = IdleClient(options=options).next(request, None, NOW)

        assert isinstance(next_state, CacheMiss)
        assert next_state.request is request
        assert next_state.after_revalidation is False

    def test_stored_entry_is_revalidated(self, options: CacheOptions, stored: CacheEntry) -> None:
        next_state = IdleClient(options=options).next(create_request(), stored, NOW)

        assert isinstance(next_state, NeedRevalidation)
        assert next_state.request.headers["If-Modified-Since"] == "Mon, 13 Nov 2023 20:00:00 GMT"
        assert next_state.request.headers["If-None-Match"] == '"v1"'
        assert "if-modified-since" not in next_state.original_request.headers

    def test_conditional_headers_are_only_added_when_known(
        self, options: CacheOptions, make_entry: Callable[..., CacheEntry]
    ) -> None:
        entry = make_entry(url=URL, etag=None, headers={})

        next_state = IdleClient(options=options).next(create_request(), entry, NOW)

        assert isinstance(next_state, NeedRevalidation)
        assert "if-modified-since" not in next_state.request.headers
        assert "if-none-match" not in next_state.request.headers

    def test_fresh_entry_is_used_without_the_server(self, cache_dir: Path, stored: CacheEntry) -> None:
        options = CacheOptions(base_path=cache_dir, no_update=7200)

        next_state = IdleClient(options=options).next(create_request(), stored, NOW)

        assert isinstance(next_state, FromCache)
        response = next_state.response
        assert response.status_code == 200
        assert response.read() == b"hello"
        assert response.headers["X-Cached"] == "1"
        assert response.headers["X-Content-Unchanged"] == "1"
        assert response.headers["Content-Type"] == "text/plain"
        assert response.headers["ETag"] == '"v1"'
        assert response.metadata == {
            "transcache_from_cache": True,
            "transcache_revalidated": False,
            "transcache_stored": False,
            "transcache_content_unchanged": True,
        }

    def test_collision_is_treated_as_absent(
        self, cache_dir: Path, stored: CacheEntry, caplog: pytest.LogCaptureFixture
    ) -> None:
        options = CacheOptions(base_path=cache_dir, no_update=7200)
        request = create_request(url="https://example.com/other")

        with caplog.at_level("WARNING", logger="transcache"):
            next_state = IdleClient(options=options).next(request, stored, NOW)

        assert isinstance(next_state, CacheMiss)
        assert "if-modified-since" not in next_state.request.headers
        assert caplog.messages == [
            "Cache collision: https://example.com/other and https://example.com/resource have the same key"
        ]

    def test_range_mismatch_is_treated_as_absent(self, options: CacheOptions, stored: CacheEntry) -> None:
        request = create_request(headers={"Range": "bytes=0-1"})

        next_state = IdleClient(options=options).next(request, stored, NOW)

        assert isinstance(next_state, CacheMiss)


# =============================================================================
# Test Suite 2: CacheMiss
# =============================================================================


class TestCacheMiss:
    @pytest.mark.parametrize("status_code", [200, 206])
    def test_storable_responses(self, options: CacheOptions, status_code: int) -> None:
        request = create_request(headers={"Range": "bytes=0-4"})
        response = create_response(
            status_code,
            headers={"Content-Type": "text/plain", "ETag": '"v2"', "Server": "nginx", "Date": generate_http_date(NOW)},
            body=b"hello",
        )

        next_state = CacheMiss(options=options, request=request).next(response, NOW)

        assert isinstance(next_state, StoreAndUse)
        entry = next_state.entry
        assert entry.url == URL
        assert entry.status_code == status_code
        assert entry.etag == '"v2"'
        assert entry.range == "bytes=0-4"
        assert entry.digest == content_digest(b"hello")
        assert entry.last_updated_at == NOW
        assert entry.adjusted_last_modified_at is None
        assert entry.headers == {"Content-Type": "text/plain", "Date": generate_http_date(NOW)}
        assert entry.body == b"hello"
        assert next_state.response.metadata["transcache_stored"] is True
        assert "x-cached" not in next_state.response.headers

    @pytest.mark.parametrize("status_code", [204, 301, 404, 500])
    def test_other_status_codes_are_not_stored(self, options: CacheOptions, status_code: int) -> None:
        response = create_response(status_code)

        next_state = CacheMiss(options=options, request=create_request()).next(response, NOW)

        assert isinstance(next_state, CouldNotBeStored)
        assert next_state.response is response
        assert response.metadata["transcache_stored"] is False


# =============================================================================
# Test Suite 3: NeedRevalidation
# =============================================================================


def revalidation_for(options: CacheOptions, entry: CacheEntry) -> NeedRevalidation:
    state = IdleClient(options=options).next(create_request(), entry, NOW)
    assert isinstance(state, NeedRevalidation)
    return state


class TestNeedRevalidation:
    def test_not_modified_serves_and_refreshes_the_entry(self, options: CacheOptions, stored: CacheEntry) -> None:
        not_modified = create_response(
            304,
            headers={
                "Date": generate_http_date(NOW + 60),
                "Last-Modified": generate_http_date(NOW - 40),
                "Server": "nginx",
            },
        )

        next_state = revalidation_for(options, stored).next(not_modified, NOW)

        assert isinstance(next_state, NeedToBeUpdated)
        response = next_state.response
        assert response.status_code == 200
        assert response.read() == b"hello"
        assert response.headers["X-Cached"] == "1"
        assert response.headers["X-Content-Unchanged"] == "1"
        assert response.headers["Server"] == "nginx"
        assert response.headers["Content-Length"] == "5"
        assert response.headers["ETag"] == '"v1"'
        assert response.metadata["transcache_revalidated"] is True

        entry = next_state.entry
        assert entry.body == b"hello"
        assert entry.etag == '"v1"'
        assert entry.last_updated_at == NOW
        assert entry.adjusted_last_modified_at == NOW - 100
        assert entry.headers["Date"] == generate_http_date(NOW + 60)
        assert entry.headers["Content-Type"] == "text/plain"

    def test_not_modified_with_new_etag(self, options: CacheOptions, stored: CacheEntry) -> None:
        next_state = revalidation_for(options, stored).next(create_response(304, headers={"ETag": '"v2"'}), NOW)

        assert isinstance(next_state, NeedToBeUpdated)
        assert next_state.entry.etag == '"v2"'

    def test_not_modified_without_date_keeps_the_adjusted_last_modified(
        self, options: CacheOptions, stored: CacheEntry
    ) -> None:
        entry = replace(stored, adjusted_last_modified_at=NOW - 3610)

        next_state = revalidation_for(options, entry).next(create_response(304), NOW + 100)

        assert isinstance(next_state, NeedToBeUpdated)
        assert next_state.entry.adjusted_last_modified_at == NOW - 3610
        assert next_state.entry.last_updated_at == NOW + 100
        assert next_state.entry.headers["Date"] == "Mon, 13 Nov 2023 21:00:00 GMT"

    def test_new_content(self, options: CacheOptions, stored: CacheEntry) -> None:
        response = create_response(200, headers={"Content-Type": "text/plain"}, body=b"world")

        next_state = revalidation_for(options, stored).next(response, NOW)

        assert isinstance(next_state, StoreAndUse)
        assert next_state.entry.body == b"world"
        assert "x-content-unchanged" not in next_state.response.headers
        assert next_state.response.metadata["transcache_revalidated"] is True

    def test_same_content(self, options: CacheOptions, stored: CacheEntry) -> None:
        response = create_response(200, headers={"Content-Type": "text/plain"}, body=b"hello")

        next_state = revalidation_for(options, stored).next(response, NOW)

        assert isinstance(next_state, StoreAndUse)
        assert next_state.response.headers["X-Content-Unchanged"] == "1"
        assert "x-cached" not in next_state.response.headers
        assert next_state.response.metadata["transcache_content_unchanged"] is True

    def test_rejected_content_falls_back_to_the_entry(self, cache_dir: Path, stored: CacheEntry) -> None:
        options = CacheOptions(base_path=cache_dir, approve_content=lambda response: response.status_code == 200)
        error = create_response(503, body=b"try again later")

        next_state = revalidation_for(options, stored).next(error, NOW)

        assert isinstance(next_state, FromCache)
        assert next_state.response.status_code == 200
        assert next_state.response.read() == b"hello"
        assert next_state.response.headers["X-Cached"] == "1"
        assert next_state.response.metadata["transcache_stored"] is False

    def test_rejection_needs_a_previously_updated_entry(self, options: CacheOptions, stored: CacheEntry) -> None:
        legacy = replace(stored, last_updated_at=None)

        next_state = revalidation_for(options, legacy).next(create_response(500), NOW)

        assert isinstance(next_state, CouldNotBeStored)
        assert next_state.response.status_code == 500
