from __future__ import annotations

from dataclasses import dataclass, field
from typing import (
    Any,
    AsyncIterable,
    AsyncIterator,
    Dict,
    Iterable,
    Iterator,
    Mapping,
    Optional,
    TypedDict,
    cast,
)

from transcache._core._headers import Headers
from transcache._utils import make_async_iterator, make_sync_iterator


class RequestMetadata(TypedDict, total=False):
    # All the names here should be prefixed with "transcache_" to avoid collisions with user data
    transcache_streaming: bool
    """
    When True, the caller consumes the response body incrementally and the
    request is forwarded without touching the cache.
    """


def extract_metadata_from_headers(
    headers: Mapping[str, str],
) -> RequestMetadata:
    metadata: RequestMetadata = {}
    if "X-Transcache-Streaming" in headers:
        value = headers["X-Transcache-Streaming"].lower()
        if value in ("1", "true", "yes", "on"):
            metadata["transcache_streaming"] = True
        elif value in ("0", "false", "no", "off"):
            metadata["transcache_streaming"] = False
    return metadata


@dataclass
class Request:
    method: str
    url: str
    headers: Headers = field(default_factory=Headers)
    stream: Iterator[bytes] | AsyncIterator[bytes] = field(default_factory=lambda: iter([]))
    metadata: RequestMetadata | Mapping[str, Any] = field(default_factory=dict)

    def _iter_stream(self) -> Iterator[bytes]:
        if hasattr(self, "collected_body"):
            yield getattr(self, "collected_body")
            return
        if isinstance(self.stream, (Iterator, Iterable)):
            yield from self.stream
            return
        raise TypeError("Request stream is not an Iterator")

    async def _aiter_stream(self) -> AsyncIterator[bytes]:
        if hasattr(self, "collected_body"):
            yield getattr(self, "collected_body")
            return
        if isinstance(self.stream, (AsyncIterator, AsyncIterable)):
            async for chunk in self.stream:
                yield chunk
            return
        else:
            raise TypeError("Request stream is not an AsyncIterator")


class ResponseMetadata(TypedDict, total=False):
    # All the names here should be prefixed with "transcache_" to avoid collisions with user data
    transcache_from_cache: bool
    """Indicates whether the body was served from the cache instead of the origin."""

    transcache_revalidated: bool
    """Indicates whether the origin server was asked about the stored entry."""

    transcache_stored: bool
    """Indicates whether the response was written to the cache."""

    transcache_content_unchanged: bool
    """Indicates whether the body is identical to the previously cached one."""


@dataclass
class Response:
    status_code: int
    headers: Headers = field(default_factory=Headers)
    stream: Iterator[bytes] | AsyncIterator[bytes] = field(default_factory=lambda: iter([]))
    metadata: ResponseMetadata | Mapping[str, Any] = field(default_factory=dict)

    def _iter_stream(self) -> Iterator[bytes]:
        if hasattr(self, "collected_body"):
            yield getattr(self, "collected_body")
            return
        if isinstance(self.stream, (Iterator, Iterable)):
            yield from self.stream
            return
        raise TypeError("Response stream is not an Iterator")

    async def _aiter_stream(self) -> AsyncIterator[bytes]:
        if hasattr(self, "collected_body"):
            yield getattr(self, "collected_body")
            return
        if isinstance(self.stream, (AsyncIterator, AsyncIterable)):
            async for chunk in self.stream:
                yield chunk
        else:
            raise TypeError("Response stream is not an AsyncIterator")

    def read(self) -> bytes:
        """
        Synchronously reads the entire response body without consuming the stream.
        """
        if hasattr(self, "collected_body"):
            return cast(bytes, getattr(self, "collected_body"))

        if not isinstance(self.stream, (Iterator, Iterable)):
            raise TypeError("Response stream is not an Iterator")

        collected = b"".join([chunk for chunk in self.stream])
        setattr(self, "collected_body", collected)
        self.stream = make_sync_iterator([collected])
        return collected

    async def aread(self) -> bytes:
        """
        Asynchronously reads the entire response body without consuming the stream.
        """
        if hasattr(self, "collected_body"):
            return cast(bytes, getattr(self, "collected_body"))

        if not isinstance(self.stream, (AsyncIterator, AsyncIterable)):
            raise TypeError("Response stream is not an AsyncIterator")

        collected = b"".join([chunk async for chunk in self.stream])
        setattr(self, "collected_body", collected)
        self.stream = make_async_iterator([collected])
        return collected


@dataclass
class CacheEntry:
    """
    A stored response for one cache key.

    Timestamps are seconds since the epoch on the client clock.
    """

    url: str
    status_code: int = 200
    etag: Optional[str] = None
    range: str = ""
    digest: Optional[str] = None
    last_updated_at: Optional[float] = None
    adjusted_last_modified_at: Optional[float] = None
    headers: Dict[str, str] = field(default_factory=dict)
    """Subset of the response headers, keyed by their canonical names."""
    body: bytes = b""
    extra: Dict[str, str] = field(default_factory=dict)
    """Metadata keys this version does not know about, kept as they were read."""
