from __future__ import annotations

import ssl
import typing as t
from typing import (
    Iterable,
    Iterator,
    Union,
    cast,
    overload,
)

from transcache._core._headers import Headers
from transcache._core._spec import CacheOptions, is_cacheable_request
from transcache._core._storages._base import SyncBaseStorage
from transcache._core.models import Request, Response, extract_metadata_from_headers
from transcache._exceptions import ConfigError
from transcache._sync_cache import SyncCacheProxy
from transcache._utils import make_sync_iterator

try:
    import httpx
    from httpx import RequestNotRead
except ImportError as e:
    raise ImportError(
        "httpx is required to use transcache.httpx module. "
        "Please install transcache with the 'httpx' extra, "
        "e.g., 'pip install transcache[httpx]'."
    ) from e

__all__ = ("SyncCacheTransport", "SyncCacheClient")

# 128 KB
CHUNK_SIZE = 131072


def _to_httpx_headers(headers: Headers) -> t.List[t.Tuple[str, str]]:
    return [(key, value) for key in headers for value in headers.get_list(key) or []]


def _from_httpx_headers(headers: httpx.Headers, exclude: t.Iterable[str] = ()) -> Headers:
    excluded = {name.lower() for name in exclude}
    internal = Headers()
    for key, value in headers.multi_items():
        if key.lower() not in excluded:
            internal.add(key, value)
    return internal


@overload
def _internal_to_httpx(
    value: Request,
) -> httpx.Request: ...
@overload
def _internal_to_httpx(
    value: Response,
) -> httpx.Response: ...
def _internal_to_httpx(
    value: Union[Request, Response],
) -> Union[httpx.Request, httpx.Response]:
    """
    Convert internal Request/Response to httpx.Request/httpx.Response.
    """
    if isinstance(value, Request):
        return httpx.Request(
            method=value.method,
            url=value.url,
            headers=_to_httpx_headers(value.headers),
            stream=_IteratorStream(value._iter_stream()),
            extensions=dict(value.metadata),
        )
    elif isinstance(value, Response):
        return httpx.Response(
            status_code=value.status_code,
            headers=_to_httpx_headers(value.headers),
            stream=_IteratorStream(value._iter_stream()),
            extensions=dict(value.metadata),
        )


@overload
def _httpx_to_internal(
    value: httpx.Request,
) -> Request: ...
@overload
def _httpx_to_internal(
    value: httpx.Response,
) -> Response: ...
def _httpx_to_internal(
    value: Union[httpx.Request, httpx.Response],
) -> Union[Request, Response]:
    """
    Convert httpx.Request/httpx.Response to internal Request/Response.

    Response bodies are collected as they came over the wire, still encoded
    according to their Content-Encoding.
    """
    if isinstance(value, httpx.Request):
        try:
            stream = make_sync_iterator([value.content])
        except RequestNotRead:
            stream = cast(Iterator[bytes], value.stream)

        return Request(
            method=value.method,
            url=str(value.url),
            headers=_from_httpx_headers(value.headers),
            stream=stream,
            metadata={**extract_metadata_from_headers(value.headers), **value.extensions},
        )
    elif isinstance(value, httpx.Response):
        if value.is_stream_consumed:
            content = value.content
            headers = _from_httpx_headers(value.headers, exclude=["Transfer-Encoding", "Content-Encoding"])
            if "content-encoding" in value.headers:
                # The stream was consumed, so only the decoded body is known.
                headers["Content-Length"] = str(len(content))
        else:
            try:
                content = b"".join(value.iter_raw(chunk_size=CHUNK_SIZE))
            finally:
                value.close()
            headers = _from_httpx_headers(value.headers, exclude=["Transfer-Encoding"])

        return Response(
            status_code=value.status_code,
            headers=headers,
            stream=make_sync_iterator([content]),
            metadata={},
        )


class _IteratorStream(httpx.SyncByteStream):
    def __init__(self, iterator: Iterator[bytes]) -> None:
        self.iterator = iterator

    def __iter__(self) -> Iterator[bytes]:
        assert isinstance(self.iterator, (Iterator, Iterable))
        for chunk in self.iterator:
            yield chunk


class SyncCacheTransport(httpx.BaseTransport):
    """
    An HTTPX transport that caches GET responses on disk.

    Requests that do not go through the cache (non-GET, with a caller supplied
    If-Modified-Since header, or with the `transcache_streaming` extension) are
    handed to `next_transport` untouched.

    :param next_transport: The transport this class wraps in order to add a cache layer on top of
    :type next_transport: httpx.BaseTransport
    :param options: Cache configuration
    :type options: CacheOptions
    :param storage: Storage for the entries, defaults to a SyncFileStorage in `options.base_path`
    :type storage: tp.Optional[SyncBaseStorage], optional
    """

    def __init__(
        self,
        next_transport: httpx.BaseTransport,
        options: CacheOptions,
        storage: SyncBaseStorage | None = None,
        key_generator: t.Callable[[str, t.Optional[str]], str] | None = None,
    ) -> None:
        self.next_transport = next_transport
        self._cache_proxy: SyncCacheProxy = SyncCacheProxy(
            request_sender=self.request_sender,
            options=options,
            storage=storage,
            key_generator=key_generator,
        )
        self.storage = self._cache_proxy.storage

    def handle_request(
        self,
        request: httpx.Request,
    ) -> httpx.Response:
        internal_request = _httpx_to_internal(request)
        if not is_cacheable_request(internal_request):
            return self.next_transport.handle_request(request)

        internal_response = self._cache_proxy.handle_request(internal_request)
        response = _internal_to_httpx(internal_response)
        return response

    def close(self) -> None:
        try:
            self._cache_proxy.close()
        finally:
            self.next_transport.close()

    def request_sender(self, request: Request) -> Response:
        httpx_request = _internal_to_httpx(request)
        httpx_response = self.next_transport.handle_request(httpx_request)
        return _httpx_to_internal(httpx_response)


class SyncCacheClient(httpx.Client):
    """
    An `httpx.Client` whose transports cache GET responses.

    Takes the same arguments as `httpx.Client`, plus the keyword-only
    `options` (required) and `storage`.
    """

    def __init__(self, *args: t.Any, **kwargs: t.Any) -> None:
        self.options: CacheOptions | None = kwargs.pop("options", None)
        self.storage: SyncBaseStorage | None = kwargs.pop("storage", None)
        if self.options is None:
            raise ConfigError("SyncCacheClient requires the `options` argument.")
        super().__init__(*args, **kwargs)

    def _init_transport(
        self,
        verify: ssl.SSLContext | str | bool = True,
        cert: t.Union[str, t.Tuple[str, str], t.Tuple[str, str, str], None] = None,
        trust_env: bool = True,
        http1: bool = True,
        http2: bool = False,
        limits: httpx.Limits = httpx.Limits(max_connections=100, max_keepalive_connections=20),
        transport: httpx.BaseTransport | None = None,
        **kwargs: t.Any,
    ) -> httpx.BaseTransport:
        assert self.options is not None

        if isinstance(transport, SyncCacheTransport):
            return transport

        return SyncCacheTransport(
            next_transport=transport
            if transport is not None
            else httpx.HTTPTransport(
                verify=verify,
                cert=cert,
                trust_env=trust_env,
                http1=http1,
                http2=http2,
                limits=limits,
            ),
            options=self.options,
            storage=self.storage,
        )

    def _init_proxy_transport(
        self,
        proxy: httpx.Proxy,
        verify: ssl.SSLContext | str | bool = True,
        cert: t.Union[str, t.Tuple[str, str], t.Tuple[str, str, str], None] = None,
        trust_env: bool = True,
        http1: bool = True,
        http2: bool = False,
        limits: httpx.Limits = httpx.Limits(max_connections=100, max_keepalive_connections=20),
        **kwargs: t.Any,
    ) -> httpx.BaseTransport:
        assert self.options is not None

        return SyncCacheTransport(
            next_transport=httpx.HTTPTransport(
                verify=verify,
                cert=cert,
                trust_env=trust_env,
                http1=http1,
                http2=http2,
                limits=limits,
                proxy=proxy,
            ),
            options=self.options,
            storage=self.storage,
        )
