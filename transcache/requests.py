from __future__ import annotations

from io import RawIOBase
from typing import Any, Callable, Iterator, Mapping, Optional, overload

from typing_extensions import assert_never

from transcache._core._headers import Headers
from transcache._core._spec import CacheOptions, is_cacheable_request
from transcache._core._storages._base import SyncBaseStorage
from transcache._core.models import Request, Response, extract_metadata_from_headers
from transcache._sync_cache import SyncCacheProxy
from transcache._utils import filter_mapping, snake_to_header

try:
    import requests
    from requests.adapters import HTTPAdapter
    from urllib3 import HTTPResponse
except ImportError:  # pragma: no cover
    raise ImportError(
        "The 'requests' library is required to use the requests integration. "
        "Install transcache with 'pip install transcache[requests]'."
    )

__all__ = ("CacheAdapter",)

# 128 KB
CHUNK_SIZE = 131072

# Request metadata key carrying the keyword arguments of `HTTPAdapter.send`.
SEND_KWARGS_KEY = "requests_send_kwargs"


class _IteratorStream(RawIOBase):
    def __init__(self, iterator: Iterator[bytes]):
        self.iterator = iterator
        self.leftover = b""

    def readable(self) -> bool:
        return True

    def readinto(self, b: bytearray) -> Optional[int]:  # type: ignore
        chunk = self.read(len(b))
        if not chunk:
            return 0
        n = len(chunk)
        b[:n] = chunk
        return n

    def read(self, size: int = -1) -> bytes:
        if size is None or size < 0:
            result = self.leftover + b"".join(self.iterator)
            self.leftover = b""
            return result

        while len(self.leftover) < size:
            try:
                self.leftover += next(self.iterator)
            except StopIteration:
                break

        result = self.leftover[:size]
        self.leftover = self.leftover[size:]
        return result


@overload
def _requests_to_internal(
    model: requests.models.PreparedRequest,
) -> Request: ...


@overload
def _requests_to_internal(
    model: requests.models.Response,
) -> Response: ...


def _requests_to_internal(
    model: requests.models.PreparedRequest | requests.models.Response,
) -> Request | Response:
    if isinstance(model, requests.models.PreparedRequest):
        body: bytes
        if isinstance(model.body, str):
            body = model.body.encode("utf-8")
        elif isinstance(model.body, bytes):
            body = model.body
        else:
            body = b""
        assert model.method
        return Request(
            method=model.method,
            url=str(model.url),
            headers=Headers(dict(model.headers)),
            stream=iter([body]),
            metadata=extract_metadata_from_headers(model.headers),
        )
    elif isinstance(model, requests.models.Response):
        try:
            try:
                content = b"".join(model.raw.stream(CHUNK_SIZE, decode_content=False))
            finally:
                model.close()
            headers = Headers(filter_mapping(model.headers, ["transfer-encoding"]))
        except requests.exceptions.StreamConsumedError:
            content = model.content
            # Only the decoded body is known, so describe it as such.
            headers = Headers(filter_mapping(model.headers, ["content-encoding", "transfer-encoding"]))
            headers["Content-Length"] = str(len(content))

        return Response(
            status_code=model.status_code,
            headers=headers,
            stream=iter([content]),
        )
    else:
        assert_never(model)
    raise RuntimeError("This line should never be reached, but is here to satisfy type checkers.")


@overload
def _internal_to_requests(model: Request) -> requests.models.PreparedRequest: ...
@overload
def _internal_to_requests(model: Response) -> requests.models.Response: ...
def _internal_to_requests(
    model: Request | Response,
) -> requests.models.Response | requests.models.PreparedRequest:
    if isinstance(model, Response):
        response = requests.models.Response()

        metadata_headers = {snake_to_header(k): str(v) for k, v in model.metadata.items()}
        headers = {key: value for key, value in model.headers.items()}

        urllib_response = HTTPResponse(
            body=_IteratorStream(model._iter_stream()),
            headers={**headers, **metadata_headers},
            status=model.status_code,
            preload_content=False,
            decode_content=False,
        )

        response.raw = urllib_response
        response.status_code = model.status_code
        response.headers.update(headers)
        response.headers.update(metadata_headers)
        response.url = ""  # Will be set by requests

        return response
    else:
        request = requests.Request(
            method=model.method,
            url=model.url,
            headers=dict(model.headers),
        )
        body = b"".join(model._iter_stream())
        prepared = request.prepare()
        if body:
            prepared.prepare_body(data=body, files=None)
        return prepared


class CacheAdapter(HTTPAdapter):
    """
    An HTTPAdapter that caches GET responses on disk.

    Requests sent with `stream=True` are forwarded without using the cache,
    since their body is consumed incrementally by the caller.

    :param options: Cache configuration
    :type options: CacheOptions
    :param storage: Storage for the entries, defaults to a SyncFileStorage in `options.base_path`
    :type storage: SyncBaseStorage | None, optional
    """

    def __init__(
        self,
        options: CacheOptions,
        storage: SyncBaseStorage | None = None,
        key_generator: Callable[[str, Optional[str]], str] | None = None,
        pool_connections: int = 10,
        pool_maxsize: int = 10,
        max_retries: int = 0,
        pool_block: bool = False,
    ):
        super().__init__(pool_connections, pool_maxsize, max_retries, pool_block)
        self._cache_proxy = SyncCacheProxy(
            request_sender=self._send_request,
            options=options,
            storage=storage,
            key_generator=key_generator,
        )
        self.storage = self._cache_proxy.storage

    def send(
        self,
        request: requests.models.PreparedRequest,
        stream: bool = False,
        timeout: None | float | tuple[float, float] | tuple[float, None] = None,
        verify: bool | str = True,
        cert: None | bytes | str | tuple[bytes | str, bytes | str] = None,
        proxies: Mapping[str, str] | None = None,
    ) -> requests.models.Response:
        internal_request = _requests_to_internal(request)
        if stream or not is_cacheable_request(internal_request):
            return super().send(request, stream=stream, timeout=timeout, verify=verify, cert=cert, proxies=proxies)

        internal_request.metadata = {
            **internal_request.metadata,
            SEND_KWARGS_KEY: {"timeout": timeout, "verify": verify, "cert": cert, "proxies": proxies},
        }
        internal_response = self._cache_proxy.handle_request(internal_request)
        response = _internal_to_requests(internal_response)

        # Set the original request on the response
        response.request = request
        response.url = str(request.url)
        response.connection = self  # type: ignore

        return response

    def _send_request(self, request: Request) -> Response:
        send_kwargs: dict[str, Any] = dict(request.metadata.get(SEND_KWARGS_KEY) or {})
        requests_request = _internal_to_requests(request)
        response = super().send(
            requests_request,
            stream=True,
            **send_kwargs,
        )
        return _requests_to_internal(response)

    def close(self) -> Any:
        try:
            self._cache_proxy.close()
        finally:
            super().close()
