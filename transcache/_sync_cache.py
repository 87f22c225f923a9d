from __future__ import annotations

import logging
import time
import types
import typing as tp
from typing import Callable

from typing_extensions import assert_never

from transcache._core._eviction import SweepResult, remove_old_entries
from transcache._core._keygen import generate_key
from transcache._core._spec import (
    AnyState,
    CacheMiss,
    CacheOptions,
    CouldNotBeStored,
    FromCache,
    IdleClient,
    NeedRevalidation,
    NeedToBeUpdated,
    StoreAndUse,
    is_cacheable_request,
    request_range,
)
from transcache._core._storages._base import SyncBaseStorage
from transcache._core._storages._file import SyncFileStorage
from transcache._core.models import CacheEntry, Request, Response
from transcache._exceptions import StoreReadFailed, StoreWriteFailed

if tp.TYPE_CHECKING:  # pragma: no cover
    from typing_extensions import Self

logger = logging.getLogger("transcache.proxy")

__all__ = ("SyncCacheProxy",)


class SyncCacheProxy:
    """
    A caching layer in front of any HTTP client.

    This class is independent of any specific HTTP library and works only with internal models.
    It delegates request execution to a user-provided callable for cache misses and
    revalidations. Closing the proxy removes entries that were not used within
    `options.max_age_hours`.

    Args:
        request_sender: Callable that sends HTTP requests and returns responses.
        options: Cache configuration.
        storage: Storage backend for cache entries. Defaults to SyncFileStorage(options.base_path).
        key_generator: Callable deriving the cache key from a URL and a Range header value.
    """

    def __init__(
        self,
        request_sender: Callable[[Request], Response],
        options: CacheOptions,
        storage: SyncBaseStorage | None = None,
        key_generator: Callable[[str, tp.Optional[str]], str] | None = None,
    ) -> None:
        self.send_request = request_sender
        self.options = options
        self.storage = storage if storage is not None else SyncFileStorage(options.base_path)
        self._key_generator = key_generator or generate_key
        self._progress_level = logging.INFO if options.verbose else logging.DEBUG
        self._closed = False

    def handle_request(self, request: Request) -> Response:
        if not is_cacheable_request(request):
            logger.debug(f"Forwarding the request for {request.url} without using the cache")
            return self.send_request(request)

        logger.log(self._progress_level, f"Fetching {request.url}")
        key = self._key_generator(request.url, request_range(request) or None)
        state: AnyState = IdleClient(options=self.options)

        while state:
            logger.debug(f"Handling state: {state.__class__.__name__}")
            if isinstance(state, IdleClient):
                state = self._handle_idle_state(state, request, key)
            elif isinstance(state, CacheMiss):
                state = self._handle_cache_miss(state)
            elif isinstance(state, NeedRevalidation):
                state = self._handle_revalidation(state)
            elif isinstance(state, FromCache):
                return self._handle_from_cache(state, key)
            elif isinstance(state, NeedToBeUpdated):
                logger.log(self._progress_level, f"Fetched {request.url} from cache")
                self._store(key, state.entry, state.response)
                return state.response
            elif isinstance(state, StoreAndUse):
                self._log_from_server(state.response, request)
                self._store(key, state.entry, state.response)
                return state.response
            elif isinstance(state, CouldNotBeStored):
                self._log_from_server(state.response, request)
                return state.response
            else:
                assert_never(state)

        raise RuntimeError("Unreachable")

    def _lookup(self, key: str) -> CacheEntry | None:
        try:
            return self.storage.lookup(key)
        except StoreReadFailed as exc:
            logger.warning(f"Ignoring the stored entry {key}: {exc}")
            return None

    def _store(self, key: str, entry: CacheEntry, response: Response) -> None:
        try:
            self.storage.write(key, entry)
        except StoreWriteFailed as exc:
            logger.warning(str(exc))
            response.metadata["transcache_stored"] = False  # type: ignore[index]
        else:
            logger.debug("Storing response in cache")

    def _handle_idle_state(self, state: IdleClient, request: Request, key: str) -> AnyState:
        return state.next(request, self._lookup(key), time.time())

    def _handle_cache_miss(self, state: CacheMiss) -> AnyState:
        response = self.send_request(state.request)
        response.read()
        return state.next(response, time.time())

    def _handle_revalidation(self, state: NeedRevalidation) -> AnyState:
        response = self.send_request(state.request)
        response.read()
        return state.next(response, time.time())

    def _handle_from_cache(self, state: FromCache, key: str) -> Response:
        if state.response.metadata.get("transcache_revalidated"):
            message = "from cache since the response was not approved"
        else:
            message = "from cache without checking with the server"
        logger.log(self._progress_level, f"Fetched {state.entry.url} {message}")
        self.storage.touch(key)
        return state.response

    def _log_from_server(self, response: Response, request: Request) -> None:
        unchanged = " (unchanged)" if response.metadata.get("transcache_content_unchanged") else ""
        logger.log(self._progress_level, f"Fetched {request.url} from server{unchanged}")

    def remove_old_entries(self) -> SweepResult | None:
        """
        Deletes entries that were not used within `options.max_age_hours`.
        """
        try:
            return remove_old_entries(
                self.storage,
                max_age_hours=self.options.max_age_hours,
                verbose=self.options.verbose,
            )
        except OSError as exc:
            logger.warning(f"Could not remove old cache entries: {exc}")
            return None

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self.remove_old_entries()
        finally:
            self.storage.close()

    def __enter__(self) -> "Self":
        return self

    def __exit__(
        self,
        exc_type: tp.Optional[tp.Type[BaseException]] = None,
        exc_value: tp.Optional[BaseException] = None,
        traceback: tp.Optional[types.TracebackType] = None,
    ) -> None:
        self.close()
