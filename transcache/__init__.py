from transcache._async_cache import AsyncCacheProxy as AsyncCacheProxy
from transcache._core._codec import (
    dump_entry as dump_entry,
    dumps_entry as dumps_entry,
    load_entry as load_entry,
    loads_entry as loads_entry,
)
from transcache._core._eviction import SweepResult as SweepResult, remove_old_entries as remove_old_entries
from transcache._core._headers import Headers as Headers
from transcache._core._keygen import generate_key as generate_key
from transcache._core._spec import (
    AnyState as AnyState,
    CacheMiss as CacheMiss,
    CacheOptions as CacheOptions,
    CouldNotBeStored as CouldNotBeStored,
    FromCache as FromCache,
    IdleClient as IdleClient,
    NeedRevalidation as NeedRevalidation,
    NeedToBeUpdated as NeedToBeUpdated,
    State as State,
    StoreAndUse as StoreAndUse,
)
from transcache._core._storages._base import StoredFile as StoredFile, SyncBaseStorage as SyncBaseStorage
from transcache._core._storages._file import SyncFileStorage as SyncFileStorage
from transcache._core.models import (
    CacheEntry as CacheEntry,
    Request as Request,
    RequestMetadata as RequestMetadata,
    Response as Response,
    ResponseMetadata as ResponseMetadata,
)
from transcache._exceptions import (
    ConfigError as ConfigError,
    CorruptEntry as CorruptEntry,
    KeyCollision as KeyCollision,
    StoreReadFailed as StoreReadFailed,
    StoreWriteFailed as StoreWriteFailed,
    TranscacheError as TranscacheError,
    UnknownStoreFile as UnknownStoreFile,
)
from transcache._sync_cache import SyncCacheProxy as SyncCacheProxy

__all__ = (
    ## States
    "AnyState",
    "IdleClient",
    "CacheMiss",
    "FromCache",
    "NeedRevalidation",
    "NeedToBeUpdated",
    "State",
    "StoreAndUse",
    "CouldNotBeStored",
    "CacheOptions",
    ## Models
    "Request",
    "Response",
    "CacheEntry",
    "RequestMetadata",
    "ResponseMetadata",
    ## Headers
    "Headers",
    ## Storages
    "SyncBaseStorage",
    "SyncFileStorage",
    "StoredFile",
    "dump_entry",
    "dumps_entry",
    "load_entry",
    "loads_entry",
    "generate_key",
    ## Eviction
    "SweepResult",
    "remove_old_entries",
    # Proxy
    "AsyncCacheProxy",
    "SyncCacheProxy",
    # Exceptions
    "TranscacheError",
    "ConfigError",
    "StoreReadFailed",
    "CorruptEntry",
    "StoreWriteFailed",
    "KeyCollision",
    "UnknownStoreFile",
)
