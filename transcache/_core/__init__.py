from transcache._core._codec import (
    dump_entry as dump_entry,
    dumps_entry as dumps_entry,
    load_entry as load_entry,
    loads_entry as loads_entry,
)
from transcache._core._headers import Headers as Headers
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

__all__ = (
    "AnyState",
    "CacheEntry",
    "CacheMiss",
    "CacheOptions",
    "CouldNotBeStored",
    "FromCache",
    "Headers",
    "IdleClient",
    "NeedRevalidation",
    "NeedToBeUpdated",
    "Request",
    "RequestMetadata",
    "Response",
    "ResponseMetadata",
    "State",
    "StoreAndUse",
    "StoredFile",
    "SyncBaseStorage",
    "SyncFileStorage",
    "dump_entry",
    "dumps_entry",
    "load_entry",
    "loads_entry",
)
