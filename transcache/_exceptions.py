__all__ = (
    "TranscacheError",
    "ConfigError",
    "StoreReadFailed",
    "CorruptEntry",
    "StoreWriteFailed",
    "KeyCollision",
    "UnknownStoreFile",
)


class TranscacheError(Exception): ...


class ConfigError(TranscacheError): ...


class StoreReadFailed(TranscacheError): ...


class CorruptEntry(StoreReadFailed): ...


class StoreWriteFailed(TranscacheError): ...


class KeyCollision(TranscacheError):
    def __init__(self, requested_url: str, stored_url: str) -> None:
        super().__init__(f"Cache collision: {requested_url} and {stored_url} have the same key")
        self.requested_url = requested_url
        self.stored_url = stored_url


class UnknownStoreFile(TranscacheError):
    def __init__(self, path: str) -> None:
        super().__init__(f"Unknown file found in cache directory: {path}")
        self.path = path
