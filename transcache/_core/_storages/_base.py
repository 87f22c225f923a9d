from __future__ import annotations

import abc
import typing as tp
from dataclasses import dataclass

from transcache._core.models import CacheEntry

StoredFileKind = tp.Literal["entry", "temp", "unknown"]


@dataclass(frozen=True)
class StoredFile:
    name: str
    path: str
    age_days: float
    kind: StoredFileKind


class SyncBaseStorage(abc.ABC):
    @abc.abstractmethod
    def lookup(self, key: str) -> tp.Optional[CacheEntry]:
        raise NotImplementedError()

    @abc.abstractmethod
    def touch(self, key: str, now: tp.Optional[float] = None) -> None:
        raise NotImplementedError()

    @abc.abstractmethod
    def write(self, key: str, entry: CacheEntry) -> None:
        raise NotImplementedError()

    @abc.abstractmethod
    def delete(self, key: str) -> None:
        raise NotImplementedError()

    @abc.abstractmethod
    def enumerate(self, now: tp.Optional[float] = None) -> tp.Iterator[StoredFile]:
        raise NotImplementedError()

    @abc.abstractmethod
    def delete_path(self, path: str) -> None:
        raise NotImplementedError()

    def close(self) -> None:
        pass
