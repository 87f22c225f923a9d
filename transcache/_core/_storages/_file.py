from __future__ import annotations

import logging
import os
import tempfile
import time
import typing as tp
from pathlib import Path

from transcache._core._codec import dump_entry, load_entry
from transcache._core._keygen import is_valid_key
from transcache._core._storages._base import StoredFile, SyncBaseStorage
from transcache._core.models import CacheEntry
from transcache._exceptions import ConfigError, StoreReadFailed, StoreWriteFailed
from transcache._utils import ensure_cache_dict

logger = logging.getLogger("transcache.storages")

__all__ = ("SyncFileStorage",)

GITIGNORE_NAME = ".gitignore"
TEMP_SUFFIX = ".tmp"
SECONDS_PER_DAY = 86_400


class SyncFileStorage(SyncBaseStorage):
    """
    Stores one file per cache key in a directory.

    The directory must only contain files created by this storage. Every
    write goes to a temporary file first and is then renamed over the
    entry, so readers never see a partially written entry.

    :param base_path: Directory to store the cache in. Created if missing.
    :type base_path: tp.Union[str, os.PathLike[str]]
    """

    def __init__(self, base_path: tp.Union[str, "os.PathLike[str]"]) -> None:
        if base_path is None or str(base_path) == "":
            raise ConfigError("You must specify a base path for the cache.")

        self._base_path = Path(base_path)

        if self._base_path.exists() and not self._base_path.is_dir():
            raise ConfigError(f"{self._base_path} exists and is not a directory.")

        try:
            ensure_cache_dict(self._base_path)
        except OSError as exc:
            raise ConfigError(f"{self._base_path} is not a directory and cannot be created: {exc}") from exc

    @property
    def base_path(self) -> Path:
        return self._base_path

    def path_for(self, key: str) -> Path:
        return self._base_path / key

    def lookup(self, key: str) -> tp.Optional[CacheEntry]:
        """
        Reads the entry stored under the key.

        :param key: Cache key of the entry
        :type key: str
        :raises CorruptEntry: When the metadata block of the file is malformed
        :raises StoreReadFailed: When the file exists but cannot be read
        :return: The stored entry, or None if there is no non-empty file for the key
        :rtype: tp.Optional[CacheEntry]
        """

        path = self.path_for(key)
        try:
            if path.stat().st_size == 0:
                return None
            with open(path, "rb") as f:
                return load_entry(f)
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StoreReadFailed(f"Failed to read from {path}: {exc}") from exc

    def touch(self, key: str, now: tp.Optional[float] = None) -> None:
        """
        Marks the entry as used at `now`, which is what eviction measures.
        """

        now = time.time() if now is None else now
        try:
            os.utime(self.path_for(key), (now, now))
        except FileNotFoundError:
            logger.debug(f"Could not update the access time of {key}, the file is gone.")
        except OSError as exc:
            logger.warning(f"Could not update the access time of {key}: {exc}")

    def write(self, key: str, entry: CacheEntry) -> None:
        """
        Atomically replaces the entry stored under the key.

        :param key: Cache key of the entry
        :type key: str
        :param entry: The entry to store
        :type entry: CacheEntry
        :raises StoreWriteFailed: When the temporary file cannot be written or renamed
        """

        path = self.path_for(key)
        try:
            fd, temp_path = tempfile.mkstemp(prefix=f".{key}.", suffix=TEMP_SUFFIX, dir=self._base_path)
        except OSError as exc:
            raise StoreWriteFailed(f"Failed to create a temporary file for {path}: {exc}") from exc

        try:
            with os.fdopen(fd, "wb") as f:
                dump_entry(entry, f)
            os.replace(temp_path, path)
        except (OSError, ValueError) as exc:
            self.delete_path(temp_path)
            raise StoreWriteFailed(f"Failed to write to {path}: {exc}") from exc

    def delete(self, key: str) -> None:
        self.delete_path(str(self.path_for(key)))

    def delete_path(self, path: str) -> None:
        try:
            os.unlink(path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning(f"Failed to delete {path}: {exc}")

    def enumerate(self, now: tp.Optional[float] = None) -> tp.Iterator[StoredFile]:
        """
        Lists the files of the cache directory with their age since last use.

        Files that disappear while the directory is being scanned are skipped.
        """

        now = time.time() if now is None else now
        with os.scandir(self._base_path) as entries:
            for dir_entry in entries:
                if dir_entry.name == GITIGNORE_NAME:
                    continue
                try:
                    mtime = dir_entry.stat().st_mtime
                except FileNotFoundError:
                    continue

                if is_valid_key(dir_entry.name) and dir_entry.is_file():
                    kind: tp.Literal["entry", "temp", "unknown"] = "entry"
                elif dir_entry.name.startswith(".") and dir_entry.name.endswith(TEMP_SUFFIX):
                    kind = "temp"
                else:
                    kind = "unknown"

                yield StoredFile(
                    name=dir_entry.name,
                    path=dir_entry.path,
                    age_days=(now - mtime) / SECONDS_PER_DAY,
                    kind=kind,
                )

    def close(self) -> None:  # pragma: no cover
        return
