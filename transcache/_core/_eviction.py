from __future__ import annotations

import logging
import typing as tp
from dataclasses import dataclass, field

from transcache._core._storages._base import SyncBaseStorage
from transcache._exceptions import UnknownStoreFile

logger = logging.getLogger("transcache.eviction")

__all__ = ("SweepResult", "remove_old_entries")

HOURS_PER_DAY = 24


@dataclass
class SweepResult:
    removed: tp.List[str] = field(default_factory=list)
    kept: tp.List[str] = field(default_factory=list)
    unknown: tp.List[UnknownStoreFile] = field(default_factory=list)


def remove_old_entries(
    storage: SyncBaseStorage,
    max_age_hours: float,
    now: tp.Optional[float] = None,
    verbose: bool = False,
) -> SweepResult:
    """
    Deletes entries that have not been used within `max_age_hours`.

    Files that are not cache entries are reported and left alone, except
    leftover temporary files of the storage which age out like entries.
    """
    result = SweepResult()
    progress_level = logging.INFO if verbose else logging.DEBUG

    for stored_file in storage.enumerate(now=now):
        if stored_file.kind == "unknown":
            unknown = UnknownStoreFile(stored_file.path)
            logger.warning(str(unknown))
            result.unknown.append(unknown)
            continue

        if stored_file.age_days * HOURS_PER_DAY > max_age_hours:
            logger.log(progress_level, f"Deleting {stored_file.name}.")
            storage.delete_path(stored_file.path)
            result.removed.append(stored_file.name)
        else:
            result.kept.append(stored_file.name)

    return result
