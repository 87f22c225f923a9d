from __future__ import annotations

import hashlib
import re
import typing as tp

__all__ = ("generate_key", "is_valid_key", "KEY_PATTERN")

KEY_PATTERN = re.compile(r"^[0-9a-f]{32}$")


def generate_key(url: str, range_: tp.Optional[str] = None) -> str:
    """
    Derive the cache key (and file name) for a URL and an optional Range header.

    Different ranges of the same URL get different keys. The URL and range are
    also stored inside the entry so collisions can be detected on read.
    """
    material = url if not range_ else f"{url}\n{range_}"
    return hashlib.md5(material.encode("utf-8"), usedforsecurity=False).hexdigest()


def is_valid_key(name: str) -> bool:
    return KEY_PATTERN.match(name) is not None
