from __future__ import annotations

import io
import re
import typing as tp

from transcache._core._headers import CACHED_HEADERS
from transcache._core.models import CacheEntry
from transcache._exceptions import CorruptEntry
from transcache._utils import HEADERS_ENCODING

__all__ = ("dump_entry", "dumps_entry", "load_entry", "loads_entry")

# 64 KB
CHUNK_SIZE = 65536

URL_KEY = "Url"
ETAG_KEY = "ETag"
RANGE_KEY = "Range"
DIGEST_KEY = "MD5"
CODE_KEY = "Code"
LAST_UPDATED_KEY = "X-HCT-LastUpdated"
LAST_MODIFIED_KEY = "X-HCT-LastModified"

_META_LINE = re.compile(rb"(\S+)[ \t](.*)")


def format_timestamp(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def _entry_to_meta(entry: CacheEntry) -> tp.Dict[str, str]:
    meta: tp.Dict[str, str] = dict(entry.extra)
    meta[URL_KEY] = entry.url
    meta[CODE_KEY] = str(entry.status_code)
    if entry.etag is not None:
        meta[ETAG_KEY] = entry.etag
    if entry.range:
        meta[RANGE_KEY] = entry.range
    if entry.digest is not None:
        meta[DIGEST_KEY] = entry.digest
    if entry.last_updated_at is not None:
        meta[LAST_UPDATED_KEY] = format_timestamp(entry.last_updated_at)
    if entry.adjusted_last_modified_at is not None:
        meta[LAST_MODIFIED_KEY] = format_timestamp(entry.adjusted_last_modified_at)
    for name in CACHED_HEADERS:
        if name in entry.headers:
            meta[name] = entry.headers[name]
    return meta


def dump_entry(entry: CacheEntry, fileobj: tp.BinaryIO) -> None:
    """
    Write an entry as a block of sorted `Key value` lines, a blank line and the raw body.
    """
    for key, value in sorted(_entry_to_meta(entry).items()):
        if "\n" in value or "\r" in value:
            raise ValueError(f"The value of the {key!r} field must not contain line breaks.")
        fileobj.write(f"{key} {value}\n".encode(HEADERS_ENCODING))
    fileobj.write(b"\n")
    fileobj.write(entry.body)


def dumps_entry(entry: CacheEntry) -> bytes:
    buffer = io.BytesIO()
    dump_entry(entry, buffer)
    return buffer.getvalue()


def _read_meta(fileobj: tp.BinaryIO) -> tp.Dict[str, str]:
    meta: tp.Dict[str, str] = {}
    while True:
        line = fileobj.readline()
        if not line:
            # End of file before the blank line, so the body is empty.
            break
        line = line.rstrip(b"\r\n")
        if not line:
            break
        match = _META_LINE.fullmatch(line)
        if match is None:
            raise CorruptEntry(f"Malformed metadata line: {line[:80]!r}")
        key, value = match.groups()
        meta[key.decode(HEADERS_ENCODING)] = value.decode(HEADERS_ENCODING)
    return meta


def _parse_float(meta: tp.Dict[str, str], key: str) -> tp.Optional[float]:
    if key not in meta:
        return None
    try:
        return float(meta[key])
    except ValueError:
        raise CorruptEntry(f"The {key!r} field is not a number: {meta[key]!r}") from None


def load_entry(fileobj: tp.BinaryIO) -> CacheEntry:
    """
    Read an entry written by `dump_entry`.

    Unknown metadata keys are kept in `CacheEntry.extra`. Entries written
    before status codes were stored default to 200.
    """
    meta = _read_meta(fileobj)

    if URL_KEY not in meta:
        raise CorruptEntry("The entry does not contain the 'Url' field.")

    status_code = 200
    if CODE_KEY in meta:
        try:
            status_code = int(meta[CODE_KEY])
        except ValueError:
            raise CorruptEntry(f"The 'Code' field is not an integer: {meta[CODE_KEY]!r}") from None

    body = b"".join(iter(lambda: fileobj.read(CHUNK_SIZE), b""))

    known = {URL_KEY, ETAG_KEY, RANGE_KEY, DIGEST_KEY, CODE_KEY, LAST_UPDATED_KEY, LAST_MODIFIED_KEY, *CACHED_HEADERS}

    return CacheEntry(
        url=meta[URL_KEY],
        status_code=status_code,
        etag=meta.get(ETAG_KEY),
        range=meta.get(RANGE_KEY, ""),
        digest=meta.get(DIGEST_KEY),
        last_updated_at=_parse_float(meta, LAST_UPDATED_KEY),
        adjusted_last_modified_at=_parse_float(meta, LAST_MODIFIED_KEY),
        headers={name: meta[name] for name in CACHED_HEADERS if name in meta},
        body=body,
        extra={key: value for key, value in meta.items() if key not in known},
    )


def loads_entry(data: bytes) -> CacheEntry:
    return load_entry(io.BytesIO(data))
