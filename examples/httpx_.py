#!/usr/bin/env uv run
# /// script
# requires-python = ">=3.10"
# dependencies = [
#     "transcache[httpx]",
# ]
#
# [tool.uv.sources]
# transcache = { path = "../", editable = true }
# ///

import logging
from typing import cast

from transcache import CacheOptions, ResponseMetadata
from transcache.httpx import SyncCacheClient

logging.basicConfig(level=logging.INFO, format="%(name)s: %(message)s")

options = CacheOptions(base_path=".transcache", no_update=15 * 60, verbose=True)


def fetch_and_print(client: SyncCacheClient, url: str) -> None:
    print(f"\n➡ Sending request to {url}...")
    response = client.get(url)
    meta = cast(ResponseMetadata, response.extensions)

    print(f"🚀 Was Stored: {meta['transcache_stored']}")
    print(f"🔄 From Cache: {meta['transcache_from_cache']}")
    print(f"📍 Revalidated: {meta['transcache_revalidated']}")
    print(f"🟰 Unchanged: {response.headers.get('x-content-unchanged', '0')}")


if __name__ == "__main__":
    url = "https://www.python.org/"
    with SyncCacheClient(options=options) as client:
        fetch_and_print(client, url)
        fetch_and_print(client, url)
