#!/usr/bin/env uv run
# /// script
# requires-python = ">=3.10"
# dependencies = [
#     "transcache[requests]",
# ]
#
# [tool.uv.sources]
# transcache = { path = "../", editable = true }
# ///

import requests

from transcache import CacheOptions
from transcache.requests import CacheAdapter

session = requests.Session()

adapter = CacheAdapter(options=CacheOptions(base_path=".transcache", max_age_hours=24))

session.mount("http://", adapter)
session.mount("https://", adapter)


def fetch_and_print(url: str) -> None:
    print(f"\n➡ Sending request to {url}...")
    response = session.get(url)

    print(f"🚀 Was Stored: {response.headers['x-transcache-stored']}")
    print(f"🔄 From Cache: {response.headers['x-transcache-from-cache']}")
    print(f"📍 Revalidated: {response.headers['x-transcache-revalidated']}")
    print(f"📦 X-Cached: {response.headers.get('x-cached', '0')}")


if __name__ == "__main__":
    url = "https://www.python.org/"
    try:
        fetch_and_print(url)
        fetch_and_print(url)
    finally:
        session.close()
