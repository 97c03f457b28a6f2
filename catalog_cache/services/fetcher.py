"""
Download brotli-compressed catalogs from the NixOS release servers.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import BinaryIO

import brotli
import httpx

from catalog_cache.core.errors import DownloadError, NetworkError, ParseError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 4096


def decompress_stream(src: BinaryIO, dst: BinaryIO, chunk_size: int = CHUNK_SIZE) -> int:
    """
    Decompress a brotli stream from ``src`` into ``dst`` in bounded chunks.

    Returns the number of decompressed bytes written.
    """
    decompressor = brotli.Decompressor()
    written = 0
    while True:
        try:
            block = src.read(chunk_size)
        except InterruptedError:
            continue
        if not block:
            break
        try:
            data = decompressor.process(block)
        except brotli.error as e:
            raise ParseError(f"Corrupt brotli stream: {e}") from e
        dst.write(data)
        written += len(data)

    if not decompressor.is_finished():
        raise ParseError("Truncated brotli stream")
    return written


class CatalogFetcher:
    """
    Fetch a compressed catalog and store it decompressed.

    The body is staged next to the destination and only moved into place once
    the whole brotli stream has been decoded, so a failed download leaves the
    previous catalog untouched.
    """

    def __init__(self, client: httpx.Client, chunk_size: int = CHUNK_SIZE):
        self.client = client
        self.chunk_size = chunk_size

    def fetch(self, url: str, destination: Path) -> Path:
        destination.parent.mkdir(parents=True, exist_ok=True)
        compressed_tmp = destination.with_name(f".{destination.name}.br.tmp")
        output_tmp = destination.with_name(f".{destination.name}.tmp")

        logger.debug(f"Downloading {url}")
        try:
            try:
                with self.client.stream("GET", url) as response:
                    if not response.is_success:
                        logger.error(f"Failed to download {url}: HTTP {response.status_code}")
                        raise DownloadError(url, response.status_code)
                    with compressed_tmp.open("wb") as f:
                        for chunk in response.iter_raw(self.chunk_size):
                            f.write(chunk)
            except httpx.HTTPError as e:
                raise NetworkError(f"Failed to download {url}: {e}") from e

            with compressed_tmp.open("rb") as src, output_tmp.open("wb") as dst:
                size = decompress_stream(src, dst, self.chunk_size)
            os.replace(output_tmp, destination)
        finally:
            compressed_tmp.unlink(missing_ok=True)
            output_tmp.unlink(missing_ok=True)

        logger.debug(f"Finished downloading {url} -> {destination} ({size} bytes)")
        return destination
