"""
HTTP fetch client for token metadata and images.
"""

import logging
from pathlib import Path
from typing import Optional

import httpx

from nft_flipper.core.retry import transport_retry
from nft_flipper.errors import UpstreamUnavailable
from nft_flipper.storage import atomic_writer

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


class HttpFetcher:
    """Fetches JSON documents and streams binary files over HTTP(S)."""

    def __init__(
        self,
        timeout: float = 30.0,
        retry_attempts: int = 3,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.retry_attempts = retry_attempts
        self._client = httpx.Client(timeout=timeout, follow_redirects=True, transport=transport)

    def get_json(self, url: str) -> dict:
        """GET ``url`` and return its JSON object body."""
        try:
            for attempt in transport_retry(self.retry_attempts):
                with attempt:
                    response = self._client.get(url)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(f"GET {url} failed: {e}") from e
        except ValueError as e:
            raise UpstreamUnavailable(f"GET {url} returned invalid JSON: {e}") from e

        if not isinstance(data, dict):
            raise UpstreamUnavailable(f"GET {url} returned {type(data).__name__}, expected a JSON object")
        return data

    def download(self, url: str, output_path: Path) -> int:
        """Stream ``url`` to ``output_path`` atomically. Returns bytes written."""
        try:
            for attempt in transport_retry(self.retry_attempts):
                with attempt:
                    written = self._stream_to(url, output_path)
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(f"GET {url} failed: {e}") from e

        logger.debug("Saved %s (%d bytes) to %s", url, written, output_path)
        return written

    def _stream_to(self, url: str, output_path: Path) -> int:
        written = 0
        with self._client.stream("GET", url) as response:
            response.raise_for_status()
            with atomic_writer(output_path) as f:
                for chunk in response.iter_bytes(CHUNK_SIZE):
                    f.write(chunk)
                    written += len(chunk)
        return written

    def close(self):
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
