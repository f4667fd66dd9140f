"""
Pinata pinning client.

Uploads a set of files as one IPFS directory and returns its content hash.
"""

import json
import mimetypes
from typing import Optional, Sequence

import httpx

from nft_flipper.core.retry import transport_retry
from nft_flipper.errors import PublishError, UpstreamUnavailable
from nft_flipper.models import PinResult


class PinningClient:
    """Client for Pinata's ``pinFileToIPFS`` endpoint."""

    def __init__(
        self,
        jwt: str,
        pinning_url: str,
        timeout: float = 300.0,
        retry_attempts: int = 3,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Initialize the pinning client.

        Args:
            jwt: Pinata JWT used as bearer token
            pinning_url: Full URL of the pinFileToIPFS endpoint
            timeout: Upload timeout in seconds (bundles can be large)
            retry_attempts: Tries per upload for transient network errors
            transport: Optional httpx transport (used by tests)
        """
        if not jwt:
            raise PublishError("Pinning credential not provided. Set PINATA_JWT.")
        self.pinning_url = pinning_url
        self.retry_attempts = retry_attempts
        self._client = httpx.Client(
            timeout=timeout,
            transport=transport,
            headers={"Authorization": f"Bearer {jwt}"},
        )

    def pin_directory(self, name: str, files: Sequence[tuple[str, bytes]]) -> PinResult:
        """
        Pin ``files`` as a directory called ``name``.

        Args:
            name: Directory name; every file is uploaded as ``<name>/<filename>``
            files: (filename, content) pairs

        Returns:
            PinResult with the directory's content hash
        """
        if not files:
            raise PublishError(f"Nothing to pin for {name}")

        parts = [
            (
                "file",
                (
                    f"{name}/{filename}",
                    content,
                    mimetypes.guess_type(filename)[0] or "application/octet-stream",
                ),
            )
            for filename, content in files
        ]
        form = {
            "pinataMetadata": json.dumps({"name": name}),
            "pinataOptions": json.dumps({"cidVersion": 0}),
        }

        try:
            for attempt in transport_retry(self.retry_attempts):
                with attempt:
                    response = self._client.post(self.pinning_url, data=form, files=parts)
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(f"Pinning upload failed: {e}") from e

        if response.status_code == 401:
            raise UpstreamUnavailable("Pinning service rejected the credential (401)")
        if response.status_code == 429:
            raise UpstreamUnavailable("Pinning service rate limit exceeded")
        if not response.is_success:
            raise UpstreamUnavailable(f"Pinning service error {response.status_code}: {response.text}")

        try:
            body = response.json()
        except ValueError as e:
            raise PublishError(f"Pinning service returned invalid JSON: {e}") from e

        content_hash = body.get("IpfsHash") if isinstance(body, dict) else None
        if not content_hash:
            raise PublishError(f"Pinning response has no IpfsHash: {body!r}")

        return PinResult(content_hash=content_hash, name=name, file_count=len(files))

    def close(self):
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
