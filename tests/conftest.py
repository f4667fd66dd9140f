"""Shared fixtures for NFT Flipper tests."""

import io
import json

import httpx
import pytest
from PIL import Image

from nft_flipper.core.gateway import HttpFetcher
from nft_flipper.errors import UpstreamUnavailable
from nft_flipper.models import PinResult
from nft_flipper.storage import OutputTree

CONTRACT = "0x5180db8F5c931aaE63c74266b211F580155ecac8"
GATEWAY = "https://gateway.test/ipfs/"
METADATA_CID = "QmYwAPJzv5CZsnA625s3Xf2nemtYgPpHdWEz79ojWnPbdG"
IMAGES_CID = "QmXoypizjW3WknFiJnKLwHCnL72vedxjQkDDP1mXWo6uco"

# hashes returned by FakePinner
IMAGES_HASH = "QmXoypizjW3WknFiJnKLwHCnL72vedxjQkDDP1mXWo6uco"
METADATA_HASH = "QmbWqxBEKC3P8tqsKc98xmWNzrzDtRLMiMPL8wBuTGsMnR"


def make_png(width: int = 4, height: int = 3, seed: int = 0) -> bytes:
    """Small RGB PNG where every pixel differs, so a mirror is detectable."""
    image = Image.new("RGB", (width, height))
    image.putdata([
        ((x * 40 + seed) % 256, (y * 60 + seed) % 256, (x * y + seed) % 256)
        for y in range(height)
        for x in range(width)
    ])
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


class FakeContract:
    """Stands in for ContractClient."""

    def __init__(self, name: str = "Test Punks", uris: dict = None, failing: set = None):
        self.collection_name = name
        self.uris = uris or {}
        self.failing = failing or set()
        self.calls = []

    def name(self) -> str:
        self.calls.append(("name",))
        return self.collection_name

    def total_supply(self) -> int:
        self.calls.append(("total_supply",))
        return len(self.uris)

    def token_uri(self, token_id: int) -> str:
        self.calls.append(("token_uri", token_id))
        if token_id in self.failing:
            raise UpstreamUnavailable("execution reverted")
        return self.uris[token_id]

    def close(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class FakePinner:
    """Records every bundle and returns a fixed hash per bundle name."""

    def __init__(self, hashes: dict = None, fail_on: str = None):
        self.hashes = hashes or {"images": IMAGES_HASH, "metadata": METADATA_HASH}
        self.fail_on = fail_on
        self.bundles = []

    def pin_directory(self, name, files):
        if name == self.fail_on:
            raise UpstreamUnavailable("Pinning service rate limit exceeded")
        self.bundles.append((name, list(files)))
        return PinResult(self.hashes[name], name, len(files))

    def bundle(self, name) -> dict:
        for bundle_name, files in self.bundles:
            if bundle_name == name:
                return dict(files)
        raise KeyError(name)

    def close(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class FakeWeb:
    """URL -> response table served through httpx.MockTransport."""

    def __init__(self):
        self.routes = {}
        self.requests = []

    def add_json(self, url: str, data) -> None:
        self.routes[url] = (200, json.dumps(data).encode(), "application/json")

    def add_bytes(self, url: str, data: bytes, content_type: str = "image/png") -> None:
        self.routes[url] = (200, data, content_type)

    def add_status(self, url: str, status: int) -> None:
        self.routes[url] = (status, b"", "text/plain")

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append(url)
        if url not in self.routes:
            return httpx.Response(404, content=b"not found")
        status, content, content_type = self.routes[url]
        return httpx.Response(status, content=content, headers={"Content-Type": content_type})

    def fetcher(self) -> HttpFetcher:
        return HttpFetcher(retry_attempts=1, transport=httpx.MockTransport(self.handler))


def collection_on_web(web: FakeWeb, count: int, with_images: bool = True) -> dict:
    """Register ``count`` tokens on the fake web and return their token URIs."""
    uris = {}
    for token_id in range(count):
        uris[token_id] = f"ipfs://{METADATA_CID}/{token_id}"
        metadata = {"name": f"Token #{token_id}", "attributes": [{"trait_type": "id", "value": token_id}]}
        if with_images:
            metadata["image"] = f"ipfs://{IMAGES_CID}/{token_id}.png"
            web.add_bytes(f"{GATEWAY}{IMAGES_CID}/{token_id}.png", make_png(seed=token_id))
        web.add_json(f"{GATEWAY}{METADATA_CID}/{token_id}", metadata)
    return uris


@pytest.fixture
def tree(tmp_path):
    return OutputTree(tmp_path / "output", CONTRACT)


@pytest.fixture
def web():
    return FakeWeb()
