"""
ERC-721 contract client over JSON-RPC.

Only three read-only calls are needed (name, totalSupply, tokenURI), so they are
issued as raw ``eth_call`` requests with precomputed function selectors and their
ABI-encoded results are decoded here.
"""

import itertools
from typing import Optional

import httpx

from nft_flipper.core.retry import transport_retry
from nft_flipper.errors import UpstreamUnavailable

# keccak256 selectors of the ERC-721 functions used
SELECTOR_NAME = "0x06fdde03"  # name()
SELECTOR_TOTAL_SUPPLY = "0x18160ddd"  # totalSupply()
SELECTOR_TOKEN_URI = "0xc87b56dd"  # tokenURI(uint256)

WORD = 32


def encode_uint256(value: int) -> str:
    if value < 0 or value >= 2**256:
        raise ValueError(f"Value out of uint256 range: {value}")
    return f"{value:064x}"


def _result_bytes(result: str) -> bytes:
    if not isinstance(result, str) or not result.startswith("0x"):
        raise UpstreamUnavailable(f"Malformed eth_call result: {result!r}")
    try:
        return bytes.fromhex(result[2:])
    except ValueError as e:
        raise UpstreamUnavailable(f"Malformed eth_call result: {result!r}") from e


def decode_uint256(result: str) -> int:
    data = _result_bytes(result)
    if len(data) < WORD:
        raise UpstreamUnavailable("Empty eth_call result (is the address a contract?)")
    return int.from_bytes(data[:WORD], "big")


def decode_string(result: str) -> str:
    """Decode a single ABI-encoded dynamic ``string`` return value."""
    data = _result_bytes(result)
    if len(data) < 2 * WORD:
        raise UpstreamUnavailable("Empty eth_call result (is the address a contract?)")

    offset = int.from_bytes(data[:WORD], "big")
    if offset + WORD > len(data):
        raise UpstreamUnavailable("ABI string offset out of range")
    length = int.from_bytes(data[offset : offset + WORD], "big")
    start = offset + WORD
    if start + length > len(data):
        raise UpstreamUnavailable("ABI string length out of range")

    try:
        return data[start : start + length].decode("utf-8")
    except UnicodeDecodeError as e:
        raise UpstreamUnavailable(f"ABI string is not valid UTF-8: {e}") from e


class ContractClient:
    """Read-only client for an ERC-721 collection contract."""

    def __init__(
        self,
        rpc_url: str,
        contract_address: str,
        timeout: float = 30.0,
        retry_attempts: int = 3,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Initialize the contract client.

        Args:
            rpc_url: JSON-RPC endpoint of an Ethereum node
            contract_address: Address of the ERC-721 contract
            timeout: Per-request timeout in seconds
            retry_attempts: Tries per call for transient network errors
            transport: Optional httpx transport (used by tests)
        """
        self.rpc_url = rpc_url
        self.address = contract_address
        self.retry_attempts = retry_attempts
        self._ids = itertools.count(1)
        self._client = httpx.Client(timeout=timeout, transport=transport)

    def _call(self, data: str) -> str:
        """Run eth_call against the contract and return the raw hex result."""
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": "eth_call",
            "params": [{"to": self.address, "data": data}, "latest"],
        }

        try:
            for attempt in transport_retry(self.retry_attempts):
                with attempt:
                    response = self._client.post(self.rpc_url, json=payload)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(f"RPC request failed: {e}") from e
        except ValueError as e:
            raise UpstreamUnavailable(f"RPC returned invalid JSON: {e}") from e

        if not isinstance(body, dict):
            raise UpstreamUnavailable(f"Unexpected RPC response: {body!r}")

        if body.get("error"):
            error = body["error"]
            message = error.get("message", error) if isinstance(error, dict) else error
            raise UpstreamUnavailable(f"RPC error: {message}")

        if "result" not in body:
            raise UpstreamUnavailable("RPC response has no result")

        return body["result"]

    def name(self) -> str:
        return decode_string(self._call(SELECTOR_NAME))

    def total_supply(self) -> int:
        return decode_uint256(self._call(SELECTOR_TOTAL_SUPPLY))

    def token_uri(self, token_id: int) -> str:
        return decode_string(self._call(SELECTOR_TOKEN_URI + encode_uint256(token_id)))

    def close(self):
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
