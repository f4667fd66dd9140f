"""
Upstream clients for NFT Flipper.
"""

from .contract import ContractClient
from .gateway import HttpFetcher
from .pinning import PinningClient

__all__ = ["ContractClient", "HttpFetcher", "PinningClient"]
