"""
Pipeline stages for NFT Flipper.
"""

from .inspector import inspect_collection
from .fetch import fetch_originals
from .transform import flip_originals
from .publish import publish

__all__ = ["inspect_collection", "fetch_originals", "flip_originals", "publish"]
