"""
NFT Flipper - mirror an NFT collection, flip its images and republish it to IPFS.

Every stage resumes from what is already on disk, so a run can be interrupted at
any point and started again.
"""

from pathlib import Path

# Read version from VERSION file (single source of truth)
_version_file = Path(__file__).parent.parent / "VERSION"
if _version_file.exists():
    __version__ = _version_file.read_text().strip()
else:
    __version__ = "0.1.0"  # Fallback for development

from nft_flipper.models import Collection, Locator, LocatorKind, DirectorySnapshot, PinResult
from nft_flipper.storage import OutputTree
from nft_flipper.config import Config

__all__ = [
    "__version__",
    "Collection",
    "Locator",
    "LocatorKind",
    "DirectorySnapshot",
    "PinResult",
    "OutputTree",
    "Config",
]
