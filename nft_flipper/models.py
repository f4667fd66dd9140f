"""
Data models for NFT Flipper.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional


class LocatorKind(Enum):
    """Where a locator points."""

    CONTENT_ADDRESSED = "ipfs"
    LOCATION_ADDRESSED = "https"
    UNRECOGNIZED = "unrecognized"


class Category(Enum):
    """Output tree categories."""

    ORIGINAL = "original"
    FLIPPED = "flipped"

    @classmethod
    def from_string(cls, value: str) -> "Category":
        """Parse a category name, case-insensitive."""
        normalized = value.strip().lower()
        for category in cls:
            if category.value == normalized:
                return category
        raise ValueError(f"Unknown category: {value}. Use 'original' or 'flipped'.")


@dataclass(frozen=True)
class Collection:
    """Collection details read once from the contract."""

    name: str
    size: int

    def to_dict(self) -> dict:
        return {"name": self.name, "size": self.size}


@dataclass(frozen=True)
class Locator:
    """A classified URI: kind plus normalized value."""

    kind: LocatorKind
    value: str

    @property
    def is_content_addressed(self) -> bool:
        return self.kind is LocatorKind.CONTENT_ADDRESSED

    @property
    def is_location_addressed(self) -> bool:
        return self.kind is LocatorKind.LOCATION_ADDRESSED

    @property
    def is_recognized(self) -> bool:
        return self.kind is not LocatorKind.UNRECOGNIZED


@dataclass(frozen=True)
class DirectorySnapshot:
    """Resume state of one category directory."""

    root: Path
    highest_persisted_id: Optional[int] = None

    @property
    def is_empty(self) -> bool:
        return self.highest_persisted_id is None

    @property
    def watermark(self) -> int:
        """Highest persisted id, 0 when nothing is persisted."""
        return self.highest_persisted_id or 0

    @property
    def next_id(self) -> int:
        """First id that still needs processing."""
        if self.highest_persisted_id is None:
            return 0
        return self.highest_persisted_id + 1


@dataclass(frozen=True)
class PinResult:
    """Result of one pinning upload."""

    content_hash: str
    name: str = ""
    file_count: int = 0

    def reference(self, token_id: int, ext: str, scheme: str = "ipfs://") -> str:
        """Build the reference to one file inside the pinned directory."""
        return f"{scheme}{self.content_hash}/{token_id}.{ext}"

    def to_dict(self) -> dict:
        return {
            "content_hash": self.content_hash,
            "name": self.name,
            "file_count": self.file_count,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PinResult":
        return cls(
            content_hash=data["content_hash"],
            name=data.get("name", ""),
            file_count=data.get("file_count", 0),
        )


@dataclass
class FetchReport:
    """Outcome of an original fetch run."""

    start_id: int
    end_id: int  # exclusive
    fetched: list[int] = field(default_factory=list)
    skipped: dict[int, str] = field(default_factory=dict)

    @property
    def last_completed_id(self) -> Optional[int]:
        return self.fetched[-1] if self.fetched else None

    @property
    def skipped_ids(self) -> list[int]:
        return sorted(self.skipped)

    @property
    def is_noop(self) -> bool:
        return self.start_id >= self.end_id


@dataclass
class TransformReport:
    """Outcome of a flip run."""

    start_id: int
    end_id: int  # inclusive original watermark, -1 when the original tree is empty
    flipped: list[int] = field(default_factory=list)
    missing: list[int] = field(default_factory=list)

    @property
    def last_flipped_id(self) -> Optional[int]:
        return self.flipped[-1] if self.flipped else None


@dataclass(frozen=True)
class PublishResult:
    """Both pinning phases of a publish run."""

    images: PinResult
    metadata: PinResult
    scheme: str = "ipfs://"
    published_at: datetime = field(default_factory=datetime.now)

    @property
    def base_uri(self) -> str:
        """Value to use as the flipped collection's base token URI."""
        return f"{self.scheme}{self.metadata.content_hash}/"

    def to_dict(self) -> dict:
        return {
            "images": self.images.to_dict(),
            "metadata": self.metadata.to_dict(),
            "scheme": self.scheme,
            "base_uri": self.base_uri,
            "published_at": self.published_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PublishResult":
        return cls(
            images=PinResult.from_dict(data["images"]),
            metadata=PinResult.from_dict(data["metadata"]),
            scheme=data.get("scheme", "ipfs://"),
            published_at=datetime.fromisoformat(data["published_at"]),
        )


@dataclass
class PipelineResult:
    """Everything a full run produced."""

    collection: Collection
    fetch: FetchReport
    transform: TransformReport
    publish: Optional[PublishResult] = None
