"""
Output tree layout, resume state and atomic file writes.
"""

import json
import logging
import shutil
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Iterator, Optional, Union

from nft_flipper.errors import StorageIOError
from nft_flipper.models import Category, DirectorySnapshot, PublishResult

logger = logging.getLogger(__name__)

METADATA_EXT = "json"
IMAGE_EXT = "png"
IMAGES_DIR = "images"
TEMP_SUFFIX = ".tmp"

CategoryLike = Union[Category, str]


def _category(category: CategoryLike) -> Category:
    if isinstance(category, Category):
        return category
    return Category.from_string(category)


def parse_token_id(filename: str) -> Optional[int]:
    """Return the token id of a metadata filename, or None if it is not one."""
    suffix = f".{METADATA_EXT}"
    if not filename.endswith(suffix):
        return None
    stem = filename[: -len(suffix)]
    if not (stem.isascii() and stem.isdigit()):
        return None
    return int(stem)


def snapshot(root: Path, category: CategoryLike) -> DirectorySnapshot:
    """Compute the resume state of ``root/<category>``.

    Creates the category and its images directory when they don't exist yet.
    Otherwise the highest token id is the largest integer filename ending in
    ``.json`` directly under the category directory; anything else is ignored.
    """
    category = _category(category)
    folder = root / category.value
    images_folder = folder / IMAGES_DIR

    if not images_folder.exists():
        try:
            images_folder.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageIOError(f"Could not create {images_folder}: {e}") from e
        logger.info("Initializing new %s metadata + images folder", category.value)
        return DirectorySnapshot(root=folder)

    try:
        names = [entry.name for entry in folder.iterdir() if entry.is_file()]
    except OSError as e:
        raise StorageIOError(f"Could not list {folder}: {e}") from e

    token_ids = [tid for tid in (parse_token_id(name) for name in names) if tid is not None]
    if not token_ids:
        logger.info("%s metadata folder exists but is empty", category.value)
        return DirectorySnapshot(root=folder)

    highest = max(token_ids)
    logger.info("%s metadata folder exists till token #%d", category.value, highest)
    return DirectorySnapshot(root=folder, highest_persisted_id=highest)


def sync(root: Path, category: CategoryLike) -> int:
    """Highest persisted token id under ``root/<category>``, 0 when there is none."""
    return snapshot(root, category).watermark


@contextmanager
def atomic_writer(path: Path) -> Iterator[IO[bytes]]:
    """Yield a binary handle whose contents replace ``path`` only on clean exit."""
    temp_path = path.with_name(f".{path.name}{TEMP_SUFFIX}")
    try:
        handle = open(temp_path, "wb")
    except OSError as e:
        raise StorageIOError(f"Could not open {temp_path}: {e}") from e

    try:
        with handle:
            yield handle
        temp_path.replace(path)
    except OSError as e:
        temp_path.unlink(missing_ok=True)
        raise StorageIOError(f"Could not write {path}: {e}") from e
    except BaseException:
        temp_path.unlink(missing_ok=True)
        raise


def atomic_write_bytes(path: Path, data: bytes) -> None:
    with atomic_writer(path) as f:
        f.write(data)


def dump_json(data: dict) -> bytes:
    """Serialize metadata the same way every time."""
    return json.dumps(data, ensure_ascii=False).encode("utf-8")


def atomic_write_json(path: Path, data: dict) -> None:
    atomic_write_bytes(path, dump_json(data))


def atomic_copy(src: Path, dest: Path) -> None:
    """Copy ``src`` to ``dest`` byte for byte, atomically."""
    try:
        with open(src, "rb") as source, atomic_writer(dest) as target:
            shutil.copyfileobj(source, target)
    except FileNotFoundError as e:
        raise StorageIOError(f"Missing source file {src}") from e
    except OSError as e:
        raise StorageIOError(f"Could not copy {src} to {dest}: {e}") from e


def read_json(path: Path) -> dict:
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise StorageIOError(f"Could not read {path}: {e}") from e


class OutputTree:
    """Paths for one contract's output directory.

    Layout::

        <output_root>/<contract>/original/<id>.json
        <output_root>/<contract>/original/images/<id>.png
        <output_root>/<contract>/flipped/...      (same shape)
        <output_root>/<contract>/publish.json
    """

    SKIPPED_FILE = "skipped.jsonl"
    PUBLISH_FILE = "publish.json"

    def __init__(self, output_root: Path, contract_address: str):
        self.output_root = Path(output_root)
        self.contract_address = contract_address
        self.root = self.output_root / contract_address

    def category_dir(self, category: CategoryLike) -> Path:
        return self.root / _category(category).value

    def images_dir(self, category: CategoryLike) -> Path:
        return self.category_dir(category) / IMAGES_DIR

    def metadata_path(self, category: CategoryLike, token_id: int) -> Path:
        return self.category_dir(category) / f"{token_id}.{METADATA_EXT}"

    def image_path(self, category: CategoryLike, token_id: int) -> Path:
        return self.images_dir(category) / f"{token_id}.{IMAGE_EXT}"

    @property
    def skipped_path(self) -> Path:
        return self.category_dir(Category.ORIGINAL) / self.SKIPPED_FILE

    @property
    def publish_path(self) -> Path:
        return self.root / self.PUBLISH_FILE

    def snapshot(self, category: CategoryLike) -> DirectorySnapshot:
        return snapshot(self.root, category)

    def sync(self, category: CategoryLike) -> int:
        return sync(self.root, category)

    def peek(self, category: CategoryLike) -> DirectorySnapshot:
        """Like snapshot() but never creates directories."""
        category = _category(category)
        folder = self.category_dir(category)
        if not self.images_dir(category).exists():
            return DirectorySnapshot(root=folder)
        return snapshot(self.root, category)

    def list_metadata(self, category: CategoryLike) -> list[tuple[int, Path]]:
        """All metadata files of a category, sorted by token id."""
        folder = self.category_dir(category)
        if not folder.exists():
            return []
        found = []
        for entry in folder.iterdir():
            token_id = parse_token_id(entry.name)
            if token_id is not None and entry.is_file():
                found.append((token_id, entry))
        return sorted(found)

    def list_images(self, category: CategoryLike) -> list[tuple[int, Path]]:
        """All image files of a category, sorted by token id."""
        folder = self.images_dir(category)
        if not folder.exists():
            return []
        suffix = f".{IMAGE_EXT}"
        found = []
        for entry in folder.iterdir():
            if entry.is_file() and entry.name.endswith(suffix):
                stem = entry.name[: -len(suffix)]
                if stem.isascii() and stem.isdigit():
                    found.append((int(stem), entry))
        return sorted(found)

    def record_skipped(self, token_id: int, reason: str) -> None:
        """Append a skipped token to skipped.jsonl."""
        try:
            with open(self.skipped_path, "a", encoding="utf-8") as f:
                f.write(json.dumps({"token_id": token_id, "reason": reason}) + "\n")
        except OSError as e:
            raise StorageIOError(f"Could not write {self.skipped_path}: {e}") from e

    def load_skipped(self) -> dict[int, str]:
        """Skipped tokens recorded by earlier runs (latest reason wins)."""
        if not self.skipped_path.exists():
            return {}
        skipped = {}
        with open(self.skipped_path, encoding="utf-8") as f:
            for line in f:
                if not line.strip():
                    continue
                try:
                    entry = json.loads(line)
                except json.JSONDecodeError:
                    continue
                skipped[int(entry["token_id"])] = entry.get("reason", "")
        return skipped

    def save_publish(self, result: PublishResult) -> None:
        data = json.dumps(result.to_dict(), indent=2).encode("utf-8")
        atomic_write_bytes(self.publish_path, data)

    def load_publish(self) -> Optional[PublishResult]:
        if not self.publish_path.exists():
            return None
        return PublishResult.from_dict(read_json(self.publish_path))
