"""
Publish stage: pin flipped images, then pin metadata rewritten to point at them.

The two phases are order dependent. Metadata can only reference the images'
content hash once the images have been pinned.
"""

import json
import logging
from pathlib import Path
from typing import Callable, Optional, Sequence, Set

from nft_flipper.core.pinning import PinningClient
from nft_flipper.errors import FlipperError, PublishError, StorageIOError
from nft_flipper.models import Category, PinResult, PublishResult
from nft_flipper.storage import IMAGE_EXT, OutputTree, dump_json

logger = logging.getLogger(__name__)

STAGE = "publish"

IMAGES_BUNDLE = "images"
METADATA_BUNDLE = "metadata"

# (path, raw bytes) -> bytes to upload
Preprocess = Callable[[Path, bytes], bytes]


def rewrite_image_reference(
    metadata: dict,
    images_hash: str,
    token_id: int,
    scheme: str = "ipfs://",
    ext: str = IMAGE_EXT,
) -> dict:
    """Return a copy of ``metadata`` whose ``image`` points into the pinned images directory.

    Metadata without an ``image`` key is returned unchanged. Every other key is
    kept as-is and in its original order.
    """
    rewritten = dict(metadata)
    if "image" in rewritten:
        rewritten["image"] = f"{scheme}{images_hash}/{token_id}.{ext}"
    return rewritten


def metadata_rewriter(
    images_hash: str,
    scheme: str = "ipfs://",
    ext: str = IMAGE_EXT,
    pinned_ids: Optional[Set[int]] = None,
) -> Preprocess:
    """Build the preprocess strategy that rewrites each metadata file's image reference.

    When ``pinned_ids`` is given, only tokens whose image is in the pinned
    directory are rewritten.
    """

    def rewrite(path: Path, data: bytes) -> bytes:
        token_id = int(path.stem)
        try:
            metadata = json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise StorageIOError(f"Invalid metadata in {path}: {e}", token_id=token_id) from e
        if not isinstance(metadata, dict):
            raise StorageIOError(f"Metadata in {path} is not a JSON object", token_id=token_id)
        if pinned_ids is not None and token_id not in pinned_ids:
            if "image" in metadata:
                logger.warning("publish: token #%d has no flipped image, keeping its image reference", token_id)
            return dump_json(metadata)
        return dump_json(rewrite_image_reference(metadata, images_hash, token_id, scheme, ext))

    return rewrite


def bundle_and_upload(
    pinner: PinningClient,
    files: Sequence[Path],
    name: str,
    preprocess: Optional[Preprocess] = None,
) -> PinResult:
    """Read ``files``, pass each through ``preprocess`` and pin them as one directory."""
    if not files:
        raise PublishError(f"No files to publish for {name}")

    bundle = []
    for path in files:
        try:
            data = path.read_bytes()
        except OSError as e:
            raise StorageIOError(f"Could not read {path}: {e}") from e
        if preprocess:
            data = preprocess(path, data)
        bundle.append((path.name, data))

    logger.info("publish: uploading %d %s files", len(bundle), name)
    result = pinner.pin_directory(name, bundle)
    logger.info("publish: pinned %s at %s", name, result.content_hash)
    return result


def publish(tree: OutputTree, pinner: PinningClient, scheme: str = "ipfs://") -> PublishResult:
    """
    Pin the flipped tree.

    Phase A pins ``flipped/images``; phase B pins ``flipped/*.json`` with each
    ``image`` field rewritten to ``<scheme><images hash>/<id>.png``.

    Returns:
        PublishResult with both content hashes; also saved to publish.json
    """
    try:
        flipped_images = tree.list_images(Category.FLIPPED)
        image_files = [path for _, path in flipped_images]
        images = bundle_and_upload(pinner, image_files, IMAGES_BUNDLE)

        metadata_files = [path for _, path in tree.list_metadata(Category.FLIPPED)]
        metadata = bundle_and_upload(
            pinner,
            metadata_files,
            METADATA_BUNDLE,
            preprocess=metadata_rewriter(
                images.content_hash,
                scheme,
                pinned_ids={token_id for token_id, _ in flipped_images},
            ),
        )
    except FlipperError as e:
        raise e.at(STAGE)

    result = PublishResult(images=images, metadata=metadata, scheme=scheme)
    tree.save_publish(result)
    logger.info("publish: base URI is %s", result.base_uri)
    return result
