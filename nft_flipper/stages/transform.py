"""
Transform stage: copy metadata and mirror images from ``original/`` into ``flipped/``.
"""

import logging
from typing import Callable, Optional

from nft_flipper.errors import StorageIOError
from nft_flipper.imaging import flip_file
from nft_flipper.models import Category, TransformReport
from nft_flipper.storage import OutputTree, atomic_copy, read_json

logger = logging.getLogger(__name__)

STAGE = "flip"

ItemCallback = Callable[[int, int], None]


def flip_token(token_id: int, tree: OutputTree) -> bool:
    """Flip one token.

    Returns False if the token is incomplete in the original tree: its metadata
    is absent, or it names an image that was never saved.
    """
    src_metadata = tree.metadata_path(Category.ORIGINAL, token_id)
    if not src_metadata.exists():
        return False

    src_image = tree.image_path(Category.ORIGINAL, token_id)
    if src_image.exists():
        flip_file(src_image, tree.image_path(Category.FLIPPED, token_id))
    else:
        metadata = read_json(src_metadata)
        if isinstance(metadata, dict) and metadata.get("image"):
            return False

    atomic_copy(src_metadata, tree.metadata_path(Category.FLIPPED, token_id))
    return True


def flip_originals(
    tree: OutputTree,
    original_watermark: Optional[int] = None,
    on_item: Optional[ItemCallback] = None,
) -> TransformReport:
    """
    Flip every token from the flipped resume point up to the original watermark.

    Args:
        tree: Output tree for the contract
        original_watermark: Highest token id completed in the original tree; read
            from disk when not given. None with an empty original tree means
            there is nothing to flip.
        on_item: Optional callback called with (token_id, original watermark)

    Returns:
        TransformReport listing flipped tokens and ids absent from the original tree
    """
    if original_watermark is None:
        original_watermark = tree.snapshot(Category.ORIGINAL).highest_persisted_id
    last_id = -1 if original_watermark is None else original_watermark

    start_id = tree.snapshot(Category.FLIPPED).next_id
    report = TransformReport(start_id=start_id, end_id=last_id)

    cursor = start_id
    while cursor <= last_id:
        try:
            flipped = flip_token(cursor, tree)
        except StorageIOError as e:
            raise e.at(STAGE, cursor)

        if flipped:
            report.flipped.append(cursor)
            logger.info("flip: flipped token #%d", cursor)
        else:
            report.missing.append(cursor)
            logger.warning("flip: token #%d missing from original tree, skipping", cursor)

        if on_item:
            on_item(cursor, last_id)
        cursor += 1

    logger.info("Finished generating flipped metadata (%d flipped)", len(report.flipped))
    return report
