"""
Original fetch stage: mirror token metadata and images into ``original/``.
"""

import logging
from typing import Callable, Optional

from nft_flipper.core.contract import ContractClient
from nft_flipper.core.gateway import HttpFetcher
from nft_flipper.errors import StorageIOError, UnsupportedLocatorError, UpstreamUnavailable
from nft_flipper.locator import resolve, to_url
from nft_flipper.models import Category, Collection, FetchReport
from nft_flipper.storage import OutputTree, atomic_write_json

logger = logging.getLogger(__name__)

STAGE = "fetch"

ItemCallback = Callable[[int, int], None]


def fetch_token(
    token_id: int,
    contract: ContractClient,
    fetcher: HttpFetcher,
    tree: OutputTree,
    gateway: str,
) -> None:
    """Fetch one token's metadata (and image, if any) into the original tree.

    The image is written before the metadata file so that a metadata file on
    disk always means the whole token is present.
    """
    uri = contract.token_uri(token_id)
    metadata_url = to_url(resolve(uri), gateway)
    metadata = fetcher.get_json(metadata_url)

    image = metadata.get("image")
    if image:
        image_url = to_url(resolve(str(image)), gateway)
        fetcher.download(image_url, tree.image_path(Category.ORIGINAL, token_id))

    atomic_write_json(tree.metadata_path(Category.ORIGINAL, token_id), metadata)


def fetch_originals(
    collection: Collection,
    contract: ContractClient,
    fetcher: HttpFetcher,
    tree: OutputTree,
    gateway: str,
    skip_failed: bool = False,
    on_item: Optional[ItemCallback] = None,
) -> FetchReport:
    """
    Fetch every token from the resume point up to the collection size.

    Args:
        collection: Collection details (size bounds the walk)
        contract: Contract client for token URIs
        fetcher: HTTP client for metadata and images
        tree: Output tree for the contract
        gateway: IPFS gateway base URL
        skip_failed: Record per-token upstream/locator failures and keep going
        on_item: Optional callback called with (token_id, collection size)

    Returns:
        FetchReport listing fetched and skipped tokens
    """
    start_id = tree.snapshot(Category.ORIGINAL).next_id
    report = FetchReport(start_id=start_id, end_id=collection.size)

    if report.is_noop:
        logger.info("Original metadata already synced (%d tokens)", collection.size)
        return report

    token_id = start_id
    while token_id < collection.size:
        try:
            fetch_token(token_id, contract, fetcher, tree, gateway)
        except (UpstreamUnavailable, UnsupportedLocatorError) as e:
            if not skip_failed:
                raise e.at(STAGE, token_id)
            reason = e.message
            logger.warning("fetch: skipping token #%d: %s", token_id, reason)
            report.skipped[token_id] = reason
            tree.record_skipped(token_id, reason)
        except StorageIOError as e:
            raise e.at(STAGE, token_id)
        else:
            report.fetched.append(token_id)
            logger.info("fetch: retrieved token #%d", token_id)

        if on_item:
            on_item(token_id, collection.size)
        token_id += 1

    logger.info(
        "Finished scraping original metadata (%d fetched, %d skipped)",
        len(report.fetched),
        len(report.skipped),
    )
    return report
