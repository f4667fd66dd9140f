"""
Full pipeline: inspect, fetch originals, flip, confirm, publish.
"""

import logging
from typing import Callable, Optional

from nft_flipper.config import Config
from nft_flipper.core import ContractClient, HttpFetcher, PinningClient
from nft_flipper.errors import Aborted
from nft_flipper.models import Category, PipelineResult
from nft_flipper.stages import fetch_originals, flip_originals, inspect_collection, publish
from nft_flipper.storage import OutputTree

logger = logging.getLogger(__name__)

CONFIRM_PROMPT = "You can modify the flipped metadata now. Continue with publishing?"

Confirm = Callable[[str], bool]
ItemCallback = Callable[[str, int, int], None]


def build_tree(config: Config) -> OutputTree:
    return OutputTree(config.output_root, config.endpoints.contract_address)


def build_contract(config: Config) -> ContractClient:
    return ContractClient(
        config.endpoints.rpc_url,
        config.endpoints.contract_address,
        timeout=config.defaults.request_timeout,
        retry_attempts=config.defaults.retry_attempts,
    )


def build_fetcher(config: Config) -> HttpFetcher:
    return HttpFetcher(
        timeout=config.defaults.request_timeout,
        retry_attempts=config.defaults.retry_attempts,
    )


def build_pinner(config: Config) -> Optional[PinningClient]:
    """Pinning client, or None when no pinning credential is configured."""
    if not config.has_pinning:
        return None
    return PinningClient(
        config.endpoints.pinata_jwt,
        config.endpoints.pinning_url,
        retry_attempts=config.defaults.retry_attempts,
    )


def run_pipeline(
    config: Config,
    tree: OutputTree,
    contract: ContractClient,
    fetcher: HttpFetcher,
    pinner: Optional[PinningClient],
    confirm: Confirm,
    skip_failed: Optional[bool] = None,
    on_item: Optional[ItemCallback] = None,
) -> PipelineResult:
    """
    Run every stage in order.

    Args:
        config: Loaded configuration (must pass Config.require())
        tree: Output tree for the contract
        contract: Contract client
        fetcher: HTTP client for metadata and images
        pinner: Pinning client; publish is skipped when None
        confirm: Gate between flip and publish; returning False aborts
        skip_failed: Overrides config.defaults.skip_failed when given
        on_item: Optional callback called with (stage, token_id, bound)

    Returns:
        PipelineResult with every stage's report

    Raises:
        Aborted: if the gate declines
    """
    if skip_failed is None:
        skip_failed = config.defaults.skip_failed

    def stage_callback(stage: str):
        if on_item is None:
            return None
        return lambda token_id, bound: on_item(stage, token_id, bound)

    collection = inspect_collection(contract)

    fetch_report = fetch_originals(
        collection,
        contract,
        fetcher,
        tree,
        config.endpoints.ipfs_gateway,
        skip_failed=skip_failed,
        on_item=stage_callback("fetch"),
    )

    original = tree.snapshot(Category.ORIGINAL)
    transform_report = flip_originals(
        tree,
        original.highest_persisted_id,
        on_item=stage_callback("flip"),
    )

    result = PipelineResult(collection=collection, fetch=fetch_report, transform=transform_report)

    if pinner is None:
        logger.info("No pinning credential configured, skipping publish")
        return result

    if not confirm(CONFIRM_PROMPT):
        raise Aborted("Publishing declined", stage="publish")

    result.publish = publish(tree, pinner, config.defaults.reference_scheme)
    return result
