"""
Collection inspector.
"""

import logging

from nft_flipper.core.contract import ContractClient
from nft_flipper.errors import UpstreamUnavailable
from nft_flipper.models import Collection

logger = logging.getLogger(__name__)

STAGE = "inspect"


def inspect_collection(contract: ContractClient) -> Collection:
    """Read the collection's name and total supply. Fails with UpstreamUnavailable."""
    try:
        name = contract.name()
        size = contract.total_supply()
    except UpstreamUnavailable as e:
        raise e.at(STAGE)

    if size < 0:
        raise UpstreamUnavailable(f"Negative total supply: {size}", stage=STAGE)

    logger.info("Scraping %s collection (supply: %d)", name, size)
    return Collection(name=name, size=size)
