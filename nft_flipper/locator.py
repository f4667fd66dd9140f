"""
Locator resolution.

Token URIs and metadata ``image`` fields arrive in many shapes: ``ipfs://Qm...``,
gateway URLs like ``https://gateway.pinata.cloud/ipfs/Qm.../12``, or plain
``https://`` URLs. Everything that carries a CIDv0 is normalized to the bare CID
(plus optional ``/<id>`` or ``/<id>.<ext>`` suffix) so it can be fetched through
the configured gateway.
"""

import re

from nft_flipper.errors import UnsupportedLocatorError
from nft_flipper.models import Locator, LocatorKind

# CIDv0: "Qm" + 44 base58 characters (no 0, O, I, l), optional "/<integer>[.<ext>]" suffix.
# A 43 character tail also matches.
IPFS_PATTERN = re.compile(r"Qm[1-9A-HJ-NP-Za-km-z]{43,44}(?:/[0-9]+(?:\.[A-Za-z0-9]+)?)?")
HTTPS_MARKER = "https://"


def classify(raw: str) -> Locator:
    """Classify a raw URI string. Never raises."""
    match = IPFS_PATTERN.search(raw)
    if match:
        return Locator(LocatorKind.CONTENT_ADDRESSED, match.group(0))

    if HTTPS_MARKER in raw:
        return Locator(LocatorKind.LOCATION_ADDRESSED, raw)

    return Locator(LocatorKind.UNRECOGNIZED, raw)


def resolve(raw: str) -> Locator:
    """Classify a raw URI string, raising UnsupportedLocatorError if it is unrecognized."""
    locator = classify(raw)
    if not locator.is_recognized:
        raise UnsupportedLocatorError(raw)
    return locator


def to_url(locator: Locator, gateway: str) -> str:
    """Turn a resolved locator into a fetchable URL."""
    if locator.is_content_addressed:
        return f"{gateway.rstrip('/')}/{locator.value}"
    if locator.is_location_addressed:
        return locator.value
    raise UnsupportedLocatorError(locator.value)
