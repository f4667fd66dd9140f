"""
Error taxonomy for NFT Flipper.
"""

from typing import Optional


class FlipperError(Exception):
    """Base exception for pipeline errors.

    Carries the stage and token id where the failure happened, when known.
    """

    def __init__(self, message: str, stage: Optional[str] = None, token_id: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.stage = stage
        self.token_id = token_id

    def at(self, stage: str, token_id: Optional[int] = None) -> "FlipperError":
        """Annotate with stage and token id (keeps values already set)."""
        self.stage = self.stage or stage
        if self.token_id is None:
            self.token_id = token_id
        return self

    def describe(self) -> str:
        if self.stage and self.token_id is not None:
            return f"{self.stage} failed at token #{self.token_id}: {self.message}"
        if self.stage:
            return f"{self.stage} failed: {self.message}"
        return self.message


class ConfigMissing(FlipperError):
    """Required configuration is absent."""

    def __init__(self, issues: list[str]):
        self.issues = issues
        super().__init__("Missing required configuration: " + "; ".join(issues))


class UpstreamUnavailable(FlipperError):
    """A contract, gateway or pinning call failed."""
    pass


class UnsupportedLocatorError(FlipperError):
    """Locator matched neither the content-addressed nor the location-addressed scheme."""

    def __init__(self, raw: str, stage: Optional[str] = None, token_id: Optional[int] = None):
        self.raw = raw
        super().__init__(f"Unsupported URI type: {raw!r}", stage=stage, token_id=token_id)


class StorageIOError(FlipperError):
    """Disk read or write failed."""
    pass


class PublishError(FlipperError):
    """Nothing to publish, or the pinning service returned something unusable."""
    pass


class Aborted(FlipperError):
    """The operator declined to continue."""
    pass
