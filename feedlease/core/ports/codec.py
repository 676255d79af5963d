from typing import Protocol

from feedlease.core.models.lease import Lease


class LeaseCodec(Protocol):
    """
    Defines how lease records are encoded when persisted in a Storage.

    Implementations must be:
    - deterministic: equal leases encode to equal bytes, which is what
      makes byte comparison usable for compare-and-set
    - pure (no side effects)
    - safe against malformed input
    """

    def encode(self, lease: Lease) -> bytes:
        """Encode a lease into bytes suitable for storage."""

    def decode(self, data: bytes) -> Lease:
        """Decode bytes read from storage into a lease."""
