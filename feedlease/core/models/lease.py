from dataclasses import dataclass, field
from typing import Any


@dataclass
class Lease:
    """
    Persisted ownership record for a single partition of the change feed.

    A lease is the unit of mutual exclusion between hosts: the host named
    in `owner` is the only one allowed to process the partition and to
    move its checkpoint forward. Ownership conflicts are detected by the
    lease store through `version`, never by comparing hosts locally.
    """
    lease_token: str
    """
    Stable identifier of the partition governed by this lease.
    It is the primary key of the lease in the store and the key of the
    controller's owned-partitions map.
    """

    owner: str = ""
    """
    Identifier of the host currently holding the lease.
    An empty string means the lease is free to be claimed.
    """

    continuation_token: str | None = None
    """
    Opaque checkpoint marking how far processing has progressed.
    Child leases created by a split start from the parent's last value.
    """

    properties: dict[str, str] = field(default_factory=dict)
    """
    Free-form string properties, carried opaquely from a parent lease
    to its children when the partition splits.
    """

    version: int = 0
    """
    Optimistic-concurrency token maintained by the lease store.
    It is bumped on every successful write; a write carrying a stale
    version is rejected. Zero means the lease was never persisted.
    """

    timestamp: float = 0.0
    """
    Wall-clock time (seconds since epoch) of the last write by the owner.
    Used with the configured expiration to detect abandoned leases.
    """

    def is_owned_by(self, host: str) -> bool:
        return self.owner == host

    def is_expired(self, now: float, expiration: float) -> bool:
        """
        A lease whose owner has not written it for longer than `expiration`
        seconds is considered abandoned and may be taken over.
        """
        return now - self.timestamp > expiration

    def is_available(self, now: float, expiration: float) -> bool:
        return not self.owner or self.is_expired(now, expiration)

    def to_dict(self) -> dict[str, Any]:
        return {
            "lease_token": self.lease_token,
            "owner": self.owner,
            "continuation_token": self.continuation_token,
            "properties": dict(self.properties),
            "version": self.version,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Lease":
        return cls(
            lease_token=data["lease_token"],
            owner=data.get("owner") or "",
            continuation_token=data.get("continuation_token"),
            properties=dict(data.get("properties") or {}),
            version=data.get("version", 0),
            timestamp=data.get("timestamp", 0.0),
        )

    def __str__(self) -> str:
        return (
            f"Lease(token={self.lease_token!r}, owner={self.owner!r}, "
            f"version={self.version})"
        )
