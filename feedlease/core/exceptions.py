class FeedLeaseError(Exception):
    """Base class for every error raised by feedlease."""


class LeaseStoreError(FeedLeaseError):
    """
    A call against the lease store failed. Raised for I/O failures and
    used as the base of the ownership conflicts below.
    """

    def __init__(self, lease_token: str, message: str) -> None:
        super().__init__(f"Lease {lease_token}: {message}")
        self.lease_token = lease_token


class LeaseConflictError(LeaseStoreError):
    """
    A conditional write was rejected: the stored lease changed since it
    was read, or another live host owns it.
    """


class LeaseLostError(LeaseStoreError):
    """This host is no longer the owner of the lease it tried to write."""


class AcquisitionError(FeedLeaseError):
    """
    Claiming a lease failed. The underlying store failure is available
    as `__cause__`.
    """

    def __init__(self, lease_token: str) -> None:
        super().__init__(f"Failed to acquire lease {lease_token}")
        self.lease_token = lease_token


class PartitionTopologyError(FeedLeaseError):
    """The partition topology reported an impossible split."""
