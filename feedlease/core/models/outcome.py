from dataclasses import dataclass
from enum import StrEnum


class OutcomeKind(StrEnum):
    """
    Reason a supervised partition loop returned.
    """
    success = "success"
    split = "split"
    cancelled = "cancelled"
    error = "error"


@dataclass(frozen=True)
class Outcome:
    """
    Completion signal of a partition supervisor.

    Splits and cancellations are ordinary results, not failures: the
    controller dispatches on `kind` rather than on exception types.
    """
    kind: OutcomeKind

    continuation_token: str | None = None
    """
    Last successfully processed continuation token. Only meaningful for
    a split, where it seeds the checkpoint of the child leases.
    """

    error: BaseException | None = None
    """Failure that ended the loop, for the error kind."""

    @classmethod
    def success(cls) -> "Outcome":
        return cls(OutcomeKind.success)

    @classmethod
    def split(cls, continuation_token: str | None) -> "Outcome":
        return cls(OutcomeKind.split, continuation_token=continuation_token)

    @classmethod
    def cancelled(cls) -> "Outcome":
        return cls(OutcomeKind.cancelled)

    @classmethod
    def failed(cls, error: BaseException) -> "Outcome":
        return cls(OutcomeKind.error, error=error)
