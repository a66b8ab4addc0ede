"""
Domain: ledger error taxonomy.

Every failure the ledger reports to its callers is one of these types. The
message always names the specific reason (e.g. "payout is completed, not
pending") because admin operators act on the distinction.

None of these errors are retried inside the ledger; retry policy belongs to
the caller.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for all typed ledger failures."""

    code: str = "LEDGER_ERROR"


class NotFoundError(LedgerError):
    """A session, package or payout id could not be resolved."""

    code = "NOT_FOUND"


class InvalidStateError(LedgerError):
    """The operation is illegal for the entity's current lifecycle state."""

    code = "INVALID_STATE"


class InvalidArgumentError(LedgerError):
    """Non-positive amount or price, empty id list, zero total duration, etc."""

    code = "INVALID_ARGUMENT"


class NotConfiguredError(LedgerError):
    """Missing payout method/destination or rate configuration."""

    code = "NOT_CONFIGURED"


class ExternalFailureError(LedgerError):
    """
    An external collaborator (payment processor) failed.

    The ledger guarantees the affected payout was returned to pending so the
    caller can retry safely.
    """

    code = "EXTERNAL_FAILURE"


_BY_CODE = {
    cls.code: cls
    for cls in (
        NotFoundError,
        InvalidStateError,
        InvalidArgumentError,
        NotConfiguredError,
        ExternalFailureError,
    )
}


def error_for_code(code: str, message: str) -> LedgerError:
    """Rebuild a typed error from a stored/transported error code."""

    return _BY_CODE.get(code, LedgerError)(message)


__all__ = [
    "LedgerError",
    "NotFoundError",
    "InvalidStateError",
    "InvalidArgumentError",
    "NotConfiguredError",
    "ExternalFailureError",
    "error_for_code",
]
