"""
Translate ledger errors into HTTP responses.

NotFound -> 404, InvalidState -> 409, InvalidArgument -> 400,
NotConfigured -> 412, ExternalFailure -> 502, anything else -> 500.
"""

from fastapi import HTTPException

from domain.errors import (
    ExternalFailureError,
    InvalidArgumentError,
    InvalidStateError,
    LedgerError,
    NotConfiguredError,
    NotFoundError,
)

_STATUS_BY_ERROR = {
    NotFoundError: 404,
    InvalidStateError: 409,
    InvalidArgumentError: 400,
    NotConfiguredError: 412,
    ExternalFailureError: 502,
}


def to_http_exception(error: Exception, action: str) -> HTTPException:
    """
    Build the HTTPException a router should raise for `error`.

    Args:
        error: Exception caught while handling the request
        action: Short description used in 500 responses ("Failed to <action>: ...")
    """
    if isinstance(error, HTTPException):
        return error

    if isinstance(error, LedgerError):
        status_code = next(
            (code for cls, code in _STATUS_BY_ERROR.items() if isinstance(error, cls)),
            500,
        )
        return HTTPException(
            status_code=status_code,
            detail={"code": error.code, "message": str(error)},
        )

    return HTTPException(
        status_code=500,
        detail=f"Failed to {action}: {str(error)}"
    )


__all__ = ["to_http_exception"]
