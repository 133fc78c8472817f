"""Error types raised while executing routes.

Every failure surfaced by the execution layer is normalized into one of the
``CrossrouteError`` kinds below and, at the top level, wrapped into an
``ExecutionError`` that carries the step and process it happened in.
"""

from __future__ import annotations

import asyncio
from enum import IntEnum
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    import httpx

    from .contracts import Process, Step


class ErrorCode(IntEnum):
    INTERNAL_ERROR = 1000
    VALIDATION_ERROR = 1001
    TRANSACTION_FAILED = 1003
    TIMEOUT = 1004
    NOT_FOUND = 1006
    CHAIN_SWITCH_ERROR = 1007
    TRANSACTION_UNPREPARED = 1008
    SLIPPAGE_ERROR = 1011
    SIGNATURE_REJECTED = 1012
    BALANCE_ERROR = 1013
    ALLOWANCE_REQUIRED = 1014
    EXCHANGE_RATE_UPDATE_CANCELED = 1016


class CrossrouteError(Exception):
    """Base class for all errors raised by crossroute."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        html_message: Optional[str] = None,
        code: Optional[ErrorCode] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.html_message = html_message
        if code is not None:
            self.code = code

    @property
    def name(self) -> str:
        return type(self).__name__


class ValidationError(CrossrouteError):
    code = ErrorCode.VALIDATION_ERROR


class NotFoundError(CrossrouteError):
    code = ErrorCode.NOT_FOUND


class BalanceTooLow(CrossrouteError):
    code = ErrorCode.BALANCE_ERROR


class AllowanceInsufficientAfterApproval(CrossrouteError):
    code = ErrorCode.ALLOWANCE_REQUIRED


class TransactionUnprepared(CrossrouteError):
    code = ErrorCode.TRANSACTION_UNPREPARED


class ChainSwitchFailed(CrossrouteError):
    code = ErrorCode.CHAIN_SWITCH_ERROR


class SlippageRejected(CrossrouteError):
    code = ErrorCode.EXCHANGE_RATE_UPDATE_CANCELED


class TransactionFailed(CrossrouteError):
    code = ErrorCode.TRANSACTION_FAILED


class UnknownError(CrossrouteError):
    code = ErrorCode.INTERNAL_ERROR


class TransactionReplacedError(Exception):
    """Raised by a transaction handle when its nonce was reused by another hash.

    This is not a failure: the orchestrator adopts ``replacement_hash``.
    """

    def __init__(self, replacement_hash: str, reason: str = "repriced") -> None:
        super().__init__(f"Transaction was replaced by {replacement_hash} ({reason})")
        self.replacement_hash = replacement_hash
        self.reason = reason


class ExecutionError(Exception):
    """Top-level error presenting a normalized cause with its step and process."""

    def __init__(
        self,
        cause: CrossrouteError,
        step: Optional["Step"] = None,
        process: Optional["Process"] = None,
    ) -> None:
        message = (
            f"[{cause.name}] {cause.message}"
            if cause.message
            else "Unknown error occurred"
        )
        super().__init__(message)
        self.cause = cause
        self.step = step
        self.process = process
        self.code = cause.code
        self.__cause__ = cause

    @property
    def html_message(self) -> Optional[str]:
        return self.cause.html_message


_STATUS_CLASSIFICATION = {
    400: (ValidationError, ErrorCode.VALIDATION_ERROR, None),
    404: (NotFoundError, ErrorCode.NOT_FOUND, None),
    409: (
        SlippageRejected,
        ErrorCode.SLIPPAGE_ERROR,
        "The slippage is larger than the defined threshold. "
        "Please request a new route to get a fresh quote.",
    ),
    500: (UnknownError, ErrorCode.INTERNAL_ERROR, None),
}


class HTTPError(CrossrouteError):
    """Failed request against the quoting backend, classified by status code."""

    def __init__(
        self,
        status: int,
        url: str,
        reason: str = "",
        response_body: Any = None,
    ) -> None:
        kind, code, html_message = _STATUS_CLASSIFICATION.get(
            status, (UnknownError, ErrorCode.INTERNAL_ERROR, None)
        )
        status_text = f"{status} {reason}".strip()
        message = f"Request failed with status code {status_text}"
        if isinstance(response_body, dict) and response_body.get("message"):
            message += f": {response_body['message']}"
        super().__init__(message, html_message=html_message, code=code)
        self.status = status
        self.url = url
        self.kind = kind
        self.response_body = response_body

    @classmethod
    def from_response(cls, response: "httpx.Response") -> "HTTPError":
        try:
            body = response.json()
        except ValueError:
            body = None
        return cls(
            status=response.status_code,
            url=str(response.request.url),
            reason=response.reason_phrase,
            response_body=body,
        )

    def classify(self) -> CrossrouteError:
        """Return the execution error kind matching this response."""
        return self.kind(self.message, html_message=self.html_message, code=self.code)


# Codes wallets use when the user declines a signature request.
_USER_REJECTED_CODES = {4001, "ACTION_REJECTED"}


def get_transaction_failed_message(
    step: "Step", tx_link: Optional[str] = None, chain_name: Optional[str] = None
) -> str:
    """Human-readable hint shown when a transaction's outcome is unclear."""
    chain = chain_name or f"chain {step.action.from_chain_id}"
    base = (
        "It appears that your transaction may not have been successful. "
        f"However, to confirm this, please check your {chain} wallet for "
        f"{step.action.from_token.symbol}."
    )
    if tx_link:
        return (
            f'{base} You can also check the <a href="{tx_link}" target="_blank" '
            'rel="nofollow noreferrer">block explorer</a> for more information.'
        )
    return base


def _normalize(exc: BaseException, step: Optional["Step"]) -> CrossrouteError:
    if isinstance(exc, HTTPError):
        return exc.classify()
    if isinstance(exc, CrossrouteError):
        return exc
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return TransactionFailed(
            "Timed out while waiting for the transaction.", code=ErrorCode.TIMEOUT
        )
    code = getattr(exc, "code", None)
    if code in _USER_REJECTED_CODES:
        return TransactionFailed(
            "The user rejected the signature request.",
            code=ErrorCode.SIGNATURE_REJECTED,
        )
    message = str(exc) or type(exc).__name__
    html_message = get_transaction_failed_message(step) if step is not None else None
    return UnknownError(message, html_message=html_message)


def parse_error(
    exc: BaseException,
    step: Optional["Step"] = None,
    process: Optional["Process"] = None,
) -> ExecutionError:
    """Normalize any exception into an ``ExecutionError``."""
    if isinstance(exc, ExecutionError):
        if exc.step is None:
            exc.step = step
        if exc.process is None:
            exc.process = process
        return exc
    cause = _normalize(exc, step)
    if cause is not exc:
        cause.__cause__ = exc
    return ExecutionError(cause, step=step, process=process)


__all__ = [
    "AllowanceInsufficientAfterApproval",
    "BalanceTooLow",
    "ChainSwitchFailed",
    "CrossrouteError",
    "ErrorCode",
    "ExecutionError",
    "HTTPError",
    "NotFoundError",
    "SlippageRejected",
    "TransactionFailed",
    "TransactionReplacedError",
    "TransactionUnprepared",
    "UnknownError",
    "ValidationError",
    "get_transaction_failed_message",
    "parse_error",
]
