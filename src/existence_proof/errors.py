"""
Error codes and exception types for existence-proof.

Every failure raised by the library is a ProofError carrying a typed
code and a details dict naming the offending index or type, so that
callers can log or audit the exact violation.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """
    Failure codes.
    Values are stable and safe to persist in audit trails.
    """
    INVALID_INPUT = "INVALID_INPUT"
    MALFORMED_PROOF = "MALFORMED_PROOF"
    DECODE_FAILED = "DECODE_FAILED"
    EMPTY_DATA = "EMPTY_DATA"
    NO_REFERENCES = "NO_REFERENCES"
    UNKNOWN_OPERATION = "UNKNOWN_OPERATION"
    EMPTY_OPERATION_INPUT = "EMPTY_OPERATION_INPUT"
    DANGLING_REFERENCE = "DANGLING_REFERENCE"
    EMPTY_LOCATOR = "EMPTY_LOCATOR"
    INVALID_REFERENCE_TARGET = "INVALID_REFERENCE_TARGET"
    PROOF_DOES_NOT_APPLY = "PROOF_DOES_NOT_APPLY"
    INVALID_REQUEST = "INVALID_REQUEST"
    INVALID_RESPONSE = "INVALID_RESPONSE"
    NOT_YET_PROVABLE = "NOT_YET_PROVABLE"


class ProofError(Exception):
    """
    Base class for all existence-proof failures.
    """
    default_code = ErrorCode.MALFORMED_PROOF

    def __init__(
        self,
        message: str,
        code: ErrorCode | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }


class InvalidInputError(ProofError):
    """Bad root data or timestamp supplied by the caller."""
    default_code = ErrorCode.INVALID_INPUT


class MalformedProofError(ProofError):
    """The proof document violates a structural rule."""
    default_code = ErrorCode.MALFORMED_PROOF


class UnknownOperationError(MalformedProofError):
    default_code = ErrorCode.UNKNOWN_OPERATION


class EmptyOperationInputError(MalformedProofError):
    default_code = ErrorCode.EMPTY_OPERATION_INPUT


class DanglingReferenceError(MalformedProofError):
    """An operation input points at data that is not produced yet or does not exist."""
    default_code = ErrorCode.DANGLING_REFERENCE


class EmptyLocatorError(MalformedProofError):
    default_code = ErrorCode.EMPTY_LOCATOR


class InvalidReferenceTargetError(MalformedProofError):
    """A reference targets literal data or an output that is never materialized."""
    default_code = ErrorCode.INVALID_REFERENCE_TARGET


class ProofDoesNotApplyError(ProofError):
    """The proof is well formed but attests nothing about the given root data."""
    default_code = ErrorCode.PROOF_DOES_NOT_APPLY


class InvalidRequestError(ProofError):
    default_code = ErrorCode.INVALID_REQUEST


class InvalidResponseError(ProofError):
    default_code = ErrorCode.INVALID_RESPONSE


class NotYetProvableError(ProofError):
    """
    The service knows the item but has not published references for it yet.
    """
    default_code = ErrorCode.NOT_YET_PROVABLE

    def __init__(self, status: str, message: str | None = None) -> None:
        super().__init__(
            message or f"not yet provable, status {status}",
            details={"status": status},
        )
        self.status = status
