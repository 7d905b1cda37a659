"""
Request and response bodies of the proof issuing service.

Only the schema lives here: building and validating request bodies,
decoding response bodies, and checking a prove response locally. Sending
the requests is left to whatever HTTP client the application uses.

Byte fields are base64 on the wire. Service timestamps are decimal
strings counting nanoseconds since the Unix epoch.
"""

import base64
import binascii
import hmac
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from .errors import InvalidRequestError, InvalidResponseError, NotYetProvableError
from .proof import Proof, VerifiedReference
from .verify import VerifyOptions, verify_proof

logger = logging.getLogger(__name__)


DEFAULT_ENDPOINT = "https://api.veriff.io/core"

# Endpoint paths
PATH_ADD = "add"
PATH_PROVE = "prove"
PATH_LATEST = "latest"
PATH_FIXPOINTS = "fixpoints"
PATH_HISTORY = "history"

# Received but not yet committed to storage
STATUS_RECEIVED = "received"
# Stored, but no external references published yet
STATUS_IN_CHAIN = "chained"
# Stored with references published at external sources
STATUS_PROVABLE = "provable"

SHA2_256_SIZE = 32
SHA3_512_SIZE = 64

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_DECIMAL = re.compile(r"[+-]?[0-9]+")


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _bytes_field(body: dict[str, Any], key: str) -> bytes:
    value = body.get(key)
    if value is None:
        return b""
    if not isinstance(value, str):
        raise InvalidResponseError(
            f"{key} must be a base64 string",
            details={"field": key, "received": type(value).__name__},
        )
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidResponseError(
            f"{key} is not valid base64",
            details={"field": key},
        ) from exc


def _str_field(body: dict[str, Any], key: str) -> str:
    value = body.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise InvalidResponseError(
            f"{key} must be a string",
            details={"field": key, "received": type(value).__name__},
        )
    return value


def _require_object(body: Any, name: str) -> dict[str, Any]:
    if not isinstance(body, dict):
        raise InvalidResponseError(
            f"{name} body must be a JSON object",
            details={"received": type(body).__name__},
        )
    return body


def parse_service_timestamp(value: str) -> int:
    """
    Parse a decimal nanosecond timestamp string.

    Raises:
        InvalidResponseError: If value is not a signed 64-bit decimal integer
    """
    # int() alone would also accept whitespace, underscores and non-ASCII digits
    if not isinstance(value, str) or not _DECIMAL.fullmatch(value):
        raise InvalidResponseError(
            "bad timestamp returned by server",
            details={"timestamp": value},
        )
    timestamp = int(value, 10)
    if not -(2 ** 63) <= timestamp < 2 ** 63:
        raise InvalidResponseError(
            "bad timestamp returned by server",
            details={"timestamp": value},
        )
    return timestamp


def timestamp_to_datetime(timestamp: int) -> datetime:
    """Convert a nanosecond timestamp to an aware UTC datetime (microsecond precision)."""
    return _EPOCH + timedelta(microseconds=timestamp // 1000)


@dataclass
class AddRequest:
    """
    Submit the digests of a document.

    It is the caller's responsibility that both digests belong to the
    same document; a mismatch makes every later prove request fail.
    """
    sha2_256: bytes
    sha3_512: bytes

    def validate(self) -> None:
        if not self.sha2_256 or len(self.sha2_256) != SHA2_256_SIZE:
            raise InvalidRequestError(
                "the sha2_256 hash must be specified as a valid hash",
                details={"field": "sha2_256", "length": len(self.sha2_256 or b"")},
            )
        if not self.sha3_512 or len(self.sha3_512) != SHA3_512_SIZE:
            raise InvalidRequestError(
                "the sha3_512 hash must be specified as a valid hash",
                details={"field": "sha3_512", "length": len(self.sha3_512 or b"")},
            )

    def to_dict(self) -> dict[str, Any]:
        self.validate()
        return {"sha2_256": _b64(self.sha2_256), "sha3_512": _b64(self.sha3_512)}


@dataclass
class AddResponse:
    """The secret token needed to request a proof later, plus the echoed digests."""
    token: bytes
    approximate_timestamp: str = ""
    sha2_256: bytes = b""
    sha3_512: bytes = b""

    @classmethod
    def from_dict(cls, body: Any) -> "AddResponse":
        body = _require_object(body, "add response")
        return cls(
            token=_bytes_field(body, "token"),
            approximate_timestamp=_str_field(body, "approximate_timestamp"),
            sha2_256=_bytes_field(body, "sha2_256"),
            sha3_512=_bytes_field(body, "sha3_512"),
        )


@dataclass
class ProveRequest:
    """Ask for the proof of a previously added document."""
    token: bytes
    sha2_256: bytes

    def validate(self) -> None:
        if not self.token or self.sha2_256 is None:
            raise InvalidRequestError("must specify token and hash")
        if len(self.sha2_256) != SHA2_256_SIZE:
            raise InvalidRequestError(
                "must specify a hash of correct length",
                details={"field": "sha2_256", "length": len(self.sha2_256)},
            )

    def to_dict(self) -> dict[str, Any]:
        self.validate()
        return {"token": _b64(self.token), "sha2_256": _b64(self.sha2_256)}


@dataclass
class ProveResponse:
    """
    Proof that the document identified by both digests was stored at
    timestamp, checkable against the proof's references.
    """
    status: str
    timestamp: str = ""
    sha2_256: bytes = b""
    sha3_512: bytes = b""
    proof: Proof = field(default_factory=Proof)

    @classmethod
    def from_dict(cls, body: Any) -> "ProveResponse":
        body = _require_object(body, "prove response")
        raw_proof = body.get("proof")
        return cls(
            status=_str_field(body, "status"),
            timestamp=_str_field(body, "timestamp"),
            sha2_256=_bytes_field(body, "sha2_256"),
            sha3_512=_bytes_field(body, "sha3_512"),
            proof=Proof() if raw_proof is None else Proof.from_dict(raw_proof),
        )


@dataclass
class LatestResponse:
    """Latest state of the service's chain."""
    timestamp: str
    sha2_256: bytes = b""
    sha3_512: bytes = b""

    @classmethod
    def from_dict(cls, body: Any) -> "LatestResponse":
        body = _require_object(body, "latest response")
        return cls(
            timestamp=_str_field(body, "timestamp"),
            sha2_256=_bytes_field(body, "sha2_256"),
            sha3_512=_bytes_field(body, "sha3_512"),
        )

    @property
    def published_at(self) -> datetime:
        return timestamp_to_datetime(parse_service_timestamp(self.timestamp))


@dataclass
class Fixpoint:
    """A fixpoint stored by the service itself."""
    timestamp: str
    sha2_256: bytes
    sha3_512: bytes

    @classmethod
    def from_dict(cls, body: Any) -> "Fixpoint":
        body = _require_object(body, "fixpoint")
        return cls(
            timestamp=_str_field(body, "timestamp"),
            sha2_256=_bytes_field(body, "sha2_256"),
            sha3_512=_bytes_field(body, "sha3_512"),
        )


@dataclass
class FixpointsResponse:
    points: list[Fixpoint]

    @classmethod
    def from_dict(cls, body: Any) -> "FixpointsResponse":
        body = _require_object(body, "fixpoints response")
        points = body.get("fixpoints")
        if not isinstance(points, list):
            raise InvalidResponseError(
                "empty response returned",
                details={"field": "fixpoints"},
            )
        return cls(points=[Fixpoint.from_dict(p) for p in points])


@dataclass
class ErrorResponse:
    """Structured body of a 400 response."""
    error: str

    @classmethod
    def from_dict(cls, body: Any) -> "ErrorResponse":
        body = _require_object(body, "error response")
        return cls(error=_str_field(body, "Error"))


def check_error_status(status_code: int, body: Any = None) -> None:
    """
    Map a non-200 HTTP status and its decoded body to an exception.

    Raises:
        NotYetProvableError: On 404, which the service returns before an
            item has been handled
        InvalidResponseError: On 400 (carrying the service's message) or
            any other unexpected status
    """
    if status_code == 200:
        return
    if status_code == 404:
        raise NotYetProvableError("not found")
    if status_code == 400:
        error = ErrorResponse.from_dict(body).error
        raise InvalidResponseError(
            f"400:{error}",
            details={"status_code": 400, "error": error},
        )
    raise InvalidResponseError(
        f"unexpected response code {status_code}",
        details={"status_code": status_code},
    )


def check_prove_response(
    response: ProveResponse,
    sha2_256: bytes,
    sha3_512: bytes,
    options: VerifyOptions | None = None,
) -> tuple[list[VerifiedReference], int]:
    """
    Verify a prove response locally against the caller's own digests.

    The proof is verified once per digest with the service timestamp;
    references for sha2_256 come first.

    Args:
        response: Decoded prove response
        sha2_256: Caller's SHA-256 digest of the document
        sha3_512: Caller's SHA3-512 digest of the document
        options: Verification options

    Returns:
        (verified references, timestamp in nanoseconds)

    Raises:
        InvalidResponseError: If the echoed digests, status or timestamp are wrong
        NotYetProvableError: If the service has not published references yet
        ProofError: Any verification failure
    """
    if not hmac.compare_digest(sha2_256, response.sha2_256):
        raise InvalidResponseError(
            "the hash does not match, did you add inconsistent hashes? (sha2_256)",
            details={"field": "sha2_256"},
        )
    if not hmac.compare_digest(sha3_512, response.sha3_512):
        raise InvalidResponseError(
            "the hash does not match, did you add inconsistent hashes? (sha3_512)",
            details={"field": "sha3_512"},
        )

    if response.status in (STATUS_RECEIVED, STATUS_IN_CHAIN):
        raise NotYetProvableError(response.status)
    if response.status != STATUS_PROVABLE:
        raise InvalidResponseError(
            f"unknown proof status: {response.status}",
            details={"status": response.status},
        )

    timestamp = parse_service_timestamp(response.timestamp)
    refs = verify_proof(response.proof, sha2_256, timestamp, options)
    refs += verify_proof(response.proof, sha3_512, timestamp, options)
    logger.info("prove response yields %d verified references", len(refs))
    return refs, timestamp
