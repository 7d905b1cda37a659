"""
Proof document model for existence-proof.

A Proof holds literal data, an ordered list of hash operations and the
references where derived data was published. Operations address their
inputs by signed index: a non-negative index selects Proof.data[i], a
negative index -k selects the output of the k-th operation (1-based).

This module only performs structural decoding of the wire format
(base64 buffers, signed integers, strings, timestamps). Semantic checks
belong to the verification engine.
"""

import base64
import binascii
import json
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, TYPE_CHECKING

from .errors import ErrorCode, MalformedProofError

if TYPE_CHECKING:
    from .verify import VerifyOptions


# Zero value of a timestamp on the wire; decodes to published_at=None
ZERO_TIMESTAMP = "0001-01-01T00:00:00Z"
_ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)

_RFC3339 = re.compile(
    r"(?P<base>[0-9]{4}-[0-9]{2}-[0-9]{2}[Tt ][0-9]{2}:[0-9]{2}:[0-9]{2})"
    r"(?:\.(?P<frac>[0-9]+))?"
    r"(?P<tz>[Zz]|[+-][0-9]{2}:[0-9]{2})"
)


@dataclass(frozen=True)
class Operation:
    """A hash operation over the concatenation of its inputs."""
    type: str
    inputs: tuple[int, ...]

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "data": list(self.inputs)}


@dataclass(frozen=True)
class Reference:
    """A location where derived data is claimed to be published."""
    data_index: int
    locator: str
    published_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "data": self.data_index,
            "timestamp": format_timestamp(self.published_at),
            "ref": self.locator,
        }


@dataclass(frozen=True)
class VerifiedReference:
    """
    A reference whose data is provably derived from the caller's input.

    hash_functions lists every operation type on the accepted trust
    chain, sorted, so a consumer can drop references that depend on a
    hash function it no longer trusts.
    """
    data: bytes
    locator: str
    hash_functions: tuple[str, ...] = ()

    @property
    def data_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    def to_dict(self) -> dict[str, Any]:
        return {
            "data": self.data_base64,
            "ref": self.locator,
            "hash_functions": list(self.hash_functions),
        }


@dataclass(frozen=True)
class Proof:
    """An existence proof as transmitted between issuer and consumer."""
    data: tuple[bytes, ...] = ()
    operations: tuple[Operation, ...] = ()
    references: tuple[Reference, ...] = ()

    @classmethod
    def from_dict(cls, obj: Any) -> "Proof":
        """
        Decode a proof from its parsed JSON representation.

        Raises:
            MalformedProofError: If a field has the wrong JSON type or
                a buffer is not valid base64
        """
        if not isinstance(obj, dict):
            raise _decode_error("proof must be a JSON object", "$", obj)

        data = tuple(
            _decode_buffer(item, f"data[{i}]")
            for i, item in enumerate(_array(obj, "data", "$"))
        )
        operations = tuple(
            _decode_operation(item, f"operations[{i}]")
            for i, item in enumerate(_array(obj, "operations", "$"))
        )
        references = tuple(
            _decode_reference(item, f"references[{i}]")
            for i, item in enumerate(_array(obj, "references", "$"))
        )
        return cls(data=data, operations=operations, references=references)

    @classmethod
    def from_json(cls, text: str | bytes) -> "Proof":
        try:
            obj = json.loads(text)
        except ValueError as exc:
            raise MalformedProofError(
                f"proof is not valid JSON: {exc}",
                code=ErrorCode.DECODE_FAILED,
                details={"path": "$"},
            ) from exc
        return cls.from_dict(obj)

    def to_dict(self) -> dict[str, Any]:
        return {
            "operations": [op.to_dict() for op in self.operations],
            "data": [base64.b64encode(item).decode("ascii") for item in self.data],
            "references": [ref.to_dict() for ref in self.references],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"))

    def verify(
        self,
        root_data: bytes,
        root_timestamp: int | None = None,
        options: "VerifyOptions | None" = None,
    ) -> list[VerifiedReference]:
        """Verify this proof for root_data. See verify.verify_proof."""
        from .verify import verify_proof

        return verify_proof(self, root_data, root_timestamp, options)


def parse_timestamp(value: str) -> datetime | None:
    """
    Parse an RFC 3339 timestamp.

    Fractional seconds beyond microsecond precision are truncated. The
    zero time decodes to None.

    Raises:
        ValueError: If value is not an RFC 3339 timestamp or its UTC
            form falls outside years 1-9999
    """
    match = _RFC3339.fullmatch(value)
    if not match:
        raise ValueError(f"not an RFC 3339 timestamp: {value!r}")

    base = match.group("base").replace("t", "T").replace(" ", "T")
    frac = (match.group("frac") or "")[:6]
    tz = match.group("tz")
    if tz in ("Z", "z"):
        tz = "+00:00"
    text = f"{base}.{frac.ljust(6, '0')}{tz}" if frac else f"{base}{tz}"
    parsed = datetime.fromisoformat(text)

    # The UTC form must stay within years 1-9999 to be formatted again
    try:
        utc = parsed.astimezone(timezone.utc)
    except OverflowError as exc:
        raise ValueError(f"timestamp out of range: {value!r}") from exc
    if utc == _ZERO_TIME:
        return None
    return parsed


def format_timestamp(value: datetime | None) -> str:
    """Format a timestamp as RFC 3339 UTC; None becomes the zero time."""
    if value is None:
        return ZERO_TIMESTAMP
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    text = value.astimezone(timezone.utc).isoformat()
    return text.replace("+00:00", "Z")


def _decode_error(message: str, path: str, value: Any) -> MalformedProofError:
    return MalformedProofError(
        message,
        code=ErrorCode.DECODE_FAILED,
        details={"path": path, "received": type(value).__name__},
    )


def _array(obj: dict[str, Any], key: str, path: str) -> list[Any]:
    value = obj.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise _decode_error(f"{key} must be an array", f"{path}.{key}", value)
    return value


def _decode_int(value: Any, path: str) -> int:
    # bool is a subclass of int
    if isinstance(value, bool) or not isinstance(value, int):
        raise _decode_error("index must be an integer", path, value)
    return value


def _decode_buffer(value: Any, path: str) -> bytes:
    if value is None:
        return b""
    if not isinstance(value, str):
        raise _decode_error("buffer must be a base64 string", path, value)
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise _decode_error(f"buffer is not valid base64: {exc}", path, value) from exc


def _decode_operation(value: Any, path: str) -> Operation:
    if not isinstance(value, dict):
        raise _decode_error("operation must be an object", path, value)
    op_type = value.get("type", "")
    if not isinstance(op_type, str):
        raise _decode_error("operation type must be a string", f"{path}.type", op_type)
    inputs = tuple(
        _decode_int(item, f"{path}.data[{i}]")
        for i, item in enumerate(_array(value, "data", path))
    )
    return Operation(type=op_type, inputs=inputs)


def _decode_reference(value: Any, path: str) -> Reference:
    if not isinstance(value, dict):
        raise _decode_error("reference must be an object", path, value)

    data_index = _decode_int(value.get("data", 0), f"{path}.data")

    locator = value.get("ref", "")
    if locator is None:
        locator = ""
    if not isinstance(locator, str):
        raise _decode_error("reference locator must be a string", f"{path}.ref", locator)

    raw_timestamp = value.get("timestamp")
    if raw_timestamp is None:
        published_at = None
    elif isinstance(raw_timestamp, str):
        try:
            published_at = parse_timestamp(raw_timestamp)
        except ValueError as exc:
            raise _decode_error(str(exc), f"{path}.timestamp", raw_timestamp) from exc
    else:
        raise _decode_error("timestamp must be a string", f"{path}.timestamp", raw_timestamp)

    return Reference(data_index=data_index, locator=locator, published_at=published_at)
