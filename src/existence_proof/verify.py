"""
Offline proof verification for existence-proof.

Validates a proof document, replays its hash operations, and decides
which references are provably derived from the caller's data (and,
optionally, from a claimed timestamp).

Verification is a pure function of its inputs. It never touches the
network and never checks that a locator really publishes the derived
data; deciding which external sources to trust is up to the caller.
"""

import hmac
import logging
from dataclasses import dataclass
from typing import Any

from .errors import (
    DanglingReferenceError,
    EmptyLocatorError,
    EmptyOperationInputError,
    ErrorCode,
    InvalidInputError,
    InvalidReferenceTargetError,
    MalformedProofError,
    ProofDoesNotApplyError,
    UnknownOperationError,
)
from .operations import DEFAULT_REGISTRY, OperationRegistry
from .proof import Proof, VerifiedReference

logger = logging.getLogger(__name__)

_INT64_MIN = -(2 ** 63)
_INT64_MAX = 2 ** 63 - 1


@dataclass
class VerifyOptions:
    """Options for verifying a proof."""
    registry: OperationRegistry = DEFAULT_REGISTRY


@dataclass(frozen=True)
class _Trust:
    """Trust attribution of one DAG node."""
    root: bool = False
    timestamp: bool = False
    hashes: frozenset[str] = frozenset()

    @property
    def matched(self) -> bool:
        return self.root or self.timestamp


def encode_timestamp(timestamp: int) -> bytes:
    """Encode a timestamp as the 8-byte big-endian value found in proofs."""
    return timestamp.to_bytes(8, "big", signed=True)


def _check_root_input(root_data: Any, root_timestamp: Any) -> tuple[bytes, bytes]:
    if not isinstance(root_data, (bytes, bytearray, memoryview)):
        raise InvalidInputError(
            "root data must be bytes",
            details={"received": type(root_data).__name__},
        )
    root = bytes(root_data)
    if not root:
        raise InvalidInputError("no data to verify", details={"received": "empty"})

    if root_timestamp is None:
        return root, b""
    if isinstance(root_timestamp, bool) or not isinstance(root_timestamp, int):
        raise InvalidInputError(
            "timestamp must be an integer",
            details={"received": type(root_timestamp).__name__},
        )
    if not _INT64_MIN <= root_timestamp <= _INT64_MAX:
        raise InvalidInputError(
            "timestamp out of signed 64-bit range",
            details={"timestamp": root_timestamp},
        )
    if root_timestamp == 0:
        return root, b""
    return root, encode_timestamp(root_timestamp)


def _check_structure(proof: Proof, registry: OperationRegistry) -> None:
    """Structural checks, each a full pass, first violation wins."""
    if len(proof.data) == 0:
        raise MalformedProofError(
            "no data in proof",
            code=ErrorCode.EMPTY_DATA,
            details={"received": "empty array"},
        )
    for i, item in enumerate(proof.data):
        if not item:
            raise MalformedProofError(
                f"data number {i} is empty",
                code=ErrorCode.EMPTY_DATA,
                details={"index": i},
            )

    if len(proof.references) == 0:
        raise MalformedProofError(
            "no references in proof",
            code=ErrorCode.NO_REFERENCES,
            details={"received": "empty array"},
        )

    for pos, op in enumerate(proof.operations):
        if op.type not in registry:
            raise UnknownOperationError(
                f"unknown operation '{op.type}'",
                details={"operation": pos, "type": op.type},
            )

    for pos, op in enumerate(proof.operations):
        if len(op.inputs) == 0:
            raise EmptyOperationInputError(
                f"operation {pos} has no input",
                details={"operation": pos, "type": op.type},
            )

    n_data = len(proof.data)
    for pos, op in enumerate(proof.operations):
        # Only outputs of operations before pos exist when pos runs
        for idx in op.inputs:
            if idx < 0 and -idx > pos:
                raise DanglingReferenceError(
                    f"operation {pos} refers to output {idx} not yet calculated",
                    details={"operation": pos, "index": idx, "produced": pos},
                )
            if idx >= n_data:
                raise DanglingReferenceError(
                    f"operation {pos} refers to undefined data element {idx}",
                    details={"operation": pos, "index": idx, "data_length": n_data},
                )

    for pos, ref in enumerate(proof.references):
        if not ref.locator:
            raise EmptyLocatorError(
                f"reference {pos} has an empty locator",
                details={"reference": pos},
            )

    n_ops = len(proof.operations)
    for pos, ref in enumerate(proof.references):
        if ref.data_index >= 0:
            raise InvalidReferenceTargetError(
                f"reference {pos} must refer to calculated data",
                details={"reference": pos, "index": ref.data_index},
            )
        if -ref.data_index > n_ops:
            raise InvalidReferenceTargetError(
                f"reference {pos} refers to non-existing data {ref.data_index}",
                details={"reference": pos, "index": ref.data_index, "produced": n_ops},
            )


def materialize(proof: Proof, registry: OperationRegistry) -> list[bytes]:
    """
    Run every operation in declared order.

    Output i is addressable as -(i + 1) by later operations and by
    references. Assumes the proof passed the structural checks.
    """
    outputs: list[bytes] = []
    for op in proof.operations:
        fn = registry.lookup(op.type)
        buf = bytearray()
        for idx in op.inputs:
            buf += outputs[-idx - 1] if idx < 0 else proof.data[idx]
        outputs.append(fn(bytes(buf)))
    logger.debug("materialized %d operation outputs", len(outputs))
    return outputs


def attribute_trust(proof: Proof, root: bytes, tdata: bytes) -> list[_Trust]:
    """
    Compute the trust attribution of every operation output.

    An operation depends on the root (or timestamp) when any of its
    inputs does; the names it accumulates are the union over matching
    inputs plus its own type. Inputs only ever point backwards, so one
    forward pass visits each node once and shared ancestors contribute
    their names exactly once.
    """
    literals = [
        _Trust(
            root=hmac.compare_digest(item, root),
            timestamp=bool(tdata) and hmac.compare_digest(item, tdata),
        )
        for item in proof.data
    ]

    nodes: list[_Trust] = []
    for op in proof.operations:
        matched_root = False
        matched_timestamp = False
        hashes: set[str] = set()
        for idx in op.inputs:
            child = nodes[-idx - 1] if idx < 0 else literals[idx]
            if child.matched:
                hashes.update(child.hashes)
                hashes.add(op.type)
                matched_root = matched_root or child.root
                matched_timestamp = matched_timestamp or child.timestamp
        node = _Trust(matched_root, matched_timestamp, frozenset(hashes))
        if node.matched:
            logger.debug(
                "operation %d (%s) depends on root=%s timestamp=%s via %s",
                len(nodes), op.type, node.root, node.timestamp, sorted(node.hashes),
            )
        else:
            logger.debug("operation %d (%s) does not depend on the root data", len(nodes), op.type)
        nodes.append(node)
    return nodes


def verify_proof(
    proof: Proof,
    root_data: bytes,
    root_timestamp: int | None = None,
    options: VerifyOptions | None = None,
) -> list[VerifiedReference]:
    """
    Verify that proof contains an unbroken chain of one-way functions
    starting with root_data.

    Args:
        proof: Decoded proof document (treated as untrusted)
        root_data: The caller's data, usually a digest of the document
        root_timestamp: If non-zero, accepted references must also
            depend on this timestamp (8-byte big-endian literal)
        options: Verification options (default: built-in registry)

    Returns:
        Accepted references in document order

    Raises:
        InvalidInputError: If root_data or root_timestamp is unusable
        MalformedProofError: If the proof violates a structural rule
        ProofDoesNotApplyError: If no reference depends on root_data
    """
    registry = options.registry if options else DEFAULT_REGISTRY
    root, tdata = _check_root_input(root_data, root_timestamp)
    _check_structure(proof, registry)

    outputs = materialize(proof, registry)
    trust = attribute_trust(proof, root, tdata)

    accepted: list[VerifiedReference] = []
    for ref in proof.references:
        node = trust[-ref.data_index - 1]
        if not node.root or (tdata and not node.timestamp):
            logger.debug("reference %r does not depend on the root data", ref.locator)
            continue
        accepted.append(VerifiedReference(
            data=outputs[-ref.data_index - 1],
            locator=ref.locator,
            hash_functions=tuple(sorted(node.hashes)),
        ))

    if not accepted:
        raise ProofDoesNotApplyError(
            "the proof proves nothing for the input data",
            details={"references": len(proof.references)},
        )

    logger.info("accepted %d of %d references", len(accepted), len(proof.references))
    return accepted
