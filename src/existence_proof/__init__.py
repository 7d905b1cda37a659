"""
existence-proof: Offline verification of hash-chain existence proofs.

A proof shows that a document was known at a point in time: the
document's digest is linked through an unbroken chain of one-way hash
functions to data published at external, trusted locations. This
package decodes proofs and verifies them locally; checking that a
locator really publishes the derived data is left to the caller.
"""

from .digest import hash_bytes, hash_data
from .errors import (
    DanglingReferenceError,
    EmptyLocatorError,
    EmptyOperationInputError,
    ErrorCode,
    InvalidInputError,
    InvalidReferenceTargetError,
    InvalidRequestError,
    InvalidResponseError,
    MalformedProofError,
    NotYetProvableError,
    ProofDoesNotApplyError,
    ProofError,
    UnknownOperationError,
)
from .operations import (
    DEFAULT_REGISTRY,
    SHA2_256,
    SHA3_512,
    OperationRegistry,
    hash_operation,
)
from .proof import Operation, Proof, Reference, VerifiedReference
from .summary import format_proof_summary, format_verified_reference, proof_summary
from .verify import VerifyOptions, encode_timestamp, verify_proof

__version__ = "0.1.0"
__all__ = [
    # Digests
    "hash_data",
    "hash_bytes",
    # Operations
    "SHA2_256",
    "SHA3_512",
    "DEFAULT_REGISTRY",
    "OperationRegistry",
    "hash_operation",
    # Proof model
    "Proof",
    "Operation",
    "Reference",
    "VerifiedReference",
    # Verification
    "VerifyOptions",
    "verify_proof",
    "encode_timestamp",
    # Summaries
    "proof_summary",
    "format_proof_summary",
    "format_verified_reference",
    # Errors
    "ErrorCode",
    "ProofError",
    "InvalidInputError",
    "MalformedProofError",
    "UnknownOperationError",
    "EmptyOperationInputError",
    "DanglingReferenceError",
    "EmptyLocatorError",
    "InvalidReferenceTargetError",
    "ProofDoesNotApplyError",
    "InvalidRequestError",
    "InvalidResponseError",
    "NotYetProvableError",
]
