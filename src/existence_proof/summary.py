"""
Proof summary utilities for human-readable inspection.

Extracts key metadata from proofs and verified references without
verifying or modifying them.
"""

from typing import Any

from .proof import Proof, VerifiedReference, format_timestamp


def proof_summary(proof: Proof) -> dict[str, Any]:
    """
    Extract a summary from a decoded proof.

    Args:
        proof: A decoded, not necessarily valid, proof

    Returns:
        Dict with data_count, operation_count, operation_types,
        reference_count and locators
    """
    operation_types = sorted(set(op.type for op in proof.operations))

    return {
        "data_count": len(proof.data),
        "operation_count": len(proof.operations),
        "operation_types": operation_types,
        "reference_count": len(proof.references),
        "locators": [ref.locator for ref in proof.references],
        "published_at": [format_timestamp(ref.published_at) for ref in proof.references],
    }


def format_proof_summary(proof: Proof) -> str:
    """
    Format a proof as a single-line human-readable string.

    Returns:
        String like "1 data | 2 operations [sha2_256, sha3_512] | 1 references"
    """
    s = proof_summary(proof)
    types = ", ".join(s["operation_types"]) if s["operation_types"] else "none"
    return (
        f"{s['data_count']} data | {s['operation_count']} operations [{types}]"
        f" | {s['reference_count']} references"
    )


def format_verified_reference(ref: VerifiedReference) -> str:
    """Describe what to look for where, e.g. "'avaZ...' should be found in 'X'"."""
    hashes = ", ".join(ref.hash_functions) if ref.hash_functions else "none"
    return f"'{ref.data_base64}' should be found in '{ref.locator}' (via {hashes})"
