"""
Root digest computation for existence-proof.

The issuing service is only ever given digests of a document, never the
document itself. Both a SHA-256 and a SHA3-512 digest are computed in a
single pass so that a proof stays usable should either function weaken.
"""

import io
from typing import BinaryIO

from cryptography.hazmat.primitives import hashes

from .errors import InvalidInputError


DEFAULT_CHUNK_SIZE = 64 * 1024


def hash_data(stream: BinaryIO, chunk_size: int = DEFAULT_CHUNK_SIZE) -> tuple[bytes, bytes]:
    """
    Read stream until EOF and return its (sha2_256, sha3_512) digests.

    Args:
        stream: Binary file-like object
        chunk_size: Number of bytes read per call

    Returns:
        32-byte SHA-256 digest and 64-byte SHA3-512 digest

    Raises:
        InvalidInputError: If the stream is missing or empty
    """
    if stream is None:
        raise InvalidInputError("data to be hashed cannot be None")

    sha2 = hashes.Hash(hashes.SHA256())
    sha3 = hashes.Hash(hashes.SHA3_512())
    total = 0
    while True:
        chunk = stream.read(chunk_size)
        if not chunk:
            break
        sha2.update(chunk)
        sha3.update(chunk)
        total += len(chunk)

    if total == 0:
        raise InvalidInputError("cannot use empty data", details={"received": 0})
    return sha2.finalize(), sha3.finalize()


def hash_bytes(data: bytes) -> tuple[bytes, bytes]:
    """Convenience wrapper around hash_data for an in-memory buffer."""
    return hash_data(io.BytesIO(data))
