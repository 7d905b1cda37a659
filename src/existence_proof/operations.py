"""
Operation registry for existence-proof.

Maps operation names used on the wire to deterministic one-way byte
transforms. The default table implements SHA-256 (FIPS 180-4) and
SHA3-512 (FIPS 202) under the names the issuing service emits.

A registry is immutable: register() returns a new registry, so a table
built once at startup can be shared by concurrent verifications without
locking.
"""

from types import MappingProxyType
from typing import Callable, Iterator, Mapping

from cryptography.hazmat.primitives import hashes

from .errors import UnknownOperationError


# Wire names of the built-in operations
SHA2_256 = "sha2_256"
SHA3_512 = "sha3_512"

OperationFn = Callable[[bytes], bytes]


def hash_operation(algorithm: hashes.HashAlgorithm) -> OperationFn:
    """
    Build an operation that digests its whole input with `algorithm`.

    Args:
        algorithm: A cryptography hash algorithm instance, e.g. hashes.SHA256()

    Returns:
        Function mapping input bytes to the digest bytes
    """
    def operation(data: bytes) -> bytes:
        digest = hashes.Hash(algorithm)
        digest.update(data)
        return digest.finalize()

    operation.__name__ = f"hash_{algorithm.name}"
    return operation


class OperationRegistry:
    """Read-only table of named operations."""

    def __init__(self, operations: Mapping[str, OperationFn] | None = None) -> None:
        table: dict[str, OperationFn] = {}
        for name, fn in (operations or {}).items():
            _check_entry(name, fn)
            table[name] = fn
        self._operations = MappingProxyType(table)

    def register(self, name: str, fn: OperationFn) -> "OperationRegistry":
        """
        Return a new registry with `name` mapped to `fn`.

        Raises:
            ValueError: If the name is empty, already taken, or fn is not callable
        """
        _check_entry(name, fn)
        if name in self._operations:
            raise ValueError(f"Operation already registered: {name}")
        table = dict(self._operations)
        table[name] = fn
        return OperationRegistry(table)

    def lookup(self, name: str) -> OperationFn:
        fn = self._operations.get(name)
        if fn is None:
            raise UnknownOperationError(
                f"unknown operation '{name}'",
                details={"type": name, "known": list(self.names())},
            )
        return fn

    def names(self) -> tuple[str, ...]:
        return tuple(sorted(self._operations))

    def __contains__(self, name: object) -> bool:
        return name in self._operations

    def __iter__(self) -> Iterator[str]:
        return iter(self.names())

    def __len__(self) -> int:
        return len(self._operations)

    def __repr__(self) -> str:
        return f"OperationRegistry({', '.join(self.names())})"


def _check_entry(name: str, fn: OperationFn) -> None:
    if not isinstance(name, str) or not name:
        raise ValueError("Operation name must be a non-empty string")
    if not callable(fn):
        raise ValueError(f"Operation {name} is not callable")


DEFAULT_REGISTRY = OperationRegistry({
    SHA2_256: hash_operation(hashes.SHA256()),
    SHA3_512: hash_operation(hashes.SHA3_512()),
})
