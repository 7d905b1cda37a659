"""
Verification engine tests for existence-proof.

Expected digests are computed with hashlib, independently of the
cryptography primitives used by the registry.
"""

import base64
import hashlib
import logging
from pathlib import Path

import pytest

# Add parent src to path for development
import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from existence_proof import (
    DanglingReferenceError,
    EmptyLocatorError,
    EmptyOperationInputError,
    ErrorCode,
    InvalidInputError,
    InvalidReferenceTargetError,
    MalformedProofError,
    Operation,
    OperationRegistry,
    Proof,
    ProofDoesNotApplyError,
    Reference,
    UnknownOperationError,
    VerifyOptions,
    encode_timestamp,
    verify_proof,
)


GOLDEN_PROOF = """{
    "operations": [
        {"type": "sha3_512", "data": [0]},
        {"type": "sha2_256", "data": [-1, 0]}
    ],
    "data": ["AQIDBAUGBwgJCgsMDQ4PEBESExQ="],
    "references": [{"data": -2, "ref": "encyclopedia britannica"}]
}"""
GOLDEN_DATA = bytes(range(1, 21))
GOLDEN_OUTPUT = "avaZW1398UuMUV9tirLTXlc4XpjNeV5D9cTAZje0nNw="

ROOT = b"root-digest-0123456789abcdef0123"


def sha2(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def sha3(data: bytes) -> bytes:
    return hashlib.sha3_512(data).digest()


def make_proof(data, operations, references) -> Proof:
    return Proof(
        data=tuple(data),
        operations=tuple(Operation(t, tuple(inputs)) for t, inputs in operations),
        references=tuple(Reference(idx, loc) for idx, loc in references),
    )


def chain_proof() -> Proof:
    """Literal ROOT, sha3_512 over it, sha2_256 over that plus ROOT."""
    return make_proof(
        [ROOT],
        [("sha3_512", [0]), ("sha2_256", [-1, 0])],
        [(-2, "X")],
    )


class TestGoldenVector:
    """The published example proof must verify to the published output."""

    def test_golden_output(self):
        proof = Proof.from_json(GOLDEN_PROOF)
        refs = proof.verify(proof.data[0], 0)

        assert len(refs) == 1
        assert refs[0].data_base64 == GOLDEN_OUTPUT
        assert refs[0].locator == "encyclopedia britannica"

    def test_golden_matches_replay(self):
        refs = verify_proof(Proof.from_json(GOLDEN_PROOF), GOLDEN_DATA)
        expected = sha2(sha3(GOLDEN_DATA) + GOLDEN_DATA)
        assert refs[0].data == expected
        assert base64.b64encode(expected).decode() == GOLDEN_OUTPUT


class TestAcceptedReferences:
    """Trust attribution and result assembly."""

    def test_chain_result(self):
        """Data equals the replayed chain; both hash functions are reported sorted."""
        refs = verify_proof(chain_proof(), ROOT, 0)

        assert len(refs) == 1
        assert refs[0].data == sha2(sha3(ROOT) + ROOT)
        assert refs[0].locator == "X"
        assert refs[0].hash_functions == ("sha2_256", "sha3_512")

    def test_root_is_any_reachable_literal(self):
        """Root data may be any literal reachable from the reference target."""
        other = b"sibling-literal"
        proof = make_proof(
            [other, ROOT],
            [("sha2_256", [0, 1])],
            [(-1, "X")],
        )
        refs = verify_proof(proof, ROOT)
        assert refs[0].data == sha2(other + ROOT)

    def test_no_matching_literal(self):
        with pytest.raises(ProofDoesNotApplyError) as exc_info:
            verify_proof(chain_proof(), b"some other digest")
        assert exc_info.value.code == ErrorCode.PROOF_DOES_NOT_APPLY

    def test_unrelated_reference_is_dropped(self):
        """A reference that does not depend on the root is filtered out."""
        proof = make_proof(
            [ROOT, b"unrelated"],
            [("sha2_256", [1]), ("sha2_256", [0])],
            [(-1, "unrelated"), (-2, "good")],
        )
        refs = verify_proof(proof, ROOT)
        assert [r.locator for r in refs] == ["good"]

    def test_only_trust_chain_hashes_reported(self):
        """Operations on branches not depending on the root add no names."""
        proof = make_proof(
            [ROOT, b"side input"],
            [("sha3_512", [1]), ("sha2_256", [0, -1])],
            [(-2, "X")],
        )
        refs = verify_proof(proof, ROOT)
        assert refs[0].hash_functions == ("sha2_256",)
        assert refs[0].data == sha2(ROOT + sha3(b"side input"))

    def test_shared_ancestor_reported_once(self):
        """Diamond-shaped sharing never duplicates a hash function name."""
        proof = make_proof(
            [ROOT],
            [
                ("sha3_512", [0]),
                ("sha2_256", [-1]),
                ("sha2_256", [-1]),
                ("sha3_512", [-2, -3]),
            ],
            [(-4, "A"), (-2, "B")],
        )
        refs = verify_proof(proof, ROOT)

        assert [r.locator for r in refs] == ["A", "B"]
        assert refs[0].hash_functions == ("sha2_256", "sha3_512")
        assert refs[1].hash_functions == ("sha2_256", "sha3_512")
        d1 = sha3(ROOT)
        assert refs[0].data == sha3(sha2(d1) + sha2(d1))

    def test_repeated_input_reported_once(self):
        proof = make_proof([ROOT], [("sha2_256", [0, 0, 0])], [(-1, "X")])
        refs = verify_proof(proof, ROOT)
        assert refs[0].hash_functions == ("sha2_256",)
        assert refs[0].data == sha2(ROOT * 3)

    def test_reference_order_preserved(self):
        """Reordering references keeps the accepted set and follows input order."""
        ops = [("sha2_256", [0]), ("sha3_512", [-1]), ("sha2_256", [1])]
        forward = make_proof([ROOT, b"x"], ops, [(-1, "one"), (-3, "skip"), (-2, "two")])
        backward = make_proof([ROOT, b"x"], ops, [(-2, "two"), (-3, "skip"), (-1, "one")])

        assert [r.locator for r in verify_proof(forward, ROOT)] == ["one", "two"]
        assert [r.locator for r in verify_proof(backward, ROOT)] == ["two", "one"]

    def test_idempotent(self):
        proof = Proof.from_json(GOLDEN_PROOF)
        first = verify_proof(proof, GOLDEN_DATA)
        second = verify_proof(proof, GOLDEN_DATA)
        assert first == second
        assert [r.to_dict() for r in first] == [r.to_dict() for r in second]

    def test_bytearray_root(self):
        refs = verify_proof(chain_proof(), bytearray(ROOT))
        assert refs[0].locator == "X"


class TestTimestamp:
    """Claimed timestamps must also be part of the trust chain."""

    TS = 1_500_000_000_000_000_000

    def timestamped_proof(self) -> Proof:
        return make_proof(
            [encode_timestamp(self.TS), ROOT],
            [("sha2_256", [0, 1]), ("sha2_256", [1])],
            [(-1, "with-ts"), (-2, "without-ts")],
        )

    def test_encoding(self):
        assert encode_timestamp(1) == b"\x00" * 7 + b"\x01"
        assert encode_timestamp(-1) == b"\xff" * 8

    def test_timestamp_required_when_given(self):
        refs = verify_proof(self.timestamped_proof(), ROOT, self.TS)
        assert [r.locator for r in refs] == ["with-ts"]
        assert refs[0].data == sha2(encode_timestamp(self.TS) + ROOT)

    def test_zero_timestamp_is_not_checked(self):
        refs = verify_proof(self.timestamped_proof(), ROOT, 0)
        assert [r.locator for r in refs] == ["with-ts", "without-ts"]

    def test_none_timestamp_is_not_checked(self):
        refs = verify_proof(self.timestamped_proof(), ROOT)
        assert len(refs) == 2

    def test_wrong_timestamp(self):
        with pytest.raises(ProofDoesNotApplyError):
            verify_proof(self.timestamped_proof(), ROOT, self.TS + 1)

    def test_timestamp_alone_is_not_enough(self):
        """A reference depending only on the timestamp is not accepted."""
        proof = make_proof(
            [encode_timestamp(self.TS), ROOT],
            [("sha2_256", [0])],
            [(-1, "ts-only")],
        )
        with pytest.raises(ProofDoesNotApplyError):
            verify_proof(proof, ROOT, self.TS)


class TestInvalidInput:
    """Caller-supplied root data and timestamps."""

    def test_empty_root(self):
        with pytest.raises(InvalidInputError) as exc_info:
            verify_proof(chain_proof(), b"")
        assert exc_info.value.code == ErrorCode.INVALID_INPUT

    def test_empty_root_checked_first(self):
        with pytest.raises(InvalidInputError):
            verify_proof(Proof(), b"")

    def test_str_root(self):
        with pytest.raises(InvalidInputError):
            verify_proof(chain_proof(), "root")

    def test_bool_timestamp(self):
        with pytest.raises(InvalidInputError):
            verify_proof(chain_proof(), ROOT, True)

    def test_timestamp_out_of_range(self):
        with pytest.raises(InvalidInputError):
            verify_proof(chain_proof(), ROOT, 2 ** 63)


class TestMalformedProofs:
    """Structural violations, first violation wins."""

    def test_no_data(self):
        proof = make_proof([], [("sha2_256", [0])], [(-1, "X")])
        with pytest.raises(MalformedProofError) as exc_info:
            verify_proof(proof, ROOT)
        assert exc_info.value.code == ErrorCode.EMPTY_DATA

    def test_empty_data_entry(self):
        proof = make_proof([ROOT, b""], [("sha2_256", [0])], [(-1, "X")])
        with pytest.raises(MalformedProofError) as exc_info:
            verify_proof(proof, ROOT)
        assert exc_info.value.code == ErrorCode.EMPTY_DATA
        assert exc_info.value.details["index"] == 1

    def test_no_references(self):
        proof = make_proof([ROOT], [("md5", [0])], [])
        with pytest.raises(MalformedProofError) as exc_info:
            verify_proof(proof, ROOT)
        assert exc_info.value.code == ErrorCode.NO_REFERENCES

    def test_unknown_operation(self):
        proof = make_proof(
            [ROOT],
            [("sha2_256", [0]), ("md5", [-1])],
            [(-1, "X")],
        )
        with pytest.raises(UnknownOperationError) as exc_info:
            verify_proof(proof, ROOT)
        assert exc_info.value.code == ErrorCode.UNKNOWN_OPERATION
        assert exc_info.value.details == {"operation": 1, "type": "md5"}

    def test_unknown_operation_wins_over_empty_input(self):
        proof = make_proof(
            [ROOT],
            [("sha2_256", []), ("md5", [0])],
            [(-1, "X")],
        )
        with pytest.raises(UnknownOperationError):
            verify_proof(proof, ROOT)

    def test_empty_operation_input(self):
        proof = make_proof([ROOT], [("sha2_256", [])], [(-1, "X")])
        with pytest.raises(EmptyOperationInputError) as exc_info:
            verify_proof(proof, ROOT)
        assert exc_info.value.code == ErrorCode.EMPTY_OPERATION_INPUT

    def test_forward_reference(self):
        proof = make_proof([ROOT], [("sha2_256", [-1])], [(-1, "X")])
        with pytest.raises(DanglingReferenceError) as exc_info:
            verify_proof(proof, ROOT)
        assert exc_info.value.details["index"] == -1

    def test_self_reference(self):
        proof = make_proof(
            [ROOT],
            [("sha2_256", [0]), ("sha2_256", [-2])],
            [(-1, "X")],
        )
        with pytest.raises(DanglingReferenceError):
            verify_proof(proof, ROOT)

    def test_literal_out_of_range(self):
        proof = make_proof([ROOT], [("sha2_256", [0, 1])], [(-1, "X")])
        with pytest.raises(DanglingReferenceError) as exc_info:
            verify_proof(proof, ROOT)
        assert exc_info.value.code == ErrorCode.DANGLING_REFERENCE

    def test_empty_locator(self):
        proof = make_proof([ROOT], [("sha2_256", [0])], [(-1, "")])
        with pytest.raises(EmptyLocatorError):
            verify_proof(proof, ROOT)

    def test_empty_locator_wins_over_bad_target(self):
        proof = make_proof([ROOT], [("sha2_256", [0])], [(0, "X"), (-1, "")])
        with pytest.raises(EmptyLocatorError):
            verify_proof(proof, ROOT)

    def test_reference_to_literal(self):
        """A non-negative reference is rejected even if everything else is fine."""
        proof = make_proof([ROOT], [("sha2_256", [0])], [(-1, "good"), (0, "X")])
        with pytest.raises(InvalidReferenceTargetError) as exc_info:
            verify_proof(proof, ROOT)
        assert exc_info.value.code == ErrorCode.INVALID_REFERENCE_TARGET

    def test_reference_beyond_outputs(self):
        proof = make_proof([ROOT], [("sha2_256", [0])], [(-2, "X")])
        with pytest.raises(InvalidReferenceTargetError):
            verify_proof(proof, ROOT)

    def test_all_malformed_errors_are_malformed(self):
        for cls in (
            UnknownOperationError,
            EmptyOperationInputError,
            DanglingReferenceError,
            EmptyLocatorError,
            InvalidReferenceTargetError,
        ):
            assert issubclass(cls, MalformedProofError)


class TestCustomRegistry:
    """Extra operations work without engine changes."""

    def test_registered_operation(self):
        registry = OperationRegistry().register("reverse", lambda b: b[::-1])
        proof = make_proof([ROOT], [("reverse", [0])], [(-1, "X")])

        refs = verify_proof(proof, ROOT, options=VerifyOptions(registry=registry))
        assert refs[0].data == ROOT[::-1]
        assert refs[0].hash_functions == ("reverse",)

    def test_default_registry_lacks_custom_operation(self):
        proof = make_proof([ROOT], [("reverse", [0])], [(-1, "X")])
        with pytest.raises(UnknownOperationError):
            verify_proof(proof, ROOT)


class TestLogging:
    """Attribution is traced at debug level."""

    def test_attribution_records(self, caplog):
        proof = make_proof(
            [ROOT, b"side input"],
            [("sha3_512", [1]), ("sha2_256", [0, -1])],
            [(-2, "X")],
        )
        with caplog.at_level(logging.DEBUG, logger="existence_proof.verify"):
            verify_proof(proof, ROOT)

        messages = [r.getMessage() for r in caplog.records]
        assert "operation 0 (sha3_512) does not depend on the root data" in messages
        assert (
            "operation 1 (sha2_256) depends on root=True timestamp=False via ['sha2_256']"
            in messages
        )
