"""
Command line interface for offline proof checking.

    existence-proof verify proof.json --file document.pdf --digest sha2_256
    existence-proof digest document.pdf
    existence-proof inspect proof.json
"""

import argparse
import base64
import binascii
import json
import logging
import sys
from pathlib import Path

from .digest import hash_data
from .errors import ErrorCode, InvalidInputError, MalformedProofError, ProofError
from .operations import SHA2_256, SHA3_512
from .proof import Proof
from .summary import format_proof_summary
from .verify import verify_proof

logger = logging.getLogger(__name__)


def _load_proof(path: Path) -> Proof:
    text = path.read_bytes()
    try:
        obj = json.loads(text)
    except ValueError as exc:
        raise MalformedProofError(
            f"proof is not valid JSON: {exc}",
            code=ErrorCode.DECODE_FAILED,
            details={"path": str(path)},
        ) from exc
    # A full prove response embeds the proof under "proof"
    if isinstance(obj, dict) and isinstance(obj.get("proof"), dict):
        obj = obj["proof"]
    return Proof.from_dict(obj)


def _root_data(args: argparse.Namespace) -> bytes:
    if args.data_b64 is not None:
        try:
            return base64.b64decode(args.data_b64, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise InvalidInputError(f"--data-b64 is not valid base64: {exc}") from exc
    if args.data_hex is not None:
        try:
            return bytes.fromhex(args.data_hex)
        except ValueError as exc:
            raise InvalidInputError(f"--data-hex is not valid hex: {exc}") from exc
    with open(args.file, "rb") as f:
        sha2, sha3 = hash_data(f)
    return sha2 if args.digest == SHA2_256 else sha3


def cmd_verify(args: argparse.Namespace) -> int:
    proof = _load_proof(args.proof)
    root = _root_data(args)
    refs = verify_proof(proof, root, args.timestamp)
    print(json.dumps([ref.to_dict() for ref in refs], indent=2))
    return 0


def cmd_digest(args: argparse.Namespace) -> int:
    with open(args.path, "rb") as f:
        sha2, sha3 = hash_data(f)
    output = {
        SHA2_256: {"hex": sha2.hex(), "base64": base64.b64encode(sha2).decode("ascii")},
        SHA3_512: {"hex": sha3.hex(), "base64": base64.b64encode(sha3).decode("ascii")},
    }
    print(json.dumps(output, indent=2))
    return 0


def cmd_inspect(args: argparse.Namespace) -> int:
    print(format_proof_summary(_load_proof(args.proof)))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="existence-proof",
        description="Check existence proofs offline",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    verify = sub.add_parser("verify", help="verify a proof for some root data")
    verify.add_argument("proof", type=Path, help="path to proof JSON (or a prove response)")
    source = verify.add_mutually_exclusive_group(required=True)
    source.add_argument("--data-b64", help="root data as base64")
    source.add_argument("--data-hex", help="root data as hex")
    source.add_argument("--file", type=Path, help="document whose digest is the root data")
    verify.add_argument(
        "--digest",
        choices=[SHA2_256, SHA3_512],
        default=SHA2_256,
        help="digest of --file used as root data (default: %(default)s)",
    )
    verify.add_argument("--timestamp", type=int, default=None, help="claimed timestamp")
    verify.set_defaults(func=cmd_verify)

    digest = sub.add_parser("digest", help="print both root digests of a file")
    digest.add_argument("path", type=Path)
    digest.set_defaults(func=cmd_digest)

    inspect = sub.add_parser("inspect", help="summarize a proof without verifying it")
    inspect.add_argument("proof", type=Path)
    inspect.set_defaults(func=cmd_inspect)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        return args.func(args)
    except ProofError as exc:
        logger.error("%s: %s", exc.code.value, exc.message)
        print(json.dumps(exc.to_dict(), indent=2), file=sys.stderr)
        return 1
    except (OSError, ValueError) as exc:
        logger.error("%s", exc)
        return 2


if __name__ == "__main__":
    sys.exit(main())
