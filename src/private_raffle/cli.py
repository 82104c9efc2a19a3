from __future__ import annotations

import argparse
import json
import logging
from typing import List

from .config import Settings
from .draw import derive_seed
from .field import KeccakFieldHasher, to_field
from .rpc import RpcClient, blockhash_entropy, load_blockhash_from_feed_file
from .verify import verify_audit
from .witness import build_public_inputs, build_witness, commitment, pad_path
from .zero_hashes import ZeroHashTable


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def read_leaves(path: str) -> List[int]:
    """One leaf per line (decimal or 0x hex); blank lines and # comments skipped."""
    out: List[int] = []
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            s = line.strip()
            if not s or s.startswith("#"):
                continue
            out.append(to_field(s))
    return out


def cmd_zeros(args: argparse.Namespace) -> int:
    table = ZeroHashTable(KeccakFieldHasher(), args.depth)
    for level, z in enumerate(table.as_list()):
        print(f"zero[{level:2d}] = {hex(z)}")
    return 0


def cmd_path(args: argparse.Namespace) -> int:
    leaves = read_leaves(args.leaves)
    witness = build_witness(KeccakFieldHasher(), args.depth, leaves, args.index)
    siblings, path_indices = pad_path(witness)
    print(
        json.dumps(
            {
                "root": hex(witness.root),
                "leaf": hex(witness.leaf),
                "index": witness.index,
                "siblings": [hex(s) for s in siblings],
                "path_indices": path_indices,
            },
            indent=2,
        )
    )
    return 0


def cmd_inputs(args: argparse.Namespace) -> int:
    hasher = KeccakFieldHasher()
    leaves = read_leaves(args.leaves)
    witness = build_witness(hasher, args.depth, leaves, args.index)

    if (args.secret is None) != (args.nullifier is None):
        raise RuntimeError("--secret and --nullifier must be given together.")
    if args.secret is not None:
        leaf = commitment(hasher, to_field(args.secret), to_field(args.nullifier))
        if leaf != witness.leaf:
            raise RuntimeError(
                f"Secret/nullifier commit to {hex(leaf)}, but leaf {args.index} is {hex(witness.leaf)}"
            )

    inputs = build_public_inputs(
        hasher, witness, to_field(args.nullifier_hash), args.recipient, args.raffle_id
    )
    siblings, path_indices = pad_path(witness)
    print(
        json.dumps(
            {
                "public_inputs": [hex(v) for v in inputs.as_list()],
                "siblings": [hex(s) for s in siblings],
                "path_indices": path_indices,
            },
            indent=2,
        )
    )
    return 0


def cmd_seed(args: argparse.Namespace) -> int:
    log = logging.getLogger("seed")

    if args.block_feed_file:
        blockhash = load_blockhash_from_feed_file(args.block_feed_file, slot_hint=args.slot)
        source = f"file:{args.block_feed_file}"
    else:
        settings = Settings.from_env(rpc_url_override=args.rpc_url)
        rpc = RpcClient(settings.require_rpc_url(), timeout_s=args.timeout)
        try:
            if args.slot is not None:
                blockhash = rpc.get_blockhash_for_slot(args.slot)
                source = "rpc:getBlock"
            else:
                blockhash = rpc.get_latest_blockhash()
                source = "rpc:getLatestBlockhash"
        finally:
            rpc.close()

    log.info("Blockhash : %s", blockhash)
    log.info("Source    : %s", source)

    entropy = blockhash_entropy(blockhash)
    print(f"Entropy : {entropy.hex()}")
    if args.raffle_id is not None:
        seed, seed_hex = derive_seed(
            args.raffle_id, to_field(args.root), args.caller, args.timestamp, entropy
        )
        print(f"Seed    : {seed_hex}")
    return 0


def cmd_verify(args: argparse.Namespace) -> int:
    result = verify_audit(args.audit, KeccakFieldHasher())
    print("✅ AUDIT VERIFIED")
    print(f"Raffle            : {result['raffle_id']}")
    print(f"Participants      : {result['participants']}")
    print(f"Root              : {hex(result['root'])}")
    print(f"Winner index      : {result['winner_index']}")
    print(f"Winning commitment: {hex(result['winning_commitment'])}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="private-raffle",
        description="Tools for the anonymous Merkle-commitment raffle.",
    )
    p.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    p.add_argument("--rpc-url", default=None, help="Override RPC URL (else use env).")
    p.add_argument("--timeout", type=float, default=60.0, help="RPC timeout seconds.")

    sub = p.add_subparsers(dest="cmd", required=True)

    z = sub.add_parser("zeros", help="Print the empty-subtree hash chain.")
    z.add_argument("--depth", type=int, default=32, help="Tree depth (1-32).")
    z.set_defaults(func=cmd_zeros)

    pa = sub.add_parser("path", help="Rebuild the tree and print a leaf's Merkle path.")
    pa.add_argument("--depth", type=int, required=True, help="Tree depth of the raffle.")
    pa.add_argument("--index", type=int, required=True, help="Leaf index (winner index).")
    pa.add_argument("--leaves", required=True, help="File with one commitment per line.")
    pa.set_defaults(func=cmd_path)

    i = sub.add_parser("inputs", help="Print the claim public inputs and padded path.")
    i.add_argument("--depth", type=int, required=True, help="Tree depth of the raffle.")
    i.add_argument("--index", type=int, required=True, help="Leaf index (winner index).")
    i.add_argument("--leaves", required=True, help="File with one commitment per line.")
    i.add_argument("--raffle-id", type=int, required=True, help="Raffle id.")
    i.add_argument("--nullifier-hash", required=True, help="Nullifier hash (decimal or 0x hex).")
    i.add_argument("--recipient", required=True, help="Address that receives the prize.")
    i.add_argument("--secret", default=None, help="Ticket secret, to check the leaf.")
    i.add_argument("--nullifier", default=None, help="Ticket nullifier, to check the leaf.")
    i.set_defaults(func=cmd_inputs)

    s = sub.add_parser("seed", help="Fetch a block hash to use as draw entropy.")
    s.add_argument("--slot", type=int, default=None, help="Slot to read (else latest).")
    s.add_argument(
        "--block-feed-file",
        default=None,
        help="Read the block hash from a file (raw string or JSON) instead of RPC.",
    )
    s.add_argument("--raffle-id", type=int, default=None, help="Also derive the draw seed.")
    s.add_argument("--root", default="0", help="Current raffle root (with --raffle-id).")
    s.add_argument("--caller", default=None, help="Caller address (with --raffle-id).")
    s.add_argument("--timestamp", type=int, default=0, help="Request time (with --raffle-id).")
    s.set_defaults(func=cmd_seed)

    v = sub.add_parser("verify", help="Verify an exported raffle audit JSON.")
    v.add_argument("--audit", required=True, help="Path to audit.json.")
    v.set_defaults(func=cmd_verify)

    return p


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()
    setup_logging(args.verbose)
    if args.cmd == "seed" and args.raffle_id is not None and not args.caller:
        parser.error("--caller is required with --raffle-id")
    raise SystemExit(args.func(args))
