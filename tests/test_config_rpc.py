import json

import base58
import httpx
import pytest
from eth_utils import keccak

from conftest import DURATION, OWNER, PLAYERS, START, open_raffle, sell
from private_raffle.claims import recipient_binding
from private_raffle.cli import build_parser, read_leaves
from private_raffle.config import Settings
from private_raffle.draw import compute_winner_index, derive_seed, local_entropy
from private_raffle.field import address_bytes, address_to_field
from private_raffle.project_constants import MAX_DEPTH, REQUEST_CONFIRMATIONS
from private_raffle.registry import PrivateRaffle
from private_raffle.rpc import (
    RpcClient,
    RpcEntropySource,
    blockhash_entropy,
    load_blockhash_from_feed_file,
)
from private_raffle.witness import build_public_inputs, build_witness, commitment

BLOCKHASH = base58.b58encode(bytes(range(32))).decode("ascii")


@pytest.fixture
def clean_env(monkeypatch):
    for var in ["RPC_URL", "HELIUS_API_KEY", "REQUEST_CONFIRMATIONS"]:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setattr("private_raffle.config.load_dotenv", lambda: None)
    return monkeypatch


def test_settings_defaults(clean_env):
    s = Settings.from_env()
    assert s.rpc_url is None
    assert s.request_confirmations == 3
    with pytest.raises(RuntimeError, match="Missing RPC_URL"):
        s.require_rpc_url()


def test_settings_from_env(clean_env):
    clean_env.setenv("RPC_URL", " https://rpc.example ")
    clean_env.setenv("REQUEST_CONFIRMATIONS", "5")
    s = Settings.from_env()
    assert s.require_rpc_url() == "https://rpc.example"
    assert s.request_confirmations == 5


def test_api_key_alone_is_not_an_rpc_url(clean_env):
    clean_env.setenv("HELIUS_API_KEY", "abc")
    assert Settings.from_env().rpc_url is None


def test_settings_override_wins(clean_env):
    clean_env.setenv("RPC_URL", "https://env.example")
    assert Settings.from_env().rpc_url == "https://env.example"
    assert Settings.from_env("https://cli.example").rpc_url == "https://cli.example"


def test_settings_rejects_zero_confirmations(clean_env):
    clean_env.setenv("REQUEST_CONFIRMATIONS", "0")
    with pytest.raises(RuntimeError):
        Settings.from_env()


def test_blockhash_entropy():
    assert blockhash_entropy(BLOCKHASH) == bytes(range(32))
    with pytest.raises(RuntimeError):
        blockhash_entropy(base58.b58encode(b"short").decode("ascii"))


def test_feed_file_formats(tmp_path):
    raw = tmp_path / "raw.txt"
    raw.write_text(BLOCKHASH + "\n", encoding="utf-8")
    assert load_blockhash_from_feed_file(str(raw)) == BLOCKHASH

    plain = tmp_path / "plain.json"
    plain.write_text(json.dumps({"blockhash": BLOCKHASH}), encoding="utf-8")
    assert load_blockhash_from_feed_file(str(plain), slot_hint=42) == BLOCKHASH

    pinned = tmp_path / "pinned.json"
    pinned.write_text(json.dumps({"slot": 42, "blockhash": BLOCKHASH}), encoding="utf-8")
    assert load_blockhash_from_feed_file(str(pinned), slot_hint=42) == BLOCKHASH

    wrong = tmp_path / "wrong.json"
    wrong.write_text(json.dumps({"slot": 1, "blockhash": BLOCKHASH}), encoding="utf-8")
    with pytest.raises(RuntimeError):
        load_blockhash_from_feed_file(str(wrong), slot_hint=2)


def test_rpc_entropy_source():
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        assert body["method"] == "getLatestBlockhash"
        return httpx.Response(
            200,
            json={"jsonrpc": "2.0", "id": 1, "result": {"value": {"blockhash": BLOCKHASH}}},
        )

    client = RpcClient("https://rpc.example")
    client.client = httpx.Client(transport=httpx.MockTransport(handler))
    try:
        assert RpcEntropySource(client)() == bytes(range(32))
    finally:
        client.close()


def test_rpc_error_is_raised():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "error": {"code": -1}})

    client = RpcClient("https://rpc.example")
    client.client = httpx.Client(transport=httpx.MockTransport(handler))
    try:
        with pytest.raises(RuntimeError, match="RPC error"):
            client.get_slot()
    finally:
        client.close()


def test_seed_is_deterministic():
    a = derive_seed(1, 99, PLAYERS[0], 1_000, b"\x01" * 32)
    assert a == derive_seed(1, 99, PLAYERS[0], 1_000, b"\x01" * 32)
    assert a != derive_seed(1, 99, PLAYERS[1], 1_000, b"\x01" * 32)
    assert a != derive_seed(2, 99, PLAYERS[0], 1_000, b"\x01" * 32)


def test_compute_winner_index():
    assert compute_winner_index(9, 5) == 4
    with pytest.raises(ValueError):
        compute_winner_index(9, 0)


def test_read_leaves(tmp_path):
    f = tmp_path / "leaves.txt"
    f.write_text("# commitments\n1\n\n0x10\n", encoding="utf-8")
    assert read_leaves(str(f)) == [1, 16]


def test_parser_commands():
    args = build_parser().parse_args(["path", "--depth", "3", "--index", "1", "--leaves", "x"])
    assert args.cmd == "path"
    assert args.depth == 3


def test_feed_file_rejects_other_layouts(tmp_path):
    for name, body in [
        ("result.json", {"result": {"blockhash": BLOCKHASH}}),
        ("blocks.json", {"blocks": {"42": {"blockhash": BLOCKHASH}}}),
        ("list.json", [BLOCKHASH]),
    ]:
        path = tmp_path / name
        path.write_text(json.dumps(body), encoding="utf-8")
        with pytest.raises(RuntimeError, match="Could not find a blockhash"):
            load_blockhash_from_feed_file(str(path), slot_hint=42)


def test_engine_from_settings_uses_configured_confirmations(oracle, clock, verifier, hasher, ledger):
    settings = Settings(rpc_url=None, request_confirmations=5)
    engine = PrivateRaffle.from_settings(
        settings, OWNER, verifier, hasher, oracle, ledger=ledger, clock=clock
    )
    assert engine.confirmations == 5
    assert engine.entropy is local_entropy

    raffle_id = open_raffle(engine)
    sell(engine, raffle_id, 1)
    clock.now = START + DURATION
    request_id = engine.request_winner(PLAYERS[0], raffle_id)
    assert oracle.requests[request_id].confirmations == 5


def test_engine_from_settings_with_rpc_url_uses_block_entropy(oracle, verifier, hasher):
    settings = Settings(rpc_url="https://rpc.example")
    engine = PrivateRaffle.from_settings(settings, OWNER, verifier, hasher, oracle)
    try:
        assert isinstance(engine.entropy, RpcEntropySource)
        assert engine.entropy.client.rpc_url == "https://rpc.example"
        assert engine.confirmations == REQUEST_CONFIRMATIONS
    finally:
        engine.entropy.client.close()


def test_identity_encodings():
    assert address_bytes(PLAYERS[0]) == bytes([10]) * 32
    assert address_to_field("0xDeadBeef") == 0xDEADBEEF
    assert address_to_field("0xabc") == 0xABC
    assert address_bytes("alice") == keccak(text="alice")
    assert address_bytes("0xnothex") == keccak(text="0xnothex")
    assert address_bytes("") == keccak(text="")


def test_cli_inputs_prints_claim_inputs(tmp_path, capsys, hasher):
    leaves = [commitment(hasher, 20 + i, 30 + i) for i in range(3)]
    leaves_file = tmp_path / "leaves.txt"
    leaves_file.write_text("\n".join(hex(x) for x in leaves), encoding="utf-8")
    argv = [
        "inputs", "--depth", "3", "--index", "1", "--leaves", str(leaves_file),
        "--raffle-id", "4", "--nullifier-hash", "0x1f", "--recipient", "0xDeadBeef",
    ]

    args = build_parser().parse_args(argv + ["--secret", "21", "--nullifier", "31"])
    assert args.func(args) == 0
    out = json.loads(capsys.readouterr().out)

    witness = build_witness(hasher, 3, leaves, 1)
    expected = build_public_inputs(hasher, witness, 0x1F, "0xDeadBeef", 4)
    assert out["public_inputs"] == [hex(v) for v in expected.as_list()]
    assert expected.recipient_binding == recipient_binding(hasher, 0x1F, "0xDeadBeef")
    assert expected.winner_index == 1
    assert expected.tree_depth == 3
    assert len(out["siblings"]) == len(out["path_indices"]) == MAX_DEPTH

    args = build_parser().parse_args(argv + ["--secret", "20", "--nullifier", "31"])
    with pytest.raises(RuntimeError, match="commit to"):
        args.func(args)
