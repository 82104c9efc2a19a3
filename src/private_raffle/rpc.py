from __future__ import annotations

import json
from typing import Any, Dict, Optional

import base58
import httpx


def blockhash_entropy(blockhash: str) -> bytes:
    """Block hashes are base58 strings; the raw 32 bytes feed the draw seed."""
    raw = base58.b58decode(blockhash)
    if len(raw) != 32:
        raise RuntimeError(f"Block hash {blockhash!r} decodes to {len(raw)} bytes, expected 32.")
    return raw


class RpcClient:
    """Minimal JSON-RPC client for sourcing recent block hashes as entropy."""

    def __init__(self, rpc_url: str, timeout_s: float = 60.0) -> None:
        self.rpc_url = rpc_url
        self.client = httpx.Client(timeout=timeout_s)

    def close(self) -> None:
        self.client.close()

    def _post(self, method: str, params: list) -> Dict[str, Any]:
        payload = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params}
        resp = self.client.post(self.rpc_url, json=payload)
        resp.raise_for_status()
        data = resp.json()
        if "error" in data:
            raise RuntimeError(f"RPC error: {data['error']}")
        return data

    def get_slot(self, commitment: str = "finalized") -> int:
        data = self._post("getSlot", [{"commitment": commitment}])
        return int(data["result"])

    def get_latest_blockhash(self, commitment: str = "finalized") -> str:
        data = self._post("getLatestBlockhash", [{"commitment": commitment}])
        value = (data.get("result") or {}).get("value") or {}
        if "blockhash" not in value:
            raise RuntimeError("getLatestBlockhash returned no blockhash.")
        return value["blockhash"]

    def get_blockhash_for_slot(self, slot: int) -> str:
        data = self._post(
            "getBlock",
            [slot, {"encoding": "json", "transactionDetails": "none", "rewards": False}],
        )
        result = data.get("result")
        if not result or "blockhash" not in result:
            raise RuntimeError(f"Slot {slot}: getBlock returned no blockhash.")
        return result["blockhash"]


class RpcEntropySource:
    """Entropy source for the draw seed: the latest finalized block hash."""

    def __init__(self, client: RpcClient) -> None:
        self.client = client

    def __call__(self) -> bytes:
        return blockhash_entropy(self.client.get_latest_blockhash())


def load_blockhash_from_feed_file(path: str, slot_hint: Optional[int] = None) -> str:
    """
    Supports a raw blockhash string, or JSON {"blockhash": ..., "slot": ...}
    where "slot" is optional and, when present, must equal slot_hint.
    """
    with open(path, "r", encoding="utf-8") as f:
        raw = f.read().strip()

    if raw and raw[0] != "{":
        return raw

    try:
        j = json.loads(raw)
    except json.JSONDecodeError as e:
        raise RuntimeError(f"Block feed file is not valid JSON or raw string: {e}")

    blockhash = j.get("blockhash") if isinstance(j, dict) else None
    if not isinstance(blockhash, str):
        raise RuntimeError(
            "Could not find a blockhash in block feed file. "
            'Expected a raw string or JSON {"blockhash": ...}.'
        )
    if slot_hint is not None and "slot" in j and int(j["slot"]) != int(slot_hint):
        raise RuntimeError(
            f"Block feed slot mismatch: file slot={j['slot']} vs expected slot={slot_hint}"
        )
    return blockhash
