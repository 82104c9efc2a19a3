"""
Request/callback protocol with an external randomness oracle.

The oracle receives a request and later calls the consumer back with the
same request id and one or more random words. Each request id issued to a
raffle is a single-use ticket: it binds the callback to that raffle and is
consumed by the first delivery that closes the draw.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Protocol, Sequence

from eth_utils import keccak

from .project_constants import CALLBACK_SIGNATURE

log = logging.getLogger(__name__)

CALLBACK_SELECTOR = keccak(text=CALLBACK_SIGNATURE)[:4]


class RandomnessOracle(Protocol):
    address: str

    def generate_request(
        self,
        callback_selector: bytes,
        word_count: int,
        confirmations: int,
        seed: int,
        requester: str,
    ) -> int: ...


class RequestBook:
    """Issued request ids mapped to the raffle that asked for them."""

    def __init__(self) -> None:
        self.pending: Dict[int, int] = {}
        self.consumed: Dict[int, int] = {}

    def issue(self, request_id: int, raffle_id: int) -> None:
        if request_id in self.pending or request_id in self.consumed:
            raise RuntimeError(f"Oracle reused request id {request_id}.")
        self.pending[request_id] = raffle_id

    def lookup(self, request_id: int) -> Optional[int]:
        return self.pending.get(request_id)

    def consume(self, request_id: int) -> int:
        raffle_id = self.pending.pop(request_id)
        self.consumed[request_id] = raffle_id
        return raffle_id

    def cancel(self, request_id: int) -> None:
        """Forget an issued id (its request was rolled back)."""
        self.pending.pop(request_id, None)

    def reinstate(self, request_id: int) -> None:
        """Undo a consume."""
        self.pending[request_id] = self.consumed.pop(request_id)


@dataclass
class OracleRequest:
    request_id: int
    callback_selector: bytes
    word_count: int
    confirmations: int
    seed: int
    requester: str
    delivered: bool = False


# callback(oracle_address, request_id, random_words)
Consumer = Callable[[str, int, List[int]], None]


@dataclass
class LocalRandomnessOracle:
    """
    In-process oracle. Requests are queued until ``deliver`` is called,
    which invokes the consumer registered for the requester.
    """

    address: str
    requests: Dict[int, OracleRequest] = field(default_factory=dict)
    consumers: Dict[str, Consumer] = field(default_factory=dict)
    _next_id: int = 1

    def register_consumer(self, requester: str, callback: Consumer) -> None:
        self.consumers[requester] = callback

    def generate_request(
        self,
        callback_selector: bytes,
        word_count: int,
        confirmations: int,
        seed: int,
        requester: str,
    ) -> int:
        request_id = self._next_id
        self._next_id += 1
        self.requests[request_id] = OracleRequest(
            request_id=request_id,
            callback_selector=callback_selector,
            word_count=word_count,
            confirmations=confirmations,
            seed=seed,
            requester=requester,
        )
        log.info("Oracle request %d queued (seed=%d)", request_id, seed)
        return request_id

    def deliver(self, request_id: int, random_words: Sequence[int]) -> None:
        req = self.requests[request_id]
        callback = self.consumers.get(req.requester)
        if callback is None:
            raise RuntimeError(f"No consumer registered for {req.requester}.")
        callback(self.address, request_id, list(random_words))
        req.delivered = True
