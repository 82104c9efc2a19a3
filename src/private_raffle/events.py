from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator, List, Type, TypeVar

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class RaffleCreated:
    raffle_id: int
    creator: str
    ticket_price: int
    max_participants: int
    end_time: int
    prize: int


@dataclass(frozen=True)
class TicketPurchased:
    raffle_id: int
    leaf_index: int
    commitment: int


@dataclass(frozen=True)
class RandomnessRequested:
    raffle_id: int
    request_id: int


@dataclass(frozen=True)
class WinnerSelected:
    raffle_id: int
    winner_index: int


@dataclass(frozen=True)
class PrizeClaimed:
    raffle_id: int
    amount: int
    nullifier_hash: int


@dataclass(frozen=True)
class RelayerPaid:
    raffle_id: int
    relayer: str
    fee: int


@dataclass(frozen=True)
class VerifierUpdated:
    previous: str
    current: str


@dataclass(frozen=True)
class EmergencyWithdrawal:
    to: str
    amount: int


E = TypeVar("E")


class EventLog:
    """Append-only list of published events, read by off-chain indexers."""

    def __init__(self) -> None:
        self._events: List[object] = []

    def emit(self, event: object) -> None:
        log.debug("event %s", event)
        self._events.append(event)

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[object]:
        return iter(self._events)

    def of_type(self, kind: Type[E]) -> List[E]:
        return [e for e in self._events if isinstance(e, kind)]

    def truncate(self, length: int) -> None:
        del self._events[length:]
