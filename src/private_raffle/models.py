from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class RaffleStatus(Enum):
    ACTIVE = 0
    CLOSED = 1
    CLAIMED = 2


@dataclass
class Raffle:
    creator: str
    ticket_price: int
    max_participants: int
    duration: int
    end_time: int
    levels: int
    root: int
    prize_pool: int
    created_at: int
    next_index: int = 0
    status: RaffleStatus = RaffleStatus.ACTIVE
    winner_index: int = 0
    request_id: Optional[int] = None
    randomness_requested: bool = False
    random_word: Optional[int] = None  # kept for audits
