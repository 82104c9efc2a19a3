from typing import List, Sequence, Tuple

import base58
import pytest

from private_raffle.claims import recipient_binding
from private_raffle.field import KeccakFieldHasher
from private_raffle.ledger import Ledger
from private_raffle.randomness import LocalRandomnessOracle
from private_raffle.registry import PrivateRaffle


def make_address(n: int) -> str:
    return base58.b58encode(bytes([n]) * 32).decode("ascii")


OWNER = make_address(1)
CREATOR = make_address(2)
ORACLE = make_address(3)
RELAYER = make_address(4)
RECIPIENT = make_address(5)
PLAYERS = [make_address(10 + i) for i in range(16)]

START = 1_000
DURATION = 100
PRICE = 10
PRIZE = 1_000


class FakeClock:
    def __init__(self, now: int = START) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


class FakeVerifier:
    def __init__(self, result: bool = True) -> None:
        self.result = result
        self.calls: List[Tuple[bytes, List[int]]] = []

    def verify(self, proof: bytes, public_inputs: Sequence[int]) -> bool:
        self.calls.append((proof, list(public_inputs)))
        return self.result


@pytest.fixture
def hasher():
    return KeccakFieldHasher()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def verifier():
    return FakeVerifier()


@pytest.fixture
def oracle():
    return LocalRandomnessOracle(address=ORACLE)


@pytest.fixture
def ledger():
    led = Ledger()
    for addr in [CREATOR, *PLAYERS]:
        led.mint(addr, 10_000)
    return led


@pytest.fixture
def engine(hasher, clock, verifier, oracle, ledger):
    eng = PrivateRaffle(
        owner=OWNER,
        verifier=verifier,
        hasher=hasher,
        oracle=oracle,
        ledger=ledger,
        clock=clock,
        entropy=lambda: b"\x07" * 32,
    )
    oracle.register_consumer(eng.address, eng.fulfill_random_words)
    return eng


def open_raffle(engine, levels: int = 3, price: int = PRICE) -> int:
    return engine.create_raffle(CREATOR, price, DURATION, levels, PRIZE)


def sell(engine, raffle_id: int, count: int, price: int = PRICE) -> List[int]:
    commitments = [1_000 + raffle_id * 100 + i for i in range(count)]
    for player, c in zip(PLAYERS, commitments):
        engine.buy_ticket(player, raffle_id, c, price)
    return commitments


def draw(engine, oracle, clock, raffle_id: int, word: int) -> int:
    clock.now = START + DURATION
    request_id = engine.request_winner(RELAYER, raffle_id)
    oracle.deliver(request_id, [word])
    return request_id


def claim_inputs(engine, hasher, raffle_id: int, nullifier_hash: int = 777,
                 recipient: str = RECIPIENT) -> List[int]:
    raffle = engine.get_raffle(raffle_id)
    return [
        raffle.root,
        nullifier_hash,
        recipient_binding(hasher, nullifier_hash, recipient),
        raffle_id,
        raffle.winner_index,
        raffle.levels,
    ]
