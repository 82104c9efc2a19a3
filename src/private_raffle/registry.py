"""
Raffle registry and lifecycle engine.

    create -> ACTIVE --purchase--> ACTIVE --request_winner--> ACTIVE (draw pending)
           --oracle callback--> CLOSED --claim_prize--> CLAIMED

Every public method is one transaction: either it completes, or it raises
and every change it made (raffles, trees, sets, balances, events) is
undone. Only the state a call actually touches is recorded for the undo, so
a rollback costs as much as the call did, not the size of the registry.
create_raffle and claim_prize additionally refuse to be entered while
either of them is already running.
"""

from __future__ import annotations

import copy
import logging
import time
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Set, Tuple

from .admin import AdminConfig, ProofVerifier
from .claims import ClaimValidator
from .config import Settings
from .draw import EntropySource, compute_winner_index, derive_seed, local_entropy
from .errors import (
    CommitmentAlreadyUsed,
    DrawAlreadyRequested,
    IncorrectPayment,
    InvalidDepth,
    InvalidDuration,
    InvalidPrize,
    InvalidTicketPrice,
    NoParticipants,
    NotOracle,
    RaffleEnded,
    RaffleNotActive,
    RaffleNotEnded,
    RaffleNotFound,
    ReentrantCall,
    TreeFull,
)
from .events import (
    EmergencyWithdrawal,
    EventLog,
    PrizeClaimed,
    RaffleCreated,
    RandomnessRequested,
    RelayerPaid,
    TicketPurchased,
    VerifierUpdated,
    WinnerSelected,
)
from .field import FieldHasher, FieldLike
from .ledger import Ledger
from .merkle import MerkleAccumulator
from .models import Raffle, RaffleStatus
from .project_constants import MAX_DEPTH, MIN_DEPTH, NUM_WORDS, REQUEST_CONFIRMATIONS
from .randomness import CALLBACK_SELECTOR, RandomnessOracle, RequestBook
from .rpc import RpcClient, RpcEntropySource

log = logging.getLogger(__name__)


class PrivateRaffle:
    def __init__(
        self,
        owner: str,
        verifier: ProofVerifier,
        hasher: FieldHasher,
        oracle: RandomnessOracle,
        ledger: Optional[Ledger] = None,
        clock: Optional[Callable[[], float]] = None,
        entropy: Optional[EntropySource] = None,
        confirmations: int = REQUEST_CONFIRMATIONS,
    ) -> None:
        self.admin = AdminConfig(owner=owner, verifier=verifier)
        self.hasher = hasher
        self.oracle = oracle
        self.ledger = ledger or Ledger()
        self.clock = clock or time.time
        self.entropy = entropy or local_entropy
        self.confirmations = confirmations

        self.accumulator = MerkleAccumulator(hasher)
        self.validator = ClaimValidator(hasher)
        self.requests = RequestBook()
        self.events = EventLog()

        self.raffles: Dict[int, Raffle] = {}
        self.commitments: Dict[int, Dict[int, int]] = {}
        self.used_commitments: Set[Tuple[int, int]] = set()
        self.used_nullifiers: Set[Tuple[int, int]] = set()
        self.raffle_count = 0
        self._entered = False
        self._undo: List[List[Callable[[], None]]] = []

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        owner: str,
        verifier: ProofVerifier,
        hasher: FieldHasher,
        oracle: RandomnessOracle,
        ledger: Optional[Ledger] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> "PrivateRaffle":
        """
        Engine wired from environment settings: the configured confirmation
        count goes into every oracle request, and when an RPC URL is set the
        draw seed mixes in the latest finalized block hash.
        """
        entropy: EntropySource = local_entropy
        if settings.rpc_url:
            entropy = RpcEntropySource(RpcClient(settings.rpc_url))
        return cls(
            owner=owner,
            verifier=verifier,
            hasher=hasher,
            oracle=oracle,
            ledger=ledger,
            clock=clock,
            entropy=entropy,
            confirmations=settings.request_confirmations,
        )

    @property
    def address(self) -> str:
        return self.ledger.account

    def _now(self) -> int:
        return int(self.clock())

    # ------------------------------------------------------------------
    # Transaction plumbing
    # ------------------------------------------------------------------

    @contextmanager
    def _transaction(self) -> Iterator[None]:
        # Each frame is a list of undo steps for the state touched so far.
        undo: List[Callable[[], None]] = []
        self._undo.append(undo)
        self.ledger.begin()
        event_count = len(self.events)
        try:
            yield
        except Exception:
            self._undo.pop()
            for step in reversed(undo):
                step()
            self.ledger.rollback()
            self.events.truncate(event_count)
            raise
        self._undo.pop()
        if self._undo:
            self._undo[-1].extend(undo)
        self.ledger.commit()

    def _on_rollback(self, step: Callable[[], None]) -> None:
        self._undo[-1].append(step)

    def _touch_raffle(self, raffle: Raffle) -> None:
        saved = copy.copy(raffle)
        self._on_rollback(lambda: vars(raffle).update(vars(saved)))

    def _touch_tree(self, raffle_id: int) -> None:
        saved = self.accumulator.snapshot_tree(raffle_id)
        self._on_rollback(lambda: self.accumulator.restore_tree(raffle_id, saved))

    def _forget_raffle(self, raffle_id: int) -> None:
        self.raffles.pop(raffle_id, None)
        self.commitments.pop(raffle_id, None)
        self.accumulator.restore_tree(raffle_id, None)
        self.raffle_count = raffle_id - 1

    @contextmanager
    def _non_reentrant(self) -> Iterator[None]:
        if self._entered:
            raise ReentrantCall("Re-entrant call into a guarded raffle operation.")
        self._entered = True
        try:
            yield
        finally:
            self._entered = False

    def _raffle(self, raffle_id: int) -> Raffle:
        raffle = self.raffles.get(raffle_id)
        if raffle is None:
            raise RaffleNotFound(f"Raffle {raffle_id} does not exist.")
        return raffle

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def create_raffle(
        self,
        caller: str,
        ticket_price: int,
        duration: int,
        levels: int,
        value: int,
    ) -> int:
        """Open a raffle funded with ``value`` as its initial prize pool."""
        with self._non_reentrant(), self._transaction():
            if levels < MIN_DEPTH or levels > MAX_DEPTH:
                raise InvalidDepth(f"levels must be in [{MIN_DEPTH},{MAX_DEPTH}], got {levels}")
            if duration <= 0:
                raise InvalidDuration(f"duration must be positive, got {duration}")
            if value <= 0:
                raise InvalidPrize("A raffle must be funded with a positive prize.")
            if ticket_price < 0:
                raise InvalidTicketPrice(f"ticket price cannot be negative, got {ticket_price}")

            self.ledger.collect(caller, value)

            self.raffle_count += 1
            raffle_id = self.raffle_count
            self._on_rollback(lambda: self._forget_raffle(raffle_id))
            tree = self.accumulator.initialize(raffle_id, levels)
            now = self._now()
            raffle = Raffle(
                creator=caller,
                ticket_price=ticket_price,
                max_participants=1 << levels,
                duration=duration,
                end_time=now + duration,
                levels=levels,
                root=tree.current_root,
                prize_pool=value,
                created_at=now,
            )
            self.raffles[raffle_id] = raffle
            self.commitments[raffle_id] = {}

            self.events.emit(
                RaffleCreated(
                    raffle_id=raffle_id,
                    creator=caller,
                    ticket_price=ticket_price,
                    max_participants=raffle.max_participants,
                    end_time=raffle.end_time,
                    prize=value,
                )
            )
            log.info(
                "Raffle %d created: levels=%d price=%d ends=%d",
                raffle_id,
                levels,
                ticket_price,
                raffle.end_time,
            )
            return raffle_id

    def buy_ticket(self, caller: str, raffle_id: int, commitment: int, value: int) -> int:
        """Deposit a commitment as the next leaf. Returns its leaf index."""
        with self._transaction():
            raffle = self._raffle(raffle_id)
            if raffle.status is not RaffleStatus.ACTIVE:
                raise RaffleNotActive(f"Raffle {raffle_id} is {raffle.status.name}.")
            if self._now() >= raffle.end_time:
                raise RaffleEnded(f"Raffle {raffle_id} ended at {raffle.end_time}.")
            if raffle.next_index >= raffle.max_participants:
                raise TreeFull(f"Raffle {raffle_id} is full.")
            if value != raffle.ticket_price:
                raise IncorrectPayment(
                    f"Ticket costs {raffle.ticket_price}, got {value}"
                )
            if (raffle_id, commitment) in self.used_commitments:
                raise CommitmentAlreadyUsed(
                    f"Raffle {raffle_id}: commitment already deposited."
                )

            self.ledger.collect(caller, value)
            self._touch_raffle(raffle)
            self._touch_tree(raffle_id)
            index = self.accumulator.insert(raffle_id, commitment)
            key = (raffle_id, commitment)
            self.used_commitments.add(key)
            self._on_rollback(lambda: self.used_commitments.discard(key))
            leaves = self.commitments[raffle_id]
            leaves[index] = commitment
            self._on_rollback(lambda: leaves.pop(index, None))

            raffle.root = self.accumulator.current_root(raffle_id)
            raffle.next_index = index + 1
            raffle.prize_pool += value

            self.events.emit(TicketPurchased(raffle_id, index, commitment))
            log.info("Raffle %d: ticket %d sold", raffle_id, index)
            return index

    def request_winner(self, caller: str, raffle_id: int) -> int:
        """Ask the oracle for randomness once the sale window is over."""
        with self._transaction():
            raffle = self._raffle(raffle_id)
            if raffle.status is not RaffleStatus.ACTIVE:
                raise RaffleNotActive(f"Raffle {raffle_id} is {raffle.status.name}.")
            now = self._now()
            if now < raffle.end_time:
                raise RaffleNotEnded(f"Raffle {raffle_id} ends at {raffle.end_time}.")
            if raffle.next_index == 0:
                raise NoParticipants(f"Raffle {raffle_id} sold no tickets.")
            if raffle.randomness_requested:
                raise DrawAlreadyRequested(
                    f"Raffle {raffle_id}: draw already requested ({raffle.request_id})."
                )

            seed, seed_hex = derive_seed(
                raffle_id, raffle.root, caller, now, self.entropy()
            )
            request_id = self.oracle.generate_request(
                CALLBACK_SELECTOR, NUM_WORDS, self.confirmations, seed, self.address
            )
            self.requests.issue(request_id, raffle_id)
            self._on_rollback(lambda: self.requests.cancel(request_id))
            self._touch_raffle(raffle)
            raffle.request_id = request_id
            raffle.randomness_requested = True

            self.events.emit(RandomnessRequested(raffle_id, request_id))
            log.info(
                "Raffle %d: randomness requested (id=%d, seed=%s)",
                raffle_id,
                request_id,
                seed_hex,
            )
            return request_id

    def fulfill_random_words(
        self, caller: str, request_id: int, random_words: Sequence[int]
    ) -> None:
        """
        Oracle callback. Only a caller other than the oracle is rejected;
        stale, repeated or empty deliveries are dropped without error so the
        oracle's own delivery never fails.
        """
        if caller != self.oracle.address:
            raise NotOracle(f"{caller} is not the randomness oracle.")

        with self._transaction():
            raffle_id = self.requests.lookup(request_id)
            if raffle_id is None:
                log.warning("Ignoring callback for unknown or used request %d", request_id)
                return
            raffle = self.raffles[raffle_id]
            if raffle.status is not RaffleStatus.ACTIVE:
                self.requests.consume(request_id)
                self._on_rollback(lambda: self.requests.reinstate(request_id))
                log.warning(
                    "Ignoring callback %d: raffle %d is %s",
                    request_id,
                    raffle_id,
                    raffle.status.name,
                )
                return
            if not random_words:
                log.warning("Ignoring callback %d: no random words", request_id)
                return

            self.requests.consume(request_id)
            self._on_rollback(lambda: self.requests.reinstate(request_id))
            self._touch_raffle(raffle)
            word = int(random_words[0])
            raffle.random_word = word
            raffle.winner_index = compute_winner_index(word, raffle.next_index)
            raffle.status = RaffleStatus.CLOSED

            self.events.emit(WinnerSelected(raffle_id, raffle.winner_index))
            log.info("Raffle %d closed: winner index %d", raffle_id, raffle.winner_index)

    def claim_prize(
        self,
        caller: str,
        raffle_id: int,
        proof: bytes,
        public_inputs: Sequence[FieldLike],
        recipient: str,
        relayer_fee: int,
    ) -> int:
        """
        Pay the prize to ``recipient`` against a proof of ownership of the
        winning commitment. ``caller`` (usually a relayer) receives
        ``relayer_fee`` out of the pool. Returns the amount paid to the
        recipient.
        """
        with self._non_reentrant(), self._transaction():
            raffle = self._raffle(raffle_id)
            inputs, payout = self.validator.validate(
                raffle_id=raffle_id,
                raffle=raffle,
                proof=proof,
                public_inputs=public_inputs,
                recipient=recipient,
                relayer_fee=relayer_fee,
                nullifier_used=self.nullifier_used,
                verifier=self.admin.verifier,
            )

            # All state is final before any value leaves the account.
            key = (raffle_id, inputs.nullifier_hash)
            self.used_nullifiers.add(key)
            self._on_rollback(lambda: self.used_nullifiers.discard(key))
            self._touch_raffle(raffle)
            raffle.status = RaffleStatus.CLAIMED
            raffle.prize_pool = 0
            self.events.emit(
                PrizeClaimed(raffle_id, payout.recipient_amount, inputs.nullifier_hash)
            )
            if payout.relayer_fee > 0:
                self.events.emit(RelayerPaid(raffle_id, caller, payout.relayer_fee))
                self.ledger.send(caller, payout.relayer_fee)
            self.ledger.send(recipient, payout.recipient_amount)

            log.info(
                "Raffle %d claimed: %d paid out, relayer fee %d",
                raffle_id,
                payout.recipient_amount,
                payout.relayer_fee,
            )
            return payout.recipient_amount

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def set_verifier(self, caller: str, verifier: ProofVerifier) -> None:
        with self._transaction():
            previous = self.admin.set_verifier(caller, verifier)
            self._on_rollback(lambda: setattr(self.admin, "verifier", previous))
            self.events.emit(VerifierUpdated(repr(previous), repr(verifier)))

    def emergency_withdraw(self, caller: str, to: str, amount: int) -> None:
        with self._transaction():
            self.admin.require_owner(caller)
            self.events.emit(EmergencyWithdrawal(to, amount))
            self.ledger.send(to, amount)
            log.warning("Emergency withdrawal of %d to %s", amount, to)

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def get_raffle(self, raffle_id: int) -> Raffle:
        return copy.deepcopy(self._raffle(raffle_id))

    def get_root(self, raffle_id: int) -> int:
        self._raffle(raffle_id)
        return self.accumulator.current_root(raffle_id)

    def is_known_root(self, raffle_id: int, root: int) -> bool:
        return self.accumulator.is_known_root(raffle_id, root)

    def get_commitment(self, raffle_id: int, leaf_index: int) -> Optional[int]:
        return self.commitments.get(raffle_id, {}).get(leaf_index)

    def get_commitments(self, raffle_id: int) -> List[int]:
        leaves = self.commitments.get(raffle_id, {})
        return [leaves[i] for i in sorted(leaves)]

    def commitment_used(self, raffle_id: int, commitment: int) -> bool:
        return (raffle_id, commitment) in self.used_commitments

    def nullifier_used(self, raffle_id: int, nullifier_hash: int) -> bool:
        return (raffle_id, nullifier_hash) in self.used_nullifiers
