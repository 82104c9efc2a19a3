"""
Claim validation and prize split.

A claim carries an opaque proof and six public inputs, in circuit order:

    root, nullifier_hash, recipient_binding, raffle_id, winner_index, tree_depth

Every consistency check runs before the proof verifier is called, and the
verifier runs before any state is touched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Sequence, Tuple

from .admin import ProofVerifier
from .errors import (
    FeeExceedsPrize,
    InvalidProof,
    InvalidPublicInputs,
    NullifierAlreadyUsed,
    RaffleIdMismatch,
    RaffleNotClosed,
    RecipientBindingMismatch,
    RootMismatch,
    WinnerIndexMismatch,
)
from .field import FieldHasher, FieldLike, address_to_field, mod_field, to_field
from .models import Raffle, RaffleStatus
from .project_constants import PUBLIC_INPUT_COUNT

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class PublicInputs:
    root: int
    nullifier_hash: int
    recipient_binding: int
    raffle_id: int
    winner_index: int
    tree_depth: int

    def as_list(self) -> List[int]:
        return [
            self.root,
            self.nullifier_hash,
            self.recipient_binding,
            self.raffle_id,
            self.winner_index,
            self.tree_depth,
        ]


def parse_public_inputs(values: Sequence[FieldLike]) -> PublicInputs:
    if len(values) != PUBLIC_INPUT_COUNT:
        raise InvalidPublicInputs(
            f"Expected {PUBLIC_INPUT_COUNT} public inputs, got {len(values)}"
        )
    try:
        parsed = [to_field(v) for v in values]
    except (TypeError, ValueError) as e:
        raise InvalidPublicInputs(f"Malformed public input: {e}") from e
    return PublicInputs(*parsed)


def recipient_binding(hasher: FieldHasher, nullifier_hash: int, recipient: str) -> int:
    return mod_field(hasher.hash2(nullifier_hash, address_to_field(recipient)))


@dataclass(frozen=True)
class Payout:
    relayer_fee: int
    recipient_amount: int


def split_prize(prize_pool: int, relayer_fee: int) -> Payout:
    if relayer_fee < 0:
        raise FeeExceedsPrize("Relayer fee cannot be negative.")
    if relayer_fee > prize_pool:
        raise FeeExceedsPrize(
            f"Relayer fee {relayer_fee} exceeds prize pool {prize_pool}"
        )
    return Payout(relayer_fee=relayer_fee, recipient_amount=prize_pool - relayer_fee)


class ClaimValidator:
    def __init__(self, hasher: FieldHasher) -> None:
        self.hasher = hasher

    def validate(
        self,
        raffle_id: int,
        raffle: Raffle,
        proof: bytes,
        public_inputs: Sequence[FieldLike],
        recipient: str,
        relayer_fee: int,
        nullifier_used: Callable[[int, int], bool],
        verifier: ProofVerifier,
    ) -> Tuple[PublicInputs, Payout]:
        if raffle.status is not RaffleStatus.CLOSED:
            raise RaffleNotClosed(
                f"Raffle {raffle_id} is {raffle.status.name}, not CLOSED."
            )

        inputs = parse_public_inputs(public_inputs)

        if inputs.raffle_id != raffle_id:
            raise RaffleIdMismatch(
                f"Proof is for raffle {inputs.raffle_id}, not {raffle_id}"
            )
        # Only the current root is accepted; older roots in the history
        # window are still rejected here.
        if inputs.root != raffle.root:
            raise RootMismatch(f"Raffle {raffle_id}: proof root is not the current root.")
        if inputs.winner_index != raffle.winner_index:
            raise WinnerIndexMismatch(
                f"Proof is for index {inputs.winner_index}, winner is {raffle.winner_index}"
            )
        expected = recipient_binding(self.hasher, inputs.nullifier_hash, recipient)
        if inputs.recipient_binding != expected:
            raise RecipientBindingMismatch(
                f"Raffle {raffle_id}: proof is bound to a different recipient."
            )
        if nullifier_used(raffle_id, inputs.nullifier_hash):
            raise NullifierAlreadyUsed(
                f"Raffle {raffle_id}: nullifier {inputs.nullifier_hash} already used."
            )

        payout = split_prize(raffle.prize_pool, relayer_fee)

        if not verifier.verify(proof, inputs.as_list()):
            raise InvalidProof(f"Raffle {raffle_id}: proof rejected by verifier.")

        log.debug("Raffle %d: claim passed validation", raffle_id)
        return inputs, payout
