from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol, Sequence

from .errors import NotOwner

log = logging.getLogger(__name__)


class ProofVerifier(Protocol):
    """Verifier for the claim circuit. Pure: no side effects, any number of calls."""

    def verify(self, proof: bytes, public_inputs: Sequence[int]) -> bool: ...


@dataclass
class AdminConfig:
    """
    Owner-controlled settings of a raffle deployment. Only the owner may
    change them; every other reader goes through ``verifier``.
    """

    owner: str
    verifier: ProofVerifier

    def require_owner(self, caller: str) -> None:
        if caller != self.owner:
            raise NotOwner(f"{caller} is not the owner.")

    def set_verifier(self, caller: str, verifier: ProofVerifier) -> ProofVerifier:
        self.require_owner(caller)
        previous = self.verifier
        self.verifier = verifier
        log.info("Proof verifier rotated: %r -> %r", previous, verifier)
        return previous
