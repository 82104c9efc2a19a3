"""
Value accounts for raffle deposits and payouts.

Balances are plain integers in the smallest unit. Accounts may register a
receiver hook that runs whenever value is sent to them; a hook is
arbitrary code and may try to call back into the raffle. If it raises,
the transfer fails and the enclosing transaction is rolled back.

Between ``begin`` and ``commit``/``rollback`` the ledger remembers the
starting balance of each account it touches, so a rollback only rewrites
those accounts. Frames nest.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Callable, Dict, List

from .errors import InsufficientFunds, TransferFailed
from .project_constants import RAFFLE_ACCOUNT

log = logging.getLogger(__name__)

# hook(sender, amount)
Receiver = Callable[[str, int], None]


class Ledger:
    def __init__(self, account: str = RAFFLE_ACCOUNT) -> None:
        self.account = account
        self.balances: Dict[str, int] = defaultdict(int)
        self.receivers: Dict[str, Receiver] = {}
        self._frames: List[Dict[str, int]] = []

    def balance_of(self, address: str) -> int:
        return self.balances.get(address, 0)

    def _adjust(self, address: str, delta: int) -> None:
        if self._frames and address not in self._frames[-1]:
            self._frames[-1][address] = self.balance_of(address)
        self.balances[address] += delta

    def mint(self, address: str, amount: int) -> None:
        if amount < 0:
            raise ValueError("Cannot mint a negative amount.")
        self._adjust(address, amount)

    def register_receiver(self, address: str, hook: Receiver) -> None:
        self.receivers[address] = hook

    def collect(self, payer: str, amount: int) -> None:
        """Move value attached to a call from the payer into the raffle account."""
        if amount < 0:
            raise ValueError("Attached value cannot be negative.")
        if self.balance_of(payer) < amount:
            raise InsufficientFunds(
                f"{payer} holds {self.balance_of(payer)}, needs {amount}"
            )
        self._adjust(payer, -amount)
        self._adjust(self.account, amount)

    def send(self, to: str, amount: int) -> None:
        """Pay out of the raffle account. State must already be final."""
        if amount <= 0:
            return
        if self.balance_of(self.account) < amount:
            raise InsufficientFunds(
                f"Raffle account holds {self.balance_of(self.account)}, needs {amount}"
            )
        self._adjust(self.account, -amount)
        self._adjust(to, amount)

        hook = self.receivers.get(to)
        if hook is None:
            return
        try:
            hook(self.account, amount)
        except Exception as e:
            log.warning("Transfer of %d to %s rejected by receiver: %s", amount, to, e)
            raise TransferFailed(f"Transfer to {to} failed: {e}") from e

    def begin(self) -> None:
        self._frames.append({})

    def commit(self) -> None:
        saved = self._frames.pop()
        if self._frames:
            outer = self._frames[-1]
            for address, balance in saved.items():
                outer.setdefault(address, balance)

    def rollback(self) -> None:
        for address, balance in self._frames.pop().items():
            self.balances[address] = balance
