"""
Bitcoin Drive - Simulated Wallet

In-memory wallet for dry runs: accepts payments without touching the
network, derives deterministic settlement ids and keeps every paid script so
it can be read back through FileRetriever.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional

from storage.capabilities import (
    Balance,
    PaymentCapability,
    PaymentReceipt,
    Profile,
    ProfileProvider
)
from storage.exceptions import PaymentError
from storage.utils import double_sha256

from .explorer import ExplorerError


@dataclass(frozen=True)
class SimulatedPayment:
    """One accepted payment."""
    settlement_id: str
    script: bytes
    amount: int


class SimulatedWallet(PaymentCapability, ProfileProvider):
    """Dry-run payment capability with a finite balance."""

    def __init__(self, balance: int = 100_000_000, handle: str = "dry-run"):
        """
        Initialize simulated wallet.

        Args:
            balance: Spendable satoshis; each payment deducts its amount
            handle: Profile handle reported as NFT creator
        """
        self.balance = balance
        self.handle = handle
        self.payments: List[SimulatedPayment] = []
        self._scripts: Dict[str, bytes] = {}
        self._lock = threading.Lock()
        self.logger = logging.getLogger(__name__)

    def pay(self, script: bytes, amount: int) -> PaymentReceipt:
        with self._lock:
            if amount > self.balance:
                raise PaymentError(
                    f"Insufficient balance: need {amount} satoshis, have {self.balance}"
                )

            sequence = len(self.payments)
            settlement_id = double_sha256(script + sequence.to_bytes(8, 'little'))[::-1].hex()

            self.balance -= amount
            self.payments.append(SimulatedPayment(settlement_id, script, amount))
            self._scripts[settlement_id] = script

        self.logger.debug(f"Simulated payment {settlement_id}: {amount} satoshis, {len(script)} bytes")
        return PaymentReceipt(settlement_id=settlement_id, amount=amount)

    def get_spendable_balance(self) -> Balance:
        with self._lock:
            return Balance(amount=self.balance)

    def get_profile(self) -> Profile:
        return Profile(handle=self.handle)

    def fetch_script(self, settlement_id: str) -> bytes:
        """Return the script paid under ``settlement_id``."""
        with self._lock:
            script: Optional[bytes] = self._scripts.get(settlement_id)
        if script is None:
            raise ExplorerError(f"Unknown settlement id: {settlement_id}", status_code=404)
        return script

    @property
    def total_paid(self) -> int:
        with self._lock:
            return sum(payment.amount for payment in self.payments)
