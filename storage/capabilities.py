"""
Bitcoin Drive Storage - External Capabilities

Interfaces of the wallet services an upload consumes: paying for a script,
querying the spendable balance and, optionally, the creator's profile.
Implementations raise PaymentError when settlement or a query fails.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class PaymentReceipt:
    """Settlement of one payment; the id is opaque to callers."""
    settlement_id: str
    amount: Optional[int] = None


@dataclass(frozen=True)
class Balance:
    """Spendable wallet balance in satoshis."""
    amount: int


@dataclass(frozen=True)
class Profile:
    """Public identity of the paying account."""
    handle: str
    paymail: Optional[str] = None
    display_name: Optional[str] = None


class PaymentCapability(ABC):
    """Pays for and broadcasts a data-carrier script."""

    @abstractmethod
    def pay(self, script: bytes, amount: int) -> PaymentReceipt:
        """
        Submit a script with a payment of ``amount`` satoshis.

        Raises:
            PaymentError: Balance, network or ledger rejection
        """

    @abstractmethod
    def get_spendable_balance(self) -> Balance:
        """Return the currently spendable balance."""


class ProfileProvider(ABC):
    """Supplies the creator handle embedded in NFT descriptions."""

    @abstractmethod
    def get_profile(self) -> Profile:
        """Return the current account profile."""
