"""
Pytest configuration and fixtures for Bitcoin Drive tests.
"""

import hashlib
import threading
from typing import List, Optional, Tuple

import pytest

from storage.capabilities import Balance, PaymentCapability, PaymentReceipt, Profile, ProfileProvider
from storage.config import StorageConfig
from storage.exceptions import PaymentError
from storage.orchestrator import UploadOrchestrator
from storage.progress import ProgressLog
from storage.records import FilePayload


class RecordingWallet(PaymentCapability, ProfileProvider):
    """
    Payment double that records every call.

    ``fail_at`` makes the pay call with that zero-based index raise
    PaymentError; ``fail_balance`` makes balance queries raise.
    """

    def __init__(self, balance: int = 10_000_000, fail_at: Optional[int] = None,
                 fail_balance: bool = False, handle: Optional[str] = "tester"):
        self.balance = balance
        self.fail_at = fail_at
        self.fail_balance = fail_balance
        self.handle = handle
        self.pay_calls: List[Tuple[bytes, int]] = []
        self.settled: List[str] = []
        self.scripts = {}
        self.balance_calls = 0
        self._lock = threading.Lock()

    def pay(self, script: bytes, amount: int) -> PaymentReceipt:
        with self._lock:
            index = len(self.pay_calls)
            self.pay_calls.append((script, amount))
            if self.fail_at is not None and index == self.fail_at:
                raise PaymentError(f"Simulated failure at payment {index}")

            settlement_id = hashlib.sha256(script + index.to_bytes(4, 'big')).hexdigest()
            self.settled.append(settlement_id)
            self.scripts[settlement_id] = script
            return PaymentReceipt(settlement_id=settlement_id, amount=amount)

    def get_spendable_balance(self) -> Balance:
        self.balance_calls += 1
        if self.fail_balance:
            raise PaymentError("Balance service unavailable")
        return Balance(amount=self.balance)

    def get_profile(self) -> Profile:
        if self.handle is None:
            raise PaymentError("Profile service unavailable")
        return Profile(handle=self.handle)

    def fetch_script(self, settlement_id: str) -> bytes:
        return self.scripts[settlement_id]

    @property
    def scripts_paid(self) -> List[bytes]:
        return [script for script, _ in self.pay_calls]


@pytest.fixture
def wallet():
    """Wallet that settles every payment."""
    return RecordingWallet()


@pytest.fixture
def storage_config():
    """Default storage configuration."""
    return StorageConfig()


@pytest.fixture
def orchestrator(wallet, storage_config):
    """Orchestrator wired to the recording wallet."""
    return UploadOrchestrator(wallet, config=storage_config, profile_provider=wallet)


@pytest.fixture
def progress_log():
    return ProgressLog()


@pytest.fixture
def small_file():
    """File well under the chunk threshold."""
    return FilePayload(data=b"hello bitcoin drive", media_type="text/plain", filename="hello.txt")


@pytest.fixture
def large_file():
    """200,000-byte file: three 90,000-byte chunks at most."""
    data = bytes(i % 251 for i in range(200_000))
    return FilePayload(data=data, media_type="video/mp4", filename="clip.mp4")
