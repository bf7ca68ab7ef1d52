"""
Bitcoin Drive - HandCash Connect Wallet

This module provides the payment, balance and profile capabilities backed by
the HandCash Connect REST API, with request signing, connection pooling and
translation of transport failures into PaymentError.
"""

import json
import logging
import os
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import requests
from coincurve import PrivateKey
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from storage.capabilities import (
    Balance,
    PaymentCapability,
    PaymentReceipt,
    Profile,
    ProfileProvider
)
from storage.cost import SATOSHIS_PER_COIN
from storage.exceptions import ConfigError, PaymentError
from storage.utils import sha256_digest


DEFAULT_BASE_URL = "https://cloud.handcash.io"

PAY_ENDPOINT = "/v1/connect/wallet/pay"
BALANCE_ENDPOINT = "/v1/connect/wallet/spendableBalance"
PROFILE_ENDPOINT = "/v1/connect/profile/currentUserProfile"


class HandCashError(PaymentError):
    """Wallet API failure with the HTTP status when one was received."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        if status_code is not None:
            message = f"HandCash error {status_code}: {message}"
        super().__init__(message)


@dataclass
class WalletConfig:
    """Configuration for the HandCash Connect wallet."""
    auth_token: Optional[str] = None
    app_id: Optional[str] = None
    app_secret: Optional[str] = None
    base_url: str = DEFAULT_BASE_URL
    timeout: int = 30
    max_retries: int = 3
    backoff_factor: float = 0.5
    currency_code: str = "BSV"

    def __post_init__(self):
        """Validate configuration after initialization."""
        if not self.auth_token:
            raise ConfigError("HandCash auth token is required (HANDCASH_AUTH_TOKEN)")
        try:
            key_bytes = bytes.fromhex(self.auth_token)
        except ValueError:
            raise ConfigError("HandCash auth token must be a hex-encoded private key")
        if len(key_bytes) != 32:
            raise ConfigError("HandCash auth token must be 32 bytes")

    @classmethod
    def from_env(cls) -> 'WalletConfig':
        """Create wallet config from environment variables."""
        return cls(
            auth_token=os.getenv("HANDCASH_AUTH_TOKEN"),
            app_id=os.getenv("HANDCASH_APP_ID"),
            app_secret=os.getenv("HANDCASH_APP_SECRET"),
            base_url=os.getenv("HANDCASH_BASE_URL", DEFAULT_BASE_URL),
            timeout=int(os.getenv("HANDCASH_TIMEOUT", "30")),
            max_retries=int(os.getenv("HANDCASH_MAX_RETRIES", "3"))
        )


class RequestSigner:
    """Signs Connect requests with the account's auth token."""

    def __init__(self, auth_token: str):
        self._key = PrivateKey(bytes.fromhex(auth_token))
        self.public_key = self._key.public_key.format(compressed=True).hex()

    def headers(self, method: str, endpoint: str, body: str = "",
                timestamp: Optional[str] = None) -> Dict[str, str]:
        """
        Authentication headers for one request.

        The signature is ECDSA over SHA256(method + endpoint + timestamp + body).
        """
        if timestamp is None:
            timestamp = datetime.now(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')
        message_hash = sha256_digest(f"{method}{endpoint}{timestamp}{body}".encode('utf-8'))
        signature = self._key.sign(message_hash, hasher=None)
        return {
            "oauth-publickey": self.public_key,
            "oauth-signature": signature.hex(),
            "oauth-timestamp": timestamp
        }


class HandCashWallet(PaymentCapability, ProfileProvider):
    """
    HandCash Connect account used to pay for data-carrier scripts.

    Balance and profile queries are retried on transient HTTP failures;
    payments are never retried automatically because a retried payment may
    settle twice.
    """

    def __init__(self, config: WalletConfig):
        """Initialize wallet client."""
        self.config = config
        self.signer = RequestSigner(config.auth_token)
        self.logger = logging.getLogger(__name__)

        self.session = requests.Session()
        retry_strategy = Retry(
            total=config.max_retries,
            backoff_factor=config.backoff_factor,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["GET"]
        )
        adapter = HTTPAdapter(max_retries=retry_strategy, pool_maxsize=10)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

        self._stats = {
            "payments": 0,
            "failed_requests": 0,
            "satoshis_paid": 0
        }
        self._stats_lock = threading.Lock()

    def _request(self, method: str, endpoint: str,
                 payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        body = json.dumps(payload, separators=(',', ':')) if payload is not None else ""
        headers = {
            "Content-Type": "application/json",
            "User-Agent": "bitcoin-drive/1.0"
        }
        headers.update(self.signer.headers(method, endpoint, body))
        if self.config.app_id:
            headers["app-id"] = self.config.app_id
        if self.config.app_secret:
            headers["app-secret"] = self.config.app_secret

        start_time = time.time()
        try:
            response = self.session.request(
                method,
                f"{self.config.base_url}{endpoint}",
                data=body or None,
                headers=headers,
                timeout=self.config.timeout
            )
        except requests.exceptions.Timeout:
            self._record_failure()
            raise HandCashError(f"Request timed out after {self.config.timeout}s")
        except requests.exceptions.ConnectionError as e:
            self._record_failure()
            raise HandCashError(f"Connection error: {e}")
        except requests.exceptions.RequestException as e:
            self._record_failure()
            raise HandCashError(f"Request failed: {e}")

        self.logger.debug(f"{method} {endpoint} -> {response.status_code} "
                          f"in {time.time() - start_time:.2f}s")

        if response.status_code != 200:
            self._record_failure()
            try:
                message = response.json().get("message", response.reason)
            except ValueError:
                message = response.reason
            raise HandCashError(message, status_code=response.status_code)

        try:
            return response.json()
        except ValueError as e:
            self._record_failure()
            raise HandCashError(f"Invalid JSON response: {e}")

    def _record_failure(self) -> None:
        with self._stats_lock:
            self._stats["failed_requests"] += 1

    def pay(self, script: bytes, amount: int) -> PaymentReceipt:
        """Pay ``amount`` satoshis with ``script`` as a data output."""
        payload = {
            "description": "Bitcoin Drive upload",
            "appAction": "data",
            "receivers": [{
                "script": script.hex(),
                "sendAmount": amount / SATOSHIS_PER_COIN,
                "currencyCode": self.config.currency_code
            }]
        }
        data = self._request("POST", PAY_ENDPOINT, payload)

        transaction_id = data.get("transactionId")
        if not transaction_id:
            self._record_failure()
            raise HandCashError("Payment response did not include a transaction id")

        with self._stats_lock:
            self._stats["payments"] += 1
            self._stats["satoshis_paid"] += amount

        self.logger.info(f"Payment settled: {transaction_id} ({amount} satoshis)")
        return PaymentReceipt(settlement_id=transaction_id, amount=amount)

    def get_spendable_balance(self) -> Balance:
        data = self._request("GET", BALANCE_ENDPOINT)
        try:
            return Balance(amount=int(data["spendableSatoshiBalance"]))
        except (KeyError, TypeError, ValueError):
            raise HandCashError("Balance response did not include spendableSatoshiBalance")

    def get_profile(self) -> Profile:
        data = self._request("GET", PROFILE_ENDPOINT)
        public = data.get("publicProfile") or {}
        if not public.get("handle"):
            raise HandCashError("Profile response did not include a handle")
        return Profile(
            handle=public["handle"],
            paymail=public.get("paymail"),
            display_name=public.get("displayName")
        )

    def get_stats(self) -> Dict[str, Any]:
        """Get wallet request statistics."""
        with self._stats_lock:
            return self._stats.copy()
