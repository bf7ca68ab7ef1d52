"""
Bitcoin Drive - Chain Reader

This module fetches stored data-carrier scripts by settlement id from a
WhatsOnChain-style block explorer API, for the FileRetriever read path.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from storage.exceptions import StorageError


DEFAULT_API_URL = "https://api.whatsonchain.com/v1/bsv/main"


class ExplorerError(StorageError):
    """Raised when a settlement's script cannot be fetched."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


@dataclass
class ExplorerConfig:
    """Configuration for the block explorer API."""
    api_url: str = DEFAULT_API_URL
    timeout: int = 30
    max_retries: int = 3
    backoff_factor: float = 0.5


class ChainReader:
    """Reads data-carrier outputs of settled transactions."""

    def __init__(self, config: Optional[ExplorerConfig] = None):
        """Initialize chain reader."""
        self.config = config or ExplorerConfig()
        self.logger = logging.getLogger(__name__)

        self.session = requests.Session()
        retry_strategy = Retry(
            total=self.config.max_retries,
            backoff_factor=self.config.backoff_factor,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["GET"]
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    def get_transaction(self, txid: str) -> Dict[str, Any]:
        """Fetch decoded transaction JSON."""
        url = f"{self.config.api_url}/tx/hash/{txid}"
        try:
            response = self.session.get(url, timeout=self.config.timeout)
        except requests.exceptions.Timeout:
            raise ExplorerError(f"Request timed out after {self.config.timeout}s")
        except requests.exceptions.RequestException as e:
            raise ExplorerError(f"Request failed: {e}")

        if response.status_code == 404:
            raise ExplorerError(f"Transaction not found: {txid}", status_code=404)
        if response.status_code != 200:
            raise ExplorerError(
                f"HTTP {response.status_code}: {response.reason}",
                status_code=response.status_code
            )

        try:
            return response.json()
        except ValueError as e:
            raise ExplorerError(f"Invalid JSON response: {e}")

    def fetch_script(self, txid: str) -> bytes:
        """
        Return the first data-carrier output script of a transaction.

        Raises:
            ExplorerError: Transaction missing or without a data-carrier output
        """
        transaction = self.get_transaction(txid)

        for output in transaction.get("vout", []):
            script_hex = (output.get("scriptPubKey") or {}).get("hex", "")
            # OP_RETURN, or OP_FALSE OP_RETURN
            if script_hex.startswith("6a") or script_hex.startswith("006a"):
                script = bytes.fromhex(script_hex)
                if script[0] == 0x00:
                    script = script[1:]
                self.logger.debug(f"Fetched {len(script)}-byte script from {txid}:{output.get('n')}")
                return script

        raise ExplorerError(f"Transaction {txid} has no data-carrier output")
