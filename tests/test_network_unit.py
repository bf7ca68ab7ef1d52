"""
Unit tests for the network adapters

Tests the HandCash wallet client, the chain reader and the simulated wallet
with mocked HTTP responses.
"""

import json
from unittest.mock import Mock, patch

import pytest
import requests
from coincurve import PublicKey

from network.explorer import ChainReader, ExplorerError
from network.simulated import SimulatedWallet
from network.wallet import (
    BALANCE_ENDPOINT,
    PAY_ENDPOINT,
    HandCashError,
    HandCashWallet,
    RequestSigner,
    WalletConfig
)
from storage.codec import ScriptCodec
from storage.exceptions import ConfigError, PaymentError
from storage.records import ChunkPayload
from storage.utils import sha256_digest

AUTH_TOKEN = "11" * 32


def mock_response(status_code=200, payload=None, reason="OK"):
    response = Mock()
    response.status_code = status_code
    response.reason = reason
    response.json.return_value = payload if payload is not None else {}
    return response


class TestWalletConfig:

    def test_requires_auth_token(self):
        with pytest.raises(ConfigError, match="auth token is required"):
            WalletConfig()

    def test_auth_token_must_be_hex(self):
        with pytest.raises(ConfigError, match="hex"):
            WalletConfig(auth_token="not-hex")

    def test_auth_token_length(self):
        with pytest.raises(ConfigError, match="32 bytes"):
            WalletConfig(auth_token="11" * 16)

    @patch.dict('os.environ', {
        'HANDCASH_AUTH_TOKEN': AUTH_TOKEN,
        'HANDCASH_APP_ID': 'app',
        'HANDCASH_APP_SECRET': 'secret',
        'HANDCASH_TIMEOUT': '5'
    })
    def test_from_env(self):
        config = WalletConfig.from_env()
        assert config.auth_token == AUTH_TOKEN
        assert config.app_id == 'app'
        assert config.app_secret == 'secret'
        assert config.timeout == 5


class TestRequestSigner:

    def test_signature_verifies(self):
        signer = RequestSigner(AUTH_TOKEN)
        headers = signer.headers("POST", PAY_ENDPOINT, '{"a":1}', timestamp="2024-01-01T00:00:00.000Z")

        public_key = PublicKey(bytes.fromhex(headers["oauth-publickey"]))
        message = f"POST{PAY_ENDPOINT}2024-01-01T00:00:00.000Z" + '{"a":1}'
        message_hash = sha256_digest(message.encode())
        assert public_key.verify(bytes.fromhex(headers["oauth-signature"]), message_hash, hasher=None)
        assert headers["oauth-timestamp"] == "2024-01-01T00:00:00.000Z"


class TestHandCashWallet:

    def setup_method(self):
        self.wallet = HandCashWallet(WalletConfig(auth_token=AUTH_TOKEN, app_id="app"))

    def test_pay(self):
        with patch.object(self.wallet.session, 'request',
                          return_value=mock_response(payload={"transactionId": "ab" * 32})) as request:
            receipt = self.wallet.pay(b'\x6a\x01x', 1500)

        assert receipt.settlement_id == "ab" * 32
        assert receipt.amount == 1500

        method, url = request.call_args[0]
        assert method == "POST"
        assert url == f"https://cloud.handcash.io{PAY_ENDPOINT}"
        body = json.loads(request.call_args[1]["data"])
        assert body["receivers"][0]["script"] == "6a0178"
        assert body["receivers"][0]["sendAmount"] == pytest.approx(0.000015)
        headers = request.call_args[1]["headers"]
        assert "oauth-signature" in headers
        assert headers["app-id"] == "app"
        assert self.wallet.get_stats()["payments"] == 1

    def test_pay_rejected(self):
        response = mock_response(400, {"message": "Insufficient balance"}, reason="Bad Request")
        with patch.object(self.wallet.session, 'request', return_value=response):
            with pytest.raises(HandCashError, match="Insufficient balance") as exc_info:
                self.wallet.pay(b'\x6a', 1)

        assert exc_info.value.status_code == 400
        assert isinstance(exc_info.value, PaymentError)

    def test_pay_without_transaction_id(self):
        with patch.object(self.wallet.session, 'request', return_value=mock_response(payload={})):
            with pytest.raises(HandCashError, match="transaction id"):
                self.wallet.pay(b'\x6a', 1)

    def test_timeout(self):
        with patch.object(self.wallet.session, 'request', side_effect=requests.exceptions.Timeout()):
            with pytest.raises(PaymentError, match="timed out"):
                self.wallet.pay(b'\x6a', 1)
        assert self.wallet.get_stats()["failed_requests"] == 1

    def test_connection_error(self):
        with patch.object(self.wallet.session, 'request',
                          side_effect=requests.exceptions.ConnectionError("refused")):
            with pytest.raises(PaymentError, match="Connection error"):
                self.wallet.get_spendable_balance()

    def test_balance(self):
        response = mock_response(payload={"spendableSatoshiBalance": 12345, "currencyCode": "USD"})
        with patch.object(self.wallet.session, 'request', return_value=response) as request:
            balance = self.wallet.get_spendable_balance()

        assert balance.amount == 12345
        assert request.call_args[0] == ("GET", f"https://cloud.handcash.io{BALANCE_ENDPOINT}")

    def test_malformed_balance(self):
        with patch.object(self.wallet.session, 'request', return_value=mock_response(payload={})):
            with pytest.raises(HandCashError, match="spendableSatoshiBalance"):
                self.wallet.get_spendable_balance()

    def test_profile(self):
        payload = {"publicProfile": {"handle": "alice", "paymail": "alice@handcash.io",
                                     "displayName": "Alice"}}
        with patch.object(self.wallet.session, 'request', return_value=mock_response(payload=payload)):
            profile = self.wallet.get_profile()

        assert profile.handle == "alice"
        assert profile.paymail == "alice@handcash.io"
        assert profile.display_name == "Alice"

    def test_retry_adapter_only_retries_reads(self):
        adapter = self.wallet.session.get_adapter("https://cloud.handcash.io")
        assert "POST" not in adapter.max_retries.allowed_methods
        assert "GET" in adapter.max_retries.allowed_methods


class TestChainReader:

    def setup_method(self):
        self.reader = ChainReader()

    def test_fetch_script(self):
        script = ScriptCodec().encode(ChunkPayload(data=b'abc'))
        payload = {"vout": [
            {"n": 0, "scriptPubKey": {"hex": "76a914" + "00" * 20 + "88ac"}},
            {"n": 1, "scriptPubKey": {"hex": "00" + script.hex()}},
        ]}
        with patch.object(self.reader.session, 'get', return_value=mock_response(payload=payload)) as get:
            fetched = self.reader.fetch_script("ff" * 32)

        assert fetched == script
        assert get.call_args[0][0].endswith(f"/tx/hash/{'ff' * 32}")

    def test_no_data_output(self):
        payload = {"vout": [{"n": 0, "scriptPubKey": {"hex": "76a914" + "00" * 20 + "88ac"}}]}
        with patch.object(self.reader.session, 'get', return_value=mock_response(payload=payload)):
            with pytest.raises(ExplorerError, match="no data-carrier output"):
                self.reader.fetch_script("ff" * 32)

    def test_not_found(self):
        with patch.object(self.reader.session, 'get', return_value=mock_response(404, reason="Not Found")):
            with pytest.raises(ExplorerError, match="not found") as exc_info:
                self.reader.fetch_script("ff" * 32)
        assert exc_info.value.status_code == 404

    def test_request_failure(self):
        with patch.object(self.reader.session, 'get',
                          side_effect=requests.exceptions.ConnectionError("down")):
            with pytest.raises(ExplorerError, match="Request failed"):
                self.reader.get_transaction("ff" * 32)


class TestSimulatedWallet:

    def test_pay_deducts_balance(self):
        wallet = SimulatedWallet(balance=10_000)
        receipt = wallet.pay(b'\x6a\x01x', 2500)

        assert wallet.get_spendable_balance().amount == 7500
        assert len(receipt.settlement_id) == 64
        assert wallet.fetch_script(receipt.settlement_id) == b'\x6a\x01x'
        assert wallet.total_paid == 2500

    def test_same_script_gets_distinct_ids(self):
        wallet = SimulatedWallet()
        first = wallet.pay(b'\x6a', 1)
        second = wallet.pay(b'\x6a', 1)
        assert first.settlement_id != second.settlement_id

    def test_insufficient_balance(self):
        wallet = SimulatedWallet(balance=10)
        with pytest.raises(PaymentError, match="Insufficient balance"):
            wallet.pay(b'\x6a', 11)
        assert wallet.payments == []

    def test_unknown_id(self):
        with pytest.raises(ExplorerError, match="Unknown settlement id"):
            SimulatedWallet().fetch_script("00" * 32)

    def test_profile(self):
        assert SimulatedWallet(handle="bob").get_profile().handle == "bob"
