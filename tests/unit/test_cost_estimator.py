"""
Tests for the Cost Estimator Module
"""

import pytest

from storage.cost import DEFAULT_PRICE_TABLE, Cost, CostEstimator, PriceRule
from storage.exceptions import ConfigError
from storage.records import StorageScheme


class TestPriceRule:
    """Test PriceRule validation and pricing."""

    def test_linear(self):
        assert PriceRule(rate_per_byte=0.5).price(10_000) == 5000

    def test_rounds_up(self):
        assert PriceRule(rate_per_byte=0.5).price(3) == 2

    def test_fixed_minimum(self):
        rule = PriceRule(minimum=1000)
        assert rule.price(0) == 1000
        assert rule.price(1_000_000) == 1000

    def test_floor(self):
        rule = PriceRule(rate_per_byte=200, minimum=100_000)
        assert rule.price(10) == 100_000
        assert rule.price(1000) == 200_000

    def test_negative_rate_rejected(self):
        with pytest.raises(ConfigError, match="rate per byte"):
            PriceRule(rate_per_byte=-1)

    def test_negative_minimum_rejected(self):
        with pytest.raises(ConfigError, match="minimum"):
            PriceRule(minimum=-5)

    def test_empty_rule_rejected(self):
        with pytest.raises(ConfigError, match="rate or a minimum"):
            PriceRule()

    def test_dict_round_trip(self):
        rule = PriceRule(rate_per_byte=0.6, minimum=10)
        assert PriceRule.from_dict(rule.to_dict()) == rule


class TestCostEstimator:
    """Test per-scheme estimates."""

    def setup_method(self):
        self.estimator = CostEstimator()

    def test_single_payload_is_linear(self):
        cost = self.estimator.estimate(StorageScheme.SINGLE, 10_000)
        assert cost.base_units == 5000
        assert self.estimator.estimate(StorageScheme.SINGLE, 20_000).base_units == 2 * cost.base_units

    def test_chunked_is_linear(self):
        assert self.estimator.estimate(StorageScheme.CHUNKED, 10_000).base_units == 6000

    def test_metadata_is_fixed(self):
        assert self.estimator.estimate(StorageScheme.METADATA, 1).base_units == 1000
        assert self.estimator.estimate(StorageScheme.METADATA, 50_000).base_units == 1000

    def test_nft_small_file_hits_minimum(self):
        assert self.estimator.estimate(StorageScheme.NFT, 10).base_units == 100_000

    def test_nft_large_file_is_linear(self):
        assert self.estimator.estimate(StorageScheme.NFT, 5000).base_units == 1_000_000

    def test_no_exchange_rate_omits_fiat(self):
        cost = self.estimator.estimate(StorageScheme.SINGLE, 100)
        assert cost.fiat_equivalent is None
        assert "fiat" not in cost.to_dict()

    def test_exchange_rate(self):
        cost = self.estimator.estimate(StorageScheme.NFT, 10, exchange_rate=50.0)
        assert cost.fiat_equivalent == pytest.approx(0.05)
        assert cost.fiat_currency == "USD"

    def test_configured_exchange_rate(self):
        estimator = CostEstimator(exchange_rate=100.0, fiat_currency="EUR")
        cost = estimator.estimate(StorageScheme.METADATA, 0)
        assert cost.fiat_equivalent == pytest.approx(0.001)
        assert cost.fiat_currency == "EUR"

    def test_price_table_override(self):
        estimator = CostEstimator(price_table={StorageScheme.SINGLE: PriceRule(rate_per_byte=2)})
        assert estimator.estimate(StorageScheme.SINGLE, 100).base_units == 200
        assert estimator.price_table[StorageScheme.NFT] == DEFAULT_PRICE_TABLE[StorageScheme.NFT]

    def test_scheme_by_name(self):
        assert self.estimator.estimate("metadata", 5).base_units == 1000

    def test_negative_size(self):
        with pytest.raises(ValueError, match="negative"):
            self.estimator.estimate(StorageScheme.SINGLE, -1)


class TestCost:
    """Test Cost arithmetic."""

    def test_add(self):
        total = Cost(100, 0.1, "USD") + Cost(200, 0.2, "USD")
        assert total.base_units == 300
        assert total.fiat_equivalent == pytest.approx(0.3)

    def test_add_without_fiat(self):
        total = Cost(100, 0.1, "USD") + Cost(200)
        assert total.base_units == 300
        assert total.fiat_equivalent is None

    def test_coins(self):
        assert Cost(150_000_000).coins == 1.5
        assert Cost(1).to_dict()["bsv"] == "0.00000001"
