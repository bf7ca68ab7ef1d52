"""
Bitcoin Drive Storage - Cost Estimation

Table-driven pricing of storage schemes in satoshis, with an optional fiat
equivalent from an externally supplied exchange rate.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from .exceptions import ConfigError
from .records import StorageScheme


SATOSHIS_PER_COIN = 100_000_000


@dataclass(frozen=True)
class PriceRule:
    """
    Price of one scheme: ``max(minimum, ceil(size * rate_per_byte))``.

    A rule with a zero rate is a fixed charge; a rule with a zero minimum is
    purely linear.
    """
    rate_per_byte: float = 0.0
    minimum: int = 0

    def __post_init__(self):
        if isinstance(self.rate_per_byte, bool) or not isinstance(self.rate_per_byte, (int, float)) \
                or self.rate_per_byte < 0:
            raise ConfigError(f"Invalid rate per byte: {self.rate_per_byte!r}")
        if isinstance(self.minimum, bool) or not isinstance(self.minimum, int) or self.minimum < 0:
            raise ConfigError(f"Invalid minimum charge: {self.minimum!r}")
        if self.rate_per_byte == 0 and self.minimum == 0:
            raise ConfigError("Price rule must have a rate or a minimum charge")

    def price(self, size: int) -> int:
        if self.rate_per_byte == 0:
            return self.minimum
        return max(self.minimum, math.ceil(size * self.rate_per_byte))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'PriceRule':
        return cls(
            rate_per_byte=data.get("rate_per_byte", 0.0),
            minimum=data.get("minimum", 0)
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"rate_per_byte": self.rate_per_byte, "minimum": self.minimum}


DEFAULT_PRICE_TABLE = {
    StorageScheme.SINGLE: PriceRule(rate_per_byte=0.5),
    StorageScheme.CHUNKED: PriceRule(rate_per_byte=0.6),
    StorageScheme.METADATA: PriceRule(minimum=1000),
    StorageScheme.NFT: PriceRule(rate_per_byte=200, minimum=100_000),
}


@dataclass(frozen=True)
class Cost:
    """Storage price in satoshis and, when a rate is known, in fiat."""
    base_units: int
    fiat_equivalent: Optional[float] = None
    fiat_currency: Optional[str] = None

    def __add__(self, other: 'Cost') -> 'Cost':
        if not isinstance(other, Cost):
            return NotImplemented
        if self.fiat_equivalent is None or other.fiat_equivalent is None:
            return Cost(base_units=self.base_units + other.base_units)
        return Cost(
            base_units=self.base_units + other.base_units,
            fiat_equivalent=self.fiat_equivalent + other.fiat_equivalent,
            fiat_currency=self.fiat_currency or other.fiat_currency
        )

    @property
    def coins(self) -> float:
        return self.base_units / SATOSHIS_PER_COIN

    def to_dict(self) -> Dict[str, Any]:
        result = {"satoshis": self.base_units, "bsv": f"{self.coins:.8f}"}
        if self.fiat_equivalent is not None:
            result["fiat"] = round(self.fiat_equivalent, 6)
            result["currency"] = self.fiat_currency
        return result


class CostEstimator:
    """Prices payloads per storage scheme from a configurable rate table."""

    def __init__(self, price_table: Optional[Mapping[StorageScheme, PriceRule]] = None,
                 exchange_rate: Optional[float] = None, fiat_currency: str = "USD"):
        """
        Initialize cost estimator.

        Args:
            price_table: Scheme to PriceRule mapping (defaults to DEFAULT_PRICE_TABLE)
            exchange_rate: Fiat price of one whole coin, if known
            fiat_currency: Currency code of the exchange rate
        """
        table = dict(DEFAULT_PRICE_TABLE)
        if price_table:
            table.update({StorageScheme(k): v for k, v in price_table.items()})
        self.price_table = table
        self.exchange_rate = exchange_rate
        self.fiat_currency = fiat_currency

    def estimate(self, scheme: StorageScheme, payload_size: int,
                 exchange_rate: Optional[float] = None) -> Cost:
        """
        Estimate the cost of storing a payload under a scheme.

        Args:
            scheme: Storage scheme
            payload_size: Payload size in bytes
            exchange_rate: Overrides the configured exchange rate

        Returns:
            Cost with the fiat equivalent omitted when no rate is known
        """
        if payload_size < 0:
            raise ValueError(f"Payload size cannot be negative: {payload_size}")

        rule = self.price_table[StorageScheme(scheme)]
        base_units = rule.price(payload_size)

        rate = exchange_rate if exchange_rate is not None else self.exchange_rate
        if rate is None:
            return Cost(base_units=base_units)

        return Cost(
            base_units=base_units,
            fiat_equivalent=base_units * rate / SATOSHIS_PER_COIN,
            fiat_currency=self.fiat_currency
        )
