"""
Bitcoin Drive Storage - Configuration

Process-wide storage settings, validated once and read-only afterwards.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from .chunker import DEFAULT_SEGMENT_SIZE, validate_segment_size
from .cost import DEFAULT_PRICE_TABLE, PriceRule
from .exceptions import ConfigError
from .records import Framing, StorageScheme


DEFAULT_CHUNK_THRESHOLD = 90000
DEFAULT_MIN_BALANCE = 1000
DEFAULT_RESOLVER_HOST = "bico.media"
DEFAULT_EXPLORER_HOST = "whatsonchain.com"
DEFAULT_APP_NAME = "bitcoin-drive"


@dataclass(frozen=True)
class StorageConfig:
    """Settings shared by the codec, the chunker, pricing and uploads."""
    chunk_threshold: int = DEFAULT_CHUNK_THRESHOLD
    max_segment_size: int = DEFAULT_SEGMENT_SIZE
    resolver_host: str = DEFAULT_RESOLVER_HOST
    explorer_host: str = DEFAULT_EXPLORER_HOST
    min_balance: int = DEFAULT_MIN_BALANCE
    price_table: Mapping[StorageScheme, PriceRule] = field(
        default_factory=lambda: dict(DEFAULT_PRICE_TABLE)
    )
    exchange_rate: Optional[float] = None
    fiat_currency: str = "USD"
    framing: Framing = Framing.PUSHDATA
    app_name: str = DEFAULT_APP_NAME

    def __post_init__(self):
        """Validate configuration after initialization."""
        validate_segment_size(self.max_segment_size)

        if isinstance(self.chunk_threshold, bool) or not isinstance(self.chunk_threshold, int) \
                or self.chunk_threshold < 0:
            raise ConfigError(f"Invalid chunk threshold: {self.chunk_threshold!r}")

        if isinstance(self.min_balance, bool) or not isinstance(self.min_balance, int) \
                or self.min_balance < 0:
            raise ConfigError(f"Invalid minimum balance: {self.min_balance!r}")

        for name in ("resolver_host", "explorer_host", "app_name"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value:
                raise ConfigError(f"{name} must be a non-empty string")

        if self.exchange_rate is not None and (
                isinstance(self.exchange_rate, bool)
                or not isinstance(self.exchange_rate, (int, float))
                or self.exchange_rate < 0):
            raise ConfigError(f"Invalid exchange rate: {self.exchange_rate!r}")

        try:
            object.__setattr__(self, 'framing', Framing(self.framing))
        except ValueError:
            raise ConfigError(f"Unknown framing: {self.framing!r}")

        table = dict(DEFAULT_PRICE_TABLE)
        for scheme, rule in dict(self.price_table).items():
            try:
                scheme = StorageScheme(scheme)
            except ValueError:
                raise ConfigError(f"Unknown storage scheme in price table: {scheme!r}")
            if isinstance(rule, Mapping):
                rule = PriceRule.from_dict(rule)
            if not isinstance(rule, PriceRule):
                raise ConfigError(f"Invalid price rule for {scheme.value}: {rule!r}")
            table[scheme] = rule
        object.__setattr__(self, 'price_table', table)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'StorageConfig':
        """
        Create config from a plain mapping (e.g. a parsed YAML section).

        Unknown keys are ignored; the price table may use scheme names as keys.
        """
        known = {name for name in cls.__dataclass_fields__}
        kwargs = {key: value for key, value in data.items() if key in known and value is not None}
        return cls(**kwargs)

    @classmethod
    def from_env(cls) -> 'StorageConfig':
        """Create config from environment variables."""
        kwargs: Dict[str, Any] = {}
        int_vars = {
            "BDRIVE_CHUNK_THRESHOLD": "chunk_threshold",
            "BDRIVE_MAX_SEGMENT_SIZE": "max_segment_size",
            "BDRIVE_MIN_BALANCE": "min_balance",
        }
        for env_name, key in int_vars.items():
            value = os.getenv(env_name)
            if value is not None:
                try:
                    kwargs[key] = int(value)
                except ValueError:
                    raise ConfigError(f"{env_name} must be an integer: {value!r}")

        if os.getenv("BDRIVE_RESOLVER_HOST"):
            kwargs["resolver_host"] = os.getenv("BDRIVE_RESOLVER_HOST")
        if os.getenv("BDRIVE_EXPLORER_HOST"):
            kwargs["explorer_host"] = os.getenv("BDRIVE_EXPLORER_HOST")
        if os.getenv("BDRIVE_FRAMING"):
            kwargs["framing"] = os.getenv("BDRIVE_FRAMING")
        if os.getenv("BDRIVE_EXCHANGE_RATE"):
            try:
                kwargs["exchange_rate"] = float(os.getenv("BDRIVE_EXCHANGE_RATE"))
            except ValueError:
                raise ConfigError("BDRIVE_EXCHANGE_RATE must be a number")

        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chunk_threshold": self.chunk_threshold,
            "max_segment_size": self.max_segment_size,
            "resolver_host": self.resolver_host,
            "explorer_host": self.explorer_host,
            "min_balance": self.min_balance,
            "price_table": {scheme.value: rule.to_dict() for scheme, rule in self.price_table.items()},
            "exchange_rate": self.exchange_rate,
            "fiat_currency": self.fiat_currency,
            "framing": self.framing.value,
            "app_name": self.app_name
        }
