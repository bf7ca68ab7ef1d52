"""
Bitcoin Drive - Network Adapters

Wallet and chain-reader implementations of the storage capabilities.
"""

from .explorer import ChainReader, ExplorerConfig, ExplorerError
from .simulated import SimulatedPayment, SimulatedWallet
from .wallet import HandCashError, HandCashWallet, RequestSigner, WalletConfig

__version__ = "1.0.0"

__all__ = [
    "ChainReader",
    "ExplorerConfig",
    "ExplorerError",
    "SimulatedPayment",
    "SimulatedWallet",
    "HandCashError",
    "HandCashWallet",
    "RequestSigner",
    "WalletConfig",
]
