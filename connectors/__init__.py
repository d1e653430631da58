"""Connectors for the Hive Engine mirrors and the rate/account collaborators."""

from .ecb_api import get_usd_per_eur
from .hive_api import get_hbd_balance
from .hive_engine import HiveEngineClient, positive_supply, positive_total_stake
from .transport import RetryingTransport

__all__ = [
    "HiveEngineClient",
    "RetryingTransport",
    "get_hbd_balance",
    "get_usd_per_eur",
    "positive_supply",
    "positive_total_stake",
]
