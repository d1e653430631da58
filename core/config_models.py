"""Configuration models for the dashboard fetch layer.

Every section is a frozen dataclass with a ``from_dict`` constructor so the
whole configuration can be built once at startup and passed around as a value.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Dict, Optional, Tuple, Type, TypeVar

from core.models import Dialect

DEFAULT_SYMBOL = "OCLT"
ECB_USD_PER_EUR_URL = "https://data-api.ecb.europa.eu/service/data/EXR/D.USD.EUR.SP00.A"
HIVE_API_URL = "https://api.hive.blog"

T = TypeVar("T")


def _build(cls: Type[T], payload: Dict[str, Any]) -> T:
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(payload) - known)
    if unknown:
        raise ValueError(f"unknown {cls.__name__} keys: {', '.join(map(str, unknown))}")
    return cls(**payload)


@dataclass(frozen=True, slots=True)
class EndpointEntry:
    """One configured RPC mirror; lower priority values are tried first."""

    base_url: str
    path: str = ""
    dialect: Dialect = Dialect.STANDARD
    priority: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "EndpointEntry":
        payload = dict(data)
        if not payload.get("base_url"):
            raise ValueError("endpoint entries require 'base_url'")
        payload["path"] = payload.get("path") or ""
        payload["dialect"] = Dialect(payload.get("dialect") or Dialect.STANDARD.value)
        return _build(cls, payload)


DEFAULT_ENDPOINTS: Tuple[EndpointEntry, ...] = (
    EndpointEntry(base_url="https://api.hive-engine.com", path="/rpc/contracts"),
    EndpointEntry(base_url="https://api2.hive-engine.com", path="/rpc"),
    EndpointEntry(base_url="https://herpc.dtools.dev"),
    EndpointEntry(base_url="https://he.c0ff33a.uk"),
)


@dataclass(frozen=True, slots=True)
class TransportSettings:
    """Retry and timeout tuning for every outbound HTTP call."""

    max_retries: int = 2
    base_delay_s: float = 0.1
    timeout_s: float = 10.0

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries cannot be negative")
        if self.base_delay_s < 0:
            raise ValueError("base_delay_s cannot be negative")
        if self.timeout_s <= 0:
            raise ValueError("timeout_s must be positive")

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, object]]) -> "TransportSettings":
        if not data:
            return cls()
        return _build(cls, dict(data))


@dataclass(frozen=True, slots=True)
class FetchSettings:
    """Batch tuning: EngineCompat chunk size and the partial-chunk policy."""

    chunk_size: int = 10
    batch_limit: int = 1000
    accept_partial_chunks: bool = False

    def __post_init__(self) -> None:
        if self.chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")
        if self.batch_limit < 1:
            raise ValueError("batch_limit must be at least 1")

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, object]]) -> "FetchSettings":
        if not data:
            return cls()
        return _build(cls, dict(data))


@dataclass(frozen=True, slots=True)
class GovernanceConfig:
    """Association accounts, vote weighting factor and reserve ratio limits (percent)."""

    members: Tuple[str, ...] = ()
    treasury_account: str = ""
    ito_account: str = ""
    oclt_per_eur: float = 1.0
    soft_limit: float = 100.0
    medium_limit: float = 75.0
    hard_limit: float = 50.0
    k: float = 1.0

    def __post_init__(self) -> None:
        if not self.hard_limit <= self.medium_limit <= self.soft_limit:
            raise ValueError("limits must satisfy hard <= medium <= soft")
        if self.oclt_per_eur <= 0:
            raise ValueError("oclt_per_eur must be positive")
        if self.k < 0:
            raise ValueError("k cannot be negative")

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, object]]) -> "GovernanceConfig":
        if not data:
            return cls()
        payload = dict(data)
        payload["members"] = tuple(payload.get("members") or ())
        return _build(cls, payload)


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Complete configuration snapshot."""

    symbol: str = DEFAULT_SYMBOL
    endpoints: Tuple[EndpointEntry, ...] = DEFAULT_ENDPOINTS
    fetch: FetchSettings = field(default_factory=FetchSettings)
    transport: TransportSettings = field(default_factory=TransportSettings)
    governance: GovernanceConfig = field(default_factory=GovernanceConfig)
    ecb_url: str = ECB_USD_PER_EUR_URL
    hive_api_url: str = HIVE_API_URL

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, object]]) -> "AppConfig":
        if not data:
            return cls()
        raw_endpoints = data.get("endpoints")
        endpoints = (
            tuple(EndpointEntry.from_dict(entry) for entry in raw_endpoints)
            if raw_endpoints
            else DEFAULT_ENDPOINTS
        )
        return cls(
            symbol=str(data.get("symbol") or DEFAULT_SYMBOL),
            endpoints=endpoints,
            fetch=FetchSettings.from_dict(data.get("fetch")),
            transport=TransportSettings.from_dict(data.get("transport")),
            governance=GovernanceConfig.from_dict(data.get("governance")),
            ecb_url=str(data.get("ecb_url") or ECB_USD_PER_EUR_URL),
            hive_api_url=str(data.get("hive_api_url") or HIVE_API_URL),
        )


__all__ = [
    "AppConfig",
    "DEFAULT_ENDPOINTS",
    "DEFAULT_SYMBOL",
    "EndpointEntry",
    "FetchSettings",
    "GovernanceConfig",
    "TransportSettings",
]
