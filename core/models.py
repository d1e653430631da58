"""拉取层的数据模型：endpoint、逻辑查询与归一化结果。

所有对象都是不可变的，按请求创建、用完即弃；只有 endpoint 列表在进程内共享。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, Optional, Sequence, Tuple, Union


class Dialect(str, Enum):
    """Endpoint 使用的请求/响应方言。"""

    STANDARD = "standard"
    ENGINE_COMPAT = "engine_compat"


@dataclass(frozen=True, slots=True)
class Endpoint:
    """单个 RPC 镜像，列表顺序即优先级。"""

    base_url: str
    path: str = ""
    dialect: Dialect = Dialect.STANDARD

    @property
    def url(self) -> str:
        return f"{self.base_url.rstrip('/')}{self.path}"


@dataclass(frozen=True, slots=True)
class SingleBalance:
    account: str
    symbol: str


@dataclass(frozen=True, slots=True)
class BatchBalances:
    """批量余额查询，账户在构造时去重并保持首次出现的顺序。"""

    accounts: Tuple[str, ...]
    symbol: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "accounts", tuple(dict.fromkeys(self.accounts)))


@dataclass(frozen=True, slots=True)
class TokenInfo:
    symbol: str


LogicalQuery = Union[SingleBalance, BatchBalances, TokenInfo]


def describe_query(query: LogicalQuery) -> str:
    """生成简短描述，用于日志。"""

    if isinstance(query, SingleBalance):
        return f"balance {query.account}/{query.symbol}"
    if isinstance(query, BatchBalances):
        return f"batch of {len(query.accounts)} balances/{query.symbol}"
    return f"token info {query.symbol}"


@dataclass(frozen=True, slots=True)
class BalanceRecord:
    """归一化的余额记录；balance 与 stake 缺失时为 "0"，永不为 None。"""

    account: str
    balance: str = "0"
    stake: str = "0"
    pending_unstake: Optional[str] = None

    @classmethod
    def zero(cls, account: str) -> "BalanceRecord":
        return cls(account=account)


@dataclass(frozen=True, slots=True)
class TokenInfoRecord:
    total_supply: str = "0"
    circulating_supply: str = "0"


Record = Union[BalanceRecord, TokenInfoRecord]
Validator = Callable[[Sequence[Record]], bool]


@dataclass(frozen=True, slots=True)
class FetchOutcome:
    """一次逻辑查询的结果，以及最终提供有效数据的 endpoint。"""

    records: Tuple[Record, ...]
    source_endpoint: Endpoint


@dataclass(frozen=True, slots=True)
class FetchPolicy:
    """一次 execute 调用的策略：校验函数、分块大小以及部分成功的取舍。"""

    validate: Optional[Validator] = None
    chunk_size: int = 10
    batch_limit: int = 1000
    accept_partial_chunks: bool = False

    def __post_init__(self) -> None:
        if self.chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")


def chunked(items: Iterable[str], size: int) -> list[list[str]]:
    """按固定大小切分账户列表。"""

    batch: list[str] = []
    chunks: list[list[str]] = []
    for item in items:
        batch.append(item)
        if len(batch) == size:
            chunks.append(batch)
            batch = []
    if batch:
        chunks.append(batch)
    return chunks


__all__ = [
    "BalanceRecord",
    "BatchBalances",
    "Dialect",
    "Endpoint",
    "FetchOutcome",
    "FetchPolicy",
    "LogicalQuery",
    "Record",
    "SingleBalance",
    "TokenInfo",
    "TokenInfoRecord",
    "Validator",
    "chunked",
    "describe_query",
]
