"""拉取层的错误分类。

传输、解析与校验错误只影响单个 endpoint 的尝试；只有全部 endpoint 耗尽时才向调用方抛出。
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional, Sequence, Tuple

if TYPE_CHECKING:
    from core.models import Endpoint


class FetchError(Exception):
    """所有拉取错误的基类。"""


class TransportError(FetchError):
    """网络、超时或不可重试的 HTTP 状态，重试耗尽后抛出。"""

    def __init__(self, url: str, last_cause: str, status_code: Optional[int] = None) -> None:
        self.url = url
        self.last_cause = last_cause
        self.status_code = status_code
        super().__init__(f"{url}: {last_cause}")


class ParseError(FetchError):
    """响应结构与 endpoint 方言不符。"""


class EmptyResultError(ParseError):
    """单账户或代币查询返回了空数组。"""


class ValidationFailed(FetchError):
    """响应可以解析，但未通过调用方的语义校验。"""


class PartialBatchError(FetchError):
    """分块批量查询中有分块失败，或所有分块都没有返回记录。"""

    def __init__(self, failed_chunks: int, total_chunks: int, record_count: int) -> None:
        self.failed_chunks = failed_chunks
        self.total_chunks = total_chunks
        self.record_count = record_count
        super().__init__(
            f"{failed_chunks}/{total_chunks} chunks failed, {record_count} records collected"
        )


class AllEndpointsExhaustedError(FetchError):
    """所有配置的 endpoint 都失败，按尝试顺序保存每个 endpoint 的原因。"""

    def __init__(self, causes: Sequence[Tuple["Endpoint", Exception]]) -> None:
        self.causes: List[Tuple["Endpoint", Exception]] = list(causes)
        if self.causes:
            detail = "; ".join(f"{ep.url}: {exc}" for ep, exc in self.causes)
        else:
            detail = "no endpoints configured"
        super().__init__(f"No valid data from any endpoint. {detail}")

    @property
    def endpoints_tried(self) -> List["Endpoint"]:
        return [endpoint for endpoint, _ in self.causes]


__all__ = [
    "AllEndpointsExhaustedError",
    "EmptyResultError",
    "FetchError",
    "ParseError",
    "PartialBatchError",
    "TransportError",
    "ValidationFailed",
]
