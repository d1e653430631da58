"""Endpoint 注册表：进程内只读、按优先级排序的 RPC 镜像列表。"""

from __future__ import annotations

from typing import Dict, Iterable, Iterator, List, Tuple

from core.config_models import EndpointEntry
from core.models import Endpoint


class EndpointRegistry:
    """按优先级排序的 endpoint 列表，同优先级保持配置顺序。"""

    def __init__(self, endpoints: Iterable[Endpoint]) -> None:
        self._endpoints: Tuple[Endpoint, ...] = tuple(endpoints)

    @classmethod
    def from_entries(cls, entries: Iterable[EndpointEntry]) -> "EndpointRegistry":
        """由配置条目构建；sorted 是稳定排序，未设置 priority 时即为列表顺序。"""

        ordered = sorted(entries, key=lambda entry: entry.priority)
        return cls(
            Endpoint(base_url=entry.base_url, path=entry.path, dialect=entry.dialect)
            for entry in ordered
        )

    @property
    def endpoints(self) -> Tuple[Endpoint, ...]:
        return self._endpoints

    def __iter__(self) -> Iterator[Endpoint]:
        return iter(self._endpoints)

    def __len__(self) -> int:
        return len(self._endpoints)

    def snapshot(self) -> List[Dict[str, object]]:
        """生成可序列化快照，用于日志与命令行展示。"""

        return [
            {"rank": rank, "url": ep.url, "dialect": ep.dialect.value}
            for rank, ep in enumerate(self._endpoints)
        ]


__all__ = ["EndpointRegistry"]
