#!/usr/bin/env python3
# encoding: utf-8

__author__ = "ChenyangGao <https://chenyanggao.github.io>"
__all__ = ["ResolutionCache", "RESOLUTION_TTL"]

from collections.abc import Awaitable, Callable, Hashable, MutableMapping
from math import inf
from time import monotonic
from typing import Any, Final, Literal, TypeAlias, TypeVar

from cachetools import TTLCache


#: 解析链上每一步的缓存时间，单位：秒
RESOLUTION_TTL: Final = 5 * 60

T = TypeVar("T")

Namespace: TypeAlias = Literal["torrent_ids", "file_lists", "download_urls"]


class ResolutionCache:
    """多步解析的缓存，分为 3 个命名空间，对应解析链的 3 个步骤

    - torrent_ids: 散列值 -> 上游的 torrent id
    - file_lists: torrent id -> 文件列表
    - download_urls: (torrent id, file id) -> 直链

    过期只在读取时检查，没有容量限制，也没有锁（并发时可能重复计算，后写者胜出）
    """
    def __init__(
        self,
        /,
        ttl: int | float = RESOLUTION_TTL,
        timer: Callable[[], float] = monotonic,
    ):
        self.ttl = ttl
        self.torrent_ids: MutableMapping[tuple, Any] = TTLCache(inf, ttl=ttl, timer=timer)
        self.file_lists: MutableMapping[tuple, Any] = TTLCache(inf, ttl=ttl, timer=timer)
        self.download_urls: MutableMapping[tuple, Any] = TTLCache(inf, ttl=ttl, timer=timer)

    def __repr__(self, /) -> str:
        return (
            f"{type(self).__qualname__}(ttl={self.ttl!r}, "
            f"torrent_ids={len(self.torrent_ids)}, "
            f"file_lists={len(self.file_lists)}, "
            f"download_urls={len(self.download_urls)})"
        )

    async def get_or_compute(
        self,
        namespace: Namespace,
        key: Hashable,
        compute: Callable[[], Awaitable[T]],
        /,
    ) -> T:
        """命中且未过期则返回缓存值，否则调用 `compute` 并写入缓存（异常不会被缓存）
        """
        cache: MutableMapping = getattr(self, namespace)
        try:
            return cache[key]
        except KeyError:
            pass
        value = await compute()
        cache[key] = value
        return value

    def clear(self, /):
        self.torrent_ids.clear()
        self.file_lists.clear()
        self.download_urls.clear()
