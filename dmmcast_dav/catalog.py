#!/usr/bin/env python3
# encoding: utf-8

__author__ = "ChenyangGao <https://chenyanggao.github.io>"
__all__ = [
    "CatalogShape", "LinkRecord", "UNRESOLVED_URL", "fetch_catalog",
    "format_size_gb", "normalize_link", "parse_catalog_payload", "parse_timestamp",
]

import logging

from collections.abc import Iterable, Mapping
from datetime import datetime, UTC
from enum import Enum
from math import floor
from posixpath import basename
from typing import Any, Final, NamedTuple
from urllib.parse import unquote, urlsplit

from httpx import AsyncClient
from orjson import JSONDecodeError, loads

from .registry import ProviderDescriptor
from .strm import make_strm_filename


logger = logging.getLogger("dmmcast_dav")

#: 还没有解析出直链时，用这个占位
UNRESOLVED_URL: Final = "#"
UNKNOWN_FILENAME: Final = "Unknown"
EPOCH: Final = datetime.fromtimestamp(0, UTC)


class CatalogShape(Enum):
    LIST = "list"
    LINKS = "links"
    ITEMS = "items"
    DATA = "data"
    UNRECOGNIZED = "unrecognized"


class LinkRecord(NamedTuple):
    url: str
    filename: str
    strm_filename: str
    size_gb: str
    updated_at: str
    hash: str
    imdb_id: str
    timestamp: datetime = EPOCH

    @property
    def resolved(self, /) -> bool:
        return self.url != UNRESOLVED_URL


def parse_catalog_payload(payload: Any, /) -> tuple[CatalogShape, list]:
    """识别列表接口的响应数据的形状

    依次尝试：列表本身，或者字典中 "links"、"items"、"data" 键下的列表
    """
    if isinstance(payload, list):
        return CatalogShape.LIST, payload
    if isinstance(payload, dict):
        for shape in (CatalogShape.LINKS, CatalogShape.ITEMS, CatalogShape.DATA):
            value = payload.get(shape.value)
            if isinstance(value, list):
                return shape, value
    return CatalogShape.UNRECOGNIZED, []


def describe_payload(payload: Any, /) -> str:
    if isinstance(payload, dict):
        return f"object with keys {sorted(map(str, payload))!r}"
    return type(payload).__name__


def parse_timestamp(value: Any, /) -> datetime:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        # NOTE: 大于 1e11 的视为毫秒
        if value > 1e11:
            value /= 1000
        try:
            return datetime.fromtimestamp(value, UTC)
        except (OverflowError, OSError, ValueError):
            return EPOCH
    if isinstance(value, str) and value:
        try:
            dt = datetime.fromisoformat(value)
        except ValueError:
            return EPOCH
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=UTC)
        return dt
    return EPOCH


def format_size_gb(size_mb: Any, /) -> str:
    """把 MB 转换为 GB，四舍五入保留 1 位小数，缺失时为 "0.0"
    """
    try:
        size = float(size_mb or 0)
    except (TypeError, ValueError):
        return "0.0"
    return "%.1f" % (floor(size / 1024 * 10 + 0.5) / 10)


def filename_from_url(url: str, /) -> str:
    try:
        return unquote(basename(urlsplit(url).path), errors="strict") or UNKNOWN_FILENAME
    except (ValueError, UnicodeDecodeError):
        return UNKNOWN_FILENAME


def normalize_link(item: Mapping, /) -> LinkRecord:
    url = item.get("url") or UNRESOLVED_URL
    filename = item.get("filename") or ""
    if not filename or filename == UNKNOWN_FILENAME:
        filename = filename_from_url(url) if url != UNRESOLVED_URL else UNKNOWN_FILENAME
    hash = str(item.get("hash") or "")
    imdb_id = str(item.get("imdbId") or "")
    updated_at = item.get("updatedAt") or ""
    return LinkRecord(
        url=url,
        filename=filename,
        strm_filename=make_strm_filename(filename, hash, imdb_id),
        size_gb=format_size_gb(item.get("size")),
        updated_at=str(updated_at),
        hash=hash,
        imdb_id=imdb_id,
        timestamp=parse_timestamp(updated_at),
    )


def normalize_links(items: Iterable, /) -> list[LinkRecord]:
    records = [normalize_link(item) for item in items if isinstance(item, Mapping)]
    records.sort(key=lambda r: r.timestamp, reverse=True)
    return records


async def fetch_catalog(
    session: AsyncClient,
    descriptor: ProviderDescriptor,
    token: str,
    /,
) -> list[LinkRecord]:
    """获取 token 对应的投送链接列表，最近更新的排在最前

    会依次尝试 (接口路径, token 参数名) 的每种组合，直到拿到一个可识别的列表。
    任何失败都只记录日志，最后返回空列表，不会抛出异常
    """
    for path in descriptor.listing_paths:
        url = descriptor.base_url + path
        for key in descriptor.token_keys:
            try:
                resp = await session.get(url, params={key: token})
            except Exception as e:
                logger.warning(f"failed to fetch casted links: {url} ({key}) :: {type(e).__qualname__}: {e}")
                continue
            if not resp.is_success:
                logger.warning(f"failed to fetch casted links: {url} ({key}) :: {resp.status_code} {resp.reason_phrase}")
                continue
            try:
                payload = loads(resp.content)
            except JSONDecodeError as e:
                logger.warning(f"failed to fetch casted links: {url} ({key}) :: bad json: {e}")
                continue
            shape, items = parse_catalog_payload(payload)
            if shape is CatalogShape.UNRECOGNIZED:
                logger.warning(f"unrecognized casted links payload: {url} ({key}) :: {describe_payload(payload)}")
                continue
            try:
                return normalize_links(items)
            except Exception:
                logger.exception(f"error normalizing casted links: {url} ({key})")
                continue
    return []
