#!/usr/bin/env python3
# encoding: utf-8

__author__ = "ChenyangGao <https://chenyanggao.github.io>"
__all__ = ["TorBoxCast", "select_file"]

import logging

from collections.abc import Mapping, Sequence
from errno import EIO, ENOENT
from typing import Any

from httpx import AsyncClient, HTTPError, Response
from orjson import JSONDecodeError, loads

from ..cache import ResolutionCache
from ..config import DEFAULT_TORBOX_API_URL, ProviderSettings
from ..exception import check_response, ResolutionError
from ..vfs import VirtualFile
from .base import DebridProvider


logger = logging.getLogger("dmmcast_dav")


def select_file(files: Sequence[Mapping], filename: str, /) -> None | Mapping:
    """从 torrent 的文件列表中选出要播放的那个文件

    1. name 或 short_name 与已知的文件名完全相同
    2. short_name 与已知的文件名存在后缀关系
    3. 第 1 个文件
    4. 文件列表为空时返回 None
    """
    if not files:
        return None
    if filename:
        for file in files:
            if filename in (file.get("name"), file.get("short_name")):
                return file
        for file in files:
            short_name = file.get("short_name") or ""
            if short_name and (short_name.endswith(filename) or filename.endswith(short_name)):
                return file
    return files[0]


class TorBoxCast(DebridProvider):
    """TorBox 的投送链接，列表接口只给出散列值，在 GET 时才通过 TorBox 接口解析直链

        散列值 --(createtorrent)--> torrent id --(mylist)--> 文件列表 --(requestdl)--> 直链

    每一步的结果都在 ResolutionCache 中缓存 5 分钟
    """
    def __init__(
        self,
        /,
        settings: ProviderSettings,
        session: AsyncClient,
        cache: ResolutionCache,
        api_url: str = DEFAULT_TORBOX_API_URL,
    ):
        super().__init__(settings, session, cache)
        self.api_url = api_url.rstrip("/")

    async def _request(self, method: str, api: str, /, token: str, **request_kwargs) -> Any:
        url = f"{self.api_url}/{api}"
        try:
            resp: Response = await self.session.request(
                method,
                url,
                headers={"Authorization": f"Bearer {token}"},
                **request_kwargs,
            )
        except HTTPError as e:
            raise ResolutionError(EIO, f"{api}: {type(e).__qualname__}: {e}") from e
        try:
            json = loads(resp.content)
        except JSONDecodeError:
            raise ResolutionError(EIO, f"{api}: {resp.status_code} {resp.text[:200]}") from None
        if not resp.is_success and isinstance(json, dict):
            json.setdefault("success", False)
        return check_response(json).get("data")

    async def get_torrent_id(self, token: str, hash: str, /) -> int | str:
        async def compute():
            data = await self._request(
                "POST",
                "torrents/createtorrent",
                token=token,
                files={
                    "magnet": (None, f"magnet:?xt=urn:btih:{hash}"),
                    "add_only_if_cached": (None, "true"),
                },
            )
            if isinstance(data, dict):
                torrent_id = data.get("torrent_id", data.get("id"))
                if torrent_id is not None:
                    return torrent_id
            raise ResolutionError(EIO, f"torrents/createtorrent: unexpected response: {data!r}")
        return await self.cache.get_or_compute("torrent_ids", (self.name, token, hash), compute)

    async def get_torrent_files(self, token: str, torrent_id: int | str, /) -> list[dict]:
        async def compute():
            data = await self._request(
                "GET",
                "torrents/mylist",
                token=token,
                params={"id": torrent_id, "bypass_cache": "true"},
            )
            if isinstance(data, list):
                data = data[0] if data else {}
            if isinstance(data, dict) and isinstance(files := data.get("files", []), list):
                return files
            raise ResolutionError(EIO, f"torrents/mylist: unexpected response: {data!r}")
        return await self.cache.get_or_compute("file_lists", (self.name, token, torrent_id), compute)

    async def get_download_url(
        self,
        token: str,
        torrent_id: int | str,
        file_id: int | str,
        /,
    ) -> str:
        async def compute():
            data = await self._request(
                "GET",
                "torrents/requestdl",
                token=token,
                params={
                    "token": token,
                    "torrent_id": torrent_id,
                    "file_id": file_id,
                    "redirect": "false",
                },
            )
            if isinstance(data, str) and data.startswith(("http://", "https://")):
                return data
            raise ResolutionError(EIO, f"torrents/requestdl: unexpected response: {data!r}")
        return await self.cache.get_or_compute(
            "download_urls", (self.name, token, torrent_id, file_id), compute)

    async def resolve_content(self, token: str, file: VirtualFile, /) -> str:
        if file.resolved:
            return file.content
        if not file.hash:
            raise ResolutionError(ENOENT, f"no hash to resolve: {file.name!r}")
        try:
            torrent_id = await self.get_torrent_id(token, file.hash)
            files = await self.get_torrent_files(token, torrent_id)
            selected = select_file(files, file.original_filename)
            if selected is None:
                raise ResolutionError(ENOENT, f"torrent {torrent_id} has no files: {file.name!r}")
            if (file_id := selected.get("id")) is None:
                raise ResolutionError(EIO, f"torrents/mylist: file without id: {selected!r}")
            return await self.get_download_url(token, torrent_id, file_id)
        except ResolutionError as e:
            logger.error(f"failed to resolve {file.name!r} ({self.name}): {e}")
            raise
