#!/usr/bin/env python3
# encoding: utf-8

__author__ = "ChenyangGao <https://chenyanggao.github.io>"
__all__ = ["DebridProvider"]

import logging

from abc import ABC, abstractmethod

from httpx import AsyncClient, HTTPError

from ..cache import ResolutionCache
from ..catalog import fetch_catalog, LinkRecord
from ..config import ProviderSettings
from ..exception import UpstreamStatusError
from ..registry import ProviderDescriptor
from ..vfs import synthesize, VirtualFile


logger = logging.getLogger("dmmcast_dav")


class DebridProvider(ABC):
    """一个 debrid 后端的能力集合：列出投送链接、解析文件内容、删除投送链接
    """
    def __init__(
        self,
        /,
        settings: ProviderSettings,
        session: AsyncClient,
        cache: ResolutionCache,
    ):
        self.settings = settings
        self.session = session
        self.cache = cache

    def __repr__(self, /) -> str:
        return f"{type(self).__qualname__}(name={self.name!r}, mount={self.descriptor.mount!r})"

    @property
    def descriptor(self, /) -> ProviderDescriptor:
        return self.settings.descriptor

    @property
    def name(self, /) -> str:
        return self.descriptor.name

    async def list_catalog(self, token: str, /) -> list[LinkRecord]:
        return await fetch_catalog(self.session, self.descriptor, token)

    async def list_files(self, token: str, /) -> list[VirtualFile]:
        return synthesize(await self.list_catalog(token))

    @abstractmethod
    async def resolve_content(self, token: str, file: VirtualFile, /) -> str:
        """获取 strm 文件的内容，也就是可以直接访问的链接
        """

    async def delete_entry(self, token: str, hash: str, imdb_id: str, /):
        """删除一条投送链接，上游失败时抛出 UpstreamStatusError（带有上游的状态码）
        """
        descriptor = self.descriptor
        url = descriptor.base_url + descriptor.delete_path
        logger.info(f"deleting cast ({self.name}): imdbId={imdb_id}, hash={hash}")
        try:
            resp = await self.session.request(
                descriptor.delete_method,
                url,
                json={descriptor.delete_token_key: token, "imdbId": imdb_id, "hash": hash},
            )
        except HTTPError as e:
            raise UpstreamStatusError(500, f"Delete failed: {e}") from e
        if not resp.is_success:
            logger.error(f"delete failed ({self.name}): {resp.status_code} {resp.text}")
            raise UpstreamStatusError(resp.status_code, f"Delete failed: {resp.text}")
        logger.info(f"cast deleted ({self.name}): imdbId={imdb_id}, hash={hash}")
