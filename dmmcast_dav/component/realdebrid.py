#!/usr/bin/env python3
# encoding: utf-8

__author__ = "ChenyangGao <https://chenyanggao.github.io>"
__all__ = ["RealDebridCast"]

from ..vfs import VirtualFile
from .base import DebridProvider


class RealDebridCast(DebridProvider):
    """Real-Debrid 的投送链接，列表接口已经给出了直链，不需要额外解析
    """
    async def resolve_content(self, token: str, file: VirtualFile, /) -> str:
        return file.content
