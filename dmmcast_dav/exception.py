#!/usr/bin/env python3
# encoding: utf-8

__author__ = "ChenyangGao <https://chenyanggao.github.io>"
__all__ = [
    "DebridOSError", "AuthenticationError", "ResolutionError", "UpstreamStatusError",
    "check_response", "get_status_code",
]

from errno import EACCES, EIO
from typing import Any


class DebridOSError(OSError):
    ...


class AuthenticationError(DebridOSError):
    """没有凭证或凭证无效，会被转换为 401 响应

    :param realm: 出现在 `WWW-Authenticate` 响应头中的 realm
    """
    def __init__(self, /, realm: str = "", *args):
        super().__init__(EACCES, realm, *args)
        self.realm = realm


class ResolutionError(DebridOSError):
    ...


class UpstreamStatusError(DebridOSError):
    """上游接口返回了非 2xx 的状态码，它会被原样传递给客户端
    """
    def __init__(self, /, status_code: int, message: str = ""):
        super().__init__(EIO, message)
        self.status_code = status_code

    def __str__(self, /) -> str:
        return self.strerror or f"upstream responded with status {self.status_code}"


def check_response(resp: Any, /) -> dict:
    """检查 TorBox 的接口响应，如果失败则抛出 ResolutionError
    """
    if not isinstance(resp, dict):
        raise ResolutionError(EIO, f"unexpected response: {resp!r}")
    if not resp.get("success"):
        raise ResolutionError(EIO, resp.get("detail") or resp.get("error") or resp)
    return resp


def get_status_code(e: BaseException, /) -> None | int:
    status = (
        getattr(e, "status", None) or
        getattr(e, "status_code", None)
    )
    if status is None and hasattr(e, "response"):
        response = e.response
        status = (
            getattr(response, "status", None) or
            getattr(response, "status_code", None)
        )
    return status
