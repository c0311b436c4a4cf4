#!/usr/bin/env python3
# encoding: utf-8

__author__ = "ChenyangGao <https://chenyanggao.github.io>"
__all__ = [
    "CREDENTIAL_EXTRACTORS", "check_login", "from_basic_authorization",
    "from_session_cookie", "parse_basic_authorization", "resolve_token",
]

from base64 import b64decode
from binascii import Error as Base64Error
from collections.abc import Callable, Mapping, Sequence
from typing import TypeAlias

from .config import ProviderSettings


CredentialExtractor: TypeAlias = Callable[[Mapping[str, str], str, ProviderSettings], None | str]


def parse_basic_authorization(authorization: str, /) -> None | tuple[str, str]:
    """解析 HTTP Basic 请求头，格式不对时返回 None
    """
    scheme, _, payload = authorization.strip().partition(" ")
    if scheme.lower() != "basic" or not payload:
        return None
    try:
        decoded = b64decode(payload.strip(), validate=True).decode("utf-8")
    except (Base64Error, UnicodeDecodeError, ValueError):
        return None
    username, sep, password = decoded.partition(":")
    if not sep:
        return None
    return username, password


def check_login(
    username: str,
    password: str,
    settings: ProviderSettings,
    /,
) -> None | str:
    """校验用户名和密码，成功时返回用于上游接口的 token

    - 单用户模式：用户名和密码必须与配置完全一致，返回配置的 token
    - 多用户模式：用户名必须是 provider 接受的别名之一，密码本身就是 token
    """
    if settings.single_user:
        if username == settings.username and password == settings.password:
            return settings.token
        return None
    if username in settings.descriptor.usernames and password:
        return password
    return None


def from_session_cookie(
    cookies: Mapping[str, str],
    authorization: str,
    settings: ProviderSettings,
    /,
) -> None | str:
    return cookies.get(settings.descriptor.cookie_name) or None


def from_basic_authorization(
    cookies: Mapping[str, str],
    authorization: str,
    settings: ProviderSettings,
    /,
) -> None | str:
    if not authorization:
        return None
    if credentials := parse_basic_authorization(authorization):
        return check_login(*credentials, settings)
    return None


CREDENTIAL_EXTRACTORS: Sequence[CredentialExtractor] = (
    from_session_cookie,
    from_basic_authorization,
)


def resolve_token(
    cookies: Mapping[str, str],
    authorization: str,
    settings: ProviderSettings,
    /,
    extractors: Sequence[CredentialExtractor] = CREDENTIAL_EXTRACTORS,
) -> None | str:
    """按顺序尝试每种凭证来源，第一个成功的胜出，都失败则返回 None
    """
    for extract in extractors:
        if token := extract(cookies, authorization, settings):
            return token
    return None
