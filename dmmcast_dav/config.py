#!/usr/bin/env python3
# encoding: utf-8

__author__ = "ChenyangGao <https://chenyanggao.github.io>"
__all__ = ["ProviderSettings", "Settings", "load_settings"]

from collections.abc import Mapping
from os import environ
from typing import Final, NamedTuple

from .registry import PROVIDERS, ProviderDescriptor


DEFAULT_TORBOX_API_URL: Final = "https://api.torbox.app/v1/api"


def split_list(value: str, /) -> tuple[str, ...]:
    return tuple(filter(None, (s.strip() for s in value.split(","))))


class ProviderSettings(NamedTuple):
    descriptor: ProviderDescriptor
    token: str = ""
    username: str = ""
    password: str = ""

    @property
    def single_user(self, /) -> bool:
        return bool(self.token and self.username and self.password)

    @property
    def missing(self, /) -> list[str]:
        """部分配置了单用户模式时，缺失的环境变量名；全部缺失则为多用户模式，返回空列表
        """
        descriptor = self.descriptor
        pairs = (
            (descriptor.token_env, self.token),
            (descriptor.username_env, self.username),
            (descriptor.password_env, self.password),
        )
        if not any(value for _, value in pairs):
            return []
        return [name for name, value in pairs if not value]


class Settings(NamedTuple):
    providers: dict[str, ProviderSettings]
    torbox_api_url: str = DEFAULT_TORBOX_API_URL


def load_settings(env: None | Mapping[str, str] = None, /) -> Settings:
    """从环境变量中读取配置

    - 每个 provider 的 token、用户名和密码，变量名见 `dmmcast_dav.registry.PROVIDERS`
    - ``DMM_ENDPOINTS`` / ``TORBOX_ENDPOINTS``：用逗号隔开的列表接口路径，会替换默认值
    - ``DMM_TOKEN_KEYS`` / ``TORBOX_TOKEN_KEYS``：用逗号隔开的 token 查询参数名，会替换默认值
    - ``DMM_BASE_URL``：Debrid Media Manager 的 base_url
    - ``TORBOX_API_URL``：TorBox 接口的 base_url
    """
    if env is None:
        env = environ
    base_url = (env.get("DMM_BASE_URL") or "").strip().rstrip("/")
    providers: dict[str, ProviderSettings] = {}
    for name, descriptor in PROVIDERS.items():
        if base_url:
            descriptor = descriptor._replace(base_url=base_url)
        if listing_paths := split_list(env.get(descriptor.endpoints_env, "")):
            descriptor = descriptor._replace(listing_paths=listing_paths)
        if token_keys := split_list(env.get(descriptor.token_keys_env, "")):
            descriptor = descriptor._replace(token_keys=token_keys)
        providers[name] = ProviderSettings(
            descriptor,
            token=env.get(descriptor.token_env, "").strip(),
            username=env.get(descriptor.username_env, "").strip(),
            password=env.get(descriptor.password_env, ""),
        )
    torbox_api_url = (env.get("TORBOX_API_URL") or "").strip().rstrip("/")
    return Settings(providers, torbox_api_url or DEFAULT_TORBOX_API_URL)
