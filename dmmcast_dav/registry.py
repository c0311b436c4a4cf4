#!/usr/bin/env python3
# encoding: utf-8

__author__ = "ChenyangGao <https://chenyanggao.github.io>"
__all__ = ["ProviderDescriptor", "PROVIDERS", "get_provider", "provider_for_path"]

from typing import Final, Literal, NamedTuple


class ProviderDescriptor(NamedTuple):
    """描述一个 debrid 后端，进程内不可变
    """
    name: str
    display_name: str
    base_url: str
    listing_paths: tuple[str, ...]
    token_keys: tuple[str, ...]
    delete_path: str
    delete_method: Literal["POST", "DELETE"]
    delete_token_key: str
    cookie_name: str
    token_env: str
    username_env: str
    password_env: str
    endpoints_env: str
    token_keys_env: str
    usernames: tuple[str, ...]
    mount: str
    manage_url: str

    @property
    def realm(self, /) -> str:
        return self.display_name


DMM_BASE_URL: Final = "https://debridmediamanager.com"

#: 所有的 provider，按名字索引
PROVIDERS: Final[dict[str, ProviderDescriptor]] = {
    "realdebrid": ProviderDescriptor(
        name="realdebrid",
        display_name="DMM Cast (Real-Debrid)",
        base_url=DMM_BASE_URL,
        listing_paths=("/api/stremio/links",),
        token_keys=("token",),
        delete_path="/api/stremio/deletelink",
        delete_method="POST",
        delete_token_key="token",
        cookie_name="dmm_rd_token",
        token_env="RD_ACCESS_TOKEN",
        username_env="WEBDAV_USERNAME",
        password_env="WEBDAV_PASSWORD",
        endpoints_env="DMM_ENDPOINTS",
        token_keys_env="DMM_TOKEN_KEYS",
        usernames=("apitoken", "rd", "realdebrid", "real-debrid"),
        mount="/",
        manage_url=DMM_BASE_URL + "/stremio/manage",
    ),
    "torbox": ProviderDescriptor(
        name="torbox",
        display_name="DMM Cast (TorBox)",
        base_url=DMM_BASE_URL,
        listing_paths=("/api/stremio-tb/links", "/api/stremio/tb/links"),
        token_keys=("apiKey", "token"),
        delete_path="/api/stremio-tb/deletelink",
        delete_method="DELETE",
        delete_token_key="apiKey",
        cookie_name="dmm_tb_token",
        token_env="TORBOX_API_KEY",
        username_env="TORBOX_WEBDAV_USERNAME",
        password_env="TORBOX_WEBDAV_PASSWORD",
        endpoints_env="TORBOX_ENDPOINTS",
        token_keys_env="TORBOX_TOKEN_KEYS",
        usernames=("apitoken", "tb", "torbox"),
        mount="/torbox/",
        manage_url=DMM_BASE_URL + "/stremio-tb/manage",
    ),
}


def get_provider(name: str, /) -> ProviderDescriptor:
    try:
        return PROVIDERS[name]
    except KeyError:
        raise ValueError(f"unknown provider: {name!r}") from None


def provider_for_path(
    path: str,
    /,
    providers: None | dict[str, ProviderDescriptor] = None,
) -> ProviderDescriptor:
    """根据请求路径的前缀选择 provider，最长的挂载点优先
    """
    if providers is None:
        providers = PROVIDERS
    if not path.endswith("/"):
        path += "/"
    selected: None | ProviderDescriptor = None
    for descriptor in providers.values():
        if path.startswith(descriptor.mount):
            if selected is None or len(descriptor.mount) > len(selected.mount):
                selected = descriptor
    if selected is None:
        raise FileNotFoundError(path)
    return selected
