#!/usr/bin/env python3
# encoding: utf-8

__author__ = "ChenyangGao <https://chenyanggao.github.io>"
__all__ = ["DebridProvider", "RealDebridCast", "TorBoxCast", "make_providers"]

from httpx import AsyncClient

from ..cache import ResolutionCache
from ..config import Settings
from .base import DebridProvider
from .realdebrid import RealDebridCast
from .torbox import TorBoxCast


def make_providers(
    settings: Settings,
    session: AsyncClient,
    cache: ResolutionCache,
    /,
) -> dict[str, DebridProvider]:
    providers: dict[str, DebridProvider] = {}
    for name, provider_settings in settings.providers.items():
        match name:
            case "torbox":
                providers[name] = TorBoxCast(
                    provider_settings, session, cache, api_url=settings.torbox_api_url)
            case _:
                providers[name] = RealDebridCast(provider_settings, session, cache)
    return providers
