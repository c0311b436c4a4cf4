from base64 import b64encode

import pytest

from dmmcast_dav.auth import (
    check_login, parse_basic_authorization, resolve_token, from_basic_authorization,
)
from dmmcast_dav.config import load_settings
from dmmcast_dav.registry import get_provider, provider_for_path, PROVIDERS


def basic(username: str, password: str) -> str:
    return "Basic " + b64encode(f"{username}:{password}".encode()).decode()


@pytest.fixture
def multi_user():
    return load_settings({}).providers["realdebrid"]


@pytest.fixture
def single_user():
    return load_settings({
        "RD_ACCESS_TOKEN": "secret-token",
        "WEBDAV_USERNAME": "alice",
        "WEBDAV_PASSWORD": "pa:ss",
    }).providers["realdebrid"]


def test_parse_basic_authorization():
    assert parse_basic_authorization(basic("alice", "pa:ss")) == ("alice", "pa:ss")
    assert parse_basic_authorization("Bearer abc") is None
    assert parse_basic_authorization("Basic !!!") is None
    assert parse_basic_authorization("Basic " + b64encode(b"no-colon").decode()) is None


def test_multi_user_login(multi_user):
    assert check_login("rd", "tok", multi_user) == "tok"
    assert check_login("apitoken", "tok", multi_user) == "tok"
    assert check_login("someone", "tok", multi_user) is None
    assert check_login("rd", "", multi_user) is None


def test_single_user_login(single_user):
    assert single_user.single_user
    assert check_login("alice", "pa:ss", single_user) == "secret-token"
    assert check_login("alice", "wrong", single_user) is None
    assert check_login("rd", "secret-token", single_user) is None


def test_cookie_wins_over_basic(multi_user):
    cookies = {"dmm_rd_token": "from-cookie"}
    assert resolve_token(cookies, basic("rd", "from-basic"), multi_user) == "from-cookie"
    assert resolve_token({}, basic("rd", "from-basic"), multi_user) == "from-basic"
    assert resolve_token({"dmm_tb_token": "other"}, "", multi_user) is None


def test_invalid_basic_falls_through(single_user):
    assert from_basic_authorization({}, basic("alice", "nope"), single_user) is None
    assert resolve_token({}, basic("alice", "nope"), single_user) is None


def test_missing_variables_only_when_partial():
    settings = load_settings({"TORBOX_API_KEY": "k"})
    assert settings.providers["torbox"].missing == ["TORBOX_WEBDAV_USERNAME", "TORBOX_WEBDAV_PASSWORD"]
    assert settings.providers["realdebrid"].missing == []
    assert not settings.providers["torbox"].single_user


def test_overrides_from_environment():
    settings = load_settings({
        "DMM_BASE_URL": "http://dmm.local/",
        "DMM_ENDPOINTS": "/a, /b",
        "TORBOX_TOKEN_KEYS": "key",
        "TORBOX_API_URL": "http://tb.local/api/",
    })
    rd = settings.providers["realdebrid"].descriptor
    tb = settings.providers["torbox"].descriptor
    assert rd.base_url == tb.base_url == "http://dmm.local"
    assert rd.listing_paths == ("/a", "/b")
    assert tb.token_keys == ("key",)
    assert settings.torbox_api_url == "http://tb.local/api"
    assert PROVIDERS["realdebrid"].base_url == "https://debridmediamanager.com"


def test_provider_lookup():
    assert get_provider("torbox").mount == "/torbox/"
    with pytest.raises(ValueError):
        get_provider("premiumize")
    assert provider_for_path("/torbox").name == "torbox"
    assert provider_for_path("/torbox/a.strm").name == "torbox"
    assert provider_for_path("/a.strm").name == "realdebrid"
    assert provider_for_path("/torboxed.strm").name == "realdebrid"
