import pytest

from httpx import Response

from dmmcast_dav.component import make_providers, TorBoxCast
from dmmcast_dav.component.torbox import select_file
from dmmcast_dav.config import load_settings
from dmmcast_dav.exception import ResolutionError
from dmmcast_dav.vfs import VirtualFile, synthesize
from dmmcast_dav.catalog import normalize_link

from .conftest import TORBOX_API


CREATE = TORBOX_API + "/torrents/createtorrent"
MYLIST = TORBOX_API + "/torrents/mylist"
REQUESTDL = TORBOX_API + "/torrents/requestdl"


def script_torbox(upstream, files=None, url="https://cdn.torbox.example/dl/1"):
    upstream.add("POST", CREATE, Response(200, json={"success": True, "data": {"torrent_id": 42}}))
    upstream.add("GET", MYLIST, Response(200, json={"success": True, "data": {
        "id": 42,
        "files": files if files is not None else [
            {"id": 1, "name": "Show/sample.mkv", "short_name": "sample.mkv"},
            {"id": 2, "name": "Show/Show.S01E01.mkv", "short_name": "Show.S01E01.mkv"},
        ],
    }}))
    upstream.add("GET", REQUESTDL, Response(200, json={"success": True, "data": url}))


def unresolved(filename="Show.S01E01.mkv", hash="deadbeef") -> VirtualFile:
    file, = synthesize([normalize_link({"hash": hash, "imdbId": "tt7", "filename": filename})])
    return file


@pytest.fixture
def torbox(session, cache) -> TorBoxCast:
    provider = make_providers(load_settings({}), session, cache)["torbox"]
    assert isinstance(provider, TorBoxCast)
    return provider


def test_select_file():
    files = [
        {"id": 1, "name": "a/x.mkv", "short_name": "x.mkv"},
        {"id": 2, "name": "a/Show.S01E01.mkv", "short_name": "Show.S01E01.mkv"},
    ]
    assert select_file(files, "Show.S01E01.mkv")["id"] == 2
    assert select_file(files, "a/x.mkv")["id"] == 1
    assert select_file(files, "Prefix.Show.S01E01.mkv")["id"] == 2
    assert select_file(files, "other.mkv")["id"] == 1
    assert select_file([], "x.mkv") is None


async def test_resolution_chain(torbox, upstream):
    script_torbox(upstream)
    assert await torbox.resolve_content("key", unresolved()) == "https://cdn.torbox.example/dl/1"

    create, = upstream.calls(CREATE)
    assert create.headers["Authorization"] == "Bearer key"
    body = create.content.decode()
    assert "magnet:?xt=urn:btih:deadbeef" in body
    assert 'name="add_only_if_cached"' in body

    mylist, = upstream.calls(MYLIST)
    assert mylist.url.params["id"] == "42"
    assert mylist.url.params["bypass_cache"] == "true"

    requestdl, = upstream.calls(REQUESTDL)
    assert dict(requestdl.url.params) == {
        "token": "key", "torrent_id": "42", "file_id": "2", "redirect": "false",
    }


async def test_resolution_is_cached_until_expiry(torbox, upstream, timer):
    script_torbox(upstream)
    file = unresolved()
    await torbox.resolve_content("key", file)
    await torbox.resolve_content("key", file)
    assert len(upstream.requests) == 3

    timer.advance(301)
    await torbox.resolve_content("key", file)
    assert len(upstream.requests) == 6


async def test_cache_is_keyed_by_token(torbox, upstream):
    script_torbox(upstream)
    await torbox.resolve_content("key-1", unresolved())
    await torbox.resolve_content("key-2", unresolved())
    assert len(upstream.calls(CREATE)) == 2


async def test_resolved_files_skip_upstream(torbox, upstream):
    file, = synthesize([normalize_link({"url": "https://x/ready.mkv", "hash": "h", "imdbId": "tt1"})])
    assert await torbox.resolve_content("key", file) == "https://x/ready.mkv"
    assert upstream.requests == []


async def test_upstream_failure_is_a_resolution_error(torbox, upstream):
    upstream.add("POST", CREATE, Response(200, json={
        "success": False, "error": "DOWNLOAD_NOT_CACHED", "detail": "torrent is not cached",
    }))
    with pytest.raises(ResolutionError, match="torrent is not cached"):
        await torbox.resolve_content("key", unresolved())


async def test_failed_steps_are_retried(torbox, upstream):
    upstream.add("POST", CREATE, Response(503, text="maintenance"))
    with pytest.raises(ResolutionError):
        await torbox.resolve_content("key", unresolved())
    script_torbox(upstream)
    assert await torbox.resolve_content("key", unresolved()) == "https://cdn.torbox.example/dl/1"


async def test_empty_torrent(torbox, upstream):
    script_torbox(upstream, files=[])
    with pytest.raises(ResolutionError):
        await torbox.resolve_content("key", unresolved())


async def test_bad_download_url(torbox, upstream):
    script_torbox(upstream, url="not a url")
    with pytest.raises(ResolutionError, match="requestdl"):
        await torbox.resolve_content("key", unresolved())


async def test_no_hash(torbox, upstream):
    with pytest.raises(ResolutionError):
        await torbox.resolve_content("key", unresolved(hash=""))
    assert upstream.requests == []
