from datetime import datetime, UTC

import pytest

from dmmcast_dav.catalog import normalize_link
from dmmcast_dav.vfs import find_file, list_static_assets, synthesize


def record(url, updated_at, hash="h", imdb_id="tt1", filename="Movie.mkv"):
    return normalize_link({
        "url": url, "filename": filename, "hash": hash, "imdbId": imdb_id, "updatedAt": updated_at,
    })


def test_newest_record_wins():
    files = synthesize([
        record("https://x/old", "2023-01-01T00:00:00Z"),
        record("https://x/new", "2024-01-01T00:00:00Z"),
        record("https://x/older", "2022-01-01T00:00:00Z"),
    ])
    assert len(files) == 1
    assert files[0].content == "https://x/new"
    assert files[0].modified == datetime(2024, 1, 1, tzinfo=UTC)


def test_equal_timestamps_keep_first():
    files = synthesize([
        record("https://x/first", "2024-01-01T00:00:00Z"),
        record("https://x/second", "2024-01-01T00:00:00Z"),
    ])
    assert [f.content for f in files] == ["https://x/first"]


def test_size_is_utf8_length_of_content():
    url = "https://x/évènement.mkv"
    file, = synthesize([record(url, "2024-01-01T00:00:00Z")])
    assert file.size == len(url.encode("utf-8"))
    assert file.content_type == "text/plain; charset=utf-8"
    assert (file.hash, file.imdb_id) == ("h", "tt1")


def test_distinct_names_are_kept():
    files = synthesize([
        record("https://x/a", "2024-01-01T00:00:00Z", hash="a"),
        record("https://x/b", "2024-01-01T00:00:00Z", hash="b"),
    ])
    assert {f.name for f in files} == {
        "Movie.mkv{hash-a}{imdb-tt1}.strm", "Movie.mkv{hash-b}{imdb-tt1}.strm",
    }


def test_static_assets():
    assets = list_static_assets()
    folder = find_file(assets, "folder.png")
    assert folder.is_asset
    assert folder.content_type == "image/png"
    assert folder.size > 0
    assert all(not a.name.endswith(".css") for a in assets)


def test_find_file_missing():
    with pytest.raises(FileNotFoundError):
        find_file([], "nothing.strm")
