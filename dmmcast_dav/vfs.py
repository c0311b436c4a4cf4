#!/usr/bin/env python3
# encoding: utf-8

__author__ = "ChenyangGao <https://chenyanggao.github.io>"
__all__ = [
    "STATIC_DIR", "STRM_CONTENT_TYPE", "VirtualFile", "find_file",
    "list_static_assets", "synthesize",
]

from collections.abc import Iterable, Sequence
from datetime import datetime, UTC
from mimetypes import guess_type
from pathlib import Path
from typing import Final, NamedTuple

from .catalog import LinkRecord


STATIC_DIR: Final = Path(__file__).with_name("static")
STRM_CONTENT_TYPE: Final = "text/plain; charset=utf-8"
#: 会出现在 webdav 列表中的静态文件的扩展名
ASSET_SUFFIXES: Final = (".png",)


class VirtualFile(NamedTuple):
    name: str
    content: str
    size: int
    modified: datetime
    content_type: str = STRM_CONTENT_TYPE
    original_filename: str = ""
    hash: str = ""
    imdb_id: str = ""
    download_url: str = ""
    resolved: bool = True
    asset_path: None | Path = None

    @classmethod
    def from_record(cls, record: LinkRecord, /) -> "VirtualFile":
        content = record.url
        return cls(
            name=record.strm_filename,
            content=content,
            size=len(content.encode("utf-8")),
            modified=record.timestamp,
            original_filename=record.filename,
            hash=record.hash,
            imdb_id=record.imdb_id,
            download_url=record.url,
            resolved=record.resolved,
        )

    @property
    def is_asset(self, /) -> bool:
        return self.asset_path is not None


def synthesize(records: Iterable[LinkRecord], /) -> list[VirtualFile]:
    """把链接记录转换为虚拟文件列表，同名（strm 文件名）的只保留更新时间最新的那个
    """
    files: dict[str, VirtualFile] = {}
    for record in records:
        file = VirtualFile.from_record(record)
        existing = files.get(file.name)
        if existing is None or file.modified > existing.modified:
            files[file.name] = file
    return list(files.values())


def list_static_assets(
    directory: Path = STATIC_DIR,
    /,
    suffixes: Sequence[str] = ASSET_SUFFIXES,
) -> list[VirtualFile]:
    if not directory.is_dir():
        return []
    assets: list[VirtualFile] = []
    for path in sorted(directory.iterdir()):
        if not path.is_file() or path.suffix.lower() not in suffixes:
            continue
        stat = path.stat()
        assets.append(VirtualFile(
            name=path.name,
            content="",
            size=stat.st_size,
            modified=datetime.fromtimestamp(stat.st_mtime, UTC),
            content_type=guess_type(path.name)[0] or "application/octet-stream",
            asset_path=path,
        ))
    return assets


def find_file(files: Iterable[VirtualFile], name: str, /) -> VirtualFile:
    for file in files:
        if file.name == name:
            return file
    raise FileNotFoundError(name)
