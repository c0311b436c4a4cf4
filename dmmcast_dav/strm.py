#!/usr/bin/env python3
# encoding: utf-8

__author__ = "ChenyangGao <https://chenyanggao.github.io>"
__all__ = ["STRM_SUFFIX", "make_strm_filename", "parse_strm_filename", "encode_href_name"]

from re import compile as re_compile
from typing import Final
from urllib.parse import quote, unquote


STRM_SUFFIX: Final = ".strm"
CRE_strm_ids_search: Final = re_compile(r"\{hash-([^}]+)\}\{imdb-([^}]+)\}\.strm$").search


def make_strm_filename(filename: str, hash: str, imdb_id: str, /) -> str:
    """构造 strm 文件名，末尾编码了删除时需要的散列值和 imdb id

        <filename>{hash-<hash>}{imdb-<imdb_id>}.strm
    """
    return f"{filename}{{hash-{hash}}}{{imdb-{imdb_id}}}{STRM_SUFFIX}"


def parse_strm_filename(name: str, /, decode: bool = True) -> tuple[str, str]:
    """从 strm 文件名中提取 (hash, imdb_id)，格式不对时抛出 ValueError

    :param name: 文件名（可以是经过百分号编码的）
    :param decode: 是否先进行百分号解码
    """
    if decode:
        name = unquote(name)
    match = CRE_strm_ids_search(name)
    if match is None:
        raise ValueError(f"invalid filename format - missing hash or imdbId encoding: {name!r}")
    return match[1], match[2]


def encode_href_name(name: str, /) -> str:
    """对文件名进行百分号编码（类似 JavaScript 的 encodeURIComponent），但保留 "{" 和 "}"
    """
    return quote(name, safe="!~*'()").replace("%7B", "{").replace("%7D", "}")
