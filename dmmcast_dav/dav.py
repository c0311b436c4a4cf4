#!/usr/bin/env python3
# encoding: utf-8

__author__ = "ChenyangGao <https://chenyanggao.github.io>"
__all__ = ["DAV_ALLOW", "MULTISTATUS_CONTENT_TYPE", "format_http_date", "render_multistatus"]

from collections.abc import Iterable
from datetime import datetime, UTC
from email.utils import format_datetime
from typing import Final
from xml.etree.ElementTree import Element, SubElement, tostring

from .strm import encode_href_name
from .vfs import VirtualFile


MULTISTATUS_CONTENT_TYPE: Final = "application/xml; charset=utf-8"
DAV_ALLOW: Final = "OPTIONS, GET, HEAD, PROPFIND, DELETE"
STATUS_OK: Final = "HTTP/1.1 200 OK"


def format_http_date(dt: datetime, /) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return format_datetime(dt.astimezone(UTC), usegmt=True)


def _append_response(multistatus: Element, href: str, /) -> Element:
    response = SubElement(multistatus, "D:response")
    SubElement(response, "D:href").text = href
    propstat = SubElement(response, "D:propstat")
    prop = SubElement(propstat, "D:prop")
    SubElement(propstat, "D:status").text = STATUS_OK
    return prop


def append_file(multistatus: Element, href: str, file: VirtualFile, /):
    prop = _append_response(multistatus, href)
    SubElement(prop, "D:displayname").text = file.name
    SubElement(prop, "D:resourcetype")
    SubElement(prop, "D:getcontentlength").text = str(file.size)
    SubElement(prop, "D:getlastmodified").text = format_http_date(file.modified)
    SubElement(prop, "D:getcontenttype").text = file.content_type


def append_collection(multistatus: Element, href: str, modified: datetime, /):
    prop = _append_response(multistatus, href)
    resourcetype = SubElement(prop, "D:resourcetype")
    SubElement(resourcetype, "D:collection")
    SubElement(prop, "D:getlastmodified").text = format_http_date(modified)


def render_multistatus(
    collection_href: str,
    files: Iterable[VirtualFile],
    /,
    depth: str = "0",
    now: None | datetime = None,
    with_collection: bool = True,
) -> bytes:
    """生成 PROPFIND 的 207 响应体

    :param collection_href: 集合（挂载点）的 href，以 "/" 结尾
    :param files: 集合中的虚拟文件
    :param depth: 请求头 `Depth` 的值，为 "0" 时只输出集合自身
    :param now: 集合的最近修改时间，默认为当前时间
    :param with_collection: 是否输出集合自身（对单个文件 PROPFIND 时为 False）

    :return: XML 数据
    """
    multistatus = Element("D:multistatus", {"xmlns:D": "DAV:"})
    if depth.strip() != "0":
        for file in files:
            append_file(multistatus, collection_href + encode_href_name(file.name), file)
    if with_collection:
        append_collection(multistatus, collection_href, now or datetime.now(UTC))
    return tostring(multistatus, encoding="utf-8", xml_declaration=True)
