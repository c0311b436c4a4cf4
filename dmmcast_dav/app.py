#!/usr/bin/env python3
# encoding: utf-8

__author__ = "ChenyangGao <https://chenyanggao.github.io>"
__all__ = ["make_application"]

import logging

from datetime import datetime, UTC
from time import monotonic, time
from typing import Final

from blacksheep import Application, Router
from blacksheep.contents import Content
from blacksheep.cookies import Cookie, CookieSameSiteMode
from blacksheep.messages import Request, Response
from blacksheep.server.responses import html, redirect, see_other, text
from httpx import AsyncClient
from jinja2 import Environment, PackageLoader, select_autoescape
from orjson import dumps as json_dumps

from . import __version__
from .auth import check_login, resolve_token
from .cache import ResolutionCache
from .component import make_providers, DebridProvider
from .config import load_settings, ProviderSettings, Settings
from .dav import DAV_ALLOW, MULTISTATUS_CONTENT_TYPE, render_multistatus
from .exception import (
    get_status_code, AuthenticationError, ResolutionError, UpstreamStatusError,
)
from .registry import provider_for_path
from .strm import encode_href_name, parse_strm_filename, STRM_SUFFIX
from .vfs import find_file, list_static_assets, ASSET_SUFFIXES, STATIC_DIR


#: 会话 cookie 的存活时间，30 天
SESSION_MAX_AGE: Final = 30 * 24 * 60 * 60
#: 不需要检查配置和凭证的路径
PUBLIC_PATHS: Final = ("/health", "/style.css")

_INITIALIZED = False
jinja_env: Environment = None # type: ignore


def get_origin(request: Request) -> str:
    return f"{request.scheme}://{request.host}"


def _init():
    global _INITIALIZED, jinja_env
    if _INITIALIZED:
        return
    logging.basicConfig(format="[\x1b[1m%(asctime)s\x1b[0m] (\x1b[1;36m%(levelname)s\x1b[0m) "
                               "\x1b[0m\x1b[1;35mdmmcast-dav\x1b[0m \x1b[5;31m➜\x1b[0m %(message)s")
    jinja_env = Environment(
        loader=PackageLoader("dmmcast_dav", "views"),
        autoescape=select_autoescape(["html"]),
        enable_async=True,
    )
    jinja_env.filters["encode_href_name"] = encode_href_name
    _INITIALIZED = True


def make_response_for_exception(
    exc: BaseException,
    status_code: int = 500,
) -> Response:
    if isinstance(exc, AuthenticationError):
        realm = exc.realm.replace('"', "")
        return Response(
            401,
            [(b"WWW-Authenticate", f'Basic realm="{realm}", charset="UTF-8"'.encode("utf-8"))],
            Content(b"text/plain; charset=utf-8", b"Unauthorized"),
        )
    if isinstance(exc, OSError) and len(exc.args) == 2 and isinstance(exc.args[1], (dict, list, tuple)):
        return Response(
            status_code,
            None,
            Content(b"application/json", json_dumps(exc.args[1])),
        )
    if isinstance(exc, FileNotFoundError):
        return text("File not found", status_code)
    if isinstance(exc, OSError) and exc.strerror:
        return text(str(exc.strerror), status_code)
    return text(str(exc), status_code)


def make_application(
    settings: None | Settings = None,
    session: None | AsyncClient = None,
    cache: None | ResolutionCache = None,
    debug: bool = False,
) -> Application:
    """创建一个 blacksheep 应用，把 Debrid Media Manager 的投送链接以 webdav 的形式提供出来

    每个 provider 挂载在自己的路径前缀下（例如 "/" 和 "/torbox/"），提供

    - PROPFIND <mount>：列出 strm 文件（和静态图片）
    - GET <mount>{filename}：strm 文件的内容（直链）或者静态图片
    - DELETE <mount>{filename}：删除对应的投送链接
    - GET <mount>：网页浏览，以及 POST <mount>login、GET <mount>logout

    :param settings: 配置，如果为 None，则从环境变量读取
    :param session: 请求上游接口所用的 httpx.AsyncClient，如果为 None，则在启动时创建
    :param cache: 解析链的缓存，如果为 None，则创建一个新的
    :param debug: 启用调试，会输出 DEBUG 级别日志，也会产生更详细的报错信息

    :return: 一个 blacksheep 应用，你可以二次扩展，并用 uvicorn 运行
    """
    _init()

    if settings is None:
        settings = load_settings()
    if cache is None:
        cache = ResolutionCache()
    provider_settings: dict[str, ProviderSettings] = settings.providers
    descriptors = {name: s.descriptor for name, s in provider_settings.items()}

    app = Application(router=Router(), show_error_details=debug)
    logger = getattr(app, "logger")
    own_session = session is None
    providers: dict[str, DebridProvider] = {}
    started_at = monotonic()

    if debug:
        logger.level = logging.DEBUG
        logging.getLogger("dmmcast_dav").setLevel(logging.DEBUG)

    @app.on_start
    async def register_providers(app: Application):
        nonlocal session, started_at
        if session is None:
            session = AsyncClient()
        providers.update(make_providers(settings, session, cache))
        started_at = monotonic()
        for name, s in provider_settings.items():
            if missing := s.missing:
                logger.error(f"provider {name!r} is misconfigured, missing: {', '.join(missing)}")
            else:
                mode = "single-user" if s.single_user else "multi-user"
                logger.info(f"provider {name!r} mounted at {s.descriptor.mount!r} ({mode})")

    @app.on_stop
    async def close_session(app: Application):
        if own_session and session is not None:
            await session.aclose()

    async def check_configuration(request: Request, handler):
        path = request.path
        if path not in PUBLIC_PATHS:
            try:
                descriptor = provider_for_path(path, descriptors)
            except FileNotFoundError:
                pass
            else:
                if missing := provider_settings[descriptor.name].missing:
                    return text(f"Missing required environment variables: {', '.join(missing)}", 500)
        return await handler(request)

    app.middlewares.append(check_configuration)

    @app.exception_handler(Exception)
    async def redirect_exception_response(
        self,
        request: Request,
        exc: BaseException,
    ) -> Response:
        if isinstance(exc, AuthenticationError):
            return make_response_for_exception(exc, 401) # Unauthorized
        code = get_status_code(exc)
        if code is not None:
            if isinstance(exc, UpstreamStatusError):
                logger.warning(f"{request.method} {request.path} :: {exc}")
            return make_response_for_exception(exc, code)
        elif isinstance(exc, ValueError):
            return make_response_for_exception(exc, 400) # Bad Request
        elif isinstance(exc, FileNotFoundError):
            return make_response_for_exception(exc, 404) # Not Found
        elif isinstance(exc, ResolutionError):
            return make_response_for_exception(exc, 502) # Bad Gateway
        logger.exception(f"{request.method} {request.path} :: {type(exc).__qualname__}: {exc}")
        return make_response_for_exception(exc, 500) # Internal Server Error

    def get_token(request: Request, provider: DebridProvider) -> None | str:
        authorization = (request.get_first_header(b"Authorization") or b"").decode("latin-1")
        return resolve_token(request.cookies, authorization, provider.settings)

    def require_token(request: Request, provider: DebridProvider) -> str:
        if token := get_token(request, provider):
            return token
        raise AuthenticationError(provider.descriptor.realm)

    async def render(
        template: str,
        request: Request,
        provider: DebridProvider,
        /,
        **context,
    ) -> Response:
        s = provider.settings
        content = await jinja_env.get_template(template).render_async(
            provider=provider.descriptor,
            origin=get_origin(request),
            single_user=s.single_user,
            username=s.username,
            cache_buster=int(time() * 1000),
            version=".".join(map(str, __version__)),
            **context,
        )
        return html(content)

    def serve_asset(name: str) -> Response:
        asset = find_file(list_static_assets(), name)
        return Response(
            200,
            [(b"Cache-Control", b"public, max-age=31536000")],
            Content(asset.content_type.encode("latin-1"), asset.asset_path.read_bytes()), # type: ignore
        )

    @app.router.get("/health")
    async def health() -> Response:
        return Response(200, None, Content(b"application/json", json_dumps({
            "status": "ok",
            "uptime": round(monotonic() - started_at, 3),
            "timestamp": datetime.now(UTC).isoformat(),
        })))

    @app.router.get("/style.css")
    async def stylesheet() -> Response:
        return Response(
            200,
            [(b"Cache-Control", b"public, max-age=3600")],
            Content(b"text/css; charset=utf-8", (STATIC_DIR / "style.css").read_bytes()),
        )

    def register_routes(name: str, mount: str):
        prefix = mount.rstrip("/")

        async def login(request: Request) -> Response:
            provider = providers[name]
            form = await request.form() or {}
            username = form.get("username")
            password = form.get("password")
            if not (isinstance(username, str) and isinstance(password, str) and username and password):
                raise ValueError("missing form fields: username, password")
            token = check_login(username, password, provider.settings)
            if not token:
                logger.warning(f"login failed ({name}): username={username!r}")
                return await render("login.html", request, provider, title="Sign In Failed", failed=True)
            response = see_other(mount)
            response.set_cookie(Cookie(
                provider.descriptor.cookie_name,
                token,
                path=mount,
                max_age=SESSION_MAX_AGE,
                secure=True,
                http_only=False,
                same_site=CookieSameSiteMode.STRICT,
            ))
            return response

        async def logout(request: Request) -> Response:
            response = redirect(mount)
            response.set_cookie(Cookie(
                providers[name].descriptor.cookie_name,
                "",
                expires=datetime.fromtimestamp(0, UTC),
                path=mount,
                max_age=0,
                secure=True,
                same_site=CookieSameSiteMode.STRICT,
            ))
            return response

        async def browse(request: Request) -> Response:
            provider = providers[name]
            if not (token := get_token(request, provider)):
                return await render("login.html", request, provider, failed=False)
            links = await provider.list_catalog(token)
            return await render("index.html", request, provider, links=links)

        async def options(request: Request) -> Response:
            return Response(200, [
                (b"DAV", b"1"),
                (b"Allow", DAV_ALLOW.encode("latin-1")),
                (b"MS-Author-Via", b"DAV"),
            ], None)

        async def propfind(request: Request) -> Response:
            provider = providers[name]
            token = require_token(request, provider)
            files = await provider.list_files(token)
            files.extend(list_static_assets())
            depth = (request.get_first_header(b"Depth") or b"0").decode("latin-1")
            logger.debug(f"PROPFIND {mount} ({name}): depth={depth}, {len(files)} files")
            return Response(207, None, Content(
                MULTISTATUS_CONTENT_TYPE.encode("latin-1"),
                render_multistatus(mount, files, depth=depth),
            ))

        async def propfind_file(request: Request, filename: str) -> Response:
            provider = providers[name]
            token = require_token(request, provider)
            files = await provider.list_files(token)
            files.extend(list_static_assets())
            file = find_file(files, filename)
            return Response(207, None, Content(
                MULTISTATUS_CONTENT_TYPE.encode("latin-1"),
                render_multistatus(mount, [file], depth="1", with_collection=False),
            ))

        async def get_file(request: Request, filename: str) -> Response:
            provider = providers[name]
            if filename.lower().endswith(ASSET_SUFFIXES):
                return serve_asset(filename)
            if not filename.endswith(STRM_SUFFIX):
                raise FileNotFoundError(filename)
            token = require_token(request, provider)
            file = find_file(await provider.list_files(token), filename)
            content = await provider.resolve_content(token, file)
            return text(content)

        async def delete_file(request: Request, filename: str) -> Response:
            provider = providers[name]
            token = require_token(request, provider)
            # NOTE: blacksheep 已经对路由参数做过百分号解码
            hash, imdb_id = parse_strm_filename(filename, decode=False)
            await provider.delete_entry(token, hash, imdb_id)
            return Response(204)

        router = app.router
        router.add_post(prefix + "/login", login)
        router.add_get(prefix + "/logout", logout)
        # NOTE: blacksheep 的路由会忽略末尾的 "/"，所以 "/torbox" 也能匹配 "/torbox/"
        root = prefix or "/"
        router.route(root, methods=["GET", "HEAD"])(browse)
        router.route(root, methods=["OPTIONS"])(options)
        router.route(root, methods=["PROPFIND"])(propfind)
        file_pattern = prefix + "/{filename}"
        router.route(file_pattern, methods=["GET", "HEAD"])(get_file)
        router.route(file_pattern, methods=["OPTIONS"])(options)
        router.route(file_pattern, methods=["PROPFIND"])(propfind_file)
        router.route(file_pattern, methods=["DELETE"])(delete_file)

    # NOTE: 挂载点更长的先注册，以免被 "/{filename}" 抢先匹配
    for name, descriptor in sorted(descriptors.items(), key=lambda t: -len(t[1].mount)):
        register_routes(name, descriptor.mount)

    return app
