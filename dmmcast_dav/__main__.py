#!/usr/bin/env python3
# encoding: utf-8

__author__ = "ChenyangGao <https://chenyanggao.github.io>"
__doc__ = "\t\t📼 DMM Cast WebDAV 🎞️"

from argparse import ArgumentParser, Namespace, RawTextHelpFormatter
from pathlib import Path

parser = ArgumentParser(description=__doc__, formatter_class=RawTextHelpFormatter, epilog="""\
环境变量：

    RD_ACCESS_TOKEN, WEBDAV_USERNAME, WEBDAV_PASSWORD
        Real-Debrid 单用户模式，3 个都设置才生效，都不设置则为多用户模式
    TORBOX_API_KEY, TORBOX_WEBDAV_USERNAME, TORBOX_WEBDAV_PASSWORD
        TorBox 单用户模式，同上
    DMM_BASE_URL
        Debrid Media Manager 的 base_url，默认值：'https://debridmediamanager.com'
    DMM_ENDPOINTS, DMM_TOKEN_KEYS, TORBOX_ENDPOINTS, TORBOX_TOKEN_KEYS
        逗号分隔，覆盖获取投送列表的接口路径和 token 参数名
    TORBOX_API_URL
        TorBox 接口的 base_url，默认值：'https://api.torbox.app/v1/api'
""")
parser.add_argument("-H", "--host", default="", help="ip 或 hostname，默认值：'0.0.0.0'（或者配置文件中的 host）")
parser.add_argument("-P", "-p", "--port", type=int, help="端口号，默认值：8080（或者配置文件中的 port），如果为 0 则自动确定")
parser.add_argument("-d", "--debug", action="store_true", help="启用调试，会输出更详细信息")
parser.add_argument("-c", "-uc", "--uvicorn-run-config-path", help="uvicorn 启动时的配置文件路径，会作为关键字参数传给 `uvicorn.run`，支持 JSON、YAML 或 TOML 格式，会根据扩展名确定，不能确定时视为 JSON")
parser.add_argument("-v", "--version", action="store_true", help="输出版本号")
parser.add_argument("-l", "--license", action="store_true", help="输出授权信息")


def parse_args(argv: None | list[str] = None, /) -> Namespace:
    args = parser.parse_args(argv)
    if args.version:
        from dmmcast_dav import __version__
        print(".".join(map(str, __version__)))
        raise SystemExit(0)
    elif args.license:
        from dmmcast_dav import __license__
        print(__license__)
        raise SystemExit(0)
    return args


def get_available_port(start: int = 1024, stop: int = 65536) -> int:
    from socket import create_connection

    for port in range(start, stop):
        try:
            with create_connection(("127.0.0.1", port), timeout=1):
                pass
        except OSError:
            return port
    raise RuntimeError("no available ports")


def load_run_config(path: str, /) -> dict:
    with open(path, "rb") as file:
        match Path(path).suffix.lower():
            case ".yml" | ".yaml":
                from yaml import load as yaml_load, Loader
                return yaml_load(file, Loader=Loader) or {}
            case ".toml":
                from tomllib import load as toml_load
                return toml_load(file)
            case _:
                from orjson import loads as json_loads
                return json_loads(file.read())


def main(argv: None | list[str] | Namespace = None, /):
    if isinstance(argv, Namespace):
        args = argv
    else:
        args = parse_args(argv)

    if args.uvicorn_run_config_path:
        run_config = load_run_config(args.uvicorn_run_config_path)
    else:
        run_config = {}

    if args.host:
        run_config["host"] = args.host
    else:
        run_config.setdefault("host", "0.0.0.0")
    if args.port is not None:
        run_config["port"] = args.port
    else:
        run_config.setdefault("port", 8080)
    if not run_config["port"]:
        run_config["port"] = get_available_port()

    run_config.setdefault("proxy_headers", True)
    run_config.setdefault("server_header", False)
    run_config.setdefault("forwarded_allow_ips", "*")
    run_config.setdefault("timeout_graceful_shutdown", 1)

    from dmmcast_dav import make_application
    from uvicorn import run

    print(__doc__)
    app = make_application(debug=args.debug)
    run(app, **run_config)


if __name__ == "__main__":
    from sys import path

    path[0] = str(Path(__file__).parents[1])
    main()
