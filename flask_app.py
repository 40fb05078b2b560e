import argparse
import logging
from threading import Thread

from frameproxy import ProxyConfig, create_app
from frameproxy.config import configure_logging

logger = logging.getLogger("frameproxy")


def parse_args(argv=None, config: ProxyConfig = None) -> ProxyConfig:
    config = config or ProxyConfig.from_env()
    parser = argparse.ArgumentParser(description="HTML-rewriting reverse proxy for framed browsing")
    parser.add_argument("--host", default=config.host)
    parser.add_argument("--port", type=int, default=config.port)
    parser.add_argument("--timeout", type=float, default=config.timeout, help="upstream fetch timeout in seconds")
    parser.add_argument("--no-banner", action="store_true", help="do not inject the provenance banner")
    parser.add_argument("--debug", action="store_true")
    args = parser.parse_args(argv)

    config.host = args.host
    config.port = args.port
    config.timeout = args.timeout
    if args.no_banner:
        config.banner = False
    if args.debug:
        config.log_level = "DEBUG"
    return config


def run(config: ProxyConfig = None):
    config = config or ProxyConfig.from_env()
    configure_logging(config.log_level)
    app = create_app(config)
    logger.info("Proxy server running on %s:%s", config.host, config.port)
    app.run(host=config.host, port=config.port, threaded=True)


def keep_alive(config: ProxyConfig = None) -> Thread:
    t = Thread(target=run, args=(config,), daemon=True)
    t.start()
    return t


def main(argv=None):
    run(parse_args(argv))


if __name__ == "__main__":
    main()
