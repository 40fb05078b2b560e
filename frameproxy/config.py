import logging
import os
from dataclasses import dataclass, field
from typing import Mapping, Tuple

DEFAULT_CONSENT_DOMAINS = ("google.com",)


@dataclass
class ProxyConfig:
    """Runtime settings. All durations are in seconds."""

    host: str = "0.0.0.0"
    port: int = 3000
    timeout: float = 5.0
    rate_limit: int = 30
    rate_window: float = 10.0
    chunk_size: int = 8192
    banner: bool = True
    consent_domains: Tuple[str, ...] = field(default=DEFAULT_CONSENT_DOMAINS)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] = None) -> "ProxyConfig":
        env = os.environ if environ is None else environ
        config = cls()
        config.host = env.get("FRAMEPROXY_HOST", config.host)
        config.port = _number(env, "PORT", int, config.port)
        config.timeout = _number(env, "FRAMEPROXY_TIMEOUT", float, config.timeout)
        config.rate_limit = _number(env, "FRAMEPROXY_RATE_LIMIT", int, config.rate_limit)
        config.rate_window = _number(env, "FRAMEPROXY_RATE_WINDOW", float, config.rate_window)
        config.chunk_size = _number(env, "FRAMEPROXY_CHUNK_SIZE", int, config.chunk_size)
        if "FRAMEPROXY_BANNER" in env:
            config.banner = env["FRAMEPROXY_BANNER"].strip().lower() not in ("0", "false", "no", "off")
        if "FRAMEPROXY_CONSENT_DOMAINS" in env:
            config.consent_domains = tuple(
                d.strip().lower() for d in env["FRAMEPROXY_CONSENT_DOMAINS"].split(",") if d.strip()
            )
        config.log_level = env.get("FRAMEPROXY_LOG_LEVEL", config.log_level).upper()
        return config


def _number(env, name, kind, default):
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = kind(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


def configure_logging(level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
