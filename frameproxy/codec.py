import base64
import binascii
import re
from typing import Optional
from urllib.parse import parse_qs, urlsplit

from .errors import DecodeError

PROXY_PREFIX = "/proxy"

_TOKEN_PATTERN = re.compile(r"[A-Za-z0-9_-]*={0,2}")


def encode_url(url: str) -> str:
    return base64.urlsafe_b64encode(url.encode("utf-8")).decode("ascii").rstrip("=")


def decode_url(token: str) -> str:
    if not _TOKEN_PATTERN.fullmatch(token):
        raise DecodeError()
    token = token.rstrip("=")
    # urlsafe_b64decode wants the padding back
    padded = token + "=" * (-len(token) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded)
    except (binascii.Error, ValueError):
        raise DecodeError()
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        raise DecodeError()


def proxy_path(url: str, prefix: str = PROXY_PREFIX) -> str:
    return f"{prefix}?u={encode_url(url)}"


def display_url(location: str, prefix: str = PROXY_PREFIX) -> Optional[str]:
    """
    Turn a proxied location (``/proxy?u=...``, relative or absolute) back
    into the human-readable target URL. Returns None for anything else.
    """
    if not location:
        return None
    parts = urlsplit(location)
    if parts.path != prefix:
        return None
    tokens = parse_qs(parts.query).get("u")
    if not tokens:
        return None
    try:
        return decode_url(tokens[0])
    except DecodeError:
        return None
