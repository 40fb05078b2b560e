"""HTML-rewriting reverse proxy for embedding third-party pages in an iframe."""

from .app import create_app
from .codec import decode_url, display_url, encode_url, proxy_path
from .config import ProxyConfig

__all__ = [
    "create_app",
    "decode_url",
    "display_url",
    "encode_url",
    "proxy_path",
    "ProxyConfig",
]

__version__ = "0.1.0"
