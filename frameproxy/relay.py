import logging

import requests
from flask import Response, stream_with_context
from markupsafe import escape

from .codec import proxy_path
from .fetcher import UpstreamResponse
from .rewriter import resolve_url, rewrite_html

logger = logging.getLogger(__name__)

STRIPPED_COOKIE_ATTRIBUTES = ("domain", "secure")


def sanitize_set_cookie(value: str) -> str:
    """
    Drop the attributes that would pin a cookie to the upstream site so the
    browser keeps it for the proxy's own origin.
    """
    parts = [part.strip() for part in value.split(";")]
    kept = [parts[0]]
    for attribute in parts[1:]:
        if not attribute:
            continue
        name, _, attr_value = attribute.partition("=")
        name = name.strip().lower()
        if name in STRIPPED_COOKIE_ATTRIBUTES:
            continue
        # browsers reject SameSite=None without Secure
        if name == "samesite" and attr_value.strip().lower() == "none":
            continue
        kept.append(attribute)
    return "; ".join(kept)


def attach_cookies(response: Response, upstream: UpstreamResponse) -> Response:
    for cookie in upstream.set_cookies:
        response.headers.add("Set-Cookie", sanitize_set_cookie(cookie))
    return response


def redirect_response(upstream: UpstreamResponse, target: str) -> Response:
    destination = resolve_url(target, upstream.location)
    location = proxy_path(destination)
    upstream.close()
    body = (
        f"<!DOCTYPE html><title>Redirecting</title>"
        f'<p>Redirecting via proxy to <a href="{escape(location)}">{escape(destination)}</a></p>'
    )
    response = Response(body, status=upstream.status, content_type="text/html; charset=utf-8")
    response.headers["Location"] = location
    return response


def html_response(upstream: UpstreamResponse, target: str, banner: bool = True) -> Response:
    html = upstream.text()
    body = rewrite_html(html, target, banner=banner)
    return Response(body, status=upstream.status, content_type="text/html; charset=utf-8")


def stream_response(upstream: UpstreamResponse, chunk_size: int = 8192) -> Response:
    def generate():
        try:
            for chunk in upstream.iter_bytes(chunk_size):
                if chunk:
                    yield chunk
        except requests.exceptions.RequestException as e:
            # headers are already out, all we can do is cut the body short
            logger.warning("Upstream stream for %s broke off: %s", upstream.url, e)
        finally:
            upstream.close()

    response = Response(
        stream_with_context(generate()),
        status=upstream.status,
        content_type=upstream.content_type or "application/octet-stream",
    )
    content_length = upstream.headers.get("Content-Length")
    # requests hands out decoded bytes, so an encoded length would be wrong
    if content_length and not upstream.is_encoded:
        response.headers["Content-Length"] = content_length
    response.call_on_close(upstream.close)
    return response


def relay(upstream: UpstreamResponse, target: str, banner: bool = True, chunk_size: int = 8192) -> Response:
    if upstream.is_redirect:
        response = redirect_response(upstream, target)
    elif upstream.is_html:
        response = html_response(upstream, target, banner=banner)
    else:
        response = stream_response(upstream, chunk_size=chunk_size)
    return attach_cookies(response, upstream)
