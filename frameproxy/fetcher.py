import logging
from typing import Iterable, Iterator, List, Mapping, Optional
from urllib.parse import urlsplit

import requests
from requests.structures import CaseInsensitiveDict

from .errors import InvalidURL, UnsupportedProtocol, UpstreamTimeout, UpstreamUnreachable

logger = logging.getLogger(__name__)

FALLBACK_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
FALLBACK_ACCEPT = (
    "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,"
    "image/apng,*/*;q=0.8,application/signed-exchange;v=b3;q=0.7"
)
FALLBACK_ACCEPT_LANGUAGE = "en-US,en;q=0.9"

# top-level navigation, as a browser would send it
NAVIGATION_HEADERS = {
    "Upgrade-Insecure-Requests": "1",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Sec-Fetch-User": "?1",
    "Cache-Control": "max-age=0",
}

CONSENT_COOKIE = "CONSENT=YES+"

ALLOWED_SCHEMES = ("http", "https")


def parse_target(url: str):
    """Validate an absolute target URL and return its split form."""
    try:
        parts = urlsplit(url)
        # touching .port validates it
        parts.port
    except ValueError:
        raise InvalidURL()
    if not parts.scheme:
        raise InvalidURL()
    if parts.scheme.lower() not in ALLOWED_SCHEMES:
        raise UnsupportedProtocol()
    if not parts.hostname:
        raise InvalidURL()
    return parts


def is_consent_gated(hostname: str, domains: Iterable[str]) -> bool:
    hostname = (hostname or "").lower().rstrip(".")
    return any(hostname == d or hostname.endswith("." + d) for d in domains)


def _set_cookie_values(resp: requests.Response) -> List[str]:
    # requests folds repeated Set-Cookie headers into one comma-joined value,
    # which breaks on Expires dates; read them from urllib3 instead
    raw_headers = getattr(resp.raw, "headers", None)
    if raw_headers is not None and hasattr(raw_headers, "getlist"):
        return list(raw_headers.getlist("Set-Cookie"))
    value = resp.headers.get("Set-Cookie")
    return [value] if value else []


class UpstreamResponse:
    """One upstream response, consumed once (buffered or streamed) then closed."""

    def __init__(self, response: requests.Response, set_cookies: List[str] = None):
        self._response = response
        self.status = response.status_code
        self.headers = CaseInsensitiveDict(response.headers)
        self.url = response.url
        self.set_cookies = _set_cookie_values(response) if set_cookies is None else list(set_cookies)

    @property
    def content_type(self) -> str:
        return self.headers.get("Content-Type", "")

    @property
    def location(self) -> Optional[str]:
        return self.headers.get("Location")

    @property
    def is_redirect(self) -> bool:
        return 300 <= self.status < 400 and bool(self.location)

    @property
    def is_html(self) -> bool:
        return "text/html" in self.content_type.lower()

    @property
    def is_encoded(self) -> bool:
        encoding = self.headers.get("Content-Encoding", "").strip().lower()
        return encoding not in ("", "identity")

    def text(self) -> str:
        """Buffer the whole body and decode it."""
        try:
            body = self._response.content
        except requests.exceptions.RequestException as e:
            raise _translate(e, self.url)
        finally:
            self.close()
        if "charset=" in self.content_type.lower() and self._response.encoding:
            encoding = self._response.encoding
        else:
            encoding = self._response.apparent_encoding or "utf-8"
        try:
            return body.decode(encoding, errors="replace")
        except LookupError:
            return body.decode("utf-8", errors="replace")

    def iter_bytes(self, chunk_size: int = 8192) -> Iterator[bytes]:
        return self._response.iter_content(chunk_size=chunk_size)

    def close(self):
        self._response.close()


def _translate(exc: Exception, target: str):
    if isinstance(exc, requests.exceptions.Timeout):
        return UpstreamTimeout(f"Proxy fetch error: timed out fetching {target}")
    if isinstance(exc, (requests.exceptions.InvalidURL, requests.exceptions.InvalidSchema)):
        return InvalidURL()
    return UpstreamUnreachable(f"Proxy fetch error: {exc.__class__.__name__}")


class UpstreamFetcher:
    def __init__(self, session: requests.Session = None, timeout: float = 5.0, consent_domains=("google.com",)):
        self.session = session or requests.Session()
        self.timeout = timeout
        self.consent_domains = tuple(consent_domains)

    def build_headers(self, target: str, client_headers: Mapping[str, str], referer: str = None) -> dict:
        client_headers = CaseInsensitiveDict(client_headers or {})
        headers = {
            "User-Agent": client_headers.get("User-Agent") or FALLBACK_USER_AGENT,
            "Accept": client_headers.get("Accept") or FALLBACK_ACCEPT,
            "Accept-Language": client_headers.get("Accept-Language") or FALLBACK_ACCEPT_LANGUAGE,
        }
        headers.update(NAVIGATION_HEADERS)

        cookie = client_headers.get("Cookie")
        if cookie:
            headers["Cookie"] = cookie
        elif is_consent_gated(urlsplit(target).hostname, self.consent_domains):
            headers["Cookie"] = CONSENT_COOKIE

        headers["Referer"] = referer or target
        return headers

    def fetch(self, target: str, client_headers: Mapping[str, str] = None, referer: str = None) -> UpstreamResponse:
        parse_target(target)
        headers = self.build_headers(target, client_headers, referer)
        logger.debug("Fetching %s", target)
        try:
            resp = self.session.get(
                target,
                headers=headers,
                allow_redirects=False,
                stream=True,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.warning("Upstream request error for %s: %s", target, e)
            raise _translate(e, target)
        return UpstreamResponse(resp)
