import io

import pytest
import requests
from requests.structures import CaseInsensitiveDict

from frameproxy import ProxyConfig, create_app
from frameproxy.fetcher import UpstreamResponse, parse_target
from frameproxy.gate import RateLimiter


def make_requests_response(status=200, headers=None, body=b"", url="https://example.com/", raw=None):
    resp = requests.Response()
    resp.status_code = status
    resp.headers = CaseInsensitiveDict(headers or {})
    resp.raw = raw if raw is not None else io.BytesIO(body)
    resp.url = url
    resp.encoding = requests.utils.get_encoding_from_headers(resp.headers)
    return resp


def make_upstream(status=200, headers=None, body=b"", url="https://example.com/", set_cookies=None, raw=None):
    resp = make_requests_response(status, headers, body, url, raw=raw)
    return UpstreamResponse(resp, set_cookies=set_cookies or [])


class LargeRaw(io.RawIOBase):
    """Serves ``size`` bytes lazily and remembers how it was read."""

    def __init__(self, size):
        self.size = size
        self.bytes_read = 0
        self.largest_read = 0

    def readable(self):
        return True

    def read(self, n=-1):
        if n is None or n < 0:
            n = self.size - self.bytes_read
        n = min(n, self.size - self.bytes_read)
        self.largest_read = max(self.largest_read, n)
        self.bytes_read += n
        return b"\x89" * n


class FakeFetcher:
    """Stands in for UpstreamFetcher; hands out queued responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def fetch(self, target, client_headers=None, referer=None):
        parse_target(target)
        self.calls.append({"target": target, "headers": dict(client_headers or {}), "referer": referer})
        if not self.responses:
            return make_upstream(headers={"Content-Type": "text/plain"}, body=b"ok", url=target)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def config():
    return ProxyConfig(rate_limit=30, rate_window=10.0, timeout=5.0)


@pytest.fixture
def fetcher():
    return FakeFetcher()


@pytest.fixture
def limiter(config):
    return RateLimiter(limit=config.rate_limit, window=config.rate_window)


@pytest.fixture
def app(config, fetcher, limiter):
    app = create_app(config, fetcher=fetcher, limiter=limiter)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client(use_cookies=False)
