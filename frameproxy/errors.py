class ProxyError(Exception):
    """Base for failures the proxy reports to its own client."""

    status_code = 500
    message = "Proxy error"

    def __init__(self, message: str = None):
        super().__init__(message or self.message)
        if message:
            self.message = message


class DecodeError(ProxyError):
    status_code = 400
    message = "Invalid u parameter"


class InvalidURL(ProxyError):
    status_code = 400
    message = "Invalid target URL"


class UnsupportedProtocol(ProxyError):
    status_code = 400
    message = "Unsupported protocol"


class UpstreamUnreachable(ProxyError):
    status_code = 502
    message = "Proxy fetch error"


class UpstreamTimeout(UpstreamUnreachable):
    message = "Proxy fetch error: upstream timed out"


class RateLimited(ProxyError):
    status_code = 429
    message = "Too many requests, slow down."

    def __init__(self, message: str = None, retry_after: int = None):
        super().__init__(message)
        self.retry_after = retry_after
