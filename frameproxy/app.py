import time

from flask import Flask, Response, current_app, g, jsonify, render_template_string, request

from .codec import decode_url
from .config import ProxyConfig
from .errors import ProxyError, RateLimited, UpstreamUnreachable
from .fetcher import UpstreamFetcher, parse_target
from .gate import RateLimiter, apply_security_headers, client_key
from .relay import relay

# request headers passed upstream as fetch hints
CLIENT_HINT_HEADERS = ("User-Agent", "Accept", "Accept-Language", "Cookie")

UNLIMITED_ENDPOINTS = ("healthz",)

INDEX_TEMPLATE = """
<!DOCTYPE html>
<html lang="en">
<head><meta charset="utf-8"><title>Proxy Server</title></head>
<body>
    <h3>Proxy Server</h3>
    <p>Use <code>/proxy?u=BASE64URL</code></p>
    <form onsubmit="event.preventDefault(); go()">
        <input id="url" style="width:60%" placeholder="https://example.com">
        <button type="submit">Open via proxy</button>
    </form>
    <script>
        function go() {
            const raw = btoa(unescape(encodeURIComponent(document.getElementById('url').value)));
            const token = raw.replace(/\\+/g, '-').replace(/\\//g, '_').replace(/=+$/, '');
            window.location.href = '{{ prefix }}?u=' + token;
        }
    </script>
</body>
</html>
"""


def _state():
    return current_app.extensions["frameproxy"]


def create_app(config: ProxyConfig = None, fetcher: UpstreamFetcher = None, limiter: RateLimiter = None) -> Flask:
    config = config or ProxyConfig.from_env()
    app = Flask(__name__)
    app.extensions["frameproxy"] = {
        "config": config,
        "fetcher": fetcher
        or UpstreamFetcher(timeout=config.timeout, consent_domains=config.consent_domains),
        "limiter": limiter or RateLimiter(limit=config.rate_limit, window=config.rate_window),
    }

    @app.before_request
    def check_rate_limit():
        g.started = time.perf_counter()
        if request.endpoint in UNLIMITED_ENDPOINTS:
            return None
        limiter = _state()["limiter"]
        key = client_key(request)
        if not limiter.allow(key):
            app.logger.warning("Rate limit hit for client %s", key)
            raise RateLimited(retry_after=limiter.retry_after(key))
        return None

    @app.after_request
    def finish(response):
        apply_security_headers(response)
        elapsed = (time.perf_counter() - g.get("started", time.perf_counter())) * 1000
        app.logger.info(
            "%s %s %s %s - %.3f ms",
            request.method,
            request.full_path.rstrip("?"),
            response.status_code,
            response.headers.get("Content-Length", "-"),
            elapsed,
        )
        return response

    @app.errorhandler(ProxyError)
    def proxy_error(error):
        response = Response(error.message, status=error.status_code, mimetype="text/plain")
        if isinstance(error, RateLimited) and error.retry_after:
            response.headers["Retry-After"] = str(error.retry_after)
        return response

    @app.route("/")
    def index():
        return render_template_string(INDEX_TEMPLATE, prefix="/proxy")

    @app.route("/healthz")
    def healthz():
        return jsonify({"status": "ok"})

    @app.route("/proxy")
    def proxy():
        token = request.args.get("u")
        if not token:
            return Response("Missing u parameter", status=400, mimetype="text/plain")

        target = decode_url(token)
        parse_target(target)

        state = _state()
        hints = {name: request.headers[name] for name in CLIENT_HINT_HEADERS if name in request.headers}
        try:
            upstream = state["fetcher"].fetch(target, hints, referer=request.args.get("ref"))
        except ProxyError:
            raise
        except Exception:
            app.logger.error("Proxy error fetching %s", target, exc_info=True)
            raise UpstreamUnreachable()

        config = state["config"]
        return relay(upstream, target, banner=config.banner, chunk_size=config.chunk_size)

    return app
