"""
Rewrite proxied HTML so navigation and sub-resources stay on the proxy origin.

Every rule takes the parsed document and the page URL, mutates the document
in place and returns it, so rules can be run (and tested) one at a time on a
single parse.
"""

import logging
import re
from urllib.parse import urljoin, urlsplit

from bs4 import BeautifulSoup, Doctype, ParserRejectedMarkup

from .codec import PROXY_PREFIX, proxy_path

logger = logging.getLogger(__name__)

FRAME_BUSTER_PATTERN = re.compile(
    r"frameElement|parent\.location|top\.location|window\.top|X-Frame-Options",
    re.IGNORECASE,
)
JAVASCRIPT_PREFIX = re.compile(r"^\s*javascript:", re.IGNORECASE)

UNTOUCHED_LINK_PREFIXES = ("mailto:", "javascript:", "#")
UNTOUCHED_RESOURCE_PREFIXES = ("data:", "blob:", "about:", "javascript:")

BANNER_STYLE = (
    "background:#111;color:#888;padding:4px 8px;font-size:11px;"
    "border-bottom:1px solid #333;text-align:center;font-family:monospace;"
)


def resolve_url(base: str, link: str) -> str:
    try:
        return urljoin(base, link)
    except ValueError:
        return link


def rewrite_url(base: str, link: str) -> str:
    """Route ``link`` (relative to ``base``) through the proxy."""
    if link.startswith(PROXY_PREFIX + "?u="):
        return link
    try:
        absolute = urljoin(base, link.strip())
        if not urlsplit(absolute).scheme:
            return link
    except ValueError:
        return link
    return proxy_path(absolute)


def rewrite_srcset(base: str, srcset: str) -> str:
    candidates = []
    for candidate in srcset.split(","):
        candidate = candidate.strip()
        if not candidate:
            continue
        url, *rest = candidate.split(None, 1)
        if _is_resource(url):
            url = rewrite_url(base, url)
        descriptor = rest[0].strip() if rest else ""
        candidates.append(f"{url} {descriptor}" if descriptor else url)
    return ", ".join(candidates)


def _is_resource(value: str) -> bool:
    return bool(value) and not value.strip().lower().startswith(UNTOUCHED_RESOURCE_PREFIXES)


def strip_security_meta(soup, base):
    for meta in soup.find_all("meta", attrs={"http-equiv": True}):
        http_equiv = meta.get("http-equiv", "").strip().lower()
        if http_equiv == "content-security-policy" or "x-frame-options" in http_equiv:
            meta.decompose()
    return soup


def strip_frame_busters(soup, base):
    for script in soup.find_all("script"):
        if FRAME_BUSTER_PATTERN.search(script.decode_contents()):
            script.decompose()
    return soup


def rewrite_anchors(soup, base):
    for anchor in soup.find_all("a", href=True):
        href = anchor["href"]
        if href.lower().startswith(UNTOUCHED_LINK_PREFIXES):
            continue
        rewritten = rewrite_url(base, href)
        if rewritten == href:
            continue
        anchor["href"] = rewritten
        anchor["target"] = "_self"
    return soup


def rewrite_forms(soup, base):
    # POST is downgraded to GET: the proxy only relays GET navigation
    for form in soup.find_all("form"):
        action = form.get("action") or ""
        form["action"] = rewrite_url(base, action or base)
        form["method"] = "GET"
    return soup


def rewrite_resources(soup, base):
    for img in soup.find_all("img"):
        src = img.get("src")
        if _is_resource(src):
            img["src"] = rewrite_url(base, src)
        srcset = img.get("srcset")
        if srcset:
            img["srcset"] = rewrite_srcset(base, srcset)

    for link in soup.find_all("link", rel="stylesheet", href=True):
        if _is_resource(link["href"]):
            link["href"] = rewrite_url(base, link["href"])

    for script in soup.find_all("script", src=True):
        if _is_resource(script["src"]):
            script["src"] = rewrite_url(base, script["src"])
    return soup


def sanitize_attributes(soup, base):
    for tag in soup.find_all(True):
        for name, value in list(tag.attrs.items()):
            # class, rel and friends come back as lists
            if not isinstance(value, str) or not JAVASCRIPT_PREFIX.match(value):
                continue
            # "javascript:javascript:..." must not survive a single pass
            while JAVASCRIPT_PREFIX.match(value):
                value = JAVASCRIPT_PREFIX.sub("", value, count=1)
            tag[name] = value
    return soup


def make_banner(soup, base):
    banner = soup.new_tag("div", attrs={"style": BANNER_STYLE})
    banner.string = f"Secure View: {urlsplit(base).hostname or base}"
    return banner


def inject_banner(soup, base):
    banner = make_banner(soup, base)
    if soup.body is not None:
        soup.body.insert(0, banner)
        return soup
    # no <body>: put it ahead of the content but after any doctype
    parent = soup.html or soup
    position = 0
    for position, child in enumerate(parent.contents):
        if not isinstance(child, Doctype):
            break
    else:
        position = len(parent.contents)
    parent.insert(position, banner)
    return soup


REWRITE_RULES = (
    strip_security_meta,
    strip_frame_busters,
    rewrite_anchors,
    rewrite_forms,
    rewrite_resources,
    sanitize_attributes,
)


def rewrite_document(soup, base: str, banner: bool = True):
    for rule in REWRITE_RULES:
        rule(soup, base)
    if banner:
        inject_banner(soup, base)
    return soup


def parse_html(html: str):
    try:
        return BeautifulSoup(html, "html.parser")
    except ParserRejectedMarkup as e:
        logger.debug("html.parser rejected markup (%s), retrying with html5lib", e)
    try:
        return BeautifulSoup(html, "html5lib")
    except ParserRejectedMarkup as e:
        logger.warning("Could not parse page for rewriting: %s", e)
        return None


def rewrite_html(html: str, base: str, banner: bool = True) -> str:
    soup = parse_html(html)
    if soup is None:
        return html
    rewrite_document(soup, base, banner=banner)
    return str(soup)
