"""
URL helpers shared by the crawler.

`normalize_url` is the dedup key everywhere a URL is tracked (source map,
article links, cache keys). `build_candidate_urls` is the route explorer: it
guesses sub-pages that usually carry facts instead of crawling a sitemap.
"""
from __future__ import annotations

import re
from typing import List, Optional
from urllib.parse import urlsplit

# Two-letter locale segment at the start of a path: /jp, /en/, /ja/...
LOCALE_PREFIX_RE = re.compile(r"^/([a-z]{2})(?=/|$)", re.IGNORECASE)

# Only these count as locales; "/ir" or "/hr" are sections, not languages.
KNOWN_LOCALES = {
    "jp", "ja", "en", "us", "uk", "gb", "cn", "zh", "tw", "hk", "kr", "ko",
    "de", "fr", "es", "it", "nl", "sg", "in", "au", "th", "vn", "id", "my",
}

_INDEX_SUFFIX_RE = re.compile(r"/index\.html?$", re.IGNORECASE)

_URL_IN_TEXT_RE = re.compile(r"https?://[^\s<>\"{}|\\^`\[\]]+", re.IGNORECASE)

# Sub-paths per category, tried relative to the site origin.
ROUTE_CANDIDATES: dict[str, List[str]] = {
    "news": ["/news", "/press", "/newsroom", "/release"],
    "ir": ["/ir", "/investor", "/investors"],
    "sustainability": ["/sustainability", "/csr"],
    "corporate": ["/company", "/about", "/corporate"],
    "product": ["/product", "/products", "/service", "/services", "/solution"],
    "recruit": ["/recruit", "/careers"],
}


def normalize_url(url: str) -> str:
    """
    Canonical `origin + path` form of a URL.

    - query and fragment dropped
    - trailing `/index.html` / `/index.htm` collapsed
    - trailing slashes stripped
    - scheme and host lowercased (path case preserved)

    Unparseable input is returned stripped so callers can still use it as a key.
    """
    raw = (url or "").strip()
    try:
        parts = urlsplit(raw)
    except ValueError:
        return raw
    if not parts.scheme or not parts.netloc:
        return raw

    path = parts.path
    # Loop until stable so normalize(normalize(u)) == normalize(u)
    while True:
        stripped = _INDEX_SUFFIX_RE.sub("", path).rstrip("/")
        if stripped == path:
            break
        path = stripped

    return f"{parts.scheme.lower()}://{parts.netloc.lower()}{path}"


def url_origin(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.scheme.lower()}://{parts.netloc.lower()}"


def locale_prefix(path: str) -> Optional[str]:
    """Return the leading two-letter locale segment (e.g. "/jp") or None."""
    m = LOCALE_PREFIX_RE.match(path or "")
    if not m or m.group(1).lower() not in KNOWN_LOCALES:
        return None
    return "/" + m.group(1).lower()


def strip_locale(path: str) -> str:
    prefix = locale_prefix(path)
    if not prefix:
        return path or "/"
    rest = (path or "")[len(prefix):]
    return rest or "/"


def build_candidate_urls(base_url: str) -> List[str]:
    """
    Candidate sub-page URLs for a base URL, base URL first.

    Every candidate path is emitted with and without a trailing slash, and
    again under the base path's locale prefix when it has one.
    """
    try:
        parts = urlsplit(base_url.strip())
    except ValueError:
        return []
    if not parts.scheme or not parts.netloc:
        return []

    origin = f"{parts.scheme.lower()}://{parts.netloc.lower()}"
    prefix = locale_prefix(parts.path)

    urls: List[str] = [base_url.strip()]
    seen = {base_url.strip()}

    def _add(u: str) -> None:
        if u not in seen:
            seen.add(u)
            urls.append(u)

    for paths in ROUTE_CANDIDATES.values():
        for path in paths:
            bases = [origin]
            if prefix:
                bases.append(origin + prefix)
            for b in bases:
                _add(f"{b}{path}")
                _add(f"{b}{path}/")

    return urls


def extract_first_url(text: Optional[str]) -> Optional[str]:
    """First http(s) URL appearing in free text, if any."""
    if not text:
        return None
    m = _URL_IN_TEXT_RE.search(text)
    return m.group(0) if m else None
