"""
Listing-page detection and article link extraction.

News / IR index pages are mostly links; the facts live one level down. For a
listing page we pull anchors out of the raw HTML and keep the ones that look
like same-site articles below the listing path, in document order (listings
are usually newest-first).
"""
from __future__ import annotations

import re
from typing import List
from urllib.parse import urljoin, urlsplit

from bs4 import BeautifulSoup

from .urls import locale_prefix, normalize_url, strip_locale, url_origin

MAX_ARTICLE_LINKS = 10

# Path suffixes (after locale stripping and normalization) that mark a listing.
LISTING_PATH_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"/news$",
        r"/newsroom$",
        r"/news-?release$",
        r"/press$",
        r"/press-?release$",
        r"/release$",
        r"/topics$",
        r"/information$",
        r"/ir$",
        r"/ir/news$",
        r"/ir/library$",
        r"/ir/release$",
    )
]

IGNORED_HREF_PREFIXES = ("#", "javascript:", "mailto:", "tel:")

IGNORED_PATH_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\.(pdf|zip|gz|xlsx?|docx?|pptx?|csv|jpe?g|png|gif|svg|webp|mp3|mp4|mov)$",
        r"/page/\d+/?$",
        r"/(tags?|category|categories|archives?)(/|$)",
    )
]

PAGINATION_QUERY_RE = re.compile(r"(^|&)(page|p|paged)=\d+", re.IGNORECASE)

NON_DEFAULT_LOCALES = {"en", "zh", "ko", "cn", "tw", "de", "fr", "es"}


def is_listing_page(url: str) -> bool:
    try:
        path = urlsplit(normalize_url(url)).path
    except ValueError:
        return False
    path = strip_locale(path)
    return any(p.search(path) for p in LISTING_PATH_PATTERNS)


def _is_ignored(href: str, listing_has_locale: bool) -> bool:
    lowered = href.strip().lower()
    if not lowered or lowered.startswith(IGNORED_HREF_PREFIXES):
        return True

    parts = urlsplit(lowered)
    if PAGINATION_QUERY_RE.search(parts.query or ""):
        return True
    if any(p.search(parts.path) for p in IGNORED_PATH_PATTERNS):
        return True

    if not listing_has_locale:
        prefix = locale_prefix(parts.path)
        if prefix and prefix.lstrip("/") in NON_DEFAULT_LOCALES:
            return True
    return False


def extract_article_links(
    html: str,
    listing_url: str,
    limit: int = MAX_ARTICLE_LINKS,
) -> List[str]:
    """
    Candidate article URLs found on a listing page, first-seen first.

    Kept links are same-origin, strictly deeper than the listing path, not
    pagination/tag/binary/other-locale links, and unique by normalized URL.
    """
    if not html:
        return []

    listing_norm = normalize_url(listing_url)
    listing_parts = urlsplit(listing_norm)
    origin = url_origin(listing_norm)
    listing_path = listing_parts.path.rstrip("/")
    listing_has_locale = locale_prefix(listing_path) is not None

    # Resolve against the listing "directory" so that relative hrefs like
    # "2024/0401.html" land under /news/ rather than beside it.
    resolve_base = listing_norm + "/"

    soup = BeautifulSoup(html, "html.parser")
    links: List[str] = []
    seen = {listing_norm}

    for a in soup.find_all("a", href=True):
        href = a["href"]
        try:
            if _is_ignored(href, listing_has_locale):
                continue
            absolute = urljoin(resolve_base, href.strip())
            if url_origin(absolute) != origin:
                continue
            norm = normalize_url(absolute)
            path = urlsplit(norm).path
        except ValueError:
            continue

        if not path.startswith(listing_path + "/"):
            continue

        if norm in seen:
            continue
        seen.add(norm)
        links.append(absolute.split("#", 1)[0])

        if len(links) >= limit:
            break

    return links
