"""HTML to visible text, with navigation chrome removed."""
from __future__ import annotations

import re
from typing import Optional, Tuple

from bs4 import BeautifulSoup

NON_CONTENT_TAGS = ["script", "style", "noscript", "iframe", "nav", "header", "footer", "template"]

MAIN_SELECTORS = ["main", "article", "[role=main]", "#content", ".content", "#main", ".main"]

MAX_TITLE_LEN = 200

_WS_RE = re.compile(r"\s+")


def _clean(text: str) -> str:
    return _WS_RE.sub(" ", text).strip()


def extract_text_and_title(html: str, max_chars: int = 8000) -> Tuple[str, Optional[str]]:
    """
    Visible text of a page (whitespace-collapsed, truncated) and its title.

    The title is `<title>`, falling back to the first `<h1>`. Text prefers the
    first main-content container so that sidebars and cookie banners do not
    eat the character budget.
    """
    if not html:
        return "", None

    soup = BeautifulSoup(html, "html.parser")

    title: Optional[str] = None
    for node in (soup.title, soup.find("h1")):
        if node is not None:
            candidate = _clean(node.get_text(" ", strip=True))
            if candidate:
                title = candidate[:MAX_TITLE_LEN]
                break

    for tag in soup(NON_CONTENT_TAGS):
        tag.decompose()
    for tag in soup.find_all(attrs={"role": "navigation"}):
        tag.decompose()

    root = None
    for selector in MAIN_SELECTORS:
        root = soup.select_one(selector)
        if root is not None:
            break
    if root is None:
        root = soup.body or soup

    text = _clean(root.get_text(" ", strip=True))
    return text[:max_chars], title
