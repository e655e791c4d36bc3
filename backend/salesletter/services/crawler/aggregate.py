"""
Merge per-page facts into one attributed list and rank the visited sources.

Facts are never deduplicated across pages: two pages stating the same thing
give two Fact records, each pointing at its own page.
"""
from __future__ import annotations

import re
from typing import Dict, Iterable, List, Optional, Sequence
from urllib.parse import urlsplit

from ...schemas.facts import FACT_CATEGORIES, Fact, InformationSource, SourceCategory
from .extractor import PageFacts
from .urls import normalize_url, strip_locale

MAX_SOURCES = 8
PRIMARY_SOURCES = 3

CATEGORY_PRIORITY: Dict[str, int] = {
    "news": 0,
    "ir": 1,
    "recruit": 2,
    "corporate": 3,
    "product": 4,
    "other": 5,
}

# Checked in this order; the first category with a matching path token wins.
CATEGORY_KEYWORDS: List[tuple[SourceCategory, set[str]]] = [
    ("news", {"news", "press", "release", "releases", "newsroom", "topics", "information"}),
    ("ir", {"ir", "investor", "investors", "financial"}),
    ("recruit", {"recruit", "recruiting", "careers", "career", "jobs", "job", "saiyo"}),
    ("product", {"product", "products", "service", "services", "solution", "solutions", "business"}),
    ("corporate", {"about", "company", "corporate", "profile", "sustainability", "csr", "outline"}),
]

_TOKEN_SPLIT_RE = re.compile(r"[/\-_.]+")


def classify_source(url: str) -> SourceCategory:
    try:
        path = urlsplit(normalize_url(url)).path.lower()
    except ValueError:
        return "other"

    path = strip_locale(path)
    if path in ("", "/"):
        return "corporate"

    tokens = {t for t in _TOKEN_SPLIT_RE.split(path) if t}
    for category, keywords in CATEGORY_KEYWORDS:
        if tokens & keywords:
            return category
    return "other"


def merge_facts(pages: Iterable[PageFacts]) -> List[Fact]:
    facts: List[Fact] = []
    for page in pages:
        source_category = classify_source(page.url)
        for category in FACT_CATEGORIES:
            for content in getattr(page.facts, category):
                facts.append(
                    Fact(
                        content=content,
                        category=category,
                        source_url=page.url,
                        source_title=page.title,
                        source_category=source_category,
                    )
                )
    return facts


def build_source(url: str, title: Optional[str]) -> InformationSource:
    return InformationSource(url=url, title=title, category=classify_source(url))


def _sort_key(source: InformationSource) -> tuple[int, int, int]:
    return (
        CATEGORY_PRIORITY.get(source.category, CATEGORY_PRIORITY["other"]),
        0 if source.title else 1,
        len(source.url),
    )


def prioritize_sources(
    sources: Sequence[InformationSource],
    facts: Sequence[Fact] = (),
    limit: int = MAX_SOURCES,
    primary_count: int = PRIMARY_SOURCES,
) -> List[InformationSource]:
    """
    Rank sources for citation: fact-producing pages first (when any fact is
    attributed), then category priority, then titled, then shorter URL.
    Keeps one entry per normalized URL, truncates, marks the head as primary.
    """
    unique: Dict[str, InformationSource] = {}
    for s in sources:
        unique.setdefault(normalize_url(s.url), s)

    producing = {normalize_url(f.source_url) for f in facts if f.source_url}
    if producing:
        with_facts = [s for key, s in unique.items() if key in producing]
        without = [s for key, s in unique.items() if key not in producing]
        ordered = sorted(with_facts, key=_sort_key) + sorted(without, key=_sort_key)
    else:
        ordered = sorted(unique.values(), key=_sort_key)

    return [
        s.model_copy(update={"is_primary": i < primary_count})
        for i, s in enumerate(ordered[:limit])
    ]
