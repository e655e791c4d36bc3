from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional
from urllib.parse import urlsplit

import httpx

from ...core.config import get_settings
from ...schemas.facts import FactExtractionResult, InformationSource
from ..caching import cache_key, load_cached, store_cached
from .aggregate import build_source, merge_facts, prioritize_sources
from .extractor import Extractor, PageFactExtractor, PageFacts
from .html_text import extract_text_and_title
from .listing import extract_article_links, is_listing_page
from .safe_fetch import FetchedPage, FetchErr, FetchOk, SafeFetcher, assert_safe_url
from .urls import build_candidate_urls, normalize_url

logger = logging.getLogger(__name__)

FACT_CACHE_PREFIX = "facts"


class FactCrawler:
    """
    Fan-out / fan-in crawl of one company site.

    - Wave 1: the base URL and every route candidate, fetched concurrently.
    - Wave 2: the first few article links of each listing page found in wave 1.
    - Extraction: every non-listing page (within the page budget) is sent to
      the Extractor concurrently; each branch returns its own PageFacts.
    - Merge: facts flattened with attribution, sources ranked.

    Branches never share mutable state; everything is merged after gather().
    """

    def __init__(
        self,
        fetcher: SafeFetcher,
        page_extractor: PageFactExtractor,
        max_pages: int = 8,
        articles_per_listing: int = 2,
    ) -> None:
        self._fetcher = fetcher
        self._page_extractor = page_extractor
        self.max_pages = max_pages
        self.articles_per_listing = articles_per_listing

    async def _fetch_all(self, urls: List[str]) -> List[FetchedPage]:
        results = await asyncio.gather(
            *(self._fetcher.fetch(u) for u in urls),
            return_exceptions=True,
        )
        pages: List[FetchedPage] = []
        for url, r in zip(urls, results):
            if isinstance(r, FetchOk):
                pages.append(r.page)
            elif isinstance(r, FetchErr):
                logger.info("Page unavailable: %s", r.reason, extra={"url": r.url, "step": "fetch"})
            else:
                logger.warning("Fetch crashed: %r", r, extra={"url": url, "step": "fetch"})
        return pages

    @staticmethod
    def _dedupe(pages: List[FetchedPage], seen: set[str]) -> List[FetchedPage]:
        """Keep the first page per normalized final URL; `seen` is updated in place."""
        unique: List[FetchedPage] = []
        for page in pages:
            key = normalize_url(page.final_url)
            if key in seen:
                continue
            seen.add(key)
            unique.append(page)
        return unique

    def _article_urls(self, listings: List[FetchedPage], seen: set[str]) -> List[str]:
        urls: List[str] = []
        for listing in listings:
            links = extract_article_links(listing.html, listing.final_url)
            taken = 0
            for link in links:
                if taken >= self.articles_per_listing:
                    break
                key = normalize_url(link)
                if key in seen or any(normalize_url(u) == key for u in urls):
                    continue
                urls.append(link)
                taken += 1
        # Leave room for at least the top page in the extraction budget.
        return urls[: max(0, self.max_pages - 1)]

    async def extract_facts(self, base_url: str) -> Optional[FactExtractionResult]:
        seen: set[str] = set()
        first_wave = self._dedupe(await self._fetch_all(build_candidate_urls(base_url)), seen)
        if not first_wave:
            logger.info("No page of the site could be fetched", extra={"base_url": base_url})
            return None

        listings = [p for p in first_wave if is_listing_page(p.final_url)]
        content = [p for p in first_wave if not is_listing_page(p.final_url)]

        articles: List[FetchedPage] = []
        article_urls = self._article_urls(listings, seen)
        if article_urls:
            articles = self._dedupe(await self._fetch_all(article_urls), seen)

        # Top page first, then articles (dated news carries the best facts),
        # then the remaining sub-pages.
        top_key = normalize_url(base_url)
        top = [p for p in content if normalize_url(p.url) == top_key]
        rest = [p for p in content if normalize_url(p.url) != top_key]
        targets = (top + articles + rest)[: self.max_pages]

        logger.info(
            "Crawl fetched %d pages (%d listings, %d articles); extracting %d",
            len(first_wave) + len(articles),
            len(listings),
            len(articles),
            len(targets),
            extra={"base_url": base_url, "step": "extract"},
        )

        extracted = await asyncio.gather(
            *(self._page_extractor.extract_page(p) for p in targets)
        )
        page_facts: List[PageFacts] = [pf for pf in extracted if pf is not None]

        facts = merge_facts(page_facts)
        if not facts:
            logger.info("No facts extracted from any page", extra={"base_url": base_url})
            return None

        titles: Dict[str, Optional[str]] = {pf.url: pf.title for pf in page_facts}
        sources: List[InformationSource] = []
        for page in first_wave + articles:
            if page.url in titles:
                title = titles[page.url]
            else:
                _, title = extract_text_and_title(page.html, max_chars=0)
            if not title and normalize_url(page.url) == top_key:
                title = urlsplit(page.url).hostname
            sources.append(build_source(page.url, title))

        return FactExtractionResult(
            facts=facts,
            sources=prioritize_sources(sources, facts),
        )


async def extract_facts(
    base_url: str,
    extractor: Extractor,
    client: httpx.AsyncClient | None = None,
    use_cache: bool = True,
) -> Optional[FactExtractionResult]:
    """
    Crawl `base_url` and return attributed facts plus ranked sources.

    Raises UnsafeUrlError when the base URL itself fails the safety check;
    every other failure degrades to fewer pages, or None when nothing usable
    was found. Results are cached in Redis by normalized URL.
    """
    settings = get_settings()
    assert_safe_url(base_url)

    key = cache_key(FACT_CACHE_PREFIX, normalize_url(base_url))
    if use_cache:
        cached = await load_cached(key, FactExtractionResult)
        if cached is not None:
            logger.info("Fact cache hit", extra={"base_url": base_url})
            return cached

    owns_client = client is None
    if client is None:
        client = httpx.AsyncClient(timeout=settings.FETCH_TIMEOUT_SECONDS)

    try:
        crawler = FactCrawler(
            fetcher=SafeFetcher(
                client,
                timeout=settings.FETCH_TIMEOUT_SECONDS,
                max_bytes=settings.FETCH_MAX_BYTES,
                user_agent=settings.FETCH_USER_AGENT,
            ),
            page_extractor=PageFactExtractor(extractor, max_chars=settings.PAGE_TEXT_MAX_CHARS),
            max_pages=settings.CRAWL_MAX_PAGES,
            articles_per_listing=settings.ARTICLES_PER_LISTING,
        )
        result = await crawler.extract_facts(base_url)
    finally:
        if owns_client:
            await client.aclose()

    if result is not None and use_cache:
        await store_cached(key, result, ttl=settings.FACT_CACHE_TTL_SECONDS)
    return result


__all__ = ["FactCrawler", "extract_facts"]
