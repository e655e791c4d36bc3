"""
Per-page fact extraction.

Each fetched (non-listing) page becomes one extraction request: its visible
text plus its URL. The Extractor collaborator answers with five arrays of
short claims; anything that does not parse into that shape is dropped for
that page only.
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol, Union

from pydantic import ValidationError

from ...schemas.facts import ExtractedFacts
from .html_text import extract_text_and_title
from .safe_fetch import FetchedPage

logger = logging.getLogger(__name__)

# Prefix the Extractor must put on multi-year strategy items.
MID_TERM_MARKER = "[中計]"

MID_TERM_HINTS = (MID_TERM_MARKER, "中期経営計画", "中期計画", "長期ビジョン", "経営計画")

MIN_PAGE_TEXT_CHARS = 50

DATE_PATTERNS = [
    re.compile(r"(\d{4})年\s*(\d{1,2})月"),
    re.compile(r"(\d{4})/(\d{1,2})"),
    re.compile(r"(\d{4})-(\d{1,2})"),
    re.compile(r"(\d{4})年"),
    re.compile(r"(\d{4})\.(\d{1,2})"),
    re.compile(r"令和\s*(\d+|元)年"),
]


class Extractor(Protocol):
    """External model call that turns page text into the five fact arrays."""

    async def extract(self, page_text: str, page_url: str) -> Union[str, Mapping[str, Any]]:
        ...


@dataclass(frozen=True)
class PageFacts:
    url: str
    title: Optional[str]
    facts: ExtractedFacts


def has_explicit_date(content: str) -> bool:
    for pattern in DATE_PATTERNS:
        m = pattern.search(content)
        if not m:
            continue
        if pattern.pattern.startswith("令和"):
            return True
        year = int(m.group(1))
        if 2000 <= year <= 2100:
            return True
    return False


def is_mid_term_plan(content: str) -> bool:
    return any(hint in content for hint in MID_TERM_HINTS)


def mark_mid_term(content: str) -> str:
    """Prefix a multi-year plan item with the marker when the model left it off."""
    if content.startswith(MID_TERM_MARKER) or not is_mid_term_plan(content):
        return content
    return f"{MID_TERM_MARKER} {content}"


def build_extraction_prompt(page_text: str, page_url: str) -> str:
    return (
        "あなたはビジネスインテリジェンスの専門家です。"
        "以下の企業Webページのテキストから、セールスレター作成に有用なファクトを抽出してください。\n\n"
        f"【出典URL】\n{page_url}\n\n"
        f"【Webページのテキスト】\n{page_text}\n\n"
        "【抽出する情報（各カテゴリ最大5件）】\n"
        "1. numbers: 従業員数、拠点数、設立年数、売上高、成長率など（例: \"従業員1,500名\"）\n"
        "2. properNouns: 製品名、サービス名、ブランド名、主要取引先など\n"
        "3. recentMoves: 業務提携、M&A、新サービスリリース、資金調達など。"
        "日付が明記されていないものは必ず除外すること（例: \"2024年4月に〇〇社と業務提携\"）\n"
        "4. hiringTrends: 積極採用中の職種、採用人数など\n"
        "5. companyDirection: ビジョン、重点領域、新規事業など。"
        f"複数年にわたる中期経営計画・長期ビジョンの項目は先頭に必ず「{MID_TERM_MARKER}」を付けること\n\n"
        "【重要な指示】\n"
        "- このページに書かれている具体的な情報のみ抽出（推測・一般論は禁止）\n"
        "- 情報が見つからないカテゴリは空配列[]を返す\n\n"
        "【出力形式】JSONのみ:\n"
        '{"numbers": [], "properNouns": [], "recentMoves": [], "hiringTrends": [], "companyDirection": []}'
    )


def _extract_json_object(text: str) -> str:
    """Strip markdown fences and surrounding prose; keep first `{` .. last `}`."""
    cleaned = re.sub(r"```(?:json)?", "", text or "", flags=re.IGNORECASE)
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end == -1 or start > end:
        raise ValueError("no JSON object found in extractor response")
    return cleaned[start : end + 1]


def parse_extractor_response(raw: Union[str, Mapping[str, Any]]) -> Optional[ExtractedFacts]:
    """
    Validate an Extractor answer against the five-array shape.

    Returns None on any parse or validation failure. The model does not
    always obey the domain rules, so undated `recentMoves` items are dropped
    and unmarked multi-year plans in `companyDirection` get the marker here.
    """
    try:
        data = raw if isinstance(raw, Mapping) else json.loads(_extract_json_object(raw))
        facts = ExtractedFacts.model_validate(data)
    except (ValueError, ValidationError) as e:
        logger.info("Discarding malformed extractor response: %s", str(e)[:200])
        return None

    update: dict[str, list[str]] = {}
    dated = [m for m in facts.recentMoves if has_explicit_date(m)]
    if dated != facts.recentMoves:
        update["recentMoves"] = dated
    directions = [mark_mid_term(d) for d in facts.companyDirection]
    if directions != facts.companyDirection:
        update["companyDirection"] = directions
    return facts.model_copy(update=update) if update else facts


class PageFactExtractor:
    def __init__(self, extractor: Extractor, max_chars: int = 8000) -> None:
        self._extractor = extractor
        self.max_chars = max_chars

    async def extract_page(self, page: FetchedPage) -> Optional[PageFacts]:
        text, title = extract_text_and_title(page.html, self.max_chars)
        if len(text) < MIN_PAGE_TEXT_CHARS:
            logger.info("Skipping page with too little text", extra={"url": page.url})
            return None

        try:
            raw = await self._extractor.extract(text, page.url)
        except Exception as e:
            logger.warning(
                "Extractor call failed for page: %s",
                e,
                extra={"url": page.url, "step": "extract"},
            )
            return None

        facts = parse_extractor_response(raw)
        if facts is None:
            return None
        return PageFacts(url=page.url, title=title, facts=facts)
