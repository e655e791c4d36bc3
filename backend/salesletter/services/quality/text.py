"""Text helpers shared by the validators, scorers and structural analyzers."""
from __future__ import annotations

import re
from typing import List

OPENING_WINDOW_CHARS = 200

_SENTENCE_RE = re.compile(r"[^。！？!?\n]+[。！？!?]?")

_NUMBER_RE = re.compile(r"[\d,]+")
_YEAR_RE = re.compile(r"\d{4}年")

RECENT_MOVE_KEYWORDS = ["提携", "M&A", "買収", "合併", "リリース", "発表", "開始", "設立"]
DIRECTION_KEYWORDS = [
    "カーボンニュートラル",
    "DX",
    "デジタル",
    "サステナビリティ",
    "グローバル",
    "ESG",
    "経営",
    "ビジョン",
    "中期経営",
    "成長戦略",
]
HIRING_KEYWORDS = ["経営企画", "管理", "DX", "人事", "財務", "IT", "エンジニア", "営業"]


def opening_window(text: str, n: int = OPENING_WINDOW_CHARS) -> str:
    """The first `n` characters of a letter, leading whitespace ignored."""
    return (text or "").lstrip()[:n]


def split_sentences(text: str) -> List[str]:
    """Sentences with their closing punctuation kept; blank fragments dropped."""
    return [s.strip() for s in _SENTENCE_RE.findall(text or "") if s.strip()]


def _first_keyword(content: str, keywords: List[str]) -> str | None:
    for keyword in keywords:
        if keyword in content:
            return keyword
    return None


def generate_quote_key(content: str, category: str) -> str:
    """
    Short verbatim key identifying a fact inside a letter.

    numbers: the first number with separators removed; properNouns: the noun
    itself (30 chars); recentMoves: the year, else an action keyword;
    direction/hiring: a theme keyword. Otherwise a short prefix.
    """
    content = (content or "").strip()
    if category == "numbers":
        m = _NUMBER_RE.search(content)
        if m and m.group(0).replace(",", ""):
            return m.group(0).replace(",", "")
        return content[:20]
    if category == "properNouns":
        return content[:30]
    if category == "recentMoves":
        m = _YEAR_RE.search(content)
        if m:
            return m.group(0)
        return _first_keyword(content, RECENT_MOVE_KEYWORDS) or content[:15]
    if category == "companyDirection":
        return _first_keyword(content, DIRECTION_KEYWORDS) or content[:15]
    if category == "hiringTrends":
        return _first_keyword(content, HIRING_KEYWORDS) or content[:15]
    return content[:20]
