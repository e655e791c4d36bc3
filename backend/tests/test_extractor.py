"""
Tests for crawler/extractor.py and crawler/html_text.py - page text, request
building and extractor response validation.
"""
import asyncio

import pytest

from salesletter.services.crawler.extractor import (
    MID_TERM_MARKER,
    PageFactExtractor,
    build_extraction_prompt,
    has_explicit_date,
    is_mid_term_plan,
    mark_mid_term,
    parse_extractor_response,
)
from salesletter.services.crawler.html_text import extract_text_and_title
from salesletter.services.crawler.safe_fetch import FetchedPage

from tests.fixtures.letter_fixtures import HOME_HTML


EMPTY_FACTS = {
    "numbers": [],
    "properNouns": [],
    "recentMoves": [],
    "hiringTrends": [],
    "companyDirection": [],
}


def _page(html, url="https://example.co.jp/"):
    return FetchedPage(url=url, final_url=url, status_code=200, html=html)


class TestHtmlText:
    def test_strips_navigation_and_keeps_main_content(self):
        text, title = extract_text_and_title(HOME_HTML)
        assert title == "Example株式会社 | 企業情報"
        assert "従業員1,500名" in text
        assert "会社概要" not in text  # nav link
        assert "Copyright" not in text

    def test_title_falls_back_to_h1(self):
        _, title = extract_text_and_title("<body><h1> 見出し </h1><p>本文</p></body>")
        assert title == "見出し"

    def test_truncates_and_collapses_whitespace(self):
        text, _ = extract_text_and_title("<body><p>a   b\n\n c</p></body>", max_chars=3)
        assert text == "a b"

    def test_scripts_are_removed(self):
        text, _ = extract_text_and_title("<body><script>var x = 1;</script><p>本文</p></body>")
        assert text == "本文"


class TestDateAndPlanRules:
    @pytest.mark.parametrize(
        "content,expected",
        [
            ("2024年4月にA社と業務提携", True),
            ("2023/10 新工場を稼働", True),
            ("2022-07 資本提携を発表", True),
            ("2021年に設立", True),
            ("令和5年に子会社を設立", True),
            ("A社と業務提携", False),
            ("従業員1,500名", False),
        ],
    )
    def test_has_explicit_date(self, content, expected):
        assert has_explicit_date(content) is expected

    def test_mid_term_plan_detection(self):
        assert is_mid_term_plan(f"{MID_TERM_MARKER} 2027年度までに海外売上比率を拡大")
        assert is_mid_term_plan("中期経営計画でDXを重点領域に設定")
        assert not is_mid_term_plan("新サービスを開始")

    def test_mark_mid_term_is_idempotent(self):
        once = mark_mid_term("長期ビジョン2030の策定")
        assert once.startswith(MID_TERM_MARKER)
        assert mark_mid_term(once) == once
        assert mark_mid_term("新サービスを開始") == "新サービスを開始"

    def test_prompt_carries_url_and_domain_rules(self):
        prompt = build_extraction_prompt("ページ本文", "https://example.co.jp/news/1")
        assert "https://example.co.jp/news/1" in prompt
        assert "ページ本文" in prompt
        assert MID_TERM_MARKER in prompt
        assert "日付" in prompt


class TestParseExtractorResponse:
    def test_accepts_fenced_json(self):
        raw = '```json\n{"numbers": ["従業員1,500名"], "properNouns": [], "recentMoves": [], "hiringTrends": [], "companyDirection": []}\n```'
        facts = parse_extractor_response(raw)
        assert facts is not None
        assert facts.numbers == ["従業員1,500名"]

    def test_accepts_json_surrounded_by_prose(self):
        raw = 'Here you go: {"numbers": [], "properNouns": ["Sample Cloud"], "recentMoves": [], "hiringTrends": [], "companyDirection": []} done.'
        facts = parse_extractor_response(raw)
        assert facts is not None
        assert facts.properNouns == ["Sample Cloud"]

    def test_accepts_mapping(self):
        facts = parse_extractor_response(dict(EMPTY_FACTS, hiringTrends=["エンジニアを積極採用"]))
        assert facts is not None
        assert facts.hiringTrends == ["エンジニアを積極採用"]

    @pytest.mark.parametrize(
        "raw",
        [
            "no json here",
            "{not valid json}",
            '{"numbers": "not a list", "properNouns": [], "recentMoves": [], "hiringTrends": [], "companyDirection": []}',
            '{"numbers": [1, 2], "properNouns": [], "recentMoves": [], "hiringTrends": [], "companyDirection": []}',
            '{"numbers": []}',
        ],
    )
    def test_malformed_responses_are_discarded(self, raw):
        assert parse_extractor_response(raw) is None

    def test_unmarked_mid_term_plan_gets_marker(self):
        facts = parse_extractor_response(
            dict(
                EMPTY_FACTS,
                companyDirection=[
                    "中期経営計画で海外売上比率50%を目指す",
                    f"{MID_TERM_MARKER} 2027年度までにDXを推進",
                    "脱炭素を重点領域に設定",
                ],
            )
        )
        assert facts.companyDirection == [
            f"{MID_TERM_MARKER} 中期経営計画で海外売上比率50%を目指す",
            f"{MID_TERM_MARKER} 2027年度までにDXを推進",
            "脱炭素を重点領域に設定",
        ]

    def test_undated_recent_moves_are_dropped(self):
        facts = parse_extractor_response(
            dict(EMPTY_FACTS, recentMoves=["2024年4月にA社と業務提携", "B社と資本提携"])
        )
        assert facts.recentMoves == ["2024年4月にA社と業務提携"]

    def test_items_trimmed_blank_dropped_and_capped(self):
        facts = parse_extractor_response(
            dict(EMPTY_FACTS, properNouns=["  A  ", "", "   ", "B", "C", "D", "E", "F", "G"])
        )
        assert facts.properNouns == ["A", "B", "C", "D", "E"]


class _StubExtractor:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    async def extract(self, page_text, page_url):
        self.calls.append(page_url)
        if self.error:
            raise self.error
        return self.response


class TestPageFactExtractor:
    def test_extracts_page_facts_with_title(self):
        stub = _StubExtractor(dict(EMPTY_FACTS, numbers=["従業員1,500名"]))
        result = asyncio.run(PageFactExtractor(stub).extract_page(_page(HOME_HTML)))
        assert result is not None
        assert result.url == "https://example.co.jp/"
        assert result.title == "Example株式会社 | 企業情報"
        assert result.facts.numbers == ["従業員1,500名"]

    def test_short_pages_are_skipped_without_calling_extractor(self):
        stub = _StubExtractor(EMPTY_FACTS)
        result = asyncio.run(PageFactExtractor(stub).extract_page(_page("<p>短い</p>")))
        assert result is None
        assert stub.calls == []

    def test_extractor_failure_skips_the_page(self):
        stub = _StubExtractor(error=RuntimeError("model unavailable"))
        result = asyncio.run(PageFactExtractor(stub).extract_page(_page(HOME_HTML)))
        assert result is None
        assert stub.calls == ["https://example.co.jp/"]
