"""
Tests for quality/scoring.py, quality/structure.py and quality/text.py.
"""
import pytest

from salesletter.schemas.letters import ProofPoint, ScoringFact, ValidationOptions
from salesletter.services.quality.gate import validate
from salesletter.services.quality.scoring import score, score_consulting, score_event
from salesletter.services.quality.structure import (
    detect_baseless_assertions,
    detect_bridge_structure,
    validate_source_attribution,
)
from salesletter.services.quality.text import generate_quote_key, opening_window, split_sentences

from tests.fixtures.letter_fixtures import (
    FLAT_OPENING_LETTER,
    GOOD_COMPLETE_LETTER,
    GOOD_LETTER_FACTS,
    SHORT_LETTER,
    TELEGRAPHIC_LETTER,
)


def _score_good(body=GOOD_COMPLETE_LETTER, **kwargs):
    params = dict(
        has_fact_numbers=False,
        has_proper_nouns=True,
        facts=GOOD_LETTER_FACTS,
        has_target=True,
    )
    params.update(kwargs)
    return score(body, **params)


class TestStandardScore:
    def test_good_complete_letter_scores_at_least_80_and_validates(self):
        result = _score_good()
        assert result.total >= 80, result.breakdown
        assert set(result.breakdown) == {
            "specificity",
            "empathy",
            "ctaClarity",
            "structureCompleteness",
            "ngPenalty",
        }
        assert validate(GOOD_COMPLETE_LETTER, [], ValidationOptions(mode="complete")).ok

    def test_short_letter_scores_below_50(self):
        result = score(SHORT_LETTER, has_fact_numbers=False, has_proper_nouns=False)
        assert result.total < 50
        assert result.suggestions

    @pytest.mark.parametrize(
        "body",
        [
            "",
            SHORT_LETTER,
            TELEGRAPHIC_LETTER,
            GOOD_COMPLETE_LETTER,
            "必ず 絶対に 確実に 間違いなく 業務効率化 コスト削減 作業時間 人件費 手作業 様様 " * 20,
            "貴社 御社 ご担当 課題 15分だけ 情報交換 いただけないでしょうか 実績 支援 今回 " * 50,
            "[S1] 【出典: x】 " * 10,
        ],
    )
    def test_total_always_within_bounds(self, body):
        result = score(body, has_fact_numbers=True, has_proper_nouns=True, facts=GOOD_LETTER_FACTS)
        assert 0 <= result.total <= 100
        for axis, value in result.breakdown.items():
            assert 0 <= value <= 20, axis

    def test_missing_fact_quote_caps_at_75(self):
        other_facts = [ScoringFact(content="Other Product", category="properNouns", source_url="https://x.jp")]
        result = _score_good(facts=other_facts)
        assert result.total <= 75

    def test_fact_quote_cap_needs_a_target(self):
        other_facts = [ScoringFact(content="Other Product", category="properNouns", source_url="https://x.jp")]
        capped = _score_good(facts=other_facts, has_target=True)
        uncapped = _score_good(facts=other_facts, has_target=False)
        assert capped.total <= 75
        assert uncapped.total >= capped.total

    def test_template_phrase_caps_unless_user_asked_for_it(self):
        body = "突然のご連絡失礼いたします。" + GOOD_COMPLETE_LETTER
        assert _score_good(body).total <= 75
        assert _score_good(body, user_input="冒頭は「突然のご連絡失礼いたします」で").total >= 80

    def test_citation_leak_caps_at_75(self):
        body = GOOD_COMPLETE_LETTER.replace("ご連絡いたしました。", "ご連絡いたしました[1]。")
        assert _score_good(body).total <= 75

    def test_ng_axis_deducts_per_issue(self):
        clean = _score_good()
        noisy = _score_good(GOOD_COMPLETE_LETTER + "必ず成果をお約束します。")
        assert noisy.breakdown["ngPenalty"] < clean.breakdown["ngPenalty"]

    def test_untraceable_numbers_reduce_ng_axis(self):
        body = GOOD_COMPLETE_LETTER + "導入企業は300社を超えています。"
        without = _score_good(body)
        backed = _score_good(
            body,
            proof_points=[ProofPoint(type="numeric", content="導入企業300社", confidence="high")],
        )
        assert without.breakdown["ngPenalty"] < backed.breakdown["ngPenalty"]


class TestEventScore:
    def test_clean_event_letter_scores_100(self):
        result = score_event("イベントのご案内です。ぜひご参加ください。", "sponsor")
        assert result.total == 100

    def test_dual_cta_penalty(self):
        result = score_event("ぜひご参加ください。あわせて面談のお時間をいただけますと助かります。")
        assert result.breakdown["dual_cta"] == 15
        assert result.total == 85

    def test_position_contradiction_penalty(self):
        result = score_event("当日は弊社代表が登壇いたします。", event_position="sponsor")
        assert result.breakdown["position_contradiction"] == 20

    def test_greeting_mismatch_penalty(self):
        result = score_event("いつもお世話になっております。イベントのご案内です。")
        assert result.breakdown["greeting_mismatch"] == 10

    def test_per_category_cap(self):
        result = score_event("登壇者（仮）、講演者（仮）、司会（仮）、パネリスト（仮）")
        assert result.breakdown["unconfirmed_speaker"] == 20


class TestConsultingScore:
    def test_clean_consulting_letter_scores_100(self):
        assert score_consulting(GOOD_COMPLETE_LETTER).total == 100

    def test_citation_leakage(self):
        result = score_consulting("出典: 日経新聞によれば[1]、")
        assert result.breakdown["citation_leakage"] == 20
        assert result.total == 80

    def test_hedge_words_are_capped(self):
        result = score_consulting("おそらく" * 6)
        assert result.breakdown["hedge_words"] == 20

    def test_placeholder_residue(self):
        result = score_consulting("【要確認: 役職】様")
        assert result.breakdown["placeholder_residue"] == 15


class TestBridgeDetection:
    def test_strong_when_hook_bridge_and_hypothesis_in_window(self):
        result = detect_bridge_structure(GOOD_COMPLETE_LETTER, ["Sample Cloud"])
        assert result.quality == "strong"
        assert result.has_hook and result.has_bridge_text and result.has_hypothesis

    def test_missing_when_opening_has_no_signal(self):
        result = detect_bridge_structure(FLAT_OPENING_LETTER, ["Sample Cloud"])
        assert result.quality == "missing"
        assert not (result.has_hook or result.has_bridge_text or result.has_hypothesis)

    def test_weak_with_two_signals(self):
        body = "貴社の「Sample Cloud」の発表を拝見し、ご連絡いたしました。"
        assert detect_bridge_structure(body, ["Sample Cloud"]).quality == "weak"

    def test_signals_outside_window_do_not_count(self):
        body = "あ" * 250 + "「Sample Cloud」を拝見し、課題をお持ちではないでしょうか。"
        assert detect_bridge_structure(body, ["Sample Cloud"]).quality == "missing"


class TestBaselessAssertions:
    def test_untraceable_number_is_flagged_but_cta_duration_is_not(self):
        result = detect_baseless_assertions("監査工数を50%削減します。15分だけお時間をください。", facts=[])
        assert any("50" in issue for issue in result.issues)
        assert not any("15" in issue for issue in result.issues)
        assert result.penalty == 5

    def test_number_backed_by_fact_is_fine(self):
        facts = [ScoringFact(content="監査工数を50%削減", category="numbers", source_url="https://x.jp")]
        result = detect_baseless_assertions("監査工数を50%削減します。", facts=facts)
        assert result.issues == []
        assert result.penalty == 0

    def test_number_backed_by_proof_point_is_fine(self):
        proof = [ProofPoint(type="numeric", content="従業員1,500名")]
        result = detect_baseless_assertions("従業員1,500名の体制", proof_points=proof)
        assert result.issues == []

    def test_decisive_diagnosis(self):
        result = detect_baseless_assertions("貴社の課題はガバナンスです。")
        assert result.issues
        assert result.penalty == 10


class TestSourceAttribution:
    def test_fact_without_source_is_flagged(self):
        facts = [ScoringFact(content="Sample Cloud", category="properNouns")]
        issues = validate_source_attribution(facts, ["https://x.jp"], GOOD_COMPLETE_LETTER, has_target=True)
        assert any("出典URL" in i for i in issues)

    def test_referenced_fact_without_citations(self):
        issues = validate_source_attribution(GOOD_LETTER_FACTS, [], GOOD_COMPLETE_LETTER, has_target=True)
        assert any("出典が1件も" in i for i in issues)

    def test_no_target_means_no_checks(self):
        facts = [ScoringFact(content="Sample Cloud", category="properNouns")]
        assert validate_source_attribution(facts, [], GOOD_COMPLETE_LETTER, has_target=False) == []

    def test_attributed_and_cited_is_clean(self):
        assert validate_source_attribution(
            GOOD_LETTER_FACTS, ["https://example.co.jp/news/1"], GOOD_COMPLETE_LETTER, has_target=True
        ) == []


class TestTextHelpers:
    def test_opening_window(self):
        assert opening_window("  abcdef", 3) == "abc"
        assert opening_window("", 10) == ""
        assert len(opening_window("あ" * 500)) == 200

    def test_split_sentences(self):
        assert split_sentences("一文目です。二文目です！\n三文目") == ["一文目です。", "二文目です！", "三文目"]

    @pytest.mark.parametrize(
        "content,category,expected",
        [
            ("従業員1,500名", "numbers", "1500"),
            ("売上高は非公開", "numbers", "売上高は非公開"),
            ("Sample Cloud", "properNouns", "Sample Cloud"),
            ("2024年4月にA社と業務提携", "recentMoves", "2024年"),
            ("A社と業務提携", "recentMoves", "提携"),
            ("DX人材の採用を強化", "hiringTrends", "DX"),
            ("カーボンニュートラルの実現", "companyDirection", "カーボンニュートラル"),
        ],
    )
    def test_generate_quote_key(self, content, category, expected):
        assert generate_quote_key(content, category) == expected

    def test_scoring_fact_derives_quote_key(self):
        fact = ScoringFact(content="従業員1,500名", category="numbers")
        assert fact.quote_key == "1500"
