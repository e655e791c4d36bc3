"""
Deterministic letter scoring on a 0-100 scale.

Standard mode sums five 0-20 axes, then applies hard caps (the lowest cap
wins; caps never raise a score). Event and consulting modes start from 100
and subtract per-issue penalties, each category capped.
"""
from __future__ import annotations

import re
from typing import Dict, List, Optional, Sequence

from ...schemas.letters import DetailedScore, ProofPoint, ScoringFact
from .gate import count_telegraphic_sentences, position_contradictions
from .rules import (
    CITATION_LEAK_RE,
    CONSULTING_CAPS,
    CONSULTING_RULES,
    CTA_POINTS,
    CTA_RULES,
    EMPATHY_POINTS,
    EMPATHY_RULES,
    EVENT_CAPS,
    EVENT_CONTRADICTION_PENALTY,
    EVENT_CTA_KINDS,
    EVENT_DUAL_CTA_PENALTY,
    EVENT_RULES,
    NG_RULES,
    NG_TELEGRAPHIC_PENALTY,
    NUMERIC_CLAIM_RULE,
    PROPER_NOUN_RE,
    SCORE_CAP,
    STRUCTURE_ELEMENT_PATTERNS,
    STRUCTURE_POINTS,
    TEMPLATE_PHRASES,
    capped_penalty,
    describe,
    run_rules,
)
from .structure import (
    detect_baseless_assertions,
    detect_bridge_structure,
    untraceable_numbers,
    validate_source_attribution,
)

AXIS_MAX = 20
BASE_SCORE = 100

NUMERIC_POINTS = 6
PROPER_NOUN_POINTS = 6
FACT_QUOTE_POINTS = 8
# Without a fact set there is nothing to quote; concrete content earns a little.
UNGROUNDED_SPECIFIC_POINTS = 4

BASELESS_NUMBER_NG_PENALTY = 3

ELEMENT_LABELS = {
    "timing": "なぜ今連絡したのか（タイミング）",
    "problem": "相手の課題",
    "solution": "解決策",
    "evidence": "実績・事例",
    "offer": "具体的なオファー（CTA）",
}


def _specificity(
    body: str,
    has_fact_numbers: bool,
    has_proper_nouns: bool,
    facts: Optional[Sequence[ScoringFact]],
    suggestions: List[str],
) -> int:
    has_numeric = bool(NUMERIC_CLAIM_RULE.find_all(body))
    has_noun = bool(PROPER_NOUN_RE.search(body))

    points = 0
    if has_numeric:
        points += NUMERIC_POINTS
    elif has_fact_numbers:
        suggestions.append("収集したファクトの数値を1つ本文に盛り込んでください")
    if has_noun:
        points += PROPER_NOUN_POINTS
    elif has_proper_nouns:
        suggestions.append("製品名・サービス名などの固有名詞を本文に入れてください")

    if facts:
        keys = [f.quote_key for f in facts]
        if detect_bridge_structure(body, keys).has_hook:
            points += FACT_QUOTE_POINTS
        else:
            suggestions.append("冒頭200文字以内でファクトを1つそのまま引用してください")
    elif has_numeric or has_noun:
        points += UNGROUNDED_SPECIFIC_POINTS
    return min(AXIS_MAX, points)


def _counted_axis(body: str, rules, points_per_hit: int) -> int:
    return min(AXIS_MAX, points_per_hit * len(run_rules(body, rules)))


def _structure(body: str, suggestions: List[str]) -> int:
    points = 0
    missing: List[str] = []
    for element, pattern in STRUCTURE_ELEMENT_PATTERNS.items():
        if re.search(pattern, body):
            points += STRUCTURE_POINTS
        else:
            missing.append(ELEMENT_LABELS[element])
    if missing:
        suggestions.append("構成要素が不足しています: " + "、".join(missing))
    return points


def _ng(
    body: str,
    facts: Optional[Sequence[ScoringFact]],
    proof_points: Optional[Sequence[ProofPoint]],
    suggestions: List[str],
) -> int:
    hits = run_rules(body, NG_RULES)
    deduction = sum(h.penalty for h in hits)
    suggestions += [f"{describe(h)}を削除してください" for h in hits]

    telegraphic = count_telegraphic_sentences(body)
    deduction += NG_TELEGRAPHIC_PENALTY * telegraphic
    if telegraphic:
        suggestions.append("体言止めの文を「〜しています」などの文章に直してください")

    if facts is not None or proof_points is not None:
        numbers = untraceable_numbers(body, facts, proof_points)
        deduction += BASELESS_NUMBER_NG_PENALTY * len(numbers)
        if numbers:
            suggestions.append(
                "根拠のない数値を削除してください: " + "、".join(numbers)
            )
    return max(0, AXIS_MAX - deduction)


def score(
    body: str,
    has_fact_numbers: bool = False,
    has_proper_nouns: bool = False,
    facts: Optional[Sequence[ScoringFact]] = None,
    has_target: bool = False,
    user_input: Optional[str] = None,
    proof_points: Optional[Sequence[ProofPoint]] = None,
) -> DetailedScore:
    body = body or ""
    suggestions: List[str] = []

    breakdown: Dict[str, int] = {
        "specificity": _specificity(body, has_fact_numbers, has_proper_nouns, facts, suggestions),
        "empathy": _counted_axis(body, EMPATHY_RULES, EMPATHY_POINTS),
        "ctaClarity": _counted_axis(body, CTA_RULES, CTA_POINTS),
        "structureCompleteness": _structure(body, suggestions),
        "ngPenalty": _ng(body, facts, proof_points, suggestions),
    }
    if breakdown["empathy"] < 10:
        suggestions.append("相手の立場や取り組みに触れ、課題の仮説を示してください")
    if breakdown["ctaClarity"] < 10:
        suggestions.append("「15分だけ」のような負担の軽い依頼で締めくくってください")

    total = sum(breakdown.values())

    caps: List[int] = []
    user_text = user_input or ""
    template_hits = [p for p in TEMPLATE_PHRASES if p in body and p not in user_text]
    if template_hits:
        caps.append(SCORE_CAP)
        suggestions.append("定型文「" + "」「".join(template_hits) + "」を削除してください")
    if facts and has_target:
        if not detect_bridge_structure(body, [f.quote_key for f in facts]).has_hook:
            caps.append(SCORE_CAP)
    if CITATION_LEAK_RE.search(body):
        caps.append(SCORE_CAP)
        suggestions.append("本文に残った出典表記を削除してください")

    if caps:
        total = min([total, *caps])

    return DetailedScore(total=total, breakdown=breakdown, suggestions=list(dict.fromkeys(suggestions)))


def _penalty_score(categories: Dict[str, int], suggestions: List[str]) -> DetailedScore:
    return DetailedScore(
        total=BASE_SCORE - sum(categories.values()),
        breakdown=categories,
        suggestions=list(dict.fromkeys(suggestions)),
    )


def score_event(body: str, event_position: Optional[str] = None) -> DetailedScore:
    body = body or ""
    suggestions: List[str] = []
    penalties: Dict[str, int] = {}

    kinds = [k for k, pattern in EVENT_CTA_KINDS.items() if re.search(pattern, body)]
    penalties["dual_cta"] = min(EVENT_CAPS["dual_cta"], EVENT_DUAL_CTA_PENALTY if len(kinds) > 1 else 0)
    if len(kinds) > 1:
        suggestions.append("イベント参加と面談の依頼が混在しています。CTAは1つに絞ってください")

    for category, rules in EVENT_RULES.items():
        hits = run_rules(body, rules)
        penalties[category] = capped_penalty(hits, EVENT_CAPS[category])
        suggestions += [describe(h) for h in hits]

    contradictions = position_contradictions(body, event_position)
    penalties["position_contradiction"] = min(
        EVENT_CAPS["position_contradiction"],
        EVENT_CONTRADICTION_PENALTY * len(contradictions),
    )
    suggestions += contradictions

    return _penalty_score(penalties, suggestions)


def score_consulting(body: str) -> DetailedScore:
    body = body or ""
    suggestions: List[str] = []
    penalties: Dict[str, int] = {}

    for category, rules in CONSULTING_RULES.items():
        hits = run_rules(body, rules)
        penalties[category] = capped_penalty(hits, CONSULTING_CAPS[category])
        suggestions += [describe(h) for h in hits]

    return _penalty_score(penalties, suggestions)


def apply_structural_checks(
    body: str,
    detailed: DetailedScore,
    facts: Optional[Sequence[ScoringFact]] = None,
    proof_points: Optional[Sequence[ProofPoint]] = None,
    citations: Sequence[str] = (),
    has_target: bool = False,
) -> DetailedScore:
    """
    Fold baseless-assertion and attribution findings into a mode score.

    The baseless penalty acts as a cap (100 - penalty), so it only ever
    lowers the total. Attribution issues become suggestions.
    """
    baseless = detect_baseless_assertions(body, facts, proof_points)
    attribution = validate_source_attribution(facts or [], citations, body, has_target)
    if not baseless.issues and not attribution:
        return detailed

    return DetailedScore(
        total=min(detailed.total, BASE_SCORE - baseless.penalty),
        breakdown=detailed.breakdown,
        suggestions=list(dict.fromkeys([*detailed.suggestions, *baseless.issues, *attribution])),
    )
