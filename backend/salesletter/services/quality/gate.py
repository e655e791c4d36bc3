"""
Deterministic quality gate for drafted letters.

`validate` runs every rule and accumulates human-readable reasons; no rule
raises or stops evaluation. A result is ok iff no reason was collected.
"""
from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from ...schemas.letters import ProofPoint, QualityResult, ValidationOptions
from .rules import (
    COMPLETE_MODE_RULES,
    CONSULTING_MODE_RULES,
    FORBIDDEN_PATTERN_RULES,
    FORBIDDEN_PHRASE_RULES,
    NEWS_ASSERTION_RULES,
    NUMERIC_CLAIM_RULE,
    PLACEHOLDER_RULES,
    POSITION_CLAIM_RULES,
    TELEGRAPHIC_MIN_SENTENCES,
    TELEGRAPHIC_SENTENCE_RE,
    describe,
    run_rules,
)
from .text import split_sentences

logger = logging.getLogger(__name__)

POSITION_LABELS = {"sponsor": "協賛", "speaker": "登壇", "case_provider": "事例提供"}


def _length_reasons(body: str, min_chars: int, max_chars: int) -> List[str]:
    n = len(body)
    if n < min_chars:
        return [f"文字数が少なすぎます（{n}文字/{min_chars}文字以上必要）"]
    if n > max_chars:
        return [f"文字数が多すぎます（{n}文字/{max_chars}文字以内）"]
    return []


def _placeholder_reasons(body: str, mode: str, missing_info_high_count: int) -> List[str]:
    hits = run_rules(body, PLACEHOLDER_RULES)
    if mode in ("complete", "consulting") and hits:
        label = "完成モード" if mode == "complete" else "コンサルティングモード"
        return [f"{label}でプレースホルダー「{hits[0].matches[0]}」が残っています"]
    if mode == "draft" and missing_info_high_count > 0 and not hits:
        return [
            f"重要な不足情報が{missing_info_high_count}件あるのに【要確認: …】のプレースホルダーがありません"
        ]
    return []


def count_telegraphic_sentences(body: str) -> int:
    return sum(1 for s in split_sentences(body) if TELEGRAPHIC_SENTENCE_RE.search(s))


def position_contradictions(body: str, event_position: Optional[str]) -> List[str]:
    """Claims in the body that belong to an event position other than ours."""
    if not event_position:
        return []
    reasons: List[str] = []
    for position, rules in POSITION_CLAIM_RULES.items():
        if position == event_position:
            continue
        for hit in run_rules(body, rules):
            reasons.append(
                f"参加形態は「{POSITION_LABELS[event_position]}」なのに"
                f"「{hit.matches[0]}」と{hit.rule.label}の立場で記載されています"
            )
    return reasons


def validate(
    body: str,
    proof_points: Sequence[ProofPoint] = (),
    options: Optional[ValidationOptions] = None,
) -> QualityResult:
    options = options or ValidationOptions()
    body = body or ""
    has_proof_points = (
        options.has_proof_points if options.has_proof_points is not None else bool(proof_points)
    )

    reasons: List[str] = []
    reasons += _length_reasons(body, options.min_chars, options.max_chars)
    reasons += [describe(h) for h in run_rules(body, FORBIDDEN_PHRASE_RULES)]

    pattern_reasons = [describe(h) for h in run_rules(body, FORBIDDEN_PATTERN_RULES)]
    reasons += list(dict.fromkeys(pattern_reasons))

    reasons += _placeholder_reasons(body, options.mode, options.missing_info_high_count)

    if options.mode == "complete":
        reasons += [describe(h) for h in run_rules(body, COMPLETE_MODE_RULES)]
    elif options.mode == "consulting":
        reasons += [describe(h) for h in run_rules(body, CONSULTING_MODE_RULES)]

    if not has_proof_points:
        matches = NUMERIC_CLAIM_RULE.find_all(body)
        if matches:
            reasons.append(NUMERIC_CLAIM_RULE.label.replace("{match}", matches[0]))

    if not options.has_recent_news:
        news = run_rules(body, NEWS_ASSERTION_RULES)
        if news:
            reasons.append(describe(news[0]))

    telegraphic = count_telegraphic_sentences(body)
    if telegraphic >= TELEGRAPHIC_MIN_SENTENCES:
        reasons.append(f"体言止めの文が{telegraphic}文あり、手紙として不自然な文体です")

    if options.mode == "event":
        reasons += position_contradictions(body, options.event_position)

    if reasons:
        logger.info(
            "Quality gate rejected letter with %d reasons",
            len(reasons),
            extra={"mode": options.mode, "step": "validate"},
        )
    return QualityResult.from_reasons(reasons)
