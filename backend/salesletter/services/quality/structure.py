"""
Structural analyzers: opening bridge, baseless assertions, source attribution.

All opening-window checks go through `opening_window` so the window size is
defined once.
"""
from __future__ import annotations

import re
from typing import Iterable, List, Optional, Sequence, Union

from ...schemas.letters import (
    BaselessAssertionResult,
    BridgeDetectionResult,
    ProofPoint,
    ScoringFact,
)
from .rules import DIAGNOSIS_RULES, capped_penalty, describe, run_rules
from .text import opening_window

BRIDGE_PHRASES = [
    "を拝見し",
    "を受け",
    "を踏まえ",
    "に伴い",
    "を機に",
    "と伺い",
    "に関連し",
    "に際し",
    "と重なり",
]

HYPOTHESIS_MARKERS = [
    "ではないでしょうか",
    "と推察",
    "かと存じます",
    "とお察し",
    "のではと考え",
    "可能性があるのでは",
]

# Generic CTA durations ("15分だけ") are not evidence claims.
CTA_DURATION_WHITELIST = {"10", "15", "20", "30"}

_NUMERAL_RE = re.compile(r"\d[\d,]*(?:\.\d+)?")

BASELESS_NUMBER_PENALTY = 5
BASELESS_NUMBER_CAP = 20
DIAGNOSIS_CAP = 20

Evidence = Union[str, ScoringFact, ProofPoint]


def _evidence_text(items: Optional[Iterable[Evidence]]) -> str:
    parts: List[str] = []
    for item in items or ():
        parts.append(item if isinstance(item, str) else item.content)
    return "\n".join(parts).replace(",", "")


def detect_bridge_structure(body: str, fact_keys: Sequence[str]) -> BridgeDetectionResult:
    window = opening_window(body)
    has_hook = any(k and k in window for k in fact_keys)
    has_bridge = any(p in window for p in BRIDGE_PHRASES)
    has_hypothesis = any(m in window for m in HYPOTHESIS_MARKERS)

    signals = sum((has_hook, has_bridge, has_hypothesis))
    if signals == 3:
        quality = "strong"
    elif signals == 2:
        quality = "weak"
    else:
        quality = "missing"

    return BridgeDetectionResult(
        quality=quality,
        has_hook=has_hook,
        has_bridge_text=has_bridge,
        has_hypothesis=has_hypothesis,
    )


def untraceable_numbers(
    body: str,
    facts: Optional[Iterable[Evidence]] = None,
    proof_points: Optional[Iterable[Evidence]] = None,
) -> List[str]:
    evidence = _evidence_text(facts) + "\n" + _evidence_text(proof_points)
    found: List[str] = []
    for m in _NUMERAL_RE.finditer(body or ""):
        number = m.group(0).replace(",", "")
        following = body[m.end() : m.end() + 1]
        if number in CTA_DURATION_WHITELIST and following == "分":
            continue
        if number in evidence:
            continue
        if number not in found:
            found.append(number)
    return found


def detect_baseless_assertions(
    body: str,
    facts: Optional[Iterable[Evidence]] = None,
    proof_points: Optional[Iterable[Evidence]] = None,
) -> BaselessAssertionResult:
    issues: List[str] = []

    numbers = untraceable_numbers(body, facts, proof_points)
    issues += [f"数値「{n}」の根拠がファクト・証拠ポイントに見当たりません" for n in numbers]
    number_penalty = min(BASELESS_NUMBER_CAP, BASELESS_NUMBER_PENALTY * len(numbers))

    diagnosis = run_rules(body or "", DIAGNOSIS_RULES)
    issues += [describe(h) for h in diagnosis]

    return BaselessAssertionResult(
        issues=issues,
        penalty=number_penalty + capped_penalty(diagnosis, DIAGNOSIS_CAP),
    )


def validate_source_attribution(
    facts: Sequence[ScoringFact],
    citations: Sequence[str],
    body: str,
    has_target: bool,
) -> List[str]:
    """
    Attribution problems for a letter written about a resolved target.
    Empty when there is no target or no facts.
    """
    if not has_target or not facts:
        return []

    issues: List[str] = []
    for fact in facts:
        if not fact.source_url:
            issues.append(f"ファクト「{fact.content[:30]}」に出典URLがありません")

    referenced = any(f.quote_key and f.quote_key in (body or "") for f in facts)
    if referenced and not citations:
        issues.append("本文でファクトを引用していますが、出典が1件も示されていません")
    return issues
