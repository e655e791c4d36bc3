"""
Regenerate-and-rescore loop around the external Drafter.

States: Draft -> Validate+Score -> Decide. The loop is sequential because
each prompt carries the previous attempt's feedback. Attempts are immutable;
the returned attempt is chosen by `select_best`, never by a running variable.
"""
from __future__ import annotations

import logging
from typing import List, Optional, Protocol, Sequence, Tuple

from ..core.config import get_settings
from ..schemas.letters import (
    DetailedScore,
    GenerationAttempt,
    GenerationOutcome,
    ProofPoint,
    QualityResult,
    ScoringFact,
    ValidationOptions,
)
from .quality.gate import validate
from .quality.scoring import apply_structural_checks, score, score_consulting, score_event

logger = logging.getLogger(__name__)

MAX_IMPROVEMENT_POINTS = 3
TEMPERATURE_STEP = 0.1
MAX_TEMPERATURE = 1.0


class Drafter(Protocol):
    async def draft(self, prompt: str, temperature: float) -> str:
        ...


class GenerationFailedError(RuntimeError):
    """Every attempt failed before producing a draft."""


class LetterEvaluator:
    """Validate + score a draft with the rule set for one request."""

    def __init__(
        self,
        options: Optional[ValidationOptions] = None,
        proof_points: Sequence[ProofPoint] = (),
        facts: Sequence[ScoringFact] = (),
        has_target: bool = False,
        user_input: Optional[str] = None,
        citations: Sequence[str] = (),
    ) -> None:
        self.options = options or ValidationOptions()
        self.proof_points = list(proof_points)
        self.facts = list(facts)
        self.has_target = has_target
        self.user_input = user_input
        self.citations = list(citations)

    def score(self, body: str) -> DetailedScore:
        return apply_structural_checks(
            body,
            self._mode_score(body),
            facts=self.facts,
            proof_points=self.proof_points,
            citations=self.citations,
            has_target=self.has_target,
        )

    def _mode_score(self, body: str) -> DetailedScore:
        # Event and consulting scores are penalty-based and ignore length;
        # a short draft can pass the score threshold while failing validation.
        mode = self.options.mode
        if mode == "event":
            return score_event(body, self.options.event_position)
        if mode == "consulting":
            return score_consulting(body)
        return score(
            body,
            has_fact_numbers=any(f.category == "numbers" for f in self.facts),
            has_proper_nouns=any(f.category == "properNouns" for f in self.facts),
            facts=self.facts or None,
            has_target=self.has_target,
            user_input=self.user_input,
            proof_points=self.proof_points or None,
        )

    def evaluate(self, body: str) -> Tuple[QualityResult, DetailedScore]:
        return validate(body, self.proof_points, self.options), self.score(body)


def select_best(attempts: Sequence[GenerationAttempt]) -> GenerationAttempt:
    """Highest total score; the most recent attempt wins ties."""
    if not attempts:
        raise ValueError("select_best requires at least one attempt")
    return max(attempts, key=lambda a: (a.score.total, a.attempt_index))


def improvement_points(
    validation: QualityResult,
    detailed: DetailedScore,
    limit: int = MAX_IMPROVEMENT_POINTS,
) -> List[str]:
    """Violation reasons first, then score suggestions; unique, at most `limit`."""
    points = list(dict.fromkeys([*validation.reasons, *detailed.suggestions]))
    return points[:limit]


def build_retry_prompt(base_prompt: str, points: Sequence[str]) -> str:
    if not points:
        return base_prompt
    lines = "\n".join(f"- {p}" for p in points)
    return (
        f"{base_prompt}\n\n"
        "【前回の生成に対する修正指示】\n"
        "前回の生成は品質基準を満たしませんでした。以下の点を必ず修正してください。\n"
        f"{lines}"
    )


class RetryOrchestrator:
    def __init__(
        self,
        drafter: Drafter,
        evaluator: LetterEvaluator,
        max_attempts: Optional[int] = None,
        pass_score: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> None:
        settings = get_settings()
        self._drafter = drafter
        self._evaluator = evaluator
        self.max_attempts = max_attempts or settings.GENERATION_MAX_ATTEMPTS
        self.pass_score = settings.QUALITY_PASS_SCORE if pass_score is None else pass_score
        self.temperature = settings.DRAFT_TEMPERATURE if temperature is None else temperature

    def _temperature_for(self, attempt_index: int) -> float:
        return min(MAX_TEMPERATURE, self.temperature + TEMPERATURE_STEP * (attempt_index - 1))

    async def run(self, prompt: str) -> GenerationOutcome:
        attempts: List[GenerationAttempt] = []
        next_prompt = prompt

        for attempt_index in range(1, self.max_attempts + 1):
            temperature = self._temperature_for(attempt_index)
            try:
                text = await self._drafter.draft(next_prompt, temperature)
            except Exception as e:
                logger.warning(
                    "Drafter failed on attempt %d/%d: %s",
                    attempt_index,
                    self.max_attempts,
                    e,
                    extra={"attempt": attempt_index, "step": "draft"},
                )
                continue

            validation, detailed = self._evaluator.evaluate(text)
            attempt = GenerationAttempt(
                attempt_index=attempt_index,
                draft_text=text,
                validation=validation,
                score=detailed,
                temperature=temperature,
            )
            attempts.append(attempt)
            logger.info(
                "Attempt %d scored %d (ok=%s)",
                attempt_index,
                detailed.total,
                validation.ok,
                extra={"attempt": attempt_index, "mode": self._evaluator.options.mode},
            )

            if detailed.total >= self.pass_score:
                return GenerationOutcome(best=attempt, attempts=attempts, accepted=True)

            next_prompt = build_retry_prompt(prompt, improvement_points(validation, detailed))

        if not attempts:
            raise GenerationFailedError(f"Drafter failed on all {self.max_attempts} attempts")

        best = select_best(attempts)
        return GenerationOutcome(
            best=best,
            attempts=attempts,
            accepted=best.score.total >= self.pass_score,
        )
