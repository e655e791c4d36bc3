from uuid import uuid4
import logging

from fastapi import APIRouter, Depends, HTTPException

from ..core.config import get_settings
from ..schemas.letters import (
    DetailedScore,
    GenerateRequest,
    GenerationOutcome,
    QualityResult,
    ScoreRequest,
    ValidateRequest,
)
from ..services.generation import (
    Drafter,
    GenerationFailedError,
    LetterEvaluator,
    RetryOrchestrator,
)
from ..services.llm import OpenAIDrafter, get_llm_client
from ..services.quality.gate import validate
from ..services.quality.scoring import apply_structural_checks, score, score_consulting, score_event

router = APIRouter(prefix="/letters", tags=["letters"])

logger = logging.getLogger(__name__)


def get_drafter() -> Drafter:
    return OpenAIDrafter(get_llm_client(), model=get_settings().LLM_MODEL)


@router.post("/validate", response_model=QualityResult)
def validate_letter(payload: ValidateRequest):
    return validate(payload.body, payload.proof_points, payload.options)


@router.post("/score", response_model=DetailedScore)
def score_letter(payload: ScoreRequest):
    if payload.mode == "event":
        detailed = score_event(payload.body, payload.event_position)
    elif payload.mode == "consulting":
        detailed = score_consulting(payload.body)
    else:
        detailed = score(
            payload.body,
            has_fact_numbers=payload.has_fact_numbers,
            has_proper_nouns=payload.has_proper_nouns,
            facts=payload.facts,
            has_target=payload.has_target,
            user_input=payload.user_input,
            proof_points=payload.proof_points,
        )
    return apply_structural_checks(
        payload.body,
        detailed,
        facts=payload.facts,
        proof_points=payload.proof_points,
        citations=payload.citations,
        has_target=payload.has_target,
    )


@router.post("/generate", response_model=GenerationOutcome)
async def generate_letter(
    payload: GenerateRequest,
    drafter: Drafter = Depends(get_drafter),
):
    request_id = str(uuid4())
    orchestrator = RetryOrchestrator(
        drafter,
        LetterEvaluator(
            options=payload.options,
            proof_points=payload.proof_points,
            facts=payload.facts,
            has_target=payload.has_target,
            user_input=payload.user_input,
            citations=payload.citations,
        ),
        max_attempts=payload.max_attempts,
    )

    try:
        outcome = await orchestrator.run(payload.prompt)
    except GenerationFailedError as e:
        logger.error(
            "Letter generation failed: %s",
            e,
            extra={"request_id": request_id, "mode": payload.options.mode},
        )
        raise HTTPException(status_code=502, detail="Letter generation failed")

    logger.info(
        "Letter generated after %d attempts (score=%d, accepted=%s)",
        len(outcome.attempts),
        outcome.best.score.total,
        outcome.accepted,
        extra={"request_id": request_id, "mode": payload.options.mode},
    )
    return outcome
