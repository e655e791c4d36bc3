from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..core.config import get_settings
from ..services.quality.text import generate_quote_key
from .facts import Fact, FactCategory

Mode = Literal["draft", "complete", "event", "consulting"]
EventPosition = Literal["sponsor", "speaker", "case_provider"]
BridgeQuality = Literal["strong", "weak", "missing"]

MAX_BODY_LEN = 20000
MAX_PROMPT_LEN = 20000


class ProofPoint(BaseModel):
    """Pre-supplied evidence the letter may cite without penalty."""

    type: Literal["numeric", "case_study", "news", "inference"]
    content: str
    source: str | None = None
    confidence: Literal["high", "medium", "low"] = "medium"


class ScoringFact(BaseModel):
    """
    A fact as the scorer sees it. `quote_key` is the short verbatim string
    the opening of a letter must contain to count as quoting this fact.
    """

    content: str
    category: FactCategory
    quote_key: str = ""
    source_url: str | None = None

    @model_validator(mode="after")
    def _derive_quote_key(self):
        if not self.quote_key:
            self.quote_key = generate_quote_key(self.content, self.category)
        return self

    @classmethod
    def from_fact(cls, fact: Fact) -> "ScoringFact":
        return cls(content=fact.content, category=fact.category, source_url=fact.source_url)


class QualityResult(BaseModel):
    ok: bool
    reasons: list[str] = Field(default_factory=list)

    @classmethod
    def from_reasons(cls, reasons: list[str]) -> "QualityResult":
        return cls(ok=not reasons, reasons=reasons)


class DetailedScore(BaseModel):
    total: int = Field(ge=0, le=100)
    breakdown: dict[str, int] = Field(default_factory=dict)
    suggestions: list[str] = Field(default_factory=list)

    @field_validator("total", mode="before")
    @classmethod
    def _clamp_total(cls, v):
        return max(0, min(100, int(v)))


class BridgeDetectionResult(BaseModel):
    quality: BridgeQuality
    has_hook: bool
    has_bridge_text: bool
    has_hypothesis: bool


class BaselessAssertionResult(BaseModel):
    issues: list[str] = Field(default_factory=list)
    penalty: int = 0


class ValidationOptions(BaseModel):
    mode: Mode = "complete"
    min_chars: int = Field(default_factory=lambda: get_settings().QUALITY_MIN_CHARS)
    max_chars: int = Field(default_factory=lambda: get_settings().QUALITY_MAX_CHARS)
    # None: derived from whether any proof points were passed
    has_proof_points: bool | None = None
    has_recent_news: bool = False
    missing_info_high_count: int = 0
    event_position: EventPosition | None = None

    @model_validator(mode="after")
    def _check_bounds(self):
        if self.min_chars < 0 or self.max_chars < self.min_chars:
            raise ValueError("min_chars must be >= 0 and <= max_chars")
        return self


class GenerationAttempt(BaseModel):
    """One Draft -> Validate+Score pass. Never mutated after creation."""

    attempt_index: int
    draft_text: str
    validation: QualityResult
    score: DetailedScore
    temperature: float | None = None

    model_config = ConfigDict(frozen=True)


class GenerationOutcome(BaseModel):
    best: GenerationAttempt
    attempts: list[GenerationAttempt]
    accepted: bool


# ---------------------------------------------------------------------------
# API request bodies
# ---------------------------------------------------------------------------


class _BodyRequest(BaseModel):
    body: str

    @field_validator("body")
    @classmethod
    def validate_body(cls, v: str) -> str:
        if len(v) > MAX_BODY_LEN:
            raise ValueError(f"body is too long; maximum length is {MAX_BODY_LEN} characters")
        return v


class ValidateRequest(_BodyRequest):
    proof_points: list[ProofPoint] = Field(default_factory=list)
    options: ValidationOptions = Field(default_factory=ValidationOptions)


class ScoreRequest(_BodyRequest):
    mode: Mode = "complete"
    has_fact_numbers: bool = False
    has_proper_nouns: bool = False
    facts: list[ScoringFact] | None = None
    has_target: bool = False
    user_input: str | None = None
    proof_points: list[ProofPoint] | None = None
    event_position: EventPosition | None = None
    citations: list[str] = Field(default_factory=list)


class GenerateRequest(BaseModel):
    prompt: str
    proof_points: list[ProofPoint] = Field(default_factory=list)
    facts: list[ScoringFact] = Field(default_factory=list)
    has_target: bool = False
    user_input: str | None = None
    options: ValidationOptions = Field(default_factory=ValidationOptions)
    citations: list[str] = Field(default_factory=list)
    max_attempts: int | None = Field(default=None, ge=1, le=5)

    @field_validator("prompt")
    @classmethod
    def validate_prompt(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("prompt must not be empty")
        if len(v) > MAX_PROMPT_LEN:
            raise ValueError(f"prompt is too long; maximum length is {MAX_PROMPT_LEN} characters")
        return v
