from typing import Literal

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

FactCategory = Literal[
    "numbers",
    "properNouns",
    "recentMoves",
    "hiringTrends",
    "companyDirection",
]

SourceCategory = Literal["news", "ir", "recruit", "corporate", "product", "other"]

FACT_CATEGORIES: tuple[str, ...] = (
    "numbers",
    "properNouns",
    "recentMoves",
    "hiringTrends",
    "companyDirection",
)

MAX_ITEMS_PER_CATEGORY = 5
MAX_FACT_LEN = 300
MAX_REQUEST_URL_LEN = 2048
MAX_REQUEST_TEXT_LEN = 5000


class Fact(BaseModel):
    """A single attributed claim taken from one crawled page."""

    content: str
    category: FactCategory
    source_url: str
    source_title: str | None = None
    source_category: SourceCategory = "other"

    model_config = ConfigDict(frozen=True)

    @field_validator("source_url")
    @classmethod
    def _require_source(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("facts must carry a source_url")
        return v


class InformationSource(BaseModel):
    url: str
    title: str | None = None
    category: SourceCategory
    is_primary: bool = False


class FactExtractionResult(BaseModel):
    facts: list[Fact]
    sources: list[InformationSource]


class ExtractedFacts(BaseModel):
    """
    Shape the Extractor must return for a single page.

    Items are trimmed, blanks dropped, and each list bounded so a chatty
    model response cannot flood the merged fact set.
    """

    numbers: list[str]
    properNouns: list[str]
    recentMoves: list[str]
    hiringTrends: list[str]
    companyDirection: list[str]

    @field_validator(*FACT_CATEGORIES, mode="before")
    @classmethod
    def _clean_items(cls, v):
        if v is None:
            return []
        if not isinstance(v, list):
            raise ValueError("expected a list of strings")
        cleaned: list[str] = []
        for item in v:
            if not isinstance(item, str):
                raise ValueError("fact items must be strings")
            item = item.strip()
            if item:
                cleaned.append(item[:MAX_FACT_LEN])
        return cleaned[:MAX_ITEMS_PER_CATEGORY]


class FactsRequest(BaseModel):
    url: str | None = None
    text: str | None = None

    @field_validator("url", "text", mode="before")
    @classmethod
    def _blank_to_none(cls, v):
        if isinstance(v, str):
            stripped = v.strip()
            return stripped or None
        return v

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str | None) -> str | None:
        if v is not None and len(v) > MAX_REQUEST_URL_LEN:
            raise ValueError("url is too long")
        return v

    @field_validator("text")
    @classmethod
    def validate_text(cls, v: str | None) -> str | None:
        if v is not None and len(v) > MAX_REQUEST_TEXT_LEN:
            raise ValueError(
                f"text is too long; maximum length is {MAX_REQUEST_TEXT_LEN} characters"
            )
        return v

    @model_validator(mode="after")
    def validate_target(self):
        if not self.url and not self.text:
            raise ValueError("either url or text must be provided")
        return self
