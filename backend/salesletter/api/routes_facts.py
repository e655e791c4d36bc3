from uuid import uuid4
import logging

from fastapi import APIRouter, Depends, HTTPException

from ..core.config import get_settings
from ..schemas.facts import FactExtractionResult, FactsRequest
from ..services.crawler import extract_facts
from ..services.crawler.extractor import Extractor
from ..services.crawler.safe_fetch import UnsafeUrlError
from ..services.crawler.urls import extract_first_url
from ..services.llm import OpenAIExtractor, get_llm_client

router = APIRouter(tags=["facts"])

logger = logging.getLogger(__name__)


def get_extractor() -> Extractor:
    settings = get_settings()
    return OpenAIExtractor(
        get_llm_client(),
        model=settings.LLM_MODEL,
        temperature=settings.EXTRACT_TEMPERATURE,
    )


@router.post("/facts", response_model=FactExtractionResult)
async def create_fact_extraction(
    payload: FactsRequest,
    extractor: Extractor = Depends(get_extractor),
):
    # Free text may carry the company URL somewhere inside it
    url = payload.url or extract_first_url(payload.text)
    if not url:
        raise HTTPException(status_code=400, detail="No company URL found in request")

    request_id = str(uuid4())
    logger.info(
        "Starting fact extraction",
        extra={"request_id": request_id, "base_url": url},
    )

    try:
        result = await extract_facts(url, extractor)
    except UnsafeUrlError as e:
        raise HTTPException(status_code=400, detail=f"URL rejected: {e}")

    if result is None:
        raise HTTPException(status_code=404, detail="No usable page found for this URL")

    logger.info(
        "Fact extraction finished with %d facts from %d sources",
        len(result.facts),
        len(result.sources),
        extra={"request_id": request_id, "base_url": url},
    )
    return result
