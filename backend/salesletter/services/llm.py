from __future__ import annotations

import asyncio
import logging
from contextlib import contextmanager
from functools import lru_cache
from threading import BoundedSemaphore

import openai
from openai import OpenAI
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..core.config import Settings, get_settings
from .crawler.extractor import build_extraction_prompt

logger = logging.getLogger(__name__)

_llm_semaphore: BoundedSemaphore | None = None

# Transient provider failures worth another try; auth/validation errors are not.
RETRYABLE_ERRORS = (
    openai.APIConnectionError,
    openai.APITimeoutError,
    openai.RateLimitError,
    openai.InternalServerError,
)


def _get_semaphore() -> BoundedSemaphore:
    """
    Lazy-initialised global semaphore for limiting concurrent LLM calls.
    """
    global _llm_semaphore
    if _llm_semaphore is None:
        settings = get_settings()
        _llm_semaphore = BoundedSemaphore(settings.LLM_MAX_CONCURRENCY)
    return _llm_semaphore


@contextmanager
def limit_llm_concurrency():
    """
    Bound concurrent calls to the LLM provider.

    Use inside the thread that actually performs the HTTP request; the crawler
    fans extraction out with asyncio.to_thread, so this is the only throttle.
    """
    sem = _get_semaphore()
    sem.acquire()
    try:
        yield
    finally:
        sem.release()


def build_llm_client(settings: Settings) -> OpenAI:
    """
    OpenAI-compatible client for the given settings.

    - If OPENROUTER_API_KEY is set, route requests via OpenRouter.
    - Otherwise, fall back to the standard OpenAI API using OPENAI_API_KEY.
    """
    if settings.OPENROUTER_API_KEY:
        return OpenAI(
            base_url="https://openrouter.ai/api/v1",
            api_key=settings.OPENROUTER_API_KEY.strip(),
            default_headers={
                "HTTP-Referer": settings.FRONTEND_ORIGIN or "http://localhost:3000",
                "X-Title": "Sales Letter Generator",
            },
        )

    if settings.OPENAI_API_KEY:
        return OpenAI(api_key=settings.OPENAI_API_KEY.strip())

    raise RuntimeError(
        "No LLM API key configured. Set either OPENAI_API_KEY or OPENROUTER_API_KEY."
    )


@lru_cache(maxsize=1)
def get_llm_client() -> OpenAI:
    """Process-wide client used by the API layer; services receive it injected."""
    return build_llm_client(get_settings())


class OpenAIDrafter:
    """Drafter backed by chat completions: draft(prompt, temperature) -> text."""

    def __init__(self, client: OpenAI, model: str) -> None:
        self._client = client
        self.model = model

    def _complete(self, prompt: str, temperature: float) -> str:
        with limit_llm_concurrency():
            resp = self._client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=temperature,
            )
        content = resp.choices[0].message.content or ""
        return content.strip()

    async def draft(self, prompt: str, temperature: float) -> str:
        return await asyncio.to_thread(self._complete, prompt, temperature)


class OpenAIExtractor:
    """Extractor backed by chat completions in JSON mode."""

    def __init__(self, client: OpenAI, model: str, temperature: float = 0.1) -> None:
        self._client = client
        self.model = model
        self.temperature = temperature

    @retry(
        wait=wait_exponential(multiplier=1, min=1, max=8),
        stop=stop_after_attempt(3),
        retry=retry_if_exception_type(RETRYABLE_ERRORS),
        reraise=True,
    )
    def _complete(self, prompt: str) -> str:
        with limit_llm_concurrency():
            resp = self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {
                        "role": "system",
                        "content": "You extract verifiable company facts and answer with JSON only.",
                    },
                    {"role": "user", "content": prompt},
                ],
                temperature=self.temperature,
                response_format={"type": "json_object"},
            )
        return resp.choices[0].message.content or ""

    async def extract(self, page_text: str, page_url: str) -> str:
        prompt = build_extraction_prompt(page_text, page_url)
        return await asyncio.to_thread(self._complete, prompt)
