"""
HTTP-level tests for the facts and letters routers.

LLM-backed dependencies are overridden so nothing leaves the process.
"""
import pytest
from fastapi.testclient import TestClient

from salesletter.api import routes_facts
from salesletter.api.routes_facts import get_extractor
from salesletter.api.routes_letters import get_drafter
from salesletter.main import app

from tests.fixtures.letter_fixtures import GOOD_COMPLETE_LETTER, SHORT_LETTER


class _Drafter:
    def __init__(self, text=None, error=None):
        self.text = text
        self.error = error

    async def draft(self, prompt, temperature):
        if self.error:
            raise self.error
        return self.text


class _Extractor:
    async def extract(self, page_text, page_url):
        return {}


@pytest.fixture
def client():
    app.dependency_overrides[get_extractor] = lambda: _Extractor()
    app.dependency_overrides[get_drafter] = lambda: _Drafter(text=GOOD_COMPLETE_LETTER)
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


class TestHealth:
    def test_healthz(self, client):
        resp = client.get("/healthz")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


class TestLetterRoutes:
    def test_validate_short_body(self, client):
        resp = client.post("/api/letters/validate", json={"body": SHORT_LETTER})
        assert resp.status_code == 200
        data = resp.json()
        assert data["ok"] is False
        assert any("文字数が少なすぎます" in r for r in data["reasons"])

    def test_validate_rejects_oversized_body(self, client):
        resp = client.post("/api/letters/validate", json={"body": "あ" * 20001})
        assert resp.status_code == 422

    def test_score_good_letter(self, client):
        resp = client.post(
            "/api/letters/score",
            json={
                "body": GOOD_COMPLETE_LETTER,
                "has_proper_nouns": True,
                "has_target": True,
                "facts": [
                    {
                        "content": "Sample Cloud",
                        "category": "properNouns",
                        "source_url": "https://example.co.jp/news/1",
                    }
                ],
            },
        )
        assert resp.status_code == 200
        assert resp.json()["total"] >= 80

    def test_score_reports_missing_citations(self, client):
        fact = {
            "content": "Sample Cloud",
            "category": "properNouns",
            "source_url": "https://example.co.jp/news/1",
        }
        body = {"body": GOOD_COMPLETE_LETTER, "has_target": True, "facts": [fact]}

        uncited = client.post("/api/letters/score", json=body).json()
        cited = client.post(
            "/api/letters/score", json=dict(body, citations=["https://example.co.jp/news/1"])
        ).json()

        assert any("出典が1件も" in s for s in uncited["suggestions"])
        assert not any("出典が1件も" in s for s in cited["suggestions"])
        assert uncited["total"] == cited["total"]

    def test_score_dispatches_event_mode(self, client):
        resp = client.post(
            "/api/letters/score",
            json={"body": "当日は弊社代表が登壇いたします。", "mode": "event", "event_position": "sponsor"},
        )
        assert resp.status_code == 200
        assert resp.json()["breakdown"]["position_contradiction"] == 20

    def test_generate_accepts_good_draft(self, client):
        resp = client.post(
            "/api/letters/generate",
            json={
                "prompt": "Example株式会社向けの営業レターを作成してください。",
                "has_target": True,
                "facts": [
                    {
                        "content": "Sample Cloud",
                        "category": "properNouns",
                        "source_url": "https://example.co.jp/news/1",
                    }
                ],
            },
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["accepted"] is True
        assert data["best"]["draft_text"] == GOOD_COMPLETE_LETTER
        assert len(data["attempts"]) == 1

    def test_generate_drafter_failure_is_502(self, client):
        app.dependency_overrides[get_drafter] = lambda: _Drafter(error=RuntimeError("down"))
        resp = client.post("/api/letters/generate", json={"prompt": "レターを作成", "max_attempts": 2})
        assert resp.status_code == 502

    def test_generate_rejects_blank_prompt(self, client):
        resp = client.post("/api/letters/generate", json={"prompt": "   "})
        assert resp.status_code == 422


class TestFactsRoute:
    def test_unsafe_url_is_400(self, client):
        resp = client.post("/api/facts", json={"url": "http://127.0.0.1/"})
        assert resp.status_code == 400

    def test_text_without_url_is_400(self, client):
        resp = client.post("/api/facts", json={"text": "URLのない依頼文です"})
        assert resp.status_code == 400

    def test_empty_request_is_422(self, client):
        resp = client.post("/api/facts", json={})
        assert resp.status_code == 422

    def test_no_usable_page_is_404(self, client, monkeypatch):
        seen = []

        async def fake_extract_facts(base_url, extractor):
            seen.append(base_url)
            return None

        monkeypatch.setattr(routes_facts, "extract_facts", fake_extract_facts)
        resp = client.post("/api/facts", json={"text": "会社は https://example.co.jp/ です"})
        assert resp.status_code == 404
        assert seen == ["https://example.co.jp/"]
