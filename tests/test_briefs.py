"""
Tests for the generative brief client.

Test coverage for:
- Request shape sent to generateContent
- Brief and breakdown parsing
- Placeholders on missing key, HTTP errors and malformed responses
"""

import json

import httpx
import pytest

from speedops.briefs import (
    BRIEF_PLACEHOLDER,
    BRIEF_SECTIONS,
    BriefGenerator,
    ProjectDetails,
    build_breakdown_prompt,
    build_brief_prompt,
    normalize_breakdown,
)

DETAILS = ProjectDetails(name="Atlas", client="Acme", purpose="Fleet tracking", features="maps, alerts")

BREAKDOWN = {
    "features": [{
        "featureName": "Maps",
        "tasks": [{
            "name": "Render tiles",
            "description": "Vector tiles",
            "assigneeId": "m-ana",
            "acceptanceCriteria": ["60fps"],
            "startDay": 1,
            "endDay": 3,
        }],
    }],
    "milestones": [{"title": "Alpha", "description": "First cut", "dayOffset": 7, "urgency": "High"}],
}


def gemini_response(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def generator_with(handler, api_key="test-key") -> BriefGenerator:
    return BriefGenerator(api_key=api_key, model="test-model", base_url="https://gemini.test/v1beta",
                          transport=httpx.MockTransport(handler))


class TestPrompts:
    def test_brief_prompt_lists_context_and_sections(self, members):
        prompt = build_brief_prompt(DETAILS, members)
        assert "Project: Atlas" in prompt
        assert "Ben Okafor (Backend,DevOps)" in prompt
        for section in BRIEF_SECTIONS:
            assert section in prompt

    def test_breakdown_prompt_maps_ids(self, members):
        prompt = build_breakdown_prompt("brief text", members)
        assert "m-cy: Cy Tran" in prompt

    def test_normalize_breakdown_drops_malformed(self):
        data = {"features": [{"featureName": "x", "tasks": "bad"}, "junk"], "milestones": [1, {"title": "m"}]}
        assert normalize_breakdown(data) == {"features": [], "milestones": [{"title": "m"}]}
        assert normalize_breakdown(["not", "a", "dict"]) == {"features": [], "milestones": []}

    def test_normalize_breakdown_filters_task_items(self):
        data = {"features": [
            {"featureName": "F", "tasks": ["oops", {"name": "Real"}, None]},
            {"featureName": "G", "tasks": None},
        ]}
        assert normalize_breakdown(data)["features"] == [
            {"featureName": "F", "tasks": [{"name": "Real"}]},
            {"featureName": "G", "tasks": []},
        ]


class TestGenerateBrief:
    @pytest.mark.asyncio
    async def test_success(self, members):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["key"] = request.headers.get("x-goog-api-key")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=gemini_response("## Summary\nShip it"))

        brief = await generator_with(handler).generate_project_brief(DETAILS, members)

        assert brief == "## Summary\nShip it"
        assert seen["url"] == "https://gemini.test/v1beta/models/test-model:generateContent"
        assert seen["key"] == "test-key"
        assert "generationConfig" not in seen["body"]
        assert "Atlas" in seen["body"]["contents"][0]["parts"][0]["text"]

    @pytest.mark.asyncio
    async def test_http_error_returns_placeholder(self, members):
        generator = generator_with(lambda request: httpx.Response(503, json={"error": "overloaded"}))
        assert await generator.generate_project_brief(DETAILS, members) == BRIEF_PLACEHOLDER

    @pytest.mark.asyncio
    async def test_transport_error_returns_placeholder(self, members):
        def handler(request):
            raise httpx.ConnectError("no route", request=request)

        assert await generator_with(handler).generate_project_brief(DETAILS, members) == BRIEF_PLACEHOLDER

    @pytest.mark.asyncio
    async def test_missing_key_returns_placeholder(self, members):
        calls = []
        generator = generator_with(lambda request: calls.append(request), api_key=None)

        assert await generator.generate_project_brief(DETAILS, members) == BRIEF_PLACEHOLDER
        assert calls == []

    @pytest.mark.asyncio
    async def test_empty_candidates_returns_placeholder(self, members):
        generator = generator_with(lambda request: httpx.Response(200, json={"candidates": []}))
        assert await generator.generate_project_brief(DETAILS, members) == BRIEF_PLACEHOLDER


class TestGenerateBreakdown:
    @pytest.mark.asyncio
    async def test_success_requests_json_schema(self, members):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=gemini_response(json.dumps(BREAKDOWN)))

        breakdown = await generator_with(handler).generate_task_breakdown("brief", members)

        assert breakdown == BREAKDOWN
        config = seen["body"]["generationConfig"]
        assert config["responseMimeType"] == "application/json"
        assert config["responseSchema"]["required"] == ["features", "milestones"]

    @pytest.mark.asyncio
    async def test_invalid_json_returns_empty(self, members):
        generator = generator_with(lambda request: httpx.Response(200, json=gemini_response("not json")))
        assert await generator.generate_task_breakdown("brief", members) == {"features": [], "milestones": []}

    @pytest.mark.asyncio
    async def test_http_error_returns_empty(self, members):
        generator = generator_with(lambda request: httpx.Response(500))
        assert await generator.generate_task_breakdown("brief", members) == {"features": [], "milestones": []}
