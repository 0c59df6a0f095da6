"""
Generative Brief Client

Calls the Gemini generateContent REST endpoint to:

1. Draft a project brief in Markdown with five fixed sections
   (Summary, Objectives, Feature Map, Timeline, Risks)
2. Break a brief into features, tasks and milestones as schema-constrained
   JSON

Both calls are best-effort. A missing API key, transport error, HTTP error
or unparsable response is logged and replaced by a placeholder: a fixed
brief string, or an empty {"features": [], "milestones": []} breakdown.
Nothing here raises into the creation flow.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

import httpx

from .config import DEFAULT_GEMINI_BASE_URL, DEFAULT_GEMINI_MODEL
from .models import TeamMember

logger = logging.getLogger("brief_generator")

# -----------------------------------------------------------------------------
# Prompts and Schema
# -----------------------------------------------------------------------------
BRIEF_PLACEHOLDER = "Error generating brief. System stable. Check connection."

BRIEF_SYSTEM_INSTRUCTION = (
    "You are the speedOps Strategic Architect. Generate high-signal technical "
    "briefs in Markdown. No filler. Precision only."
)

BREAKDOWN_SYSTEM_INSTRUCTION = (
    "Operational Logician: Convert briefs into JSON units. Assign tasks to Team IDs. "
    "Keep names short."
)

BRIEF_SECTIONS = ("Summary", "Objectives", "Feature Map", "Timeline", "Risks")

BREAKDOWN_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "features": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "featureName": {"type": "STRING"},
                    "tasks": {
                        "type": "ARRAY",
                        "items": {
                            "type": "OBJECT",
                            "properties": {
                                "name": {"type": "STRING"},
                                "description": {"type": "STRING"},
                                "assigneeId": {"type": "STRING"},
                                "acceptanceCriteria": {"type": "ARRAY", "items": {"type": "STRING"}},
                                "startDay": {"type": "INTEGER"},
                                "endDay": {"type": "INTEGER"},
                            },
                            "required": [
                                "name", "description", "assigneeId",
                                "acceptanceCriteria", "startDay", "endDay",
                            ],
                        },
                    },
                },
                "required": ["featureName", "tasks"],
            },
        },
        "milestones": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "title": {"type": "STRING"},
                    "description": {"type": "STRING"},
                    "dayOffset": {"type": "INTEGER"},
                    "urgency": {"type": "STRING"},
                },
                "required": ["title", "description", "dayOffset", "urgency"],
            },
        },
    },
    "required": ["features", "milestones"],
}


def empty_breakdown() -> Dict[str, List[Any]]:
    return {"features": [], "milestones": []}


@dataclass(frozen=True)
class ProjectDetails:
    """Fields of a project draft that feed the brief prompt."""
    name: str
    client: str
    purpose: str
    features: str


def build_brief_prompt(details: ProjectDetails, team: Iterable[TeamMember]) -> str:
    roster = "; ".join(f"{m.name} ({','.join(r.value for r in m.roles)})" for m in team)
    sections = ", ".join(f"{i}.{name}" for i, name in enumerate(BRIEF_SECTIONS, start=1))
    return (
        "Context:\n"
        f"Project: {details.name}\n"
        f"Client: {details.client}\n"
        f"Purpose: {details.purpose}\n"
        f"Features: {details.features}\n"
        f"Team: {roster}\n\n"
        f"Output: {sections}."
    )


def build_breakdown_prompt(brief: str, team: Iterable[TeamMember]) -> str:
    id_map = "\n".join(f"{m.id}: {m.name}" for m in team)
    return f"Brief: {brief}\n\nID Map:\n{id_map}"


def normalize_breakdown(data: Any) -> Dict[str, List[Any]]:
    """Coerce a parsed response into the breakdown shape, dropping malformed parts."""
    if not isinstance(data, dict):
        return empty_breakdown()
    features = []
    for feature in data.get("features") or []:
        if not isinstance(feature, dict):
            continue
        tasks = feature.get("tasks") or []
        if not isinstance(tasks, list):
            continue
        features.append(dict(feature, tasks=[t for t in tasks if isinstance(t, dict)]))
    milestones = [m for m in data.get("milestones") or [] if isinstance(m, dict)]
    return {"features": features, "milestones": milestones}


# -----------------------------------------------------------------------------
# Client
# -----------------------------------------------------------------------------
class BriefGenerator:
    """Thin async client for the two generative calls."""

    def __init__(
        self,
        api_key: Optional[str],
        model: str = DEFAULT_GEMINI_MODEL,
        base_url: str = DEFAULT_GEMINI_BASE_URL,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    async def _generate(
        self,
        prompt: str,
        system_instruction: str,
        generation_config: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Run one generateContent call and return the concatenated text.

        Raises httpx errors, ValueError and KeyError; callers absorb them.
        """
        if not self.api_key:
            raise ValueError("Gemini API key is not configured")

        body: Dict[str, Any] = {
            "systemInstruction": {"parts": [{"text": system_instruction}]},
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
        }
        if generation_config:
            body["generationConfig"] = generation_config

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(
                self.endpoint,
                json=body,
                headers={"x-goog-api-key": self.api_key},
            )
            response.raise_for_status()
            payload = response.json()

        parts = payload["candidates"][0]["content"]["parts"]
        return "".join(part.get("text", "") for part in parts)

    async def generate_project_brief(self, details: ProjectDetails, team: Iterable[TeamMember]) -> str:
        """Markdown brief, or BRIEF_PLACEHOLDER on any failure."""
        try:
            text = await self._generate(build_brief_prompt(details, list(team)), BRIEF_SYSTEM_INSTRUCTION)
        except (httpx.HTTPError, ValueError, KeyError, IndexError, TypeError) as e:
            logger.warning(f"Brief generation failed for {details.name}: {e}")
            return BRIEF_PLACEHOLDER
        return text or BRIEF_PLACEHOLDER

    async def generate_task_breakdown(self, brief: str, team: Iterable[TeamMember]) -> Dict[str, List[Any]]:
        """Structured breakdown, or an empty one on any failure."""
        try:
            text = await self._generate(
                build_breakdown_prompt(brief, list(team)),
                BREAKDOWN_SYSTEM_INSTRUCTION,
                generation_config={
                    "responseMimeType": "application/json",
                    "responseSchema": BREAKDOWN_SCHEMA,
                },
            )
            return normalize_breakdown(json.loads(text or '{"features": [], "milestones": []}'))
        except (httpx.HTTPError, ValueError, KeyError, IndexError, TypeError) as e:
            logger.warning(f"Task breakdown generation failed: {e}")
            return empty_breakdown()
