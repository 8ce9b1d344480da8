from __future__ import annotations

import json
import logging
import math
import re
from typing import Any

from pydantic import ValidationError

from app.ai.client import GenerationClient
from app.ai.types import MalformedResultError, OutputContract
from app.schemas.applications import ATSAnalysis, Recommendation

logger = logging.getLogger(__name__)

ATS_SYSTEM_PROMPT = """You are an expert ATS (Applicant Tracking System) analyzer. Analyze the resume against the job description and provide:
1. An ATS compatibility score (0-100)
2. Keywords from job description that are matched in the resume
3. Important keywords missing from the resume
4. Specific actionable recommendations

Respond with JSON in this exact format:
{
  "score": number,
  "matchedKeywords": string[],
  "missingKeywords": string[],
  "recommendations": [
    {
      "type": "add|improve|enhance",
      "title": "Brief title",
      "description": "Detailed recommendation"
    }
  ]
}"""

ATS_RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "score": {"type": "number"},
        "matchedKeywords": {"type": "array", "items": {"type": "string"}},
        "missingKeywords": {"type": "array", "items": {"type": "string"}},
        "recommendations": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "type": {"type": "string"},
                    "title": {"type": "string"},
                    "description": {"type": "string"},
                },
                "required": ["type", "title", "description"],
            },
        },
    },
    "required": ["score", "matchedKeywords", "missingKeywords", "recommendations"],
}

_FENCED_JSON = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)


def build_analysis_prompt(resume_text: str, job_description: str) -> str:
    return f"Job Description:\n{job_description}\n\nResume:\n{resume_text}"


def _load_json_object(raw: str) -> dict[str, Any]:
    text = (raw or "").strip()
    fenced = _FENCED_JSON.match(text)
    if fenced:
        text = fenced.group(1)
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedResultError("The AI service returned an analysis that is not valid JSON.") from exc
    if not isinstance(payload, dict):
        raise MalformedResultError("The AI service returned an analysis in an unexpected format.")
    return payload


def _coerce_score(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise MalformedResultError("The AI analysis is missing a numeric score.")
    score = int(round(value))
    clamped = min(100, max(0, score))
    if clamped != score:
        logger.warning("ats_score_clamped raw=%s clamped=%s", value, clamped)
    return clamped


def _string_list(payload: dict[str, Any], key: str) -> list[str]:
    value = payload.get(key)
    if not isinstance(value, list):
        raise MalformedResultError(f"The AI analysis is missing the '{key}' list.")
    return [item if isinstance(item, str) else str(item) for item in value]


def _recommendations(payload: dict[str, Any]) -> list[Recommendation]:
    value = payload.get("recommendations")
    if not isinstance(value, list):
        raise MalformedResultError("The AI analysis is missing the 'recommendations' list.")
    try:
        return [Recommendation.model_validate(item) for item in value]
    except ValidationError as exc:
        raise MalformedResultError("The AI analysis contains an invalid recommendation.") from exc


def parse_ats_analysis(raw: str) -> ATSAnalysis:
    payload = _load_json_object(raw)
    if "score" not in payload:
        raise MalformedResultError("The AI analysis is missing a numeric score.")
    return ATSAnalysis(
        score=_coerce_score(payload["score"]),
        matched_keywords=_string_list(payload, "matchedKeywords"),
        missing_keywords=_string_list(payload, "missingKeywords"),
        recommendations=_recommendations(payload),
    )


class AnalysisService:
    def __init__(self, client: GenerationClient):
        self._client = client

    async def analyze(self, resume_text: str, job_description: str) -> ATSAnalysis:
        raw = await self._client.generate(
            build_analysis_prompt(resume_text, job_description),
            ATS_SYSTEM_PROMPT,
            output=OutputContract.JSON,
            response_schema=ATS_RESPONSE_SCHEMA,
        )
        analysis = parse_ats_analysis(raw)
        logger.info(
            "ats_analysis_ok score=%s matched=%s missing=%s recommendations=%s",
            analysis.score,
            len(analysis.matched_keywords),
            len(analysis.missing_keywords),
            len(analysis.recommendations),
        )
        return analysis
