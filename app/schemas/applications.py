from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

KNOWN_RECOMMENDATION_TYPES = ("add", "improve", "enhance")
RECOMMENDATION_LABELS = {kind: kind.capitalize() for kind in KNOWN_RECOMMENDATION_TYPES}
FALLBACK_RECOMMENDATION_LABEL = "Suggestion"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class JobContext(CamelModel):
    model_config = ConfigDict(frozen=True)

    company_name: str = Field(min_length=1, max_length=200)
    role_title: str = Field(min_length=1, max_length=200)
    job_description: str = Field(min_length=50, max_length=50000)

    @field_validator("company_name", "role_title", "job_description", mode="before")
    @classmethod
    def _strip(cls, value):
        if isinstance(value, str):
            return value.strip()
        return value


class Recommendation(CamelModel):
    # Open string: values outside KNOWN_RECOMMENDATION_TYPES are kept as-is.
    type: str
    title: str
    description: str

    @property
    def label(self) -> str:
        return RECOMMENDATION_LABELS.get(self.type.strip().lower(), FALLBACK_RECOMMENDATION_LABEL)


class ATSAnalysis(CamelModel):
    score: int = Field(ge=0, le=100)
    matched_keywords: list[str] = Field(default_factory=list)
    missing_keywords: list[str] = Field(default_factory=list)
    recommendations: list[Recommendation] = Field(default_factory=list)



class ApplicationRecord(CamelModel):
    id: str
    company_name: str
    role_title: str
    job_description: str
    original_resume_text: str
    original_resume_filename: str
    created_at: datetime
    optimized_resume: str | None = None
    cover_letter: str | None = None
    original_ats_score: int | None = None
    optimized_ats_score: int | None = None
    matched_keywords: list[str] | None = None
    missing_keywords: list[str] | None = None
    recommendations: list[Recommendation] | None = None

    def original_analysis(self) -> ATSAnalysis:
        return ATSAnalysis(
            score=self.original_ats_score or 0,
            matched_keywords=list(self.matched_keywords or []),
            missing_keywords=list(self.missing_keywords or []),
            recommendations=list(self.recommendations or []),
        )


class UploadResponse(CamelModel):
    application_id: str
    message: str = "Resume uploaded and parsed successfully"
    resume_text_preview: str


class OptimizationResult(CamelModel):
    optimized_resume: str
    cover_letter: str
    original_analysis: ATSAnalysis
    optimized_analysis: ATSAnalysis


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
