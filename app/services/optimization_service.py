from __future__ import annotations

import logging
from dataclasses import dataclass

from app.ai.client import GenerationClient
from app.schemas.applications import ATSAnalysis
from app.services.analysis_service import AnalysisService

logger = logging.getLogger(__name__)

RESUME_SYSTEM_PROMPT = """You are an expert resume optimization specialist. Create an optimized version of the provided resume that:
1. Strategically incorporates relevant keywords from the job description
2. Highlights relevant experience and skills with quantifiable achievements
3. Uses strong action verbs and professional language
4. Maintains clean, professional formatting with clear sections
5. Maximizes ATS compatibility with proper keyword density
6. Follows this professional format structure:

[CANDIDATE NAME]
[Contact Information]

PROFESSIONAL SUMMARY
• Compelling 2-3 line summary targeting the specific role

CORE COMPETENCIES
• Key skills organized in a scannable format

PROFESSIONAL EXPERIENCE
[COMPANY NAME] | [DATES]
[Job Title]
• Achievement-focused bullet points with metrics
• Action verbs and relevant keywords
• Quantified results when possible

EDUCATION
[Degree] | [Institution] | [Year]

Return only the complete optimized resume text with professional formatting."""

COVER_LETTER_SYSTEM_PROMPT = """You are an expert cover letter writer. Create a personalized, professional cover letter that:
1. Shows genuine interest in the company and role
2. Connects the candidate's experience to job requirements
3. Highlights relevant achievements from the resume
4. Maintains a professional yet engaging tone
5. Follows proper business letter format with sections:
   - Header with contact information
   - Date and employer address
   - Professional salutation
   - Opening paragraph expressing interest
   - Body paragraphs connecting experience to role
   - Closing paragraph with call to action
   - Professional sign-off

Return only the complete cover letter text with proper formatting."""


def build_resume_prompt(resume_text: str, job_description: str, company_name: str, role_title: str) -> str:
    return (
        f"Company: {company_name}\n"
        f"Role: {role_title}\n\n"
        f"Job Description:\n{job_description}\n\n"
        f"Original Resume:\n{resume_text}\n\n"
        "Please optimize this resume for the above position with professional formatting and clear sections."
    )


def build_cover_letter_prompt(resume_text: str, job_description: str, company_name: str, role_title: str) -> str:
    return (
        f"Company: {company_name}\n"
        f"Role: {role_title}\n\n"
        f"Job Description:\n{job_description}\n\n"
        f"Candidate's Resume/Experience:\n{resume_text}\n\n"
        "Please write a compelling, well-formatted cover letter for this application."
    )


@dataclass(frozen=True)
class OptimizationOutcome:
    optimized_resume: str
    cover_letter: str
    optimized_analysis: ATSAnalysis


class OptimizationService:
    def __init__(self, client: GenerationClient, analysis: AnalysisService):
        self._client = client
        self._analysis = analysis

    async def optimize(
        self,
        resume_text: str,
        job_description: str,
        company_name: str,
        role_title: str,
    ) -> OptimizationOutcome:
        """Rewrite the resume, write a cover letter, then score the rewrite.

        The three steps run in that order. Any failure propagates and no
        partial outcome is returned.
        """
        optimized_resume = (
            await self._client.generate(
                build_resume_prompt(resume_text, job_description, company_name, role_title),
                RESUME_SYSTEM_PROMPT,
            )
        ).strip()
        cover_letter = (
            await self._client.generate(
                build_cover_letter_prompt(resume_text, job_description, company_name, role_title),
                COVER_LETTER_SYSTEM_PROMPT,
            )
        ).strip()
        optimized_analysis = await self._analysis.analyze(optimized_resume, job_description)
        logger.info(
            "optimization_ok resume_chars=%s letter_chars=%s optimized_score=%s",
            len(optimized_resume),
            len(cover_letter),
            optimized_analysis.score,
        )
        return OptimizationOutcome(
            optimized_resume=optimized_resume,
            cover_letter=cover_letter,
            optimized_analysis=optimized_analysis,
        )
