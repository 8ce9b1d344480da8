from __future__ import annotations

import re

from app.schemas.applications import ATSAnalysis, ApplicationRecord

DOWNLOADABLE_DOCUMENTS = ("optimized-resume", "cover-letter", "analysis-report")


def _slug(value: str, max_len: int = 60) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", (value or "").lower()).strip("-")
    return slug[:max_len].rstrip("-") or "application"


def download_filename(record: ApplicationRecord, document: str) -> str:
    return f"{_slug(record.company_name)}-{_slug(record.role_title)}-{document}.txt"


def _render_keywords(label: str, keywords: list[str]) -> list[str]:
    if not keywords:
        return [f"{label}: none"]
    return [f"{label}:", *[f"  - {keyword}" for keyword in keywords]]


def render_analysis(analysis: ATSAnalysis) -> list[str]:
    lines = [f"ATS score: {analysis.score}/100"]
    lines.extend(_render_keywords("Matched keywords", analysis.matched_keywords))
    lines.extend(_render_keywords("Missing keywords", analysis.missing_keywords))
    if analysis.recommendations:
        lines.append("Recommendations:")
        for item in analysis.recommendations:
            lines.append(f"  [{item.label}] {item.title}")
            if item.description:
                lines.append(f"      {item.description}")
    return lines


def render_analysis_report(record: ApplicationRecord) -> str | None:
    if record.original_ats_score is None and record.optimized_ats_score is None:
        return None
    lines = [
        f"ATS report: {record.role_title} at {record.company_name}",
        f"Resume file: {record.original_resume_filename}",
        "",
    ]
    if record.original_ats_score is not None:
        lines.append("Original resume")
        lines.extend(render_analysis(record.original_analysis()))
        lines.append("")
    if record.optimized_ats_score is not None:
        lines.append(f"Optimized resume ATS score: {record.optimized_ats_score}/100")
    return "\n".join(lines).rstrip() + "\n"


def render_document(record: ApplicationRecord, document: str) -> str | None:
    if document == "optimized-resume":
        return record.optimized_resume
    if document == "cover-letter":
        return record.cover_letter
    if document == "analysis-report":
        return render_analysis_report(record)
    raise ValueError(f"Unknown document '{document}'. Available: {', '.join(DOWNLOADABLE_DOCUMENTS)}.")
