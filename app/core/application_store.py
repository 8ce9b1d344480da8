from __future__ import annotations

import threading
import uuid
from datetime import datetime, timezone
from typing import Any

from app.schemas.applications import ApplicationRecord, JobContext

IMMUTABLE_FIELDS = frozenset(
    {
        "id",
        "company_name",
        "role_title",
        "job_description",
        "original_resume_text",
        "original_resume_filename",
        "created_at",
    }
)
MUTABLE_FIELDS = frozenset(ApplicationRecord.model_fields) - IMMUTABLE_FIELDS


class ImmutableFieldError(ValueError):
    pass


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ApplicationStore:
    """In-memory application records keyed by an opaque id.

    Records handed out are copies; writes go through ``update`` and replace
    whole fields. Concurrent updates to one record are last-write-wins.
    """

    def __init__(self) -> None:
        self._records: dict[str, ApplicationRecord] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def create(
        self,
        *,
        job: JobContext,
        original_resume_text: str,
        original_resume_filename: str,
    ) -> ApplicationRecord:
        record = ApplicationRecord(
            id=uuid.uuid4().hex,
            company_name=job.company_name,
            role_title=job.role_title,
            job_description=job.job_description,
            original_resume_text=original_resume_text,
            original_resume_filename=original_resume_filename,
            created_at=_utc_now(),
        )
        with self._lock:
            self._records[record.id] = record
        return record.model_copy(deep=True)

    def get(self, application_id: str) -> ApplicationRecord | None:
        with self._lock:
            record = self._records.get(application_id)
        return record.model_copy(deep=True) if record is not None else None

    def update(self, application_id: str, **fields: Any) -> ApplicationRecord | None:
        frozen = IMMUTABLE_FIELDS.intersection(fields)
        if frozen:
            raise ImmutableFieldError(f"Fields cannot be changed after creation: {', '.join(sorted(frozen))}")
        unknown = set(fields) - MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown application fields: {', '.join(sorted(unknown))}")

        with self._lock:
            existing = self._records.get(application_id)
            if existing is None:
                return None
            merged = existing.model_dump()
            merged.update(fields)
            updated = ApplicationRecord.model_validate(merged)
            self._records[application_id] = updated
        return updated.model_copy(deep=True)

    def delete(self, application_id: str) -> bool:
        with self._lock:
            return self._records.pop(application_id, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._records.clear()
