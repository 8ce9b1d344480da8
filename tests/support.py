from __future__ import annotations

import json
import struct
from io import BytesIO
from typing import Any
from zipfile import ZipFile

from docx import Document

from app.ai.types import GenerationRequest

DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

JOB_DESCRIPTION = (
    "We are hiring a backend engineer with strong Python skills and hands-on Kubernetes "
    "experience to run our container platform."
)


def build_docx(*paragraphs: str) -> bytes:
    document = Document()
    for paragraph in paragraphs:
        document.add_paragraph(paragraph)
    buffer = BytesIO()
    document.save(buffer)
    return buffer.getvalue()


def analysis_json(
    score: Any = 72,
    matched: list[str] | None = None,
    missing: list[str] | None = None,
    recommendations: list[dict[str, str]] | None = None,
) -> str:
    return json.dumps(
        {
            "score": score,
            "matchedKeywords": ["python"] if matched is None else matched,
            "missingKeywords": ["kubernetes"] if missing is None else missing,
            "recommendations": (
                [{"type": "add", "title": "Add Kubernetes", "description": "Mention cluster work."}]
                if recommendations is None
                else recommendations
            ),
        }
    )


class ScriptedBackend:
    """Generation backend that replays queued outcomes in order."""

    def __init__(self, *outcomes: Any, clock: "VirtualClock | None" = None):
        self.outcomes = list(outcomes)
        self.requests: list[GenerationRequest] = []
        self.call_times: list[float] = []
        self._clock = clock

    @property
    def calls(self) -> int:
        return len(self.requests)

    async def generate(self, request: GenerationRequest) -> str:
        self.requests.append(request)
        if self._clock is not None:
            self.call_times.append(self._clock.now)
        if not self.outcomes:
            raise AssertionError("ScriptedBackend ran out of outcomes")
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class VirtualClock:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def damage_docx_member(content: bytes, member: str = "word/document.xml", *, encrypt: bool = False) -> bytes:
    """Return a copy of a DOCX whose ``member`` can no longer be read.

    By default the compressed bytes of the member are inverted, which breaks
    the deflate stream. With ``encrypt=True`` the member is flagged as
    encrypted in its local and central headers instead.
    """
    with ZipFile(BytesIO(content)) as archive:
        info = archive.getinfo(member)
    data = bytearray(content)
    name_len, extra_len = struct.unpack_from("<HH", data, info.header_offset + 26)

    if not encrypt:
        start = info.header_offset + 30 + name_len + extra_len
        for index in range(start, start + min(info.compress_size, 64)):
            data[index] ^= 0xFF
        return bytes(data)

    data[info.header_offset + 6] |= 0x01
    name = member.encode("utf-8")
    central = data.find(b"PK\x01\x02")
    while central != -1:
        (central_name_len,) = struct.unpack_from("<H", data, central + 28)
        if bytes(data[central + 46 : central + 46 + central_name_len]) == name:
            data[central + 8] |= 0x01
            break
        central = data.find(b"PK\x01\x02", central + 4)
    return bytes(data)
