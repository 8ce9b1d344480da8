from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol


class OutputContract(str, Enum):
    FREE_TEXT = "free_text"
    JSON = "json"


@dataclass(frozen=True)
class GenerationRequest:
    prompt: str
    system_instruction: str
    output: OutputContract = OutputContract.FREE_TEXT
    response_schema: dict[str, Any] | None = field(default=None)


class GenerationError(RuntimeError):
    """Base class for failures of the generation service."""

    code = "generation_failed"


class EmptyResponseError(GenerationError):
    code = "empty_response"


class OverloadedError(GenerationError):
    code = "overloaded"


class UpstreamError(GenerationError):
    code = "upstream_error"


class MalformedResultError(GenerationError):
    """The call succeeded but its output does not match the expected shape."""

    code = "malformed_result"


class GenerationBackend(Protocol):
    async def generate(self, request: GenerationRequest) -> str: ...
