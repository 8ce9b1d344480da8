from __future__ import annotations

import os
from typing import Optional

from google import genai
from google.genai import errors, types

from app.ai.types import (
    EmptyResponseError,
    GenerationRequest,
    OutputContract,
    OverloadedError,
    UpstreamError,
)

OVERLOAD_STATUSES = {"UNAVAILABLE"}


def is_overload_error(exc: Exception) -> bool:
    if isinstance(exc, errors.APIError):
        if exc.code == 503:
            return True
        if (exc.status or "").upper() in OVERLOAD_STATUSES:
            return True
    message = str(exc).lower()
    return "503" in message or "overloaded" in message


class GeminiProvider:
    def __init__(
        self,
        model: str,
        api_key: Optional[str] = None,
        temperature: float = 0.2,
    ):
        self._model = model
        self._temperature = temperature
        key = (api_key or os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_GEMINI_API_KEY") or "").strip()
        if not key:
            raise RuntimeError("GEMINI_API_KEY is missing")
        self._client = genai.Client(api_key=key)

    def _config(self, request: GenerationRequest) -> types.GenerateContentConfig:
        kwargs = {
            "system_instruction": request.system_instruction,
            "temperature": self._temperature,
        }
        if request.output is OutputContract.JSON:
            kwargs["response_mime_type"] = "application/json"
            if request.response_schema:
                kwargs["response_schema"] = request.response_schema
        return types.GenerateContentConfig(**kwargs)

    async def generate(self, request: GenerationRequest) -> str:
        try:
            response = await self._client.aio.models.generate_content(
                model=self._model,
                contents=request.prompt,
                config=self._config(request),
            )
        except Exception as exc:
            if is_overload_error(exc):
                raise OverloadedError(f"Gemini model is overloaded: {exc}") from exc
            raise UpstreamError(f"Gemini request failed: {exc}") from exc

        text = response.text
        if not text or not text.strip():
            raise EmptyResponseError("Empty response from Gemini API")
        return text
