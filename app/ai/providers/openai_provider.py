from __future__ import annotations

import os
from typing import Optional

import openai
from openai import AsyncOpenAI

from app.ai.types import (
    EmptyResponseError,
    GenerationRequest,
    OutputContract,
    OverloadedError,
    UpstreamError,
)

OVERLOAD_STATUS_CODES = {503, 529}


class OpenAIProvider:
    def __init__(
        self,
        model: str,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout_s: float = 120.0,
        temperature: float = 0.2,
    ):
        self._model = model
        self._temperature = temperature
        key = (api_key or os.getenv("OPENAI_API_KEY") or "").strip()
        if not key:
            raise RuntimeError("OPENAI_API_KEY is missing")

        # Overload retries are owned by GenerationClient, so the SDK must not retry on its own.
        self._client = AsyncOpenAI(
            api_key=key,
            base_url=(base_url or os.getenv("OPENAI_BASE_URL") or None),
            timeout=timeout_s,
            max_retries=0,
        )

    async def generate(self, request: GenerationRequest) -> str:
        create_kwargs = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": request.system_instruction},
                {"role": "user", "content": request.prompt},
            ],
            "temperature": self._temperature,
        }
        if request.output is OutputContract.JSON:
            create_kwargs["response_format"] = {"type": "json_object"}

        try:
            response = await self._client.chat.completions.create(**create_kwargs)
        except openai.APIStatusError as exc:
            if exc.status_code in OVERLOAD_STATUS_CODES:
                raise OverloadedError(f"OpenAI model is overloaded: {exc}") from exc
            raise UpstreamError(f"OpenAI request failed: {exc}") from exc
        except openai.OpenAIError as exc:
            raise UpstreamError(f"OpenAI request failed: {exc}") from exc

        content = response.choices[0].message.content if response.choices else ""
        if not content or not content.strip():
            raise EmptyResponseError("Empty response from OpenAI API")
        return content
