from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable

from app.ai.config import AIConfig, load_ai_config
from app.ai.types import (
    GenerationBackend,
    GenerationError,
    GenerationRequest,
    OutputContract,
    OverloadedError,
    UpstreamError,
)

logger = logging.getLogger(__name__)

OVERLOADED_MESSAGE = "The AI service is overloaded. Please try again in a few minutes."

Sleep = Callable[[float], Awaitable[Any]]


class GenerationClient:
    """Issues single generation calls against a backend.

    Only ``OverloadedError`` is retried: the call is attempted up to
    ``max_attempts`` times with a fixed ``retry_delay_s`` pause between
    attempts. Every other failure is raised on the attempt that produced it.
    """

    def __init__(
        self,
        backend: GenerationBackend,
        *,
        max_attempts: int = 3,
        retry_delay_s: float = 2.0,
        timeout_s: float | None = 120.0,
        sleep: Sleep = asyncio.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._backend = backend
        self._max_attempts = max_attempts
        self._retry_delay_s = retry_delay_s
        self._timeout_s = timeout_s
        self._sleep = sleep

    @classmethod
    def from_config(cls, backend: GenerationBackend, cfg: AIConfig | None = None) -> "GenerationClient":
        cfg = cfg or load_ai_config()
        return cls(
            backend,
            max_attempts=cfg.max_attempts,
            retry_delay_s=cfg.retry_delay_s,
            timeout_s=cfg.timeout_s,
        )

    async def _attempt(self, request: GenerationRequest) -> str:
        if self._timeout_s is None:
            return await self._backend.generate(request)
        try:
            return await asyncio.wait_for(self._backend.generate(request), timeout=self._timeout_s)
        except asyncio.TimeoutError as exc:
            raise UpstreamError(f"Generation timed out after {self._timeout_s:g}s") from exc

    async def generate(
        self,
        prompt: str,
        system_instruction: str,
        *,
        output: OutputContract = OutputContract.FREE_TEXT,
        response_schema: dict[str, Any] | None = None,
    ) -> str:
        request = GenerationRequest(
            prompt=prompt,
            system_instruction=system_instruction,
            output=output,
            response_schema=response_schema,
        )
        for attempt in range(1, self._max_attempts + 1):
            started = time.perf_counter()
            try:
                text = await self._attempt(request)
            except OverloadedError as exc:
                if attempt < self._max_attempts:
                    logger.warning(
                        "generation_overloaded attempt=%s max_attempts=%s retry_in_s=%s",
                        attempt,
                        self._max_attempts,
                        self._retry_delay_s,
                    )
                    await self._sleep(self._retry_delay_s)
                    continue
                logger.warning("generation_overload_exhausted attempts=%s: %s", attempt, exc)
                raise OverloadedError(OVERLOADED_MESSAGE) from exc
            except GenerationError as exc:
                logger.warning("generation_failed attempt=%s code=%s: %s", attempt, exc.code, exc)
                raise
            logger.info(
                "generation_ok attempt=%s output=%s latency_ms=%s",
                attempt,
                output.value,
                int((time.perf_counter() - started) * 1000),
            )
            return text
        raise AssertionError("unreachable")  # pragma: no cover
