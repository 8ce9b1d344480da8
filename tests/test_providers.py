import sys
import unittest
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import httpx  # noqa: E402
import openai  # noqa: E402
from google.genai import errors  # noqa: E402

from app.ai.config import AIConfig, load_ai_config  # noqa: E402
from app.ai.factory import get_generation_backend  # noqa: E402
from app.ai.providers.gemini_provider import GeminiProvider, is_overload_error  # noqa: E402
from app.ai.providers.openai_provider import OpenAIProvider  # noqa: E402
from app.ai.types import (  # noqa: E402
    EmptyResponseError,
    GenerationRequest,
    OutputContract,
    OverloadedError,
    UpstreamError,
)
from app.services.analysis_service import ATS_RESPONSE_SCHEMA  # noqa: E402


def _status_error(status_code: int) -> openai.APIStatusError:
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    response = httpx.Response(status_code, request=request)
    return openai.APIStatusError(f"status {status_code}", response=response, body=None)


def _completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


class OpenAIProviderTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.provider = OpenAIProvider(model="gpt-4o-mini", api_key="test-key")
        self.request = GenerationRequest(prompt="p", system_instruction="Return JSON.", output=OutputContract.JSON)

    async def _generate_with(self, **mock_kwargs):
        create = AsyncMock(**mock_kwargs)
        with patch.object(self.provider._client.chat.completions, "create", create):
            result = await self.provider.generate(self.request)
        return result, create

    async def test_json_contract_requests_json_object(self):
        result, create = await self._generate_with(return_value=_completion('{"score": 1}'))
        self.assertEqual(result, '{"score": 1}')
        self.assertEqual(create.call_args.kwargs["response_format"], {"type": "json_object"})

    async def test_503_is_overloaded(self):
        with self.assertRaises(OverloadedError):
            await self._generate_with(side_effect=_status_error(503))

    async def test_other_status_is_upstream_error(self):
        with self.assertRaises(UpstreamError):
            await self._generate_with(side_effect=_status_error(401))

    async def test_empty_content_is_empty_response(self):
        with self.assertRaises(EmptyResponseError):
            await self._generate_with(return_value=_completion(""))


def _gemini_error(error_cls, code: int, status: str, message: str) -> errors.APIError:
    return error_cls(code, {"error": {"code": code, "message": message, "status": status}})


class GeminiProviderTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.provider = GeminiProvider(model="gemini-2.5-pro", api_key="test-key")
        self.request = GenerationRequest(
            prompt="p",
            system_instruction="Return JSON.",
            output=OutputContract.JSON,
            response_schema=ATS_RESPONSE_SCHEMA,
        )

    async def _generate_with(self, request=None, **mock_kwargs):
        generate_content = AsyncMock(**mock_kwargs)
        with patch.object(self.provider._client.aio.models, "generate_content", generate_content):
            result = await self.provider.generate(request or self.request)
        return result, generate_content

    async def test_json_contract_sets_mime_type_and_schema(self):
        result, generate_content = await self._generate_with(return_value=SimpleNamespace(text='{"score": 1}'))
        self.assertEqual(result, '{"score": 1}')
        kwargs = generate_content.call_args.kwargs
        self.assertEqual(kwargs["model"], "gemini-2.5-pro")
        self.assertEqual(kwargs["contents"], "p")
        config = kwargs["config"]
        self.assertEqual(config.response_mime_type, "application/json")
        self.assertIsNotNone(config.response_schema)
        self.assertEqual(config.system_instruction, "Return JSON.")

    async def test_text_contract_leaves_mime_type_unset(self):
        request = GenerationRequest(prompt="p", system_instruction="Write prose.", output=OutputContract.FREE_TEXT)
        _, generate_content = await self._generate_with(request, return_value=SimpleNamespace(text="Dear team,"))
        config = generate_content.call_args.kwargs["config"]
        self.assertIsNone(config.response_mime_type)
        self.assertIsNone(config.response_schema)

    async def test_server_unavailable_is_overloaded(self):
        error = _gemini_error(errors.ServerError, 503, "UNAVAILABLE", "The model is overloaded.")
        with self.assertRaises(OverloadedError):
            await self._generate_with(side_effect=error)

    async def test_client_error_is_upstream_error(self):
        error = _gemini_error(errors.ClientError, 400, "INVALID_ARGUMENT", "Request contains an invalid argument.")
        with self.assertRaises(UpstreamError):
            await self._generate_with(side_effect=error)

    async def test_missing_text_is_empty_response(self):
        with self.assertRaises(EmptyResponseError):
            await self._generate_with(return_value=SimpleNamespace(text=None))


class GeminiOverloadClassificationTests(unittest.TestCase):
    def test_message_based_classification(self):
        self.assertTrue(is_overload_error(RuntimeError("503 UNAVAILABLE. The model is overloaded.")))
        self.assertFalse(is_overload_error(RuntimeError("400 INVALID_ARGUMENT. Bad request.")))

    def test_api_error_code_and_status_classification(self):
        self.assertTrue(is_overload_error(_gemini_error(errors.ServerError, 503, "UNAVAILABLE", "busy")))
        self.assertFalse(is_overload_error(_gemini_error(errors.ServerError, 500, "INTERNAL", "boom")))
        self.assertFalse(is_overload_error(_gemini_error(errors.ClientError, 429, "RESOURCE_EXHAUSTED", "quota")))


class FactoryTests(unittest.TestCase):
    def test_unknown_provider_is_rejected(self):
        with self.assertRaises(ValueError):
            get_generation_backend(AIConfig(provider="nope", model="x"))

    def test_config_defaults(self):
        with patch.dict("os.environ", {"AI_PROVIDER": "gemini"}, clear=False):
            cfg = load_ai_config()
        self.assertEqual(cfg.provider, "gemini")
        self.assertEqual(cfg.max_attempts, 3)
        self.assertEqual(cfg.retry_delay_s, 2.0)


if __name__ == "__main__":
    unittest.main()
