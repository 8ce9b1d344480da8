import sys
import unittest
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
for path in (PROJECT_ROOT, PROJECT_ROOT / "tests"):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from app.ai.client import GenerationClient  # noqa: E402
from app.ai.types import MalformedResultError, OutputContract, OverloadedError, UpstreamError  # noqa: E402
from app.services.analysis_service import AnalysisService  # noqa: E402
from app.services.optimization_service import OptimizationService  # noqa: E402
from support import JOB_DESCRIPTION, ScriptedBackend, VirtualClock, analysis_json  # noqa: E402

RESUME = "Jane Doe\n5 years of Python experience"


def _service(backend, clock=None):
    clock = clock or VirtualClock()
    client = GenerationClient(backend, sleep=clock.sleep)
    return OptimizationService(client, AnalysisService(client))


class OptimizationServiceTests(unittest.IsolatedAsyncioTestCase):
    async def test_steps_run_in_order_and_rescore_the_rewrite(self):
        backend = ScriptedBackend("  OPTIMIZED RESUME  ", "Dear Hiring Manager,", analysis_json(score=91))

        outcome = await _service(backend).optimize(RESUME, JOB_DESCRIPTION, "Acme", "Engineer")

        self.assertEqual(outcome.optimized_resume, "OPTIMIZED RESUME")
        self.assertEqual(outcome.cover_letter, "Dear Hiring Manager,")
        self.assertEqual(outcome.optimized_analysis.score, 91)

        resume_request, letter_request, analysis_request = backend.requests
        self.assertIs(resume_request.output, OutputContract.FREE_TEXT)
        self.assertIn("PROFESSIONAL SUMMARY", resume_request.system_instruction)
        self.assertIn("Company: Acme", resume_request.prompt)
        self.assertIn("Role: Engineer", resume_request.prompt)
        self.assertIn(RESUME, resume_request.prompt)

        self.assertIs(letter_request.output, OutputContract.FREE_TEXT)
        self.assertIn("cover letter", letter_request.system_instruction)
        self.assertIn(RESUME, letter_request.prompt)

        self.assertIs(analysis_request.output, OutputContract.JSON)
        self.assertIn("OPTIMIZED RESUME", analysis_request.prompt)
        self.assertNotIn(RESUME, analysis_request.prompt)

    async def test_cover_letter_failure_aborts_before_rescoring(self):
        backend = ScriptedBackend("OPTIMIZED RESUME", UpstreamError("quota"), analysis_json())

        with self.assertRaises(UpstreamError):
            await _service(backend).optimize(RESUME, JOB_DESCRIPTION, "Acme", "Engineer")
        self.assertEqual(backend.calls, 2)

    async def test_rescoring_failure_propagates(self):
        backend = ScriptedBackend("OPTIMIZED RESUME", "Letter", '{"score": "high"}')

        with self.assertRaises(MalformedResultError):
            await _service(backend).optimize(RESUME, JOB_DESCRIPTION, "Acme", "Engineer")

    async def test_overload_on_resume_step_is_retried(self):
        clock = VirtualClock()
        backend = ScriptedBackend(OverloadedError("503"), "OPTIMIZED RESUME", "Letter", analysis_json(score=80))

        outcome = await _service(backend, clock).optimize(RESUME, JOB_DESCRIPTION, "Acme", "Engineer")

        self.assertEqual(outcome.optimized_analysis.score, 80)
        self.assertEqual(backend.calls, 4)
        self.assertEqual(clock.sleeps, [2.0])


if __name__ == "__main__":
    unittest.main()
