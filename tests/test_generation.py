import os
import sys
import unittest
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
TESTS_DIR = Path(__file__).resolve().parent
for path in (PROJECT_ROOT, TESTS_DIR):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

os.environ.setdefault("RATE_LIMIT_ENABLED", "0")

from fakes import CV_TEXT, JD_TEXT, LETTER_TEXT, FakeAIClient, make_analysis  # noqa: E402

from cv_assistant.services.generation import (  # noqa: E402
    GENERATION_FAILED,
    INCOMPLETE_RESPONSE,
    INVALID_INPUT,
    GenerationError,
    GenerationGateway,
    clamp_score,
    normalize_plain_text,
    strip_code_fence,
)

ANALYSIS_PAYLOAD = {
    "match_percentage": 140,
    "score_breakdown": {"experience": -5, "education": 50.4, "skills": 101},
    "suggestions": {
        "keywords_to_add": ["PostgreSQL"],
        "skills_to_emphasize": ["asyncio"],
        "experience_to_detail": "Billing migration",
    },
}
EVALUATION_PAYLOAD = {
    "relevance_score": 250,
    "tone_analysis": "Confident and professional.",
    "keyword_usage": "Uses FastAPI but not PostgreSQL.",
    "clarity_and_conciseness": "Clear.",
    "ats_friendliness": "Plain text, easy to parse.",
    "overall_feedback": "Name PostgreSQL explicitly.",
}


def _user_prompt(client, index=-1):
    _, messages = client.calls[index]
    return messages[-1].content


class HelperTests(unittest.TestCase):
    def test_clamp_score(self):
        self.assertEqual(clamp_score(-3), 0)
        self.assertEqual(clamp_score(42.6), 43)
        self.assertEqual(clamp_score(180), 100)
        self.assertEqual(clamp_score(float("nan")), 0)
        self.assertEqual(clamp_score(float("inf")), 100)

    def test_strip_code_fence(self):
        self.assertEqual(strip_code_fence("```markdown\n# CV\n```"), "# CV")
        self.assertEqual(strip_code_fence("  # CV  "), "# CV")

    def test_normalize_plain_text(self):
        self.assertEqual(normalize_plain_text("Dear A,  \r\n\r\n\r\n\r\nBody\r\n"), "Dear A,\n\nBody")


class AnalyzeTests(unittest.IsolatedAsyncioTestCase):
    async def test_scores_are_clamped(self):
        client = FakeAIClient({"cv_analyzer": ANALYSIS_PAYLOAD})
        result = await GenerationGateway(client).analyze(CV_TEXT, JD_TEXT)
        self.assertEqual(result.match_percentage, 100)
        self.assertEqual(result.score_breakdown.experience, 0)
        self.assertEqual(result.score_breakdown.education, 50)
        self.assertEqual(result.score_breakdown.skills, 100)
        self.assertEqual(result.suggestions.keywords_to_add, ["PostgreSQL"])

    async def test_missing_breakdown_is_allowed(self):
        payload = {"match_percentage": 61, "suggestions": {"keywords_to_add": []}}
        result = await GenerationGateway(FakeAIClient({"cv_analyzer": payload})).analyze(CV_TEXT, JD_TEXT)
        self.assertEqual(result.match_percentage, 61)
        self.assertIsNone(result.score_breakdown)
        self.assertEqual(result.suggestions.skills_to_emphasize, [])

    async def test_missing_match_percentage_fails(self):
        client = FakeAIClient({"cv_analyzer": {"suggestions": {}}})
        with self.assertRaises(GenerationError) as ctx:
            await GenerationGateway(client).analyze(CV_TEXT, JD_TEXT)
        self.assertEqual(ctx.exception.code, GENERATION_FAILED)

    async def test_short_input_is_rejected_before_calling_provider(self):
        client = FakeAIClient({"cv_analyzer": ANALYSIS_PAYLOAD})
        with self.assertRaises(GenerationError) as ctx:
            await GenerationGateway(client).analyze("too short", JD_TEXT)
        self.assertEqual(ctx.exception.code, INVALID_INPUT)
        self.assertEqual(client.calls, [])

    async def test_provider_failure_is_wrapped(self):
        client = FakeAIClient(error=RuntimeError("upstream timed out"))
        with self.assertRaises(GenerationError) as ctx:
            await GenerationGateway(client).analyze(CV_TEXT, JD_TEXT)
        self.assertEqual(ctx.exception.code, GENERATION_FAILED)
        self.assertIn("upstream timed out", str(ctx.exception))

    async def test_repeated_calls_give_equal_results(self):
        gateway = GenerationGateway(FakeAIClient({"cv_analyzer": ANALYSIS_PAYLOAD}))
        first = await gateway.analyze(CV_TEXT, JD_TEXT)
        second = await gateway.analyze(CV_TEXT, JD_TEXT)
        self.assertEqual(first, second)


class CreateCvTests(unittest.IsolatedAsyncioTestCase):
    async def test_markdown_document_is_returned(self):
        client = FakeAIClient({"create_cv": {"generated_cv_markdown": "```markdown\n# Jane Doe\n\n## Skills\n```"}})
        document = await GenerationGateway(client).create_cv(CV_TEXT, JD_TEXT, make_analysis())
        self.assertEqual(document.kind, "cv")
        self.assertEqual(document.format, "markdown")
        self.assertEqual(document.content, "# Jane Doe\n\n## Skills")
        self.assertIn("ANALYSIS OF THE ORIGINAL CV", _user_prompt(client))

    async def test_analysis_section_is_omitted_without_analysis(self):
        client = FakeAIClient({"create_cv": {"generated_cv_markdown": "# Jane Doe"}})
        await GenerationGateway(client).create_cv(CV_TEXT, JD_TEXT)
        self.assertNotIn("ANALYSIS OF THE ORIGINAL CV", _user_prompt(client))

    async def test_empty_output_is_a_failure(self):
        client = FakeAIClient({"create_cv": {"generated_cv_markdown": "   "}})
        with self.assertRaises(GenerationError) as ctx:
            await GenerationGateway(client).create_cv(CV_TEXT, JD_TEXT)
        self.assertEqual(ctx.exception.code, GENERATION_FAILED)


class CreateCoverLetterTests(unittest.IsolatedAsyncioTestCase):
    async def test_fresh_letter_is_plain_text(self):
        client = FakeAIClient({"create_cover_letter": {"generated_cover_letter_text": LETTER_TEXT + "\r\n\r\n\r\n"}})
        document = await GenerationGateway(client).create_cover_letter(CV_TEXT, JD_TEXT, make_analysis())
        self.assertEqual(document.kind, "cover_letter")
        self.assertEqual(document.format, "plain_text")
        self.assertEqual(document.content, LETTER_TEXT)
        self.assertNotIn("PREVIOUS COVER LETTER", _user_prompt(client))

    async def test_revision_includes_prior_letter_and_feedback(self):
        client = FakeAIClient({"create_cover_letter": {"generated_cover_letter_text": LETTER_TEXT}})
        await GenerationGateway(client).create_cover_letter(
            CV_TEXT,
            JD_TEXT,
            make_analysis(),
            prior_letter="Old letter body",
            prior_feedback="Mention PostgreSQL",
        )
        prompt = _user_prompt(client)
        self.assertIn("Old letter body", prompt)
        self.assertIn("Mention PostgreSQL", prompt)

    async def test_feedback_without_prior_letter_is_ignored(self):
        client = FakeAIClient({"create_cover_letter": {"generated_cover_letter_text": LETTER_TEXT}})
        await GenerationGateway(client).create_cover_letter(CV_TEXT, JD_TEXT, prior_feedback="Mention PostgreSQL")
        self.assertNotIn("Mention PostgreSQL", _user_prompt(client))

    async def test_missing_field_is_empty_failure(self):
        client = FakeAIClient({"create_cover_letter": {"unexpected": "value"}})
        with self.assertRaises(GenerationError) as ctx:
            await GenerationGateway(client).create_cover_letter(CV_TEXT, JD_TEXT)
        self.assertEqual(ctx.exception.code, GENERATION_FAILED)


class EvaluateTests(unittest.IsolatedAsyncioTestCase):
    async def test_evaluation_is_clamped(self):
        client = FakeAIClient({"evaluate_cover_letter": EVALUATION_PAYLOAD})
        result = await GenerationGateway(client).evaluate_cover_letter(LETTER_TEXT, JD_TEXT)
        self.assertEqual(result.relevance_score, 100)
        self.assertEqual(result.overall_feedback, "Name PostgreSQL explicitly.")
        self.assertIn(LETTER_TEXT, _user_prompt(client))

    async def test_missing_feedback_is_incomplete(self):
        payload = dict(EVALUATION_PAYLOAD, overall_feedback="  ")
        client = FakeAIClient({"evaluate_cover_letter": payload})
        with self.assertRaises(GenerationError) as ctx:
            await GenerationGateway(client).evaluate_cover_letter(LETTER_TEXT, JD_TEXT)
        self.assertEqual(ctx.exception.code, INCOMPLETE_RESPONSE)

    async def test_missing_score_is_incomplete(self):
        payload = {key: value for key, value in EVALUATION_PAYLOAD.items() if key != "relevance_score"}
        client = FakeAIClient({"evaluate_cover_letter": payload})
        with self.assertRaises(GenerationError) as ctx:
            await GenerationGateway(client).evaluate_cover_letter(LETTER_TEXT, JD_TEXT)
        self.assertEqual(ctx.exception.code, INCOMPLETE_RESPONSE)


if __name__ == "__main__":
    unittest.main()
