import sys
import unittest
from pathlib import Path
from typing import List

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from shotlist.errors import MalformedResponseError, RetryExhaustedError  # noqa: E402
from shotlist.retry_scheduler import (  # noqa: E402
    OVERLOADED,
    QUOTA,
    RetryScheduler,
    classify_error,
    compute_wait_s,
)


class FakeAPIError(Exception):
    """Shaped like google.genai.errors.APIError."""

    def __init__(self, code: int, status: str, message: str = ""):
        super().__init__(f"{code} {status}. {message}")
        self.code = code
        self.status = status
        self.details = {"error": {"code": code, "status": status, "message": message}}


class Flaky:
    def __init__(self, errors: List[BaseException], result="ok"):
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


class ClassifyTests(unittest.TestCase):
    def test_structured_codes(self) -> None:
        self.assertEqual(classify_error(FakeAPIError(429, "RESOURCE_EXHAUSTED")), QUOTA)
        self.assertEqual(classify_error(FakeAPIError(503, "UNAVAILABLE")), OVERLOADED)
        self.assertIsNone(classify_error(FakeAPIError(400, "INVALID_ARGUMENT", "bad request")))

    def test_substring_fallback_is_case_insensitive(self) -> None:
        self.assertEqual(classify_error(RuntimeError("You exceeded your current QUOTA")), QUOTA)
        self.assertEqual(classify_error(RuntimeError("resource_exhausted")), QUOTA)
        self.assertEqual(classify_error(RuntimeError("HTTP 429")), QUOTA)
        self.assertEqual(classify_error(RuntimeError("The model is Overloaded")), OVERLOADED)
        self.assertEqual(classify_error(RuntimeError("got 503 from upstream")), OVERLOADED)
        self.assertIsNone(classify_error(RuntimeError("invalid api key")))

    def test_fatal_errors_are_never_classified(self) -> None:
        self.assertIsNone(classify_error(MalformedResponseError("quota 429 in raw text")))

    def test_wait_table(self) -> None:
        quota = RuntimeError("quota exceeded")
        busy = RuntimeError("503 overloaded")
        self.assertEqual([compute_wait_s(quota, n) for n in (1, 2, 3)], [20, 40, 60])
        self.assertEqual([compute_wait_s(busy, n) for n in (1, 2, 3, 4)], [5, 10, 20, 40])
        self.assertEqual(compute_wait_s(RuntimeError("429 quota. Please retry in 12s."), 5), 15)
        self.assertEqual(compute_wait_s(RuntimeError("503 overloaded, Retry in 7.2s"), 1), 11)


class RetrySchedulerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.sleeps: List[float] = []
        self.messages: List[str] = []
        self.scheduler = RetryScheduler(sleep=self.sleeps.append)

    def test_success_returns_immediately(self) -> None:
        fn = Flaky([])
        self.assertEqual(self.scheduler.run(fn, progress=self.messages.append), "ok")
        self.assertEqual(fn.calls, 1)
        self.assertEqual(self.sleeps, [])
        self.assertEqual(self.messages, [])

    def test_advised_wait_adds_margin(self) -> None:
        fn = Flaky([RuntimeError("429 RESOURCE_EXHAUSTED: Please retry in 12s.")])
        self.assertEqual(self.scheduler.run(fn, progress=self.messages.append), "ok")
        self.assertEqual(self.sleeps, [15])
        self.assertEqual(fn.calls, 2)
        self.assertEqual(len(self.messages), 1)
        self.assertIn("15s", self.messages[0])

    def test_structured_error_retries(self) -> None:
        fn = Flaky([FakeAPIError(429, "RESOURCE_EXHAUSTED"), FakeAPIError(503, "UNAVAILABLE")])
        self.assertEqual(self.scheduler.run(fn), "ok")
        self.assertEqual(self.sleeps, [20, 10])

    def test_unclassified_error_propagates_without_waiting(self) -> None:
        fn = Flaky([ValueError("permission denied")])
        with self.assertRaises(ValueError):
            self.scheduler.run(fn, progress=self.messages.append)
        self.assertEqual(fn.calls, 1)
        self.assertEqual(self.sleeps, [])

    def test_fatal_error_is_not_retried(self) -> None:
        fn = Flaky([MalformedResponseError("AI response has no scenes; quota?")])
        with self.assertRaises(MalformedResponseError):
            self.scheduler.run(fn)
        self.assertEqual(fn.calls, 1)

    def test_gives_up_after_ten_attempts(self) -> None:
        fn = Flaky([RuntimeError("503 overloaded")] * 10)
        with self.assertRaises(RetryExhaustedError) as ctx:
            self.scheduler.run(fn, progress=self.messages.append)
        self.assertEqual(fn.calls, 10)
        self.assertEqual(ctx.exception.attempts, 10)
        self.assertEqual(self.sleeps, [5 * 2 ** i for i in range(9)])
        self.assertEqual(len(self.messages), 9)
        self.assertIsInstance(ctx.exception.__cause__, RuntimeError)

    def test_tenth_attempt_success_still_wins(self) -> None:
        fn = Flaky([RuntimeError("quota")] * 9, result="late")
        self.assertEqual(self.scheduler.run(fn), "late")
        self.assertEqual(self.sleeps, [20 * n for n in range(1, 10)])

    def test_progress_sink_is_optional(self) -> None:
        fn = Flaky([RuntimeError("quota")])
        self.assertEqual(self.scheduler.run(fn, progress=None), "ok")


if __name__ == "__main__":
    unittest.main()
