import sys
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from shotlist.errors import MalformedResponseError  # noqa: E402
from shotlist.tools.json_utils import safe_json_loads  # noqa: E402


class SafeJsonLoadsTests(unittest.TestCase):
    def test_plain_object(self) -> None:
        self.assertEqual(safe_json_loads('{"scenes": []}'), {"scenes": []})

    def test_code_fences(self) -> None:
        text = '```json\n{"story_summary": "x", "scenes": []}\n```'
        self.assertEqual(safe_json_loads(text)["story_summary"], "x")

    def test_prose_around_object(self) -> None:
        text = 'Sure! Here is the script: {"scenes": [{"scene": 1}]} Hope it helps.'
        self.assertEqual(safe_json_loads(text)["scenes"], [{"scene": 1}])

    def test_repairs_missing_and_trailing_commas(self) -> None:
        self.assertEqual(safe_json_loads('{"a": 1 "b": 2}'), {"a": 1, "b": 2})
        self.assertEqual(safe_json_loads('{"a": [1, 2,], }'), {"a": [1, 2]})
        self.assertEqual(
            safe_json_loads('{"scenes": [{"scene": 1} {"scene": 2}]}'),
            {"scenes": [{"scene": 1}, {"scene": 2}]},
        )

    def test_python_literals(self) -> None:
        self.assertEqual(safe_json_loads('{"a": True, "b": NULL}'), {"a": True, "b": None})

    def test_garbage_raises(self) -> None:
        for text in ("", "   ", "I cannot help with that."):
            with self.assertRaises(MalformedResponseError):
                safe_json_loads(text)

    def test_non_object_raises(self) -> None:
        with self.assertRaises(MalformedResponseError):
            safe_json_loads("[1, 2, 3]")


if __name__ == "__main__":
    unittest.main()
