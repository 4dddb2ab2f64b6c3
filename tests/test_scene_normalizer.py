import json
import sys
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from shotlist.scene_normalizer import (  # noqa: E402
    clean_attribute,
    clean_for_json,
    normalize_scene,
    normalize_scenes,
)
from shotlist.schemas import RawScene  # noqa: E402


FULL_ITEM = {
    "scene": 4,
    "time": {"start": 0, "end": 8},
    "continuity_reference": "Follows the storm from scene 3.",
    "environment": {"location": "Bến cảng\nlúc bình minh", "weather": "none", "ambient_sound": ["gulls", "N/A", "waves"]},
    "characters": [
        {
            "name": "Lan",
            "appearance": "short hair",
            "outfit": "yellow raincoat",
            "emotion": "hopeful",
            "actions": {"body_movement": "walks to the pier."},
        },
        {"name": "Minh", "emotion": "unknown"},
    ],
    "camera": {"shot_type": "wide shot", "movement": "slow dolly in"},
    "visual_style": {"style": "Cinematic", "lighting": "golden hour"},
    "dialogue": {"line": "Đi thôi!", "language": "Vietnamese"},
    "wishk_prompt": "Lan walks\n  to the pier,   Cinematic, cinematic, 8k",
}


class CleanAttributeTests(unittest.TestCase):
    def test_sentinels_become_empty(self) -> None:
        for v in ("None", "  n/a ", "NULL", "Không có", "unknown", "", None, "None."):
            self.assertEqual(clean_attribute(v), "", repr(v))

    def test_strips_edge_punctuation_and_line_breaks(self) -> None:
        self.assertEqual(clean_attribute(" , Rainy night.\nCold. "), "Rainy night. Cold")
        self.assertEqual(clean_attribute("a\r\nb\rc"), "a b c")

    def test_numbers_are_text(self) -> None:
        self.assertEqual(clean_attribute(42), "42")


class CleanForJsonTests(unittest.TestCase):
    def test_single_line_invariant(self) -> None:
        samples = [
            "line one\nline two",
            "  lots\r\n\r\n of   \t space  ",
            "\n\n",
            "unicode\u2028separator\u00a0too",
        ]
        for s in samples:
            out = clean_for_json(s)
            self.assertNotIn("\n", out)
            self.assertNotIn("\r", out)
            self.assertNotIn("  ", out)
            self.assertEqual(out, out.strip())

    def test_none_is_empty(self) -> None:
        self.assertEqual(clean_for_json(None), "")


class NormalizeSceneTests(unittest.TestCase):
    def test_description_segments_in_order(self) -> None:
        scene = normalize_scene(RawScene.from_raw(FULL_ITEM), 1)
        self.assertEqual(scene.scene_number, 4)
        self.assertEqual(
            scene.script_description,
            "Scene 4 (Duration: 0s - 8s)"
            " | Continuity: Follows the storm from scene 3"
            " | Location: Bến cảng lúc bình minh | Sound: gulls, waves"
            " | Characters: Lan [short hair, yellow raincoat] (Emotion: hopeful) -> Action: walks to the pier; Minh"
            " | Camera: wide shot | slow dolly in"
            " | Visual: Cinematic | Light: golden hour"
            ' | Dialogue (Vietnamese): "Đi thôi!"',
        )

    def test_canonical_prompt_is_single_line_json(self) -> None:
        scene = normalize_scene(RawScene.from_raw(FULL_ITEM), 1)
        self.assertNotIn("\n", scene.video_prompt)
        data = json.loads(scene.video_prompt)
        self.assertEqual(data["scene"], 4)
        self.assertEqual(data["time"], {"start": 0, "end": 8})
        self.assertEqual(data["environment"]["location"], "Bến cảng lúc bình minh")
        self.assertEqual(data["environment"]["weather"], "none")
        self.assertEqual(data["characters"][0]["actions"]["body_movement"], "walks to the pier.")
        self.assertEqual(data["characters"][1]["outfit"], "")
        self.assertEqual(list(data), [
            "scene", "time", "continuity_reference", "environment",
            "characters", "camera", "visual_style", "dialogue",
        ])
        self.assertEqual(scene.generation_prompt, "Lan walks to the pier, Cinematic, cinematic, 8k")

    def test_empty_item_uses_defaults(self) -> None:
        scene = normalize_scene(RawScene.from_raw({}), 7)
        self.assertEqual(scene.scene_number, 7)
        self.assertEqual(scene.script_description, "Scene 7 (Duration: 0s - 5s) | Dialogue: none")
        data = json.loads(scene.video_prompt)
        self.assertEqual(data["time"], {"start": 0, "end": 5})
        self.assertEqual(data["characters"], [])
        self.assertEqual(scene.generation_prompt, "")

    def test_partial_camera_and_style(self) -> None:
        raw = RawScene.from_raw({"camera": {"movement": "pan left"}, "visual_style": {"lighting": "neon"}})
        desc = normalize_scene(raw, 1).script_description
        self.assertIn("Camera: pan left", desc)
        self.assertIn("Visual: Light: neon", desc)

    def test_wrong_types_fail_closed(self) -> None:
        item = {
            "scene": "not a number",
            "time": "0-5",
            "environment": "a beach",
            "characters": ["Lan", {"name": "Minh", "actions": "runs"}],
            "camera": None,
            "dialogue": {"line": ["Hello", "there"]},
        }
        scene = normalize_scene(RawScene.from_raw(item), 2)
        self.assertEqual(scene.scene_number, 2)
        data = json.loads(scene.video_prompt)
        self.assertEqual(data["time"], {"start": 0, "end": 5})
        self.assertEqual(data["environment"]["location"], "")
        self.assertEqual([c["name"] for c in data["characters"]], ["Minh"])
        self.assertEqual(data["dialogue"]["line"], "Hello, there")

    def test_string_ambient_sound_and_numeric_strings(self) -> None:
        raw = RawScene.from_raw({"scene": "3", "time": {"start": "2", "end": "6.5s"}, "environment": {"ambient_sound": "rain"}})
        self.assertEqual(raw.scene, 3)
        data = json.loads(normalize_scene(raw, 1).video_prompt)
        self.assertEqual(data["time"], {"start": 2, "end": 6.5})
        self.assertEqual(data["environment"]["ambient_sound"], ["rain"])

    def test_normalize_scenes_defaults_to_batch_position(self) -> None:
        scenes = normalize_scenes([{}, "garbage", {"scene": 9}])
        self.assertEqual([s.scene_number for s in scenes], [1, 2, 9])


if __name__ == "__main__":
    unittest.main()
