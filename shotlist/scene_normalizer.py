# shotlist/scene_normalizer.py
from __future__ import annotations

import json
import math
import re
from typing import Any, Dict, Iterable, List, Optional

from shotlist.schemas import RawCharacter, RawScene, Scene

# Values the model uses to mean "nothing here" (Vietnamese + English).
NONE_SENTINELS = {"không có", "none", "n/a", "null", "", "unknown"}

DEFAULT_TIME_START = 0
DEFAULT_TIME_END = 5

_EDGE_PUNCT_RE = re.compile(r"^[,.\s]+|[,.\s]+$")
_LINE_BREAK_RE = re.compile(r"\r\n|\n|\r")
_WS_RE = re.compile(r"\s+")


def clean_attribute(text: Any) -> str:
    """Display cleanup: drop sentinel values, edge punctuation and line breaks."""
    if text is None:
        return ""
    t = str(text).strip()
    if t.lower() in NONE_SENTINELS:
        return ""
    t = _EDGE_PUNCT_RE.sub("", t)
    t = _LINE_BREAK_RE.sub(" ", t).strip()
    return "" if t.lower() in NONE_SENTINELS else t


def clean_for_json(text: Any) -> str:
    """Single-line invariant: every whitespace run becomes one space."""
    if text is None:
        return ""
    return _WS_RE.sub(" ", str(text)).strip()


def _seconds(v: Optional[float], default: int):
    if v is None or not math.isfinite(v):
        return default
    return int(v) if float(v).is_integer() else v


def _character_line(c: RawCharacter) -> str:
    name = clean_attribute(c.name)
    looks = ", ".join(x for x in (clean_attribute(c.appearance), clean_attribute(c.outfit)) if x)
    emotion = clean_attribute(c.emotion)
    action = clean_attribute(c.actions.body_movement)

    desc = name
    if looks:
        desc += f" [{looks}]"
    if emotion:
        desc += f" (Emotion: {emotion})"
    if action:
        desc += f" -> Action: {action}"
    return desc.strip()


def _pair(label: str, first: str, second_label: str, second: str) -> str:
    if not first and not second:
        return ""
    if first and second:
        return f"{label}: {first} | {second_label}{second}"
    if first:
        return f"{label}: {first}"
    return f"{label}: {second_label}{second}"


def describe_scene(raw: RawScene, number: int) -> str:
    """Human-readable, pipe-joined summary of one scene. Empty segments are left out."""
    start = _seconds(raw.time.start, DEFAULT_TIME_START)
    end = _seconds(raw.time.end, DEFAULT_TIME_END)
    head = f"Scene {number} (Duration: {start}s - {end}s)"

    continuity = clean_attribute(raw.continuity_reference)
    continuity_line = f"Continuity: {continuity}" if continuity else ""

    env = raw.environment
    sounds = ", ".join(s for s in (clean_attribute(x) for x in env.ambient_sound) if s)
    env_parts = []
    location = clean_attribute(env.location)
    weather = clean_attribute(env.weather)
    if location:
        env_parts.append(f"Location: {location}")
    if weather:
        env_parts.append(f"Weather: {weather}")
    if sounds:
        env_parts.append(f"Sound: {sounds}")
    env_line = " | ".join(env_parts)

    chars = "; ".join(d for d in (_character_line(c) for c in raw.characters) if d)
    char_line = f"Characters: {chars}" if chars else ""

    camera_line = _pair(
        "Camera", clean_attribute(raw.camera.shot_type), "", clean_attribute(raw.camera.movement)
    )
    style_line = _pair(
        "Visual", clean_attribute(raw.visual_style.style), "Light: ", clean_attribute(raw.visual_style.lighting)
    )

    line = clean_attribute(raw.dialogue.line)
    lang = clean_attribute(raw.dialogue.language)
    if line:
        dialogue_line = f'Dialogue ({lang}): "{line}"' if lang else f'Dialogue: "{line}"'
    else:
        dialogue_line = "Dialogue: none"

    segments = [head, continuity_line, env_line, char_line, camera_line, style_line, dialogue_line]
    return " | ".join(s for s in segments if s)


def canonical_prompt(raw: RawScene, number: int) -> Dict[str, Any]:
    return {
        "scene": number,
        "time": {
            "start": _seconds(raw.time.start, DEFAULT_TIME_START),
            "end": _seconds(raw.time.end, DEFAULT_TIME_END),
        },
        "continuity_reference": clean_for_json(raw.continuity_reference),
        "environment": {
            "location": clean_for_json(raw.environment.location),
            "weather": clean_for_json(raw.environment.weather),
            "ambient_sound": [clean_for_json(s) for s in raw.environment.ambient_sound],
        },
        "characters": [
            {
                "name": clean_for_json(c.name),
                "appearance": clean_for_json(c.appearance),
                "outfit": clean_for_json(c.outfit),
                "emotion": clean_for_json(c.emotion),
                "actions": {"body_movement": clean_for_json(c.actions.body_movement)},
            }
            for c in raw.characters
        ],
        "camera": {
            "shot_type": clean_for_json(raw.camera.shot_type),
            "movement": clean_for_json(raw.camera.movement),
        },
        "visual_style": {
            "style": clean_for_json(raw.visual_style.style),
            "lighting": clean_for_json(raw.visual_style.lighting),
        },
        "dialogue": {
            "line": clean_for_json(raw.dialogue.line),
            "language": clean_for_json(raw.dialogue.language),
        },
    }


def normalize_scene(raw: RawScene, position: int) -> Scene:
    """``position`` is the 1-based index inside the batch, used when the model omitted ``scene``."""
    number = raw.scene or position
    return Scene(
        scene_number=number,
        script_description=describe_scene(raw, number),
        video_prompt=json.dumps(canonical_prompt(raw, number), ensure_ascii=False, separators=(",", ":")),
        generation_prompt=clean_for_json(raw.generation_prompt),
    )


def normalize_scenes(items: Iterable[Any]) -> List[Scene]:
    out = []
    for idx, item in enumerate(items, start=1):
        raw = item if isinstance(item, RawScene) else RawScene.from_raw(item)
        out.append(normalize_scene(raw, idx))
    return out
