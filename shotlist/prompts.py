# shotlist/prompts.py
from __future__ import annotations

from typing import Optional

from shotlist.schemas import DialogueLanguage, Scene, VideoGenerationOptions

SCENE_JSON_SHAPE = """
    {{
      "scene": {scene_number},
      "time": {{ "start": 0, "end": 5 }},
      "continuity_reference": "...",
      "environment": {{ "location": "...", "weather": "...", "ambient_sound": ["..."] }},
      "characters": [
        {{ "name": "...", "appearance": "...", "outfit": "...", "emotion": "...", "actions": {{ "body_movement": "..." }} }}
      ],
      "camera": {{ "shot_type": "...", "movement": "..." }},
      "visual_style": {{ "style": "{style}", "lighting": "..." }},
      "dialogue": {{ "line": "...", "language": "..." }},
      "generation_prompt": "{language} prompt. Single line. End with '{style}, cinematic, 8k'"
    }}"""

FIRST_BATCH_TASK = """
TASK: Start the story based on the user's IDEA.
Generate scenes {start} to {end}.
Create a "story_summary" in {language}.
"""

CONTINUE_TASK = """
TASK: Continue the story seamlessly.
CONTEXT:
- Story Summary: {summary}
- Previous Scene End State: {previous}

Generate scenes {start} to {end}.
"""

BATCH_PROMPT_TEMPLATE = """
You are an elite Video Script & Prompt Engineer.
{task}
RULES:
1. QUANTITY: OUTPUT EXACTLY {count} SCENES in the "scenes" array.
2. LANGUAGE: All descriptive text MUST be in **{language_upper}**.
3. FORMAT: Strictly valid JSON.
4. NO LINE BREAKS IN 'generation_prompt'.

USER INPUT:
- Idea: {idea}
- Style: {style}
- Dialogue: {dialogue}{prompt_type_line}

REQUIRED JSON STRUCTURE:
{{
  "story_summary": "Summary in {language}",
  "scenes": [{scene_shape}
  ]
}}
"""

EXTEND_PROMPT_TEMPLATE = """
You are extending an existing video script.
STRICT REQUIREMENT: Generate exactly {count} NEW scenes.

PREVIOUS SCENE CONTEXT ({last_number}):
{last_description}

NEW IDEA TO EXTEND:
{idea}

RULES:
1. QUANTITY: OUTPUT EXACTLY {count} SCENES.
2. LANGUAGE: All descriptive text MUST be in **{language_upper}**.
3. CONTINUITY IS KING: Scene {start} MUST start exactly where Scene {last_number} ended.
4. FORMAT: JSON.
5. Dialogue: {dialogue}{prompt_type_line}

REQUIRED JSON STRUCTURE:
{{
  "scenes": [{scene_shape}
  ]
}}
"""


def _prompt_type_line(options: VideoGenerationOptions) -> str:
    pt = (options.prompt_type or "").strip()
    return f"\n- Prompt type: {pt}" if pt else ""


def _dialogue(options: VideoGenerationOptions) -> str:
    if options.dialogue_language is DialogueLanguage.NONE:
        return "No spoken dialogue (leave dialogue.line empty)"
    return options.dialogue_language.value


def continuity_note(scene_number: int, location: str, action: str) -> str:
    return f"Scene {scene_number} ended at {location}. Action: {action}"


def build_batch_prompt(
    options: VideoGenerationOptions,
    *,
    start: int,
    count: int,
    language: str,
    story_summary: Optional[str] = None,
    previous_context: Optional[str] = None,
) -> str:
    end = start + count - 1
    if start == 1:
        task = FIRST_BATCH_TASK.format(start=start, end=end, language=language)
    else:
        task = CONTINUE_TASK.format(
            summary=story_summary or "", previous=previous_context or "", start=start, end=end
        )

    return BATCH_PROMPT_TEMPLATE.format(
        task=task,
        count=count,
        language=language,
        language_upper=language.upper(),
        idea=options.idea,
        style=options.style,
        dialogue=_dialogue(options),
        prompt_type_line=_prompt_type_line(options),
        scene_shape=SCENE_JSON_SHAPE.format(scene_number="<number>", style=options.style, language=language),
    )


def build_extend_prompt(
    last_scene: Scene,
    idea: str,
    count: int,
    options: VideoGenerationOptions,
    *,
    language: str,
) -> str:
    start = last_scene.scene_number + 1
    return EXTEND_PROMPT_TEMPLATE.format(
        count=count,
        last_number=last_scene.scene_number,
        last_description=last_scene.script_description,
        idea=idea,
        start=start,
        language_upper=language.upper(),
        dialogue=_dialogue(options),
        prompt_type_line=_prompt_type_line(options),
        scene_shape=SCENE_JSON_SHAPE.format(scene_number=start, style=options.style, language=language),
    )
