# shotlist/schemas.py
from __future__ import annotations

import logging
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    ValidationError,
    conint,
    constr,
    field_validator,
)

logger = logging.getLogger(__name__)

DEFAULT_PROMPT_COUNT = 5


class DialogueLanguage(str, Enum):
    VIETNAMESE = "Vietnamese"
    ENGLISH = "English"
    NONE = "No dialogue"


class VideoGenerationOptions(BaseModel):
    idea: constr(strip_whitespace=True, min_length=1)
    style: str = "Cinematic"
    prompt_count: conint(ge=1) = DEFAULT_PROMPT_COUNT
    dialogue_language: DialogueLanguage = DialogueLanguage.VIETNAMESE
    prompt_type: Optional[str] = None

    @field_validator("prompt_count", mode="before")
    @classmethod
    def _lenient_count(cls, v: Any) -> int:
        # form inputs arrive as text; anything unusable falls back to the default
        try:
            n = int(str(v).strip())
        except (TypeError, ValueError):
            return DEFAULT_PROMPT_COUNT
        return n if n > 0 else DEFAULT_PROMPT_COUNT


class Scene(BaseModel):
    scene_number: conint(ge=1)
    script_description: str
    # canonical JSON prompt, always a single line
    video_prompt: str
    generation_prompt: str = ""


class Script(BaseModel):
    story_summary: str = ""
    scenes: List[Scene] = Field(default_factory=list)


# ----------------------------
# Raw model output (tolerant)
# ----------------------------
def _as_text(v: Any) -> Optional[str]:
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, str):
        return v
    if isinstance(v, (int, float)):
        return str(v)
    if isinstance(v, list):
        parts = [_as_text(x) for x in v]
        return ", ".join(p for p in parts if p)
    return None


def _as_text_list(v: Any) -> List[str]:
    if v is None:
        return []
    if isinstance(v, list):
        out = [_as_text(x) for x in v]
        return [x for x in out if x is not None]
    t = _as_text(v)
    return [t] if t else []


def _as_dict(v: Any) -> Dict[str, Any]:
    return v if isinstance(v, dict) else {}


def _as_dict_list(v: Any) -> List[Dict[str, Any]]:
    if not isinstance(v, list):
        return []
    return [x for x in v if isinstance(x, dict)]


def _as_positive_int(v: Any) -> Optional[int]:
    if v is None or isinstance(v, bool):
        return None
    try:
        n = float(str(v).strip())
        if n != int(n) or n < 1:
            return None
    except (ValueError, OverflowError):
        return None
    return int(n)


def _as_seconds(v: Any) -> Optional[float]:
    if v is None or isinstance(v, bool):
        return None
    try:
        return float(str(v).strip().rstrip("sS"))
    except ValueError:
        return None


Text = Annotated[Optional[str], BeforeValidator(_as_text)]
TextList = Annotated[List[str], BeforeValidator(_as_text_list)]
Seconds = Annotated[Optional[float], BeforeValidator(_as_seconds)]


class _Raw(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class RawTime(_Raw):
    start: Seconds = None
    end: Seconds = None


class RawEnvironment(_Raw):
    location: Text = None
    weather: Text = None
    ambient_sound: TextList = Field(default_factory=list)


class RawActions(_Raw):
    body_movement: Text = None


class RawCharacter(_Raw):
    name: Text = None
    appearance: Text = None
    outfit: Text = None
    emotion: Text = None
    actions: Annotated[RawActions, BeforeValidator(_as_dict)] = Field(default_factory=RawActions)


class RawCamera(_Raw):
    shot_type: Text = None
    movement: Text = None


class RawVisualStyle(_Raw):
    style: Text = None
    lighting: Text = None


class RawDialogue(_Raw):
    line: Text = None
    language: Text = None


class RawScene(_Raw):
    """One scene item as the model returned it. Every field is optional."""

    scene: Annotated[Optional[int], BeforeValidator(_as_positive_int)] = None
    time: Annotated[RawTime, BeforeValidator(_as_dict)] = Field(default_factory=RawTime)
    continuity_reference: Text = None
    environment: Annotated[RawEnvironment, BeforeValidator(_as_dict)] = Field(default_factory=RawEnvironment)
    characters: Annotated[List[RawCharacter], BeforeValidator(_as_dict_list)] = Field(default_factory=list)
    camera: Annotated[RawCamera, BeforeValidator(_as_dict)] = Field(default_factory=RawCamera)
    visual_style: Annotated[RawVisualStyle, BeforeValidator(_as_dict)] = Field(default_factory=RawVisualStyle)
    dialogue: Annotated[RawDialogue, BeforeValidator(_as_dict)] = Field(default_factory=RawDialogue)
    generation_prompt: Text = Field(
        default=None,
        validation_alias=AliasChoices("generation_prompt", "wishk_prompt", "prompt"),
    )

    @classmethod
    def from_raw(cls, item: Any) -> "RawScene":
        if not isinstance(item, dict):
            return cls()
        try:
            return cls.model_validate(item)
        except ValidationError as e:
            logger.warning("Unusable scene item, using defaults: %s", e)
            return cls()

    @property
    def first_action(self) -> str:
        if not self.characters:
            return ""
        return self.characters[0].actions.body_movement or ""
