# shotlist/orchestrator.py
"""
Batched script generation.

The target scene count is split into fixed-size batches (one model request
each). Batch 1 starts the story and returns the story summary; every later
batch gets that summary plus a one-line note on where the previous batch
ended. Scene numbers are always reassigned locally, whatever the model says.
"""
from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

from shotlist.config import AppConfig
from shotlist.errors import (
    BatchFailedError,
    ExtensionFailedError,
    GenerationCancelled,
    MalformedResponseError,
)
from shotlist.prompts import build_batch_prompt, build_extend_prompt, continuity_note
from shotlist.retry_scheduler import RetryScheduler
from shotlist.scene_normalizer import clean_attribute, normalize_scenes
from shotlist.schemas import RawScene, Scene, Script, VideoGenerationOptions
from shotlist.tools.genai_client import GeminiClient
from shotlist.tools.json_utils import safe_json_loads
from shotlist.tools.progress import ProgressSink, emit

logger = logging.getLogger(__name__)

BATCH_SIZE = 10
BATCH_COOLDOWN_S = 6.0


class TextGenerator(Protocol):
    def generate_json_text(self, prompt: str) -> str: ...


@dataclass
class BatchContext:
    story_summary: str = ""
    previous_context: str = ""
    next_start_index: int = 1


def _parse_reply(text: str) -> Tuple[List[Any], str]:
    payload: Dict[str, Any] = safe_json_loads(text)
    scenes = payload.get("scenes")
    if not isinstance(scenes, list):
        raise MalformedResponseError('AI response has no "scenes" list.')
    summary = payload.get("story_summary")
    return scenes, summary if isinstance(summary, str) else ""


def _renumber(items: List[Any], start: int, count: int) -> List[RawScene]:
    if len(items) < count:
        raise MalformedResponseError(f"AI returned {len(items)} of the {count} requested scenes.")
    out = []
    for offset, item in enumerate(items[:count]):
        raw = RawScene.from_raw(item)
        out.append(raw.model_copy(update={"scene": start + offset}))
    return out


class ScriptOrchestrator:
    def __init__(
        self,
        client: TextGenerator,
        *,
        scheduler: Optional[RetryScheduler] = None,
        batch_size: int = BATCH_SIZE,
        cooldown_s: float = BATCH_COOLDOWN_S,
        language: str = "Vietnamese",
        sleep: Callable[[float], None] = time.sleep,
        is_authorized: Optional[Callable[[], bool]] = None,
    ):
        self.client = client
        self.scheduler = scheduler or RetryScheduler(sleep=sleep)
        self.batch_size = batch_size
        self.cooldown_s = cooldown_s
        self.language = language
        self.sleep = sleep
        self.is_authorized = is_authorized

    @classmethod
    def from_config(
        cls,
        cfg: AppConfig,
        *,
        client: Optional[TextGenerator] = None,
        is_authorized: Optional[Callable[[], bool]] = None,
    ) -> "ScriptOrchestrator":
        return cls(
            client or GeminiClient.from_config(cfg),
            scheduler=RetryScheduler(max_attempts=cfg.max_attempts),
            batch_size=cfg.batch_size,
            cooldown_s=cfg.batch_cooldown_s,
            language=cfg.script_language,
            is_authorized=is_authorized,
        )

    def _request(self, prompt: str) -> Tuple[List[Any], str]:
        return _parse_reply(self.client.generate_json_text(prompt))

    def generate(self, options: VideoGenerationOptions, progress: Optional[ProgressSink] = None) -> Script:
        target = options.prompt_count
        total_batches = math.ceil(target / self.batch_size)
        ctx = BatchContext()
        scenes: List[Scene] = []

        for batch in range(1, total_batches + 1):
            start = ctx.next_start_index
            count = min(self.batch_size, target - len(scenes))
            end = start + count - 1

            if self.is_authorized is not None and not self.is_authorized():
                raise GenerationCancelled(batch, total_batches)

            emit(progress, f"Processing part {batch}/{total_batches} (scenes {start} - {end})...")
            logger.info("Batch %d/%d: scenes %d-%d", batch, total_batches, start, end)

            prompt = build_batch_prompt(
                options,
                start=start,
                count=count,
                language=self.language,
                story_summary=ctx.story_summary,
                previous_context=ctx.previous_context,
            )
            try:
                items, summary = self.scheduler.run(lambda: self._request(prompt), progress=progress)
                raws = _renumber(items, start, count)
            except Exception as e:
                logger.error("Batch %d/%d failed: %s", batch, total_batches, e)
                raise BatchFailedError(batch, total_batches, e) from e

            if batch == 1:
                ctx.story_summary = summary

            scenes.extend(normalize_scenes(raws))
            logger.info("Batch %d/%d done (%d/%d scenes)", batch, total_batches, len(scenes), target)

            last = raws[-1]
            ctx.previous_context = continuity_note(
                last.scene, clean_attribute(last.environment.location), clean_attribute(last.first_action)
            )
            ctx.next_start_index = end + 1

            if batch < total_batches:
                emit(progress, f"Pausing {self.cooldown_s:g}s to protect the Google account...")
                self.sleep(self.cooldown_s)

        return Script(story_summary=ctx.story_summary, scenes=scenes)

    def extend(
        self,
        last_scene: Scene,
        extension_idea: str,
        count: int,
        options: VideoGenerationOptions,
        progress: Optional[ProgressSink] = None,
    ) -> List[Scene]:
        if count < 1:
            raise ExtensionFailedError("Extension failed: scene count must be at least 1.")
        start = last_scene.scene_number + 1
        prompt = build_extend_prompt(last_scene, extension_idea, count, options, language=self.language)

        emit(progress, f"Extending script with scenes {start} - {start + count - 1}...")
        try:
            items, _ = self.scheduler.run(lambda: self._request(prompt), progress=progress)
            raws = _renumber(items, start, count)
        except Exception as e:
            raise ExtensionFailedError(f"Extension failed: {e}") from e

        return normalize_scenes(raws)


# ----------------------------
# Core-facing API
# ----------------------------
def generate_script(
    options: VideoGenerationOptions,
    progress: Optional[ProgressSink] = None,
    *,
    cfg: Optional[AppConfig] = None,
    client: Optional[TextGenerator] = None,
    is_authorized: Optional[Callable[[], bool]] = None,
) -> Script:
    orch = ScriptOrchestrator.from_config(cfg or AppConfig.from_env(), client=client, is_authorized=is_authorized)
    return orch.generate(options, progress)


def extend_script(
    last_scene: Scene,
    idea: str,
    count: int,
    options: VideoGenerationOptions,
    *,
    cfg: Optional[AppConfig] = None,
    client: Optional[TextGenerator] = None,
) -> List[Scene]:
    orch = ScriptOrchestrator.from_config(cfg or AppConfig.from_env(), client=client)
    return orch.extend(last_scene, idea, count, options)
