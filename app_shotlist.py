# app_shotlist.py
from __future__ import annotations

import json
import traceback

import streamlit as st

from shotlist.config import AppConfig, configure_logging
from shotlist.errors import ConfigError, ScriptGenerationError
from shotlist.license_guard import LicenseGuard, Phase
from shotlist.orchestrator import ScriptOrchestrator
from shotlist.schemas import DialogueLanguage, Script, VideoGenerationOptions
from shotlist.tools.genai_client import GeminiClient, validate_api_key
from shotlist.tools.progress import ProgressLog

st.set_page_config(page_title="Shotlist", layout="centered")


@st.cache_resource
def _config() -> AppConfig:
    cfg = AppConfig.from_env()
    configure_logging(cfg.log_level)
    return cfg


def _guard(cfg: AppConfig) -> LicenseGuard:
    if "guard" not in st.session_state:
        guard = LicenseGuard.from_config(cfg)
        with st.spinner("Checking license…"):
            guard.check_saved_key()
        st.session_state["guard"] = guard
    return st.session_state["guard"]


def _lock_screen(guard: LicenseGuard) -> None:
    st.markdown(
        """
        <div style="text-align:center; margin-bottom: 1.2rem;">
            <div style="font-size:32px; font-weight:800;">Activate the app</div>
            <div style="opacity:0.75; font-size:16px;">Enter your license key to start creating.</div>
        </div>
        """,
        unsafe_allow_html=True,
    )
    if guard.state.notice:
        st.warning(guard.state.notice)

    with st.form("unlock"):
        key_input = st.text_input("License key", placeholder="SK-XXXX-XXXX-XXXX", label_visibility="collapsed")
        submitted = st.form_submit_button("Unlock", type="primary", use_container_width=True)

    if submitted:
        with st.spinner("Verifying…"):
            result = guard.submit_key(key_input)
        if result.ok:
            st.rerun()
        elif result.message:
            st.error(result.message)
    elif guard.state.error:
        st.error(guard.state.error)


def _license_header(guard: LicenseGuard, sweep_s: float) -> None:
    @st.fragment(run_every=sweep_s)
    def header() -> None:
        if guard.sweep_expiry():
            st.rerun()
        left, right = st.columns([3, 1])
        left.caption(f"⏳ Remaining: **{guard.remaining_label() or 'unknown'}** ({guard.state.source.value})")
        if right.button("Change key", use_container_width=True):
            guard.logout()
            st.session_state.pop("script", None)
            st.rerun()

    header()


def _gemini(cfg: AppConfig):
    api_key = st.text_input("Google AI Studio API key", value=cfg.gemini_api_key, type="password")
    if not api_key:
        st.info("Enter a Gemini API key to generate scripts.")
        return None
    if st.session_state.get("checked_api_key") != api_key:
        if not validate_api_key(api_key, model=cfg.gemini_model):
            st.error("That API key was rejected by Google AI Studio.")
            return None
        st.session_state["checked_api_key"] = api_key
    return GeminiClient(api_key=api_key, model=cfg.gemini_model)


def _show_script(script: Script) -> None:
    st.subheader("Story summary")
    st.write(script.story_summary or "—")
    for scene in script.scenes:
        with st.expander(f"Scene {scene.scene_number}", expanded=False):
            st.write(scene.script_description)
            st.code(scene.video_prompt, language="json")
            if scene.generation_prompt:
                st.code(scene.generation_prompt, language="text")
    st.download_button(
        "⬇️ Download script JSON",
        data=json.dumps(script.model_dump(), ensure_ascii=False, indent=2),
        file_name="script.json",
        mime="application/json",
        use_container_width=True,
    )


def _run(label: str, fn):
    progress_box = st.empty()
    log_box = st.expander("Advanced (progress log)", expanded=False).empty()

    def on_progress(msg: str) -> None:
        progress_box.info(msg)
        log_box.code(log.tail(), language="text")

    log = ProgressLog(forward=on_progress)
    try:
        return fn(log)
    except ScriptGenerationError as e:
        progress_box.empty()
        st.error(f"{label} failed: {e}")
    except ConfigError as e:
        progress_box.empty()
        st.error(str(e))
    except Exception as e:
        progress_box.empty()
        st.error(f"{label} failed unexpectedly: {e}")
        st.code(traceback.format_exc(), language="text")
    return None


def main() -> None:
    try:
        cfg = _config()
    except ConfigError as e:
        st.error(f"App is not configured: {e}")
        st.stop()

    guard = _guard(cfg)
    if guard.state.phase is not Phase.UNLOCKED:
        _lock_screen(guard)
        st.stop()

    _license_header(guard, cfg.expiry_sweep_s)
    st.divider()

    client = _gemini(cfg)
    if client is None:
        st.stop()
    orch = ScriptOrchestrator.from_config(cfg, client=client, is_authorized=guard.still_authorized)

    with st.form("generate"):
        idea = st.text_area("Idea")
        style = st.text_input("Style", value="Cinematic")
        count = st.number_input("Number of scenes", min_value=1, max_value=500, value=10)
        dialogue = st.selectbox("Dialogue", [d.value for d in DialogueLanguage])
        prompt_type = st.text_input("Prompt type (optional)")
        generate = st.form_submit_button("🎬 Generate", type="primary", use_container_width=True)

    if generate:
        if not idea.strip():
            st.error("Please enter an idea.")
            st.stop()
        options = VideoGenerationOptions(
            idea=idea,
            style=style,
            prompt_count=int(count),
            dialogue_language=DialogueLanguage(dialogue),
            prompt_type=prompt_type or None,
        )
        script = _run("Generation", lambda log: orch.generate(options, log))
        if not guard.is_unlocked:
            # expired mid-run; the lock screen carries the notice
            st.rerun()
        if script is not None:
            st.session_state["script"] = script
            st.session_state["options"] = options

    script = st.session_state.get("script")
    if script is None:
        return

    _show_script(script)

    st.divider()
    with st.form("extend"):
        ext_idea = st.text_area("Continue the story with…")
        ext_count = st.number_input("New scenes", min_value=1, max_value=50, value=5)
        extend = st.form_submit_button("➕ Extend", use_container_width=True)

    if extend and ext_idea.strip() and script.scenes:
        options = st.session_state["options"]
        new_scenes = _run(
            "Extension",
            lambda log: orch.extend(script.scenes[-1], ext_idea, int(ext_count), options, log),
        )
        if new_scenes:
            script.scenes.extend(new_scenes)
            st.rerun()


main()
