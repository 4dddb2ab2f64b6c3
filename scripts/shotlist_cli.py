#!/usr/bin/env python3
"""
Command line front for the license gate and the script generator.

    python scripts/shotlist_cli.py activate SK-...
    python scripts/shotlist_cli.py generate --idea "..." --count 23 --out script.json
    python scripts/shotlist_cli.py extend script.json --idea "..." --count 5
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from shotlist.config import AppConfig, configure_logging  # noqa: E402
from shotlist.errors import ConfigError, ScriptGenerationError  # noqa: E402
from shotlist.license_guard import ExpirySweeper, LicenseGuard  # noqa: E402
from shotlist.orchestrator import ScriptOrchestrator  # noqa: E402
from shotlist.schemas import DialogueLanguage, Script, VideoGenerationOptions  # noqa: E402

logger = logging.getLogger("shotlist.cli")


def _progress(msg: str) -> None:
    print(f"  … {msg}", file=sys.stderr)


def _options(args: argparse.Namespace) -> VideoGenerationOptions:
    return VideoGenerationOptions(
        idea=args.idea,
        style=args.style,
        prompt_count=args.count,
        dialogue_language=DialogueLanguage(args.dialogue),
        prompt_type=args.prompt_type,
    )


def _write(path: str, payload: dict) -> None:
    text = json.dumps(payload, ensure_ascii=False, indent=2)
    if path == "-":
        print(text)
        return
    Path(path).write_text(text + "\n", encoding="utf-8")
    print(f"Saved: {path}", file=sys.stderr)


def _require_unlocked(guard: LicenseGuard) -> bool:
    state = guard.check_saved_key()
    if state.unlocked:
        return True
    print(state.error or "App is locked. Run `activate <KEY>` first.", file=sys.stderr)
    return False


def cmd_status(cfg: AppConfig, guard: LicenseGuard, args: argparse.Namespace) -> int:
    state = guard.check_saved_key()
    print(f"phase: {state.phase.value}")
    print(f"verified: {state.source.value}")
    if state.unlocked:
        print(f"remaining: {guard.remaining_label() or 'unknown'}")
    if state.error:
        print(f"error: {state.error}")
    return 0 if state.unlocked else 1


def cmd_activate(cfg: AppConfig, guard: LicenseGuard, args: argparse.Namespace) -> int:
    result = guard.submit_key(args.key)
    if not result.ok:
        print(result.message, file=sys.stderr)
        return 1
    print(f"Unlocked ({guard.state.source.value}). Remaining: {guard.remaining_label() or 'unknown'}")
    return 0


def cmd_logout(cfg: AppConfig, guard: LicenseGuard, args: argparse.Namespace) -> int:
    guard.logout()
    print("License key removed.")
    return 0


def cmd_generate(cfg: AppConfig, guard: LicenseGuard, args: argparse.Namespace) -> int:
    if not _require_unlocked(guard):
        return 1
    orch = ScriptOrchestrator.from_config(cfg, is_authorized=guard.still_authorized)
    with ExpirySweeper(guard, cfg.expiry_sweep_s):
        script = orch.generate(_options(args), _progress)
    _write(args.out, script.model_dump())
    return 0


def cmd_extend(cfg: AppConfig, guard: LicenseGuard, args: argparse.Namespace) -> int:
    if not _require_unlocked(guard):
        return 1
    script = Script.model_validate(json.loads(Path(args.script).read_text(encoding="utf-8")))
    if not script.scenes:
        print("Script has no scenes to extend.", file=sys.stderr)
        return 1
    orch = ScriptOrchestrator.from_config(cfg)
    new_scenes = orch.extend(script.scenes[-1], args.idea, args.count, _options(args), _progress)
    script.scenes.extend(new_scenes)
    _write(args.out or args.script, script.model_dump())
    return 0


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="shotlist", description="Licensed multi-scene video shot-list generator")
    ap.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING (default: $LOG_LEVEL or INFO)")
    sub = ap.add_subparsers(dest="command", required=True)

    sub.add_parser("status", help="Check the stored license key").set_defaults(func=cmd_status)

    p = sub.add_parser("activate", help="Verify and store a license key")
    p.add_argument("key")
    p.set_defaults(func=cmd_activate)

    sub.add_parser("logout", help="Forget the stored license key").set_defaults(func=cmd_logout)

    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument("--style", default="Cinematic")
        p.add_argument("--dialogue", default=DialogueLanguage.VIETNAMESE.value,
                       choices=[d.value for d in DialogueLanguage])
        p.add_argument("--prompt-type", default=None)

    p = sub.add_parser("generate", help="Generate a new script")
    p.add_argument("--idea", required=True)
    p.add_argument("--count", type=int, default=10)
    p.add_argument("--out", default="-", help="Output JSON path ('-' for stdout)")
    add_common(p)
    p.set_defaults(func=cmd_generate)

    p = sub.add_parser("extend", help="Append scenes to a saved script")
    p.add_argument("script", help="Script JSON written by `generate`")
    p.add_argument("--idea", required=True)
    p.add_argument("--count", type=int, default=5)
    p.add_argument("--out", default=None, help="Output path (default: overwrite input)")
    add_common(p)
    p.set_defaults(func=cmd_extend)
    return ap


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    try:
        cfg = AppConfig.from_env()
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2
    configure_logging(args.log_level or cfg.log_level)

    guard = LicenseGuard.from_config(cfg, on_notice=lambda msg: print(msg, file=sys.stderr))
    try:
        return args.func(cfg, guard, args)
    except (ConfigError, ScriptGenerationError) as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
