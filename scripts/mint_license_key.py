#!/usr/bin/env python3
from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path

from dotenv import load_dotenv

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from shotlist.config import AppConfig  # noqa: E402
from shotlist.key_codec import KeyCodec  # noqa: E402

load_dotenv()

ap = argparse.ArgumentParser(description="Mint an offline-verifiable license key")
group = ap.add_mutually_exclusive_group(required=True)
group.add_argument("--days", type=float, help="Valid for this many days from now")
group.add_argument("--lifetime", action="store_true", help="Never expires")
ap.add_argument("--type", default="PRO", help="Type code embedded in the key")
args = ap.parse_args()

codec = KeyCodec(AppConfig.from_env(load_dotenv_file=False).license_secret)
expires_at = None if args.lifetime else int((time.time() + args.days * 86400) * 1000)
key = codec.mint(expires_at, args.type)

print(key)
print("Remaining:", codec.remaining_label(codec.parse(key)), file=sys.stderr)
