#!/usr/bin/env python3
"""
Convert a TrueType/OpenType font into the JSON array format read by the renderer.

Each byte ``b`` is stored as ``2b + 1``.

Usage:
    python scripts/encode_font.py Inter-Regular.ttf app/assets/fonts/font-normal.json
"""

import argparse
import json
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.services.renderer import decode_font_json  # noqa: E402


def encode_font(data: bytes) -> list[int]:
    """Encode font bytes for storage as JSON."""
    return [2 * b + 1 for b in data]


def main() -> int:
    parser = argparse.ArgumentParser(description="Encode a font file as a JSON array")
    parser.add_argument("source", type=Path, help="Font file (.ttf/.otf)")
    parser.add_argument("target", type=Path, help="Output .json file")
    args = parser.parse_args()

    data = args.source.read_bytes()
    encoded = encode_font(data)
    if decode_font_json(encoded) != data:
        print("Error: encoded font does not decode to the original bytes")
        return 1

    args.target.parent.mkdir(parents=True, exist_ok=True)
    args.target.write_text(json.dumps(encoded), encoding="utf-8")
    print(f"Wrote {len(data)} bytes of font data to {args.target}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
