#!/usr/bin/env python3
from __future__ import annotations

from pathlib import Path
import sys

# Import project modules
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "src"))

from forkcast.cli import main  # noqa: E402


if __name__ == "__main__":
    raise SystemExit(main())
