from __future__ import annotations

import sys
from pathlib import Path

from mangum import Mangum


ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.append(str(SRC))

from forkcast_api.main import create_app  # noqa: E402


app = create_app()


class handler(Mangum):
    def __init__(self):
        super().__init__(app, lifespan="off")
