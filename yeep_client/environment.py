"""Host environment detection."""

from __future__ import annotations

import sys


def is_browser() -> bool:
    """Return True when running inside a browser (Pyodide/Emscripten)."""

    return sys.platform == "emscripten"
