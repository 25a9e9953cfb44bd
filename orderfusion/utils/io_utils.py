"""
File-system helpers for JSON payloads in UTF-8.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any


def read_json(path: str | Path) -> Any:
    """
    Read and parse a JSON file using UTF-8 encoding.

    Args:
      path: Source file path.

    Returns:
      The decoded JSON value (usually a dict or list).
    """
    with open(path, encoding="utf-8") as f:
        return json.load(f)
