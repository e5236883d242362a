# utils.py
from __future__ import annotations
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]


def resource_path(relative: str) -> str:
    """Absolute path for a repo-relative resource; honours a frozen bundle dir when present."""
    base = Path(getattr(sys, "_MEIPASS", ROOT))
    return str(base / relative)
