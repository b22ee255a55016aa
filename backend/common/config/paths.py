"""
Shared path resolution and .env loading.

``backend/.env`` is read first, then a ``.env`` at the repository root.
Variables already set in the process environment always win.
"""
from __future__ import annotations

from pathlib import Path

from dotenv import load_dotenv

__all__ = ["BASE_DIR", "PROJECT_ROOT", "ENV_FILES"]

BASE_DIR = Path(__file__).resolve().parents[2]
PROJECT_ROOT = BASE_DIR.parent
ENV_FILES = (BASE_DIR / ".env", PROJECT_ROOT / ".env")

for _env_file in ENV_FILES:
    load_dotenv(dotenv_path=_env_file)
