"""Minimal .env reader used before settings are loaded."""

from __future__ import annotations

import os
from pathlib import Path


def default_env_path() -> Path:
  """Return the .env path, preferring AURA_ENV_FILE over the repo root file."""
  explicit = (os.getenv("AURA_ENV_FILE") or "").strip()
  if explicit:
    return Path(explicit).expanduser()

  return Path(__file__).resolve().parents[2] / ".env"


def _strip_quotes(value: str) -> str:
  if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
    return value[1:-1]

  # Unquoted values may carry a trailing " # comment".
  marker = value.find(" #")
  if marker != -1:
    return value[:marker].rstrip()

  return value


def parse_env_lines(lines: list[str]) -> dict[str, str]:
  """Parse KEY=VALUE lines, skipping blanks, comments and malformed entries."""
  parsed: dict[str, str] = {}
  for raw_line in lines:
    line = raw_line.strip()
    if not line or line.startswith("#"):
      continue

    line = line.removeprefix("export ").lstrip()
    key, sep, value = line.partition("=")
    key = key.strip()
    if not sep or not key:
      continue

    parsed[key] = _strip_quotes(value.strip())

  return parsed


def load_env_file(path: Path, *, override: bool = False) -> list[str]:
  """Copy values from a .env file into os.environ and return the keys that were applied."""
  if not path.is_file():
    return []

  applied: list[str] = []
  for key, value in parse_env_lines(path.read_text(encoding="utf-8").splitlines()).items():
    if not override and key in os.environ:
      continue
    os.environ[key] = value
    applied.append(key)

  return applied
