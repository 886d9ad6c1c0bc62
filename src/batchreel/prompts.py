"""Prompt list parsing.

A prompt file holds one prompt per line. Surrounding whitespace is trimmed
and blank lines are dropped; order and duplicates are kept.
"""

from __future__ import annotations

from pathlib import Path


def parse_prompts(text: str) -> list[str]:
    """Split newline-separated text into a list of prompts."""
    return [line.strip() for line in text.splitlines() if line.strip()]


def read_prompts_file(path: Path) -> list[str]:
    """Read and parse a prompt file (UTF-8)."""
    return parse_prompts(path.read_text(encoding="utf-8"))
