"""Prompt styles for metaforce confirmations.

Two palettes: red for prompts that remove something from the organization
(delete, cancel), amber for prompts that change it (deploy, rename).
"""

from __future__ import annotations

from prompt_toolkit.styles import Style

_MUTED = "ansibrightblack"


def _confirm_style(accent: str) -> Style:
    return Style.from_dict(
        {
            "qmark": accent,
            "question": "bold",
            "answer": accent,
            "instruction": _MUTED,
            "disabled": _MUTED,
            "error": "bold ansired",
        }
    )


QUESTIONARY_STYLE_DESTRUCTIVE = _confirm_style("bold ansibrightred")
QUESTIONARY_STYLE_CHANGE = _confirm_style("bold ansiyellow")
