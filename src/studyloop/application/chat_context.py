"""
Ask-mode context assembly.

Bounds how much prior dialogue is fed forward as model context: keeps the
most recent turns, gives every message an equal share of the character
budget, and merges same-speaker neighbours so speakers alternate.
"""

import logging
from collections.abc import Sequence

from studyloop.application.utils.text import truncate_keep_tail
from studyloop.domain.constants import (
    DEFAULT_ASK_MAX_TOTAL_CHARS,
    DEFAULT_MAX_HISTORY_TURNS,
)
from studyloop.domain.models import ContextRow, Speaker, Turn

logger = logging.getLogger(__name__)


def build_ask_context_turns(
    rows: Sequence[ContextRow],
    latest_message: str,
    max_history_turns: int = DEFAULT_MAX_HISTORY_TURNS,
    max_total_chars: int = DEFAULT_ASK_MAX_TOTAL_CHARS,
) -> list[Turn]:
    """
    Build the budgeted turn list for an ask-mode request.

    Args:
        rows: Prior rows of the thread, oldest first
        latest_message: The learner's new message, appended as the final turn
        max_history_turns: Prior turn pairs to keep
        max_total_chars: Character budget shared equally by all kept messages

    Returns:
        Alternating turns, oldest first; empty if there is nothing to send
    """
    normalized = [
        Turn(speaker=_speaker_for(row.role), text=str(row.content or "").strip())
        for row in rows
    ]
    normalized = [turn for turn in normalized if turn.text]
    normalized.append(Turn(speaker="learner", text=latest_message))

    max_messages = max(0, max_history_turns) * 2 + 1
    recent = normalized[-max_messages:]
    recent = [turn for turn in recent if turn.text]
    if not recent:
        return []

    budget = max(1, max_total_chars // len(recent))
    truncated = [
        Turn(speaker=turn.speaker, text=truncate_keep_tail(turn.text, budget))
        for turn in recent
    ]

    if len(normalized) > len(recent):
        logger.debug(
            f"Ask context kept {len(recent)} of {len(normalized)} messages "
            f"({budget} chars each)"
        )

    merged: list[Turn] = []
    for turn in truncated:
        if merged and merged[-1].speaker == turn.speaker:
            merged[-1] = Turn(speaker=turn.speaker, text=f"{merged[-1].text}\n{turn.text}")
            continue
        merged.append(turn)

    return merged


def _speaker_for(role: str) -> Speaker:
    return "tutor" if role == "assistant" else "learner"
