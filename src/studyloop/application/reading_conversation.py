"""
Reading conversation builder.

Merges three learning-history sources into one time-ordered virtual
transcript used as generation context:

1. Ask-mode dialogue: one single-turn event per message
2. Translate-mode threads: one (request, translation) event per pair
3. Unmastered flashcards: one (translate prompt, answer) event per card

The merged list is trimmed oldest-event-first until it fits the character
budget, so an event's turns are always kept or dropped together.
"""

import logging
from collections import Counter
from collections.abc import Sequence
from datetime import datetime

from studyloop.application.queue_builder import latest_reviews
from studyloop.application.utils.text import dedupe
from studyloop.application.utils.time import ensure_utc
from studyloop.domain.constants import (
    DEFAULT_READING_MAX_CHARS,
    MASTERED_QUALITY,
    TRANSLATE_PROMPT_PREFIX,
)
from studyloop.domain.models import (
    Card,
    ChatMessage,
    ConversationEvent,
    EventKind,
    ReadingConversation,
    ReadingConversationStats,
    ReviewRecord,
    Turn,
)

logger = logging.getLogger(__name__)

# Secondary sort key for events sharing a timestamp
_KIND_ORDER: dict[EventKind, int] = {
    "dialogue": 0,
    "translation_pair": 1,
    "flashcard_pair": 2,
}


def build_reading_conversation(
    chat_messages: Sequence[ChatMessage],
    flashcards: Sequence[Card],
    flashcard_reviews: Sequence[ReviewRecord],
    max_chars: int = DEFAULT_READING_MAX_CHARS,
) -> ReadingConversation:
    """
    Build the budgeted reading conversation for one learner.

    Events are ordered by timestamp; events sharing a timestamp keep the
    order dialogue, translation pair, flashcard pair, then encounter order.

    Args:
        chat_messages: The learner's stored chat rows, any mode
        flashcards: The learner's cards
        flashcard_reviews: The learner's review log
        max_chars: Character budget over all kept turns

    Returns:
        ReadingConversation with the surviving turns, the targets they carry,
        and merge statistics
    """
    events = [
        *build_dialogue_events(chat_messages),
        *build_translation_events(chat_messages),
        *build_flashcard_events(flashcards, flashcard_reviews),
    ]
    events.sort(key=lambda event: (event.timestamp, _KIND_ORDER[event.kind]))

    budget = max(0, max_chars)
    context_chars = sum(event.char_count for event in events)
    start = 0
    while context_chars > budget and start < len(events):
        context_chars -= events[start].char_count
        start += 1

    kept = events[start:]
    if start:
        logger.debug(
            f"Reading conversation trimmed {start} oldest events to fit {budget} chars"
        )

    kinds = Counter(event.kind for event in kept)
    used_review_targets = dedupe(
        event.review_target
        for event in kept
        if event.kind == "flashcard_pair" and event.review_target
    )
    used_new_targets = dedupe(
        event.new_target
        for event in kept
        if event.kind == "translation_pair" and event.new_target
    )

    return ReadingConversation(
        turns=[turn for event in kept for turn in event.turns],
        used_review_targets=used_review_targets,
        used_new_targets=used_new_targets,
        stats=ReadingConversationStats(
            dialogue_count=kinds["dialogue"],
            translation_pair_count=kinds["translation_pair"],
            flashcard_pair_count=kinds["flashcard_pair"],
            trimmed_count=start,
            context_chars=context_chars,
            total_events=len(kept),
        ),
    )


def build_dialogue_events(chat_messages: Sequence[ChatMessage]) -> list[ConversationEvent]:
    """One single-turn event per non-empty ask-mode user/assistant message."""
    rows = sorted(
        (row for row in chat_messages if row.mode == "ask"),
        key=lambda row: ensure_utc(row.created_at),
    )

    events: list[ConversationEvent] = []
    for row in rows:
        text = (row.content or "").strip()
        if not text or row.role not in ("user", "assistant"):
            continue
        speaker = "tutor" if row.role == "assistant" else "learner"
        events.append(_to_event("dialogue", row.created_at, [Turn(speaker, text)]))
    return events


def build_translation_events(
    chat_messages: Sequence[ChatMessage],
) -> list[ConversationEvent]:
    """
    Pair translate-mode requests with their replies, per thread.

    Only an adjacent (user, assistant) pair forms an event; an unanswered
    request or a stray reply is skipped. The request text becomes the
    event's new target.
    """
    by_thread: dict[str, list[ChatMessage]] = {}
    for row in chat_messages:
        if row.mode != "translate" or not row.thread_id:
            continue
        if not (row.content or "").strip():
            continue
        if row.role not in ("user", "assistant"):
            continue
        by_thread.setdefault(row.thread_id, []).append(row)

    events: list[ConversationEvent] = []
    for rows in by_thread.values():
        rows = sorted(rows, key=lambda row: ensure_utc(row.created_at))
        i = 0
        while i < len(rows) - 1:
            request, reply = rows[i], rows[i + 1]
            if request.role != "user" or reply.role != "assistant":
                i += 1
                continue

            source = request.content.strip()
            translation = reply.content.strip()
            turns = [
                Turn("learner", f"{TRANSLATE_PROMPT_PREFIX}\n{source}"),
                Turn("tutor", translation),
            ]
            event = _to_event("translation_pair", reply.created_at, turns)
            event.new_target = source
            events.append(event)
            i += 2

    return events


def build_flashcard_events(
    flashcards: Sequence[Card],
    flashcard_reviews: Sequence[ReviewRecord],
) -> list[ConversationEvent]:
    """
    One (translate prompt, answer) event per unmastered card.

    A card is unmastered when it has never been graded or its latest grade is
    below 3. The event is timed at the latest grade, or at card creation.
    """
    latest_by_card = latest_reviews(flashcard_reviews)

    events: list[ConversationEvent] = []
    for card in flashcards:
        front = (card.front or "").strip()
        back = (card.back or "").strip()
        if not front or not back:
            continue

        latest = latest_by_card.get(card.id)
        if latest is not None and latest.quality >= MASTERED_QUALITY:
            continue

        turns = [
            Turn("learner", f"{TRANSLATE_PROMPT_PREFIX}\n{back}"),
            Turn("tutor", front),
        ]
        timestamp = latest.reviewed_at if latest is not None else card.created_at
        event = _to_event("flashcard_pair", timestamp, turns)
        event.review_target = front
        events.append(event)

    return events


def _to_event(kind: EventKind, timestamp: datetime, turns: list[Turn]) -> ConversationEvent:
    return ConversationEvent(
        kind=kind,
        timestamp=ensure_utc(timestamp),
        turns=turns,
        char_count=sum(len(turn.text) for turn in turns),
    )
