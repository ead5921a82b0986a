"""
Domain models for learning scheduling.

These are pure data structures with no I/O or external dependencies.
All timestamps are timezone-aware UTC datetimes.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

Speaker = Literal["learner", "tutor"]
ChatRole = Literal["user", "assistant", "system"]
ChatMode = Literal["ask", "translate", "add_flashcard"]
EventKind = Literal["dialogue", "translation_pair", "flashcard_pair"]


@dataclass(frozen=True)
class Card:
    """
    A flashcard owned by a single learner.

    Attributes:
        id: Card identifier.
        front: The phrase being learned (English).
        back: Its gloss in the learner's language.
        created_at: When the card was added.
    """

    id: str
    front: str
    back: str
    created_at: datetime


@dataclass(frozen=True)
class ReviewRecord:
    """
    A single grading event from the append-only review log.

    Attributes:
        card_id: The card that was graded.
        quality: SM-2 grade (0-5).
        repetition: Consecutive successful recalls after this review.
        interval_days: Interval assigned by this review (>= 1).
        ease_factor: Ease after this review (>= 1.3).
        reviewed_at: When the grade was given.
        next_review_at: When the card becomes due again.
    """

    card_id: str
    quality: int
    repetition: int
    interval_days: int
    ease_factor: float
    reviewed_at: datetime
    next_review_at: datetime


@dataclass(frozen=True)
class QueueItem:
    """A card in the review queue. Derived, never persisted."""

    card_id: str
    front: str
    back: str
    next_review_at: datetime | None
    is_due: bool


@dataclass
class ReviewQueue:
    """Result of queue building."""

    queue: list[QueueItem]
    total: int  # Length of the truncated queue
    next_due_at: datetime | None  # First card to come due after this queue


@dataclass(frozen=True)
class Turn:
    speaker: Speaker
    text: str


@dataclass(frozen=True)
class ContextRow:
    """A stored Q&A row fed to the ask-context assembler."""

    role: str
    content: str


@dataclass(frozen=True)
class ChatMessage:
    """
    A stored chat row.

    Attributes:
        mode: Chat mode the message was sent in.
        role: Author of the message.
        content: Raw message text.
        created_at: When the message was stored.
        thread_id: Conversation thread, if any.
    """

    mode: ChatMode
    role: ChatRole
    content: str
    created_at: datetime
    thread_id: str | None = None


@dataclass
class ConversationEvent:
    """One merge unit of the reading conversation. Never persisted."""

    kind: EventKind
    timestamp: datetime
    turns: list[Turn]
    char_count: int
    review_target: str | None = None
    new_target: str | None = None


@dataclass(frozen=True)
class ReadingConversationStats:
    dialogue_count: int = 0
    translation_pair_count: int = 0
    flashcard_pair_count: int = 0
    trimmed_count: int = 0
    context_chars: int = 0
    total_events: int = 0


@dataclass
class ReadingConversation:
    turns: list[Turn]
    used_review_targets: list[str]
    used_new_targets: list[str]
    stats: ReadingConversationStats = field(default_factory=ReadingConversationStats)


@dataclass(frozen=True)
class FlashcardStat:
    """
    Per-card learning statistics used to build a profile.

    Attributes:
        text: The card's front text.
        next_review_at: Next review time from the latest review, if any.
        wrong_rate_7d: Share of wrong answers over the last 7 days (0.0-1.0).
        created_at: When the card was added.
    """

    text: str
    next_review_at: datetime | None
    wrong_rate_7d: float
    created_at: datetime


@dataclass(frozen=True)
class ChatSignal:
    """A weighted grammar signal extracted from chat history."""

    key: str
    weight: float
    created_at: datetime | None = None


@dataclass(frozen=True)
class LearningProfile:
    review_targets: tuple[str, ...] = ()
    grammar_targets: tuple[str, ...] = ()
    new_candidates: tuple[str, ...] = ()


@dataclass(frozen=True)
class TargetSelection:
    review: tuple[str, ...]
    fresh: tuple[str, ...]


@dataclass(frozen=True)
class PassageEvaluation:
    coverage: float
    similarity: float
    accepted: bool
