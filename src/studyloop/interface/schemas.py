"""
Boundary schemas.

Rows arrive from the host datastore as loosely shaped mappings (camelCase or
snake_case keys, legacy `en`/`ja` column names). These pydantic models
validate them once and convert them into the core's frozen records, so
nothing past this module handles an untyped bag of fields.

Timestamps are parsed leniently: missing or unparseable values become the
Unix epoch. Wrongly typed numbers (e.g. a non-numeric quality) still raise
pydantic.ValidationError.
"""

from datetime import datetime
from pathlib import Path
from typing import Annotated, Any, Literal

import yaml
from pydantic import AliasChoices, BaseModel, BeforeValidator, ConfigDict, Field, TypeAdapter

from studyloop.application.utils.time import (
    EPOCH,
    parse_optional_timestamp,
    parse_timestamp,
)
from studyloop.domain.constants import DEFAULT_EASE_FACTOR, FIRST_INTERVAL_DAYS
from studyloop.domain.models import (
    Card,
    ChatMessage,
    ChatSignal,
    ContextRow,
    FlashcardStat,
    ReviewRecord,
)


def _as_text(value: Any) -> str:
    return "" if value is None else str(value)


Text = Annotated[str, BeforeValidator(_as_text)]
OptionalText = Annotated[str | None, BeforeValidator(lambda v: None if v is None else str(v))]
Timestamp = Annotated[datetime, BeforeValidator(parse_timestamp)]
OptionalTimestamp = Annotated[datetime | None, BeforeValidator(parse_optional_timestamp)]


def _alias(*names: str) -> AliasChoices:
    return AliasChoices(*names)


class _Row(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class CardRow(_Row):
    id: Text
    front: Text = Field(default="", validation_alias=_alias("front", "en"))
    back: Text = Field(default="", validation_alias=_alias("back", "ja"))
    created_at: Timestamp = Field(default=EPOCH, validation_alias=_alias("created_at", "createdAt"))

    def to_domain(self) -> Card:
        return Card(id=self.id, front=self.front, back=self.back, created_at=self.created_at)


class ReviewRow(_Row):
    card_id: Text = Field(
        validation_alias=_alias("card_id", "cardId", "flashcard_id", "flashcardId")
    )
    quality: int = 0
    repetition: int = 0
    interval_days: int = Field(
        default=FIRST_INTERVAL_DAYS, validation_alias=_alias("interval_days", "intervalDays")
    )
    ease_factor: float = Field(
        default=DEFAULT_EASE_FACTOR, validation_alias=_alias("ease_factor", "easeFactor")
    )
    reviewed_at: Timestamp = Field(
        default=EPOCH, validation_alias=_alias("reviewed_at", "reviewedAt")
    )
    next_review_at: Timestamp = Field(
        default=EPOCH, validation_alias=_alias("next_review_at", "nextReviewAt")
    )

    def to_domain(self) -> ReviewRecord:
        return ReviewRecord(
            card_id=self.card_id,
            quality=self.quality,
            repetition=self.repetition,
            interval_days=self.interval_days,
            ease_factor=self.ease_factor,
            reviewed_at=self.reviewed_at,
            next_review_at=self.next_review_at,
        )


class ChatMessageRow(_Row):
    mode: Literal["ask", "translate", "add_flashcard"]
    role: Literal["user", "assistant", "system"]
    content: Text = ""
    created_at: Timestamp = Field(default=EPOCH, validation_alias=_alias("created_at", "createdAt"))
    thread_id: OptionalText = Field(default=None, validation_alias=_alias("thread_id", "threadId"))

    def to_domain(self) -> ChatMessage:
        return ChatMessage(
            mode=self.mode,
            role=self.role,
            content=self.content,
            created_at=self.created_at,
            thread_id=self.thread_id,
        )


class ContextRowSchema(_Row):
    role: Text = "user"
    content: Text = ""

    def to_domain(self) -> ContextRow:
        return ContextRow(role=self.role, content=self.content)


class FlashcardStatRow(_Row):
    text: Text = Field(default="", validation_alias=_alias("text", "en"))
    next_review_at: OptionalTimestamp = Field(
        default=None, validation_alias=_alias("next_review_at", "nextReviewAt")
    )
    wrong_rate_7d: float = Field(default=0.0, validation_alias=_alias("wrong_rate_7d", "wrongRate7d"))
    created_at: Timestamp = Field(default=EPOCH, validation_alias=_alias("created_at", "createdAt"))

    def to_domain(self) -> FlashcardStat:
        return FlashcardStat(
            text=self.text,
            next_review_at=self.next_review_at,
            wrong_rate_7d=self.wrong_rate_7d,
            created_at=self.created_at,
        )


class SignalRow(_Row):
    key: Text = Field(validation_alias=_alias("key", "signal_key", "signalKey"))
    weight: float = 0.0
    created_at: OptionalTimestamp = Field(
        default=None, validation_alias=_alias("created_at", "createdAt")
    )

    def to_domain(self) -> ChatSignal:
        return ChatSignal(key=self.key, weight=self.weight, created_at=self.created_at)


class Snapshot(_Row):
    """
    Everything the CLI needs for one learner, as exported from the datastore.

    All sections are optional; commands read only the ones they use.
    """

    cards: list[CardRow] = []
    reviews: list[ReviewRow] = []
    chat_messages: list[ChatMessageRow] = Field(
        default=[], validation_alias=_alias("chat_messages", "chatMessages")
    )
    context_rows: list[ContextRowSchema] = Field(
        default=[], validation_alias=_alias("context_rows", "contextRows")
    )
    flashcard_stats: list[FlashcardStatRow] = Field(
        default=[], validation_alias=_alias("flashcard_stats", "flashcardStats")
    )
    signals: list[SignalRow] = []

    def domain_cards(self) -> list[Card]:
        return [row.to_domain() for row in self.cards]

    def domain_reviews(self) -> list[ReviewRecord]:
        return [row.to_domain() for row in self.reviews]

    def domain_chat_messages(self) -> list[ChatMessage]:
        return [row.to_domain() for row in self.chat_messages]

    def domain_context_rows(self) -> list[ContextRow]:
        return [row.to_domain() for row in self.context_rows]

    def domain_flashcard_stats(self) -> list[FlashcardStat]:
        return [row.to_domain() for row in self.flashcard_stats]

    def domain_signals(self) -> list[ChatSignal]:
        return [row.to_domain() for row in self.signals]


def load_snapshot(path: Path) -> Snapshot:
    """
    Load a snapshot file. JSON is a subset of YAML, so both formats load.

    Raises:
        OSError: If the file cannot be read.
        yaml.YAMLError: If the file is not valid JSON/YAML.
        pydantic.ValidationError: If a row violates its schema.
    """
    raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    return Snapshot.model_validate(raw)


_ANY = TypeAdapter(Any)


def to_jsonable(result: Any) -> Any:
    """Convert core results (dataclasses, datetimes, tuples) to JSON-ready data."""
    return _ANY.dump_python(result, mode="json")
