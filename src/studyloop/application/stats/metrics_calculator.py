"""
Metrics calculator for deriving learning statistics from raw review logs.

This is a pure computation module with no I/O.
"""

from collections.abc import Sequence
from datetime import datetime, timedelta

from studyloop.application.utils.time import ensure_utc
from studyloop.domain.constants import (
    DEFAULT_LOOKBACK_DAYS,
    MAX_SIGNALS,
    WRONG_QUALITY_MAX,
    WRONG_RATE_WINDOW_DAYS,
)
from studyloop.domain.models import Card, ChatSignal, FlashcardStat, ReviewRecord


class FlashcardStatsCalculator:
    """
    Computes per-card FlashcardStat objects from cards and their review log.

    Stateless and side-effect free.
    """

    def compute(
        self,
        cards: Sequence[Card],
        reviews: Sequence[ReviewRecord],
        today: datetime,
        lookback_days: int = DEFAULT_LOOKBACK_DAYS,
    ) -> list[FlashcardStat]:
        """
        Compute stats for cards added within the lookback window.

        Args:
            cards: The learner's cards.
            reviews: The learner's review log, in any order.
            today: Reference time.
            lookback_days: Only cards created on or after today - lookback_days count.

        Returns:
            FlashcardStats, newest card first.
        """
        today = ensure_utc(today)
        lookback_start = today - timedelta(days=lookback_days)

        by_card: dict[str, list[ReviewRecord]] = {}
        for review in reviews:
            by_card.setdefault(review.card_id, []).append(review)

        recent_cards = sorted(
            (card for card in cards if ensure_utc(card.created_at) >= lookback_start),
            key=lambda card: ensure_utc(card.created_at),
            reverse=True,
        )

        return [
            self._compute_card(card, by_card.get(card.id, []), today) for card in recent_cards
        ]

    def _compute_card(
        self, card: Card, reviews: list[ReviewRecord], today: datetime
    ) -> FlashcardStat:
        latest = max(reviews, key=lambda r: ensure_utc(r.reviewed_at), default=None)
        return FlashcardStat(
            text=card.front,
            next_review_at=ensure_utc(latest.next_review_at) if latest else None,
            wrong_rate_7d=self._compute_wrong_rate(reviews, today),
            created_at=ensure_utc(card.created_at),
        )

    def _compute_wrong_rate(self, reviews: list[ReviewRecord], today: datetime) -> float:
        """
        Share of reviews in the last 7 days graded 2 or lower.

        0.0 when the card has no reviews in the window.
        """
        window_start = today - timedelta(days=WRONG_RATE_WINDOW_DAYS)
        recent = [r for r in reviews if ensure_utc(r.reviewed_at) >= window_start]
        if not recent:
            return 0.0
        wrong = [r for r in recent if r.quality <= WRONG_QUALITY_MAX]
        return len(wrong) / len(recent)


def aggregate_signals(
    signals: Sequence[ChatSignal],
    since: datetime | None = None,
    limit: int = MAX_SIGNALS,
) -> list[ChatSignal]:
    """
    Sum signal weights per key.

    Signals older than `since` are ignored (undated ones are kept), and only
    the `limit` heaviest individual signals are summed.

    Returns:
        One ChatSignal per key, heaviest total first.
    """
    if since is not None:
        since = ensure_utc(since)
        signals = [
            s for s in signals if s.created_at is None or ensure_utc(s.created_at) >= since
        ]

    heaviest = sorted(signals, key=lambda s: s.weight, reverse=True)[: max(0, limit)]

    totals: dict[str, float] = {}
    for signal in heaviest:
        totals[signal.key] = totals.get(signal.key, 0.0) + float(signal.weight)

    return [
        ChatSignal(key=key, weight=weight)
        for key, weight in sorted(totals.items(), key=lambda kv: kv[1], reverse=True)
    ]
