"""
Learning Profile Service: application layer orchestrator.

Coordinates deriving card statistics and grammar signals from raw history
and building the learning profile from them.
"""

import logging
from collections.abc import Sequence
from datetime import datetime, timedelta

from studyloop.application.learning import build_learning_profile
from studyloop.application.utils.time import ensure_utc
from studyloop.domain.constants import DEFAULT_LOOKBACK_DAYS
from studyloop.domain.models import Card, ChatSignal, LearningProfile, ReviewRecord

from .metrics_calculator import FlashcardStatsCalculator, aggregate_signals

logger = logging.getLogger(__name__)


class LearningProfileService:
    """
    Application service for building a learner's profile from raw history.

    Works on a snapshot handed in by the caller; holds no state between calls.
    """

    def __init__(
        self,
        lookback_days: int = DEFAULT_LOOKBACK_DAYS,
        calculator: FlashcardStatsCalculator | None = None,
    ):
        """
        Args:
            lookback_days: History window for cards and signals.
            calculator: Optional custom calculator; uses default if not provided.
        """
        self._lookback_days = lookback_days
        self._calc = calculator or FlashcardStatsCalculator()

    def build(
        self,
        cards: Sequence[Card],
        reviews: Sequence[ReviewRecord],
        signals: Sequence[ChatSignal],
        today: datetime,
    ) -> LearningProfile:
        """
        Build the learning profile for the given day.

        Args:
            cards: The learner's cards.
            reviews: The learner's review log.
            signals: Grammar signals extracted from chat history.
            today: Reference time.

        Returns:
            The LearningProfile for today.
        """
        today = ensure_utc(today)
        stats = self._calc.compute(cards, reviews, today, self._lookback_days)
        top_signals = aggregate_signals(
            signals, since=today - timedelta(days=self._lookback_days)
        )

        logger.info(
            f"Building profile from {len(stats)} cards and {len(top_signals)} signals "
            f"({self._lookback_days}d lookback)"
        )
        return build_learning_profile(stats, top_signals, today)
