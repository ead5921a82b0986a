"""
SM-2 spaced repetition scheduler.

SM-2 Grade Scale:
0 - Complete blackout, wrong response
1 - Incorrect, but upon seeing answer remembered
2 - Incorrect, but answer seemed easy to recall
3 - Correct, but with significant difficulty
4 - Correct, with some hesitation
5 - Correct, with perfect recall
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from studyloop.application.utils.text import round_half_up
from studyloop.application.utils.time import ensure_utc
from studyloop.domain.constants import (
    DEFAULT_EASE_FACTOR,
    FIRST_INTERVAL_DAYS,
    FORGOT_QUALITY,
    LAPSE_EASE_PENALTY,
    MAX_QUALITY,
    MIN_EASE_FACTOR,
    MIN_QUALITY,
    PASSING_QUALITY,
    REMEMBERED_QUALITY,
    SECOND_INTERVAL_DAYS,
)
from studyloop.domain.models import ReviewRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Sm2Input:
    quality: int
    repetition: int
    interval_days: int
    ease_factor: float


@dataclass(frozen=True)
class Sm2Result:
    repetition: int
    interval_days: int
    ease_factor: float


def next_sm2(params: Sm2Input) -> Sm2Result:
    """
    Compute the next repetition, interval and ease for a graded card.

    Quality is clamped to [0, 5] rather than rejected. A grade below 3 is a
    lapse: repetition and interval reset and ease drops by 0.2. Otherwise the
    interval grows 1 -> 6 -> interval * ease and ease follows the classic
    SM-2 update. Ease never falls below 1.3.
    """
    quality = max(MIN_QUALITY, min(MAX_QUALITY, params.quality))

    if quality < PASSING_QUALITY:
        return Sm2Result(
            repetition=0,
            interval_days=FIRST_INTERVAL_DAYS,
            ease_factor=max(MIN_EASE_FACTOR, params.ease_factor - LAPSE_EASE_PENALTY),
        )

    repetition = params.repetition + 1
    if repetition == 1:
        interval_days = FIRST_INTERVAL_DAYS
    elif repetition == 2:
        interval_days = SECOND_INTERVAL_DAYS
    else:
        interval_days = round_half_up(params.interval_days * params.ease_factor)

    miss = MAX_QUALITY - quality
    ease_factor = max(
        MIN_EASE_FACTOR,
        params.ease_factor + (0.1 - miss * (0.08 + miss * 0.02)),
    )

    return Sm2Result(
        repetition=repetition,
        interval_days=max(FIRST_INTERVAL_DAYS, interval_days),
        ease_factor=ease_factor,
    )


def quality_from_recall(remembered: bool) -> int:
    """Map a binary remembered/forgot answer onto an SM-2 grade."""
    return REMEMBERED_QUALITY if remembered else FORGOT_QUALITY


def schedule_review(
    card_id: str,
    quality: int,
    previous: ReviewRecord | None,
    reviewed_at: datetime,
) -> ReviewRecord:
    """
    Build the review log record for a new grade.

    Seeds the scheduler from the card's latest record, or from a fresh
    card's defaults when it has never been reviewed.

    Args:
        card_id: The card being graded.
        quality: SM-2 grade; clamped to [0, 5].
        previous: The card's latest review record, if any.
        reviewed_at: When the grade was given.

    Returns:
        A new ReviewRecord with next_review_at set interval_days after reviewed_at.
    """
    if previous is None:
        state = Sm2Input(
            quality=quality,
            repetition=0,
            interval_days=FIRST_INTERVAL_DAYS,
            ease_factor=DEFAULT_EASE_FACTOR,
        )
    else:
        state = Sm2Input(
            quality=quality,
            repetition=previous.repetition,
            interval_days=previous.interval_days,
            ease_factor=previous.ease_factor,
        )

    result = next_sm2(state)
    reviewed_at = ensure_utc(reviewed_at)
    next_review_at = reviewed_at + timedelta(days=result.interval_days)

    logger.debug(
        f"Scheduled {card_id}: q={quality} rep={result.repetition} "
        f"interval={result.interval_days}d ease={result.ease_factor:.2f}"
    )

    return ReviewRecord(
        card_id=card_id,
        quality=int(max(MIN_QUALITY, min(MAX_QUALITY, quality))),
        repetition=result.repetition,
        interval_days=result.interval_days,
        ease_factor=result.ease_factor,
        reviewed_at=reviewed_at,
        next_review_at=next_review_at,
    )
