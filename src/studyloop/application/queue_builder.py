"""
Queue builder for flashcard review sessions.

Builds the due queue by:
1. Keeping only the latest review record per card
2. Filtering for cards that are due (never reviewed, or next review has passed)
3. Ordering never-reviewed first, then most overdue, newest card on ties
"""

import logging
from collections.abc import Sequence
from datetime import datetime

from studyloop.application.utils.time import ensure_utc
from studyloop.domain.constants import DEFAULT_MAX_QUEUE_SIZE
from studyloop.domain.models import Card, QueueItem, ReviewQueue, ReviewRecord

logger = logging.getLogger(__name__)


def build_review_queue(
    cards: Sequence[Card],
    reviews: Sequence[ReviewRecord],
    now: datetime,
    max_queue: int = DEFAULT_MAX_QUEUE_SIZE,
) -> ReviewQueue:
    """
    Build the current due queue for a learner.

    Cards that are not yet due are left out entirely; they only show up in
    next_due_at.

    Args:
        cards: All of the learner's cards
        reviews: The learner's full review log, in any order
        now: Reference time for due checks
        max_queue: Maximum cards in queue (default: 50)

    Returns:
        ReviewQueue with the ordered due cards, their count and the next due time
    """
    now = ensure_utc(now)
    latest_by_card = latest_reviews(reviews)

    due: list[tuple[QueueItem, datetime]] = []
    next_due_at: datetime | None = None

    for card in cards:
        latest = latest_by_card.get(card.id)
        next_review_at = ensure_utc(latest.next_review_at) if latest else None

        if next_review_at is not None and next_review_at > now:
            if next_due_at is None or next_review_at < next_due_at:
                next_due_at = next_review_at
            continue

        item = QueueItem(
            card_id=card.id,
            front=card.front,
            back=card.back,
            next_review_at=next_review_at,
            is_due=True,
        )
        due.append((item, ensure_utc(card.created_at)))

    due.sort(key=_due_sort_key)
    queue = [item for item, _ in due[: max(0, max_queue)]]

    if len(due) > len(queue):
        logger.debug(f"Review queue capped at {len(queue)} of {len(due)} due cards")

    return ReviewQueue(queue=queue, total=len(queue), next_due_at=next_due_at)


def latest_reviews(reviews: Sequence[ReviewRecord]) -> dict[str, ReviewRecord]:
    """
    Index the review log by card, keeping the most recent record per card.

    On an exact reviewed_at tie the record seen first wins.
    """
    latest: dict[str, ReviewRecord] = {}
    for review in reviews:
        current = latest.get(review.card_id)
        if current is None or ensure_utc(review.reviewed_at) > ensure_utc(
            current.reviewed_at
        ):
            latest[review.card_id] = review
    return latest


def _due_sort_key(entry: tuple[QueueItem, datetime]) -> tuple[int, float, float]:
    """
    Never-reviewed cards first, then by next review ascending,
    then newest card first.
    """
    item, created_at = entry
    if item.next_review_at is None:
        return (0, 0.0, -created_at.timestamp())
    return (1, item.next_review_at.timestamp(), -created_at.timestamp())
