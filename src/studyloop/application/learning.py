"""
Learning profile construction and target scoring.

Selects what a generated reading passage should reinforce (review targets),
introduce (new candidates) and practise (grammar targets), then scores how
well a generated passage covered the chosen targets.
"""

import logging
from collections.abc import Sequence
from datetime import datetime, timedelta

from studyloop.application.utils.text import (
    dedupe,
    normalize_target,
    round_half_up,
    word_set,
)
from studyloop.application.utils.time import ensure_utc
from studyloop.domain.constants import (
    FRESH_PER_REVIEW,
    MAX_GRAMMAR_TARGETS,
    MAX_NEW_CANDIDATES,
    MAX_REVIEW_TARGETS,
    MAX_SIMILARITY,
    MAX_WEAK_TARGETS,
    MIN_COVERAGE,
    RECENT_WINDOW_DAYS,
    REVIEW_SHARE,
    WEAK_WRONG_RATE,
)
from studyloop.domain.models import (
    ChatSignal,
    FlashcardStat,
    LearningProfile,
    PassageEvaluation,
    TargetSelection,
)

logger = logging.getLogger(__name__)


def build_learning_profile(
    cards: Sequence[FlashcardStat],
    signals: Sequence[ChatSignal],
    today: datetime,
) -> LearningProfile:
    """
    Derive the day's learning targets from card statistics and chat signals.

    Review targets are due cards, then weak cards (7-day wrong rate >= 0.4,
    worst first, at most 8), then cards added in the last 3 days; deduplicated
    and capped at 20. Grammar targets are the 3 heaviest signals. New
    candidates are the newest cards not already under review, at most 10.
    """
    today = ensure_utc(today)
    recent_window = timedelta(days=RECENT_WINDOW_DAYS)

    due = [
        card.text
        for card in cards
        if card.next_review_at is not None and ensure_utc(card.next_review_at) <= today
    ]

    weak = [
        card.text
        for card in sorted(
            (card for card in cards if card.wrong_rate_7d >= WEAK_WRONG_RATE),
            key=lambda card: card.wrong_rate_7d,
            reverse=True,
        )[:MAX_WEAK_TARGETS]
    ]

    recent = [
        card.text
        for card in cards
        if timedelta(0) <= today - ensure_utc(card.created_at) <= recent_window
    ]

    review_targets = dedupe([*due, *weak, *recent])[:MAX_REVIEW_TARGETS]

    grammar_targets = dedupe(
        signal.key
        for signal in sorted(signals, key=lambda signal: signal.weight, reverse=True)[
            :MAX_GRAMMAR_TARGETS
        ]
    )

    under_review = set(review_targets)
    new_candidates = dedupe(
        card.text
        for card in sorted(
            (card for card in cards if card.text not in under_review),
            key=lambda card: ensure_utc(card.created_at),
            reverse=True,
        )
    )[:MAX_NEW_CANDIDATES]

    logger.debug(
        f"Profile: {len(due)} due, {len(weak)} weak, {len(recent)} recent -> "
        f"{len(review_targets)} review, {len(new_candidates)} new, "
        f"{len(grammar_targets)} grammar"
    )

    return LearningProfile(
        review_targets=tuple(review_targets),
        grammar_targets=tuple(grammar_targets),
        new_candidates=tuple(new_candidates),
    )


def choose_targets(profile: LearningProfile) -> TargetSelection:
    """
    Split a profile into a ~70% review / ~30% fresh selection.

    The fresh count is derived from the review count (3 fresh per 7 review),
    and both are at least 1, so the ratio holds even for small profiles.
    """
    review_count = max(1, round_half_up(len(profile.review_targets) * REVIEW_SHARE))
    fresh_count = max(1, round_half_up(review_count * FRESH_PER_REVIEW))

    return TargetSelection(
        review=profile.review_targets[:review_count],
        fresh=profile.new_candidates[:fresh_count],
    )


def calc_coverage(required: Sequence[str], used: Sequence[str]) -> float:
    """
    Fraction of required targets present in used, ignoring case and
    surrounding whitespace. Vacuously 1.0 when nothing is required.
    """
    if not required:
        return 1.0

    used_keys = {normalize_target(target) for target in used}
    matched = [target for target in required if normalize_target(target) in used_keys]
    return len(matched) / len(required)


def estimate_similarity(a: str, b: str) -> float:
    """Jaccard similarity of the two texts' lowercase word sets."""
    left = word_set(a)
    right = word_set(b)
    if not left or not right:
        return 0.0
    return len(left & right) / len(left | right)


def evaluate_passage(
    required: Sequence[str],
    used: Sequence[str],
    passage: str,
    previous_passage: str | None = None,
    min_coverage: float = MIN_COVERAGE,
    max_similarity: float = MAX_SIMILARITY,
) -> PassageEvaluation:
    """
    Decide whether a generated passage is good enough to keep.

    A passage is accepted when it covers enough of the required review
    targets and is not a near-copy of the previous passage.

    Args:
        required: Review targets the passage was asked to use
        used: Review targets the generator reports having used
        passage: The generated passage text
        previous_passage: The last accepted passage, if any
        min_coverage: Minimum coverage to accept
        max_similarity: Similarity at or above this is rejected

    Returns:
        PassageEvaluation with the coverage, similarity and verdict
    """
    coverage = calc_coverage(required, used)
    similarity = estimate_similarity(previous_passage, passage) if previous_passage else 0.0
    accepted = coverage >= min_coverage and similarity < max_similarity

    if not accepted:
        logger.debug(
            f"Passage rejected: coverage={coverage:.2f} similarity={similarity:.2f}"
        )

    return PassageEvaluation(coverage=coverage, similarity=similarity, accepted=accepted)
