from datetime import UTC, datetime, timedelta

import pytest

from studyloop.domain.models import Card, ReviewRecord

NOW = datetime(2026, 2, 27, 12, 0, tzinfo=UTC)


def _ts(value: str) -> datetime:
    """ISO string (with Z) to an aware datetime."""
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _make_card(card_id: str, created_at: datetime | str = NOW, front: str | None = None, back: str | None = None) -> Card:
    if isinstance(created_at, str):
        created_at = _ts(created_at)
    return Card(
        id=card_id,
        front=front if front is not None else f"front-{card_id}",
        back=back if back is not None else f"back-{card_id}",
        created_at=created_at,
    )


def _make_review(
    card_id: str,
    next_review_at: datetime | str = NOW,
    reviewed_at: datetime | str | None = None,
    quality: int = 4,
    repetition: int = 1,
    interval_days: int = 1,
    ease_factor: float = 2.5,
) -> ReviewRecord:
    if isinstance(next_review_at, str):
        next_review_at = _ts(next_review_at)
    if isinstance(reviewed_at, str):
        reviewed_at = _ts(reviewed_at)
    if reviewed_at is None:
        reviewed_at = next_review_at - timedelta(days=interval_days)
    return ReviewRecord(
        card_id=card_id,
        quality=quality,
        repetition=repetition,
        interval_days=interval_days,
        ease_factor=ease_factor,
        reviewed_at=reviewed_at,
        next_review_at=next_review_at,
    )


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def mock_home(tmp_path, monkeypatch):
    """Mocks Path.home() to point to a temp dir."""
    home = tmp_path / "home"
    home.mkdir()

    # Mocking HOME to a temp directory to isolate config files
    monkeypatch.setenv("HOME", str(home))
    return home


@pytest.fixture
def ts():
    return _ts


@pytest.fixture
def make_card():
    return _make_card


@pytest.fixture
def make_review():
    return _make_review
