"""Centralized constants for the studyloop core.

All thresholds and defaults live here so every layer imports from a
single source of truth.
"""

# ---------- SM-2 ----------
MIN_QUALITY = 0
MAX_QUALITY = 5
PASSING_QUALITY = 3  # quality below this is a lapse
MIN_EASE_FACTOR = 1.3
DEFAULT_EASE_FACTOR = 2.5
LAPSE_EASE_PENALTY = 0.2
FIRST_INTERVAL_DAYS = 1
SECOND_INTERVAL_DAYS = 6
REMEMBERED_QUALITY = 4
FORGOT_QUALITY = 2

# ---------- Review Queue ----------
DEFAULT_MAX_QUEUE_SIZE = 50

# ---------- Ask Context ----------
DEFAULT_MAX_HISTORY_TURNS = 5
DEFAULT_ASK_MAX_TOTAL_CHARS = 12_000
TRUNCATION_MARKER = "..."

# ---------- Reading Conversation ----------
DEFAULT_READING_MAX_CHARS = 32_000
TRANSLATE_PROMPT_PREFIX = "翻訳して"
MASTERED_QUALITY = 3  # latest grade at or above this hides the card

# ---------- Learning Profile ----------
WEAK_WRONG_RATE = 0.4
MAX_WEAK_TARGETS = 8
RECENT_WINDOW_DAYS = 3
MAX_REVIEW_TARGETS = 20
MAX_GRAMMAR_TARGETS = 3
MAX_NEW_CANDIDATES = 10
REVIEW_SHARE = 0.7
FRESH_PER_REVIEW = 3 / 7

# ---------- Flashcard Stats ----------
DEFAULT_LOOKBACK_DAYS = 14
WRONG_RATE_WINDOW_DAYS = 7
WRONG_QUALITY_MAX = 2  # quality at or below this counts as a wrong answer
MAX_SIGNALS = 50

# ---------- Passage Evaluation ----------
MIN_COVERAGE = 0.7
MAX_SIMILARITY = 0.8
