# Application Stats Package
from .metrics_calculator import FlashcardStatsCalculator, aggregate_signals
from .service import LearningProfileService

__all__ = ["FlashcardStatsCalculator", "aggregate_signals", "LearningProfileService"]
