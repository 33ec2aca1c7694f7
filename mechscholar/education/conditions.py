"""
MechScholar Condition Variants
Closed sets of unlock conditions and event triggers, plus the handler registry
that maps each variant to exactly one evaluator.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple, Type

from ..utils.exceptions import CatalogError

logger = logging.getLogger(__name__)


@dataclass
class GameplayEvent:
    """Payload handed to achievement and event checks after something happens in play"""
    question_answered: bool = False
    is_correct: Optional[bool] = None
    subject: Optional[str] = None
    response_time_ms: Optional[int] = None
    current_streak: Optional[int] = None
    subject_stats: Optional[Dict[str, Dict[str, int]]] = None
    ability_used: bool = False


# --- Achievement conditions ---

@dataclass(frozen=True)
class CorrectAnswers:
    value: int


@dataclass(frozen=True)
class SessionAccuracy:
    value: int
    min_questions: int = 10


@dataclass(frozen=True)
class SustainedAccuracy:
    """Accuracy over the last ``count`` answers"""
    value: int
    count: int


@dataclass(frozen=True)
class SpeedBurst:
    """``questions`` answers whose combined response time fits in ``time_ms``"""
    questions: int
    time_ms: int


@dataclass(frozen=True)
class SingleAnswerSpeed:
    time_ms: int


@dataclass(frozen=True)
class Streak:
    value: int


@dataclass(frozen=True)
class SubjectMastery:
    subject: str
    accuracy: int
    count: int


@dataclass(frozen=True)
class WeeksCompleted:
    value: int


@dataclass(frozen=True)
class CharacterAbilityUse:
    character: str
    count: int


@dataclass(frozen=True)
class TotalCoinsEarned:
    value: int


ACHIEVEMENT_CONDITIONS: Tuple[Type, ...] = (
    CorrectAnswers, SessionAccuracy, SustainedAccuracy, SpeedBurst, SingleAnswerSpeed,
    Streak, SubjectMastery, WeeksCompleted, CharacterAbilityUse, TotalCoinsEarned,
)


# --- Event triggers ---

@dataclass(frozen=True)
class RandomChance:
    chance: float


@dataclass(frozen=True)
class StreakThreshold:
    value: int


@dataclass(frozen=True)
class QuestionCount:
    value: int


@dataclass(frozen=True)
class RollingAccuracy:
    value: int
    questions: int


@dataclass(frozen=True)
class SubjectAccuracy:
    value: int
    questions: int


@dataclass(frozen=True)
class AbilityUse:
    count: int


@dataclass(frozen=True)
class TimeOfDay:
    start_hour: int
    end_hour: int


@dataclass(frozen=True)
class DayOfWeek:
    """Python weekday numbers, Monday is 0"""
    days: Tuple[int, ...]


EVENT_TRIGGERS: Tuple[Type, ...] = (
    RandomChance, StreakThreshold, QuestionCount, RollingAccuracy, SubjectAccuracy,
    AbilityUse, TimeOfDay, DayOfWeek,
)


class HandlerRegistry:
    """
    One handler per variant class.

    Modules register handlers with the ``handles`` decorator and call
    ``verify_complete`` once at import so a new variant without a handler
    fails immediately rather than silently evaluating to nothing.
    """

    def __init__(self, name: str, variants: Tuple[Type, ...]):
        self.name = name
        self.variants = variants
        self._handlers: Dict[Type, Callable[..., Any]] = {}

    def handles(self, variant: Type):
        if variant not in self.variants:
            raise CatalogError(f"{variant.__name__} is not a {self.name} variant")

        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            if variant in self._handlers:
                raise CatalogError(f"Duplicate {self.name} handler for {variant.__name__}")
            self._handlers[variant] = func
            return func

        return decorator

    def verify_complete(self):
        missing = [variant.__name__ for variant in self.variants if variant not in self._handlers]
        if missing:
            raise CatalogError(f"No {self.name} handler for: {', '.join(missing)}")

    def dispatch(self, variant_instance: Any, *args, **kwargs) -> Any:
        handler = self._handlers.get(type(variant_instance))
        if handler is None:
            raise CatalogError(f"No {self.name} handler for {type(variant_instance).__name__}")
        return handler(variant_instance, *args, **kwargs)
