"""
MechScholar Progression Engine - Adaptive Difficulty
Chooses a difficulty tier per subject from accuracy and response time
Version: 2.0
"""

import logging
import math
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional

from .progress_tracker import ProgressTracker

logger = logging.getLogger(__name__)

BASE_REWARD_COINS = 10
BASE_REWARD_EXPERIENCE = 15
FAST_RESPONSE_MS = 10000
STRENGTH_BIAS = 0.1


@dataclass(frozen=True)
class DifficultyTier:
    """A difficulty level"""
    id: str
    name: str
    multiplier: float
    time_bonus: float
    hint_available: bool
    max_questions: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'multiplier': self.multiplier,
            'time_bonus': self.time_bonus,
            'hint_available': self.hint_available,
            'max_questions': self.max_questions,
        }


DIFFICULTY_TIERS: List[DifficultyTier] = [
    DifficultyTier('beginner', 'Beginner', 0.8, 1.5, True, 5),
    DifficultyTier('easy', 'Easy', 1.0, 1.2, True, 7),
    DifficultyTier('medium', 'Medium', 1.2, 1.0, False, 10),
    DifficultyTier('hard', 'Hard', 1.5, 0.8, False, 12),
    DifficultyTier('expert', 'Expert', 2.0, 0.6, False, 15),
]

TIERS_BY_ID = {tier.id: tier for tier in DIFFICULTY_TIERS}


@dataclass(frozen=True)
class RecentAnswer:
    correct: bool
    response_time_ms: int


@dataclass
class SessionPerformance:
    questions_answered: int = 0
    correct_answers: int = 0
    average_response_time_ms: float = 0.0
    streak_count: int = 0
    best_streak: int = 0
    struggling_topics: Dict[str, int] = field(default_factory=dict)
    strong_topics: Dict[str, int] = field(default_factory=dict)

    @property
    def accuracy(self) -> float:
        if self.questions_answered == 0:
            return 0.0
        return self.correct_answers / self.questions_answered


def _top_topics(counts: Dict[str, int], limit: int = 3) -> List[Dict[str, Any]]:
    ranked = sorted(counts.items(), key=lambda item: -item[1])
    return [{'topic': topic, 'count': count} for topic, count in ranked[:limit]]


class AdaptiveDifficultyManager:
    """Maps a player's subject history onto one of five difficulty tiers"""

    def __init__(self, progress_tracker: ProgressTracker,
                 response_time_target_ms: int = 15000,
                 rolling_window: int = 5):
        self.progress_tracker = progress_tracker
        self.response_time_target_ms = response_time_target_ms
        self.rolling_window = rolling_window

        self.session = SessionPerformance()
        self._recent: Dict[str, Deque[RecentAnswer]] = {}

    def get_current_difficulty(self, subject: str) -> DifficultyTier:
        """Tier from lifetime subject accuracy, biased up for the character's strengths"""
        stats = self.progress_tracker.progress['subject_stats'].get(subject)
        if not stats or stats['total'] == 0:
            return TIERS_BY_ID['easy']

        accuracy = stats['correct'] / stats['total']
        character_type = self.progress_tracker.get_character_type()
        bias = STRENGTH_BIAS if character_type and character_type.has_subject_strength(subject) else 0.0

        if accuracy >= round(0.9 + bias, 2):
            return TIERS_BY_ID['expert']
        if accuracy >= round(0.8 + bias, 2):
            return TIERS_BY_ID['hard']
        if accuracy >= round(0.7 + bias, 2):
            return TIERS_BY_ID['medium']
        if accuracy >= 0.5:
            return TIERS_BY_ID['easy']
        return TIERS_BY_ID['beginner']

    def adjust_difficulty_dynamic(self, subject: str,
                                  recent_answers: Optional[List[RecentAnswer]] = None) -> DifficultyTier:
        """Moves at most one tier from the current one based on a window of recent answers"""
        current = self.get_current_difficulty(subject)
        if recent_answers is None:
            recent_answers = self.get_recent_answers(subject)
        if not recent_answers:
            return current

        recent_accuracy = sum(1 for answer in recent_answers if answer.correct) / len(recent_answers)
        average_time = sum(answer.response_time_ms for answer in recent_answers) / len(recent_answers)

        if recent_accuracy >= 0.8 and average_time < self.response_time_target_ms:
            return self.get_next_difficulty(current.id, 1)
        if recent_accuracy < 0.5 or average_time > self.response_time_target_ms * 2:
            return self.get_next_difficulty(current.id, -1)
        return current

    @staticmethod
    def get_next_difficulty(current_id: str, direction: int) -> DifficultyTier:
        ids = [tier.id for tier in DIFFICULTY_TIERS]
        index = ids.index(current_id) if current_id in ids else ids.index('medium')
        index = max(0, min(len(ids) - 1, index + direction))
        return DIFFICULTY_TIERS[index]

    def calculate_rewards(self, tier: DifficultyTier, response_time_ms: int, is_correct: bool) -> Dict[str, Any]:
        if not is_correct:
            return {'coins': 0, 'experience': 0, 'bonus': 0, 'difficulty': tier.name, 'time_bonus': False}

        coins = math.floor(BASE_REWARD_COINS * tier.multiplier)
        experience = math.floor(BASE_REWARD_EXPERIENCE * tier.multiplier)

        time_bonus = tier.time_bonus if response_time_ms < FAST_RESPONSE_MS else 1.0
        coins = math.floor(coins * time_bonus)
        experience = math.floor(experience * time_bonus)

        character_type = self.progress_tracker.get_character_type()
        if character_type:
            coins = math.floor(coins * character_type.coin_bonus)
            experience = math.floor(experience * character_type.experience_bonus)

        return {
            'coins': coins,
            'experience': experience,
            'bonus': math.floor((coins + experience) * 0.1),
            'difficulty': tier.name,
            'time_bonus': time_bonus > 1.0,
        }

    def record_answer(self, subject: str, is_correct: bool, response_time_ms: int,
                      topic: Optional[str] = None) -> Dict[str, Any]:
        session = self.session
        session.questions_answered += 1
        if is_correct:
            session.correct_answers += 1
            session.streak_count += 1
            session.best_streak = max(session.best_streak, session.streak_count)
        else:
            session.streak_count = 0

        total_time = session.average_response_time_ms * (session.questions_answered - 1) + response_time_ms
        session.average_response_time_ms = total_time / session.questions_answered

        if topic:
            bucket = session.strong_topics if is_correct else session.struggling_topics
            bucket[topic] = bucket.get(topic, 0) + 1

        window = self._recent.setdefault(subject, deque(maxlen=self.rolling_window))
        window.append(RecentAnswer(bool(is_correct), response_time_ms))

        return {
            'is_correct': is_correct,
            'difficulty': self.get_current_difficulty(subject),
            'session_accuracy': session.accuracy,
            'streak': session.streak_count,
        }

    def get_recent_answers(self, subject: str) -> List[RecentAnswer]:
        return list(self._recent.get(subject, ()))

    def get_recommendations(self) -> List[Dict[str, Any]]:
        recommendations = []
        session = self.session

        struggling = _top_topics(session.struggling_topics, 1)
        if struggling:
            topic = struggling[0]['topic']
            recommendations.append({
                'type': 'practice',
                'message': f"Consider practicing {topic} problems",
                'priority': 'high',
                'action': 'practice_topic',
                'data': {'topic': topic},
            })

        if session.questions_answered > 0:
            if session.accuracy < 0.6:
                recommendations.append({
                    'type': 'difficulty',
                    'message': 'Try easier questions to build confidence',
                    'priority': 'medium',
                    'action': 'reduce_difficulty',
                })
            elif session.accuracy > 0.9:
                recommendations.append({
                    'type': 'challenge',
                    'message': 'Ready for harder challenges!',
                    'priority': 'low',
                    'action': 'increase_difficulty',
                })

        character_type = self.progress_tracker.get_character_type()
        if character_type:
            recommendations.append({
                'type': 'character',
                'message': f"Use your {character_type.name} abilities for bonus points!",
                'priority': 'low',
                'action': 'use_ability',
            })

        return recommendations

    def get_session_summary(self) -> Dict[str, Any]:
        session = self.session
        return {
            'questions_answered': session.questions_answered,
            'accuracy': round(session.accuracy * 100),
            'average_response_time_s': round(session.average_response_time_ms / 1000),
            'current_streak': session.streak_count,
            'best_streak': session.best_streak,
            'strong_topics': _top_topics(session.strong_topics),
            'struggling_topics': _top_topics(session.struggling_topics),
            'recommendations': self.get_recommendations(),
        }

    def reset_session(self):
        self.session = SessionPerformance()
        self._recent.clear()
        logger.debug("Difficulty session reset")

    def get_difficulty_settings(self, subject: str) -> Dict[str, Any]:
        current = self.get_current_difficulty(subject)
        return {
            'current': current.to_dict(),
            'available': [tier.to_dict() for tier in DIFFICULTY_TIERS],
            'can_increase': current.id != 'expert',
            'can_decrease': current.id != 'beginner',
        }
