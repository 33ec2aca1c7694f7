"""
MechScholar Progression Engine - Achievement System
Unlock conditions, rewards and progress reporting for achievements
Version: 2.0 | Motivational Learning Through Achievements
"""

import logging
from collections import deque
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Deque, Dict, List, Optional, Tuple, Union

from ..utils.validators import round_half_up
from .conditions import (
    ACHIEVEMENT_CONDITIONS,
    CharacterAbilityUse,
    CorrectAnswers,
    GameplayEvent,
    HandlerRegistry,
    SessionAccuracy,
    SingleAnswerSpeed,
    SpeedBurst,
    Streak,
    SubjectMastery,
    SustainedAccuracy,
    TotalCoinsEarned,
    WeeksCompleted,
)
from .progress_tracker import ProgressTracker

logger = logging.getLogger(__name__)

RECENT_ANSWER_WINDOW = 20
RECENT_TIME_WINDOW = 10


class AchievementRarity(Enum):
    """Achievement rarity levels"""
    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


class AchievementCategory(Enum):
    """Achievement categories"""
    MILESTONE = "milestone"
    ACCURACY = "accuracy"
    SPEED = "speed"
    STREAK = "streak"
    SUBJECT = "subject"
    WEEKLY = "weekly"
    CHARACTER = "character"
    COLLECTION = "collection"


@dataclass(frozen=True)
class RewardBundle:
    """Coins, experience and an optional power-up granted together"""
    coins: int = 0
    experience: int = 0
    power_up: Optional[str] = None


@dataclass(frozen=True)
class Achievement:
    """Individual achievement definition"""
    id: str
    name: str
    description: str
    icon: str
    category: AchievementCategory
    rarity: AchievementRarity
    points: int
    rewards: RewardBundle
    condition: Any


@dataclass
class AchievementSession:
    """Per-session counters, never persisted"""
    questions_answered: int = 0
    correct_answers: int = 0
    current_streak: int = 0
    best_streak: int = 0
    session_start_ms: int = 0
    recent_answers: Deque[bool] = field(default_factory=lambda: deque(maxlen=RECENT_ANSWER_WINDOW))
    recent_times: Deque[int] = field(default_factory=lambda: deque(maxlen=RECENT_TIME_WINDOW))
    subject_progress: Dict[str, Dict[str, int]] = field(default_factory=dict)


def _achievement(id, name, description, icon, category, rarity, points,
                 coins, experience, condition, power_up=None) -> Achievement:
    return Achievement(
        id=id, name=name, description=description, icon=icon,
        category=AchievementCategory(category), rarity=AchievementRarity(rarity),
        points=points, rewards=RewardBundle(coins, experience, power_up), condition=condition,
    )


ACHIEVEMENTS: Dict[str, Achievement] = {a.id: a for a in [
    # Learning milestones
    _achievement('first_steps', 'First Steps', 'Answer your first question correctly',
                 '👶', 'milestone', 'common', 10, 25, 15, CorrectAnswers(1)),
    _achievement('quick_learner', 'Quick Learner', 'Answer 10 questions correctly',
                 '🧠', 'milestone', 'common', 25, 50, 30, CorrectAnswers(10)),
    _achievement('scholar', 'Scholar', 'Answer 50 questions correctly',
                 '🎓', 'milestone', 'uncommon', 50, 100, 75, CorrectAnswers(50), 'hint'),
    _achievement('mastermind', 'Mastermind', 'Answer 200 questions correctly',
                 '🧙', 'milestone', 'rare', 100, 250, 150, CorrectAnswers(200), 'double_coins'),

    # Accuracy
    _achievement('perfectionist', 'Perfectionist', 'Finish 10 or more questions in a session without a mistake',
                 '💯', 'accuracy', 'uncommon', 40, 75, 50, SessionAccuracy(100, min_questions=10)),
    _achievement('sharpshooter', 'Sharpshooter', 'Maintain 90% accuracy over 20 questions',
                 '🎯', 'accuracy', 'rare', 75, 150, 100, SustainedAccuracy(90, 20), 'focus_enhancement'),

    # Speed
    _achievement('speed_demon', 'Speed Demon', 'Answer 5 questions in under 30 seconds total',
                 '⚡', 'speed', 'uncommon', 35, 60, 40, SpeedBurst(5, 30000)),
    _achievement('lightning', 'Lightning', 'Answer a question correctly in under 3 seconds',
                 '⚡⚡', 'speed', 'rare', 60, 100, 75, SingleAnswerSpeed(3000), 'time_freeze'),

    # Streaks
    _achievement('hot_streak', 'Hot Streak', 'Get 5 questions correct in a row',
                 '🔥', 'streak', 'common', 30, 50, 35, Streak(5)),
    _achievement('unstoppable', 'Unstoppable', 'Get 10 questions correct in a row',
                 '🔥🔥', 'streak', 'uncommon', 60, 100, 70, Streak(10), 'shield'),
    _achievement('legendary', 'Legendary', 'Get 20 questions correct in a row',
                 '🔥🔥🔥', 'streak', 'legendary', 150, 300, 200, Streak(20), 'system_optimization'),

    # Subject mastery
    _achievement('math_wizard', 'Math Wizard', 'Excel in mathematics with 85% accuracy over 25 questions',
                 '🔢', 'subject', 'rare', 80, 150, 100, SubjectMastery('math', 85, 25)),
    _achievement('reading_champion', 'Reading Champion', 'Excel in reading with 85% accuracy over 25 questions',
                 '📚', 'subject', 'rare', 80, 150, 100, SubjectMastery('reading', 85, 25)),
    _achievement('science_explorer', 'Science Explorer', 'Excel in science with 85% accuracy over 25 questions',
                 '🔬', 'subject', 'rare', 80, 150, 100, SubjectMastery('science', 85, 25)),
    _achievement('history_buff', 'History Buff', 'Excel in history with 85% accuracy over 25 questions',
                 '🏛️', 'subject', 'rare', 80, 150, 100, SubjectMastery('history', 85, 25)),

    # Weekly progress
    _achievement('week_warrior', 'Week Warrior', 'Complete your first week',
                 '🗓️', 'weekly', 'common', 50, 100, 75, WeeksCompleted(1)),
    _achievement('monthly_master', 'Monthly Master', 'Complete 4 weeks of learning',
                 '📅', 'weekly', 'rare', 200, 400, 300, WeeksCompleted(4), 'elemental_mastery'),

    # Character abilities
    _achievement('scholarly_wisdom', 'Scholarly Wisdom', "Use ARIA's special abilities 10 times",
                 '📖', 'character', 'uncommon', 45, 80, 60, CharacterAbilityUse('aria', 10)),
    _achievement('mystic_mastery', 'Mystic Mastery', "Channel NEXUS's special abilities 10 times",
                 '🌟', 'character', 'uncommon', 45, 80, 60, CharacterAbilityUse('nexus', 10)),
    _achievement('tech_master', 'Tech Master', "Run TITAN's special systems 10 times",
                 '⚙️', 'character', 'uncommon', 45, 80, 60, CharacterAbilityUse('titan', 10)),

    # Collection
    _achievement('coin_collector', 'Coin Collector', 'Earn 1000 total coins',
                 '💰', 'collection', 'uncommon', 40, 100, 50, TotalCoinsEarned(1000)),
    _achievement('treasure_hunter', 'Treasure Hunter', 'Earn 5000 total coins',
                 '💎', 'collection', 'rare', 100, 250, 150, TotalCoinsEarned(5000), 'double_coins'),
]}


class AchievementManager:
    """
    Evaluates achievement conditions against the shared progress ledger
    and this session's counters, and pays out rewards on unlock.
    """

    def __init__(self, progress_tracker: ProgressTracker,
                 achievements: Optional[Dict[str, Achievement]] = None):
        self.progress_tracker = progress_tracker
        self.achievements = achievements if achievements is not None else ACHIEVEMENTS
        self.session = self._new_session()

        logger.info(f"Achievement system initialized with {len(self.achievements)} achievements")

    def _new_session(self) -> AchievementSession:
        return AchievementSession(session_start_ms=self.progress_tracker.clock.now_ms())

    @property
    def progress(self) -> Dict[str, Any]:
        return self.progress_tracker.progress

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def check_achievements(self, event_data: Optional[GameplayEvent] = None) -> List[Achievement]:
        """Unlock every achievement whose condition now holds"""
        event_data = event_data or GameplayEvent()
        newly_unlocked = []

        for achievement in self.achievements.values():
            if self.progress_tracker.has_achievement(achievement.id):
                continue
            if self.check_achievement_condition(achievement, event_data):
                if self.unlock_achievement(achievement):
                    newly_unlocked.append(achievement)

        return newly_unlocked

    def check_achievement_condition(self, achievement: Achievement, event_data: GameplayEvent) -> bool:
        return bool(_conditions.dispatch(achievement.condition, self, event_data))

    def unlock_achievement(self, achievement: Union[str, Achievement]) -> bool:
        """Unlock once and grant the reward bundle. Returns False if unknown or already unlocked."""
        if isinstance(achievement, str):
            definition = self.achievements.get(achievement)
            if definition is None:
                logger.warning(f"Achievement not found: {achievement}")
                return False
            achievement = definition

        if not self.progress_tracker.add_achievement(achievement.id):
            return False

        rewards = achievement.rewards
        if rewards.coins:
            self.progress_tracker.award_coins(rewards.coins, f"achievement {achievement.name}")
        if rewards.experience:
            self.progress_tracker.award_character_experience(rewards.experience)
        if rewards.power_up:
            self.progress_tracker.grant_power_up(rewards.power_up)

        self.progress_tracker.save_progress()
        logger.info(f"Achievement unlocked: {achievement.name}")
        return True

    def record_answer(self, subject: str, is_correct: bool,
                      response_time_ms: Optional[int] = None) -> List[Achievement]:
        """Update session counters with one answer and check for unlocks"""
        session = self.session
        session.questions_answered += 1

        if is_correct:
            session.correct_answers += 1
            session.current_streak += 1
            session.best_streak = max(session.best_streak, session.current_streak)
        else:
            session.current_streak = 0

        session.recent_answers.append(bool(is_correct))
        if response_time_ms is not None:
            session.recent_times.append(int(response_time_ms))

        subject_progress = session.subject_progress.setdefault(subject, {'correct': 0, 'total': 0})
        subject_progress['total'] += 1
        if is_correct:
            subject_progress['correct'] += 1

        return self.check_achievements(GameplayEvent(
            question_answered=True,
            is_correct=is_correct,
            subject=subject,
            response_time_ms=response_time_ms,
            current_streak=session.current_streak,
        ))

    def get_recent_answers(self, count: int) -> List[bool]:
        answers = list(self.session.recent_answers)
        return answers[-count:] if count > 0 else []

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def get_achievement_progress(self) -> List[Dict[str, Any]]:
        """All achievements with progress, locked ones first, closest first"""
        entries = []
        for achievement in self.achievements.values():
            is_unlocked = self.progress_tracker.has_achievement(achievement.id)
            if is_unlocked:
                value, maximum = 1, 1
            else:
                value, maximum = _progress.dispatch(achievement.condition, self)
                maximum = max(maximum, 1)

            entry = _describe(achievement)
            entry.update({
                'is_unlocked': is_unlocked,
                'progress': min(value, maximum),
                'max_progress': maximum,
                'progress_percent': round_half_up(min(value, maximum) / maximum * 100),
            })
            entries.append(entry)

        entries.sort(key=lambda e: (e['is_unlocked'], -e['progress_percent']))
        return entries

    def get_achievements_by_category(self) -> Dict[str, List[Dict[str, Any]]]:
        categories: Dict[str, List[Dict[str, Any]]] = {}
        for entry in self.get_achievement_progress():
            categories.setdefault(entry['category'], []).append(entry)
        return categories

    def get_recent_achievements(self, limit: int = 5) -> List[Achievement]:
        unlocked = self.progress['achievements'][-limit:] if limit > 0 else []
        return [self.achievements[a_id] for a_id in reversed(unlocked) if a_id in self.achievements]

    def get_achievement_stats(self) -> Dict[str, Any]:
        unlocked = set(self.progress['achievements'])
        total = len(self.achievements)

        category_stats: Dict[str, Dict[str, int]] = {}
        for achievement in self.achievements.values():
            stats = category_stats.setdefault(achievement.category.value, {'total': 0, 'unlocked': 0})
            stats['total'] += 1
            if achievement.id in unlocked:
                stats['unlocked'] += 1

        unlocked_known = [a_id for a_id in unlocked if a_id in self.achievements]
        return {
            'total_unlocked': len(unlocked_known),
            'total_achievements': total,
            'completion_percent': round_half_up(len(unlocked_known) / total * 100) if total else 0,
            'total_points': sum(self.achievements[a_id].points for a_id in unlocked_known),
            'category_stats': category_stats,
        }

    def get_next_achievements(self, limit: int = 3) -> List[Dict[str, Any]]:
        candidates = [
            entry for entry in self.get_achievement_progress()
            if not entry['is_unlocked'] and entry['progress_percent'] > 0
        ]
        candidates.sort(key=lambda e: -e['progress_percent'])
        return candidates[:limit]

    def reset_session(self):
        self.session = self._new_session()
        logger.debug("Achievement session reset")


def _describe(achievement: Achievement) -> Dict[str, Any]:
    entry = {
        'id': achievement.id,
        'name': achievement.name,
        'description': achievement.description,
        'icon': achievement.icon,
        'category': achievement.category.value,
        'rarity': achievement.rarity.value,
        'points': achievement.points,
        'rewards': asdict(achievement.rewards),
    }
    return entry


# ---------------------------------------------------------------------------
# Condition evaluators
# ---------------------------------------------------------------------------

_conditions = HandlerRegistry('achievement condition', ACHIEVEMENT_CONDITIONS)


@_conditions.handles(CorrectAnswers)
def _eval_correct_answers(condition: CorrectAnswers, manager: AchievementManager, event: GameplayEvent) -> bool:
    return manager.progress['session_stats']['correct_answers'] >= condition.value


@_conditions.handles(SessionAccuracy)
def _eval_session_accuracy(condition: SessionAccuracy, manager: AchievementManager, event: GameplayEvent) -> bool:
    session = manager.session
    if session.questions_answered == 0 or session.questions_answered < condition.min_questions:
        return False
    return session.correct_answers / session.questions_answered * 100 >= condition.value


@_conditions.handles(SustainedAccuracy)
def _eval_sustained_accuracy(condition: SustainedAccuracy, manager: AchievementManager, event: GameplayEvent) -> bool:
    recent = manager.get_recent_answers(condition.count)
    if len(recent) < condition.count:
        return False
    return sum(recent) / len(recent) * 100 >= condition.value


@_conditions.handles(SpeedBurst)
def _eval_speed_burst(condition: SpeedBurst, manager: AchievementManager, event: GameplayEvent) -> bool:
    times = list(manager.session.recent_times)
    if len(times) < condition.questions:
        return False
    return sum(times[-condition.questions:]) <= condition.time_ms


@_conditions.handles(SingleAnswerSpeed)
def _eval_single_answer_speed(condition: SingleAnswerSpeed, manager: AchievementManager, event: GameplayEvent) -> bool:
    return bool(event.is_correct) and event.response_time_ms is not None \
        and 0 < event.response_time_ms <= condition.time_ms


@_conditions.handles(Streak)
def _eval_streak(condition: Streak, manager: AchievementManager, event: GameplayEvent) -> bool:
    return manager.session.current_streak >= condition.value


@_conditions.handles(SubjectMastery)
def _eval_subject_mastery(condition: SubjectMastery, manager: AchievementManager, event: GameplayEvent) -> bool:
    stats = manager.progress['subject_stats'].get(condition.subject)
    if not stats or stats['total'] < condition.count:
        return False
    return stats['correct'] / stats['total'] * 100 >= condition.accuracy


@_conditions.handles(WeeksCompleted)
def _eval_weeks_completed(condition: WeeksCompleted, manager: AchievementManager, event: GameplayEvent) -> bool:
    return len(manager.progress['weeks_completed']) >= condition.value


@_conditions.handles(CharacterAbilityUse)
def _eval_character_ability_use(condition: CharacterAbilityUse, manager: AchievementManager,
                                event: GameplayEvent) -> bool:
    character_type = manager.progress_tracker.get_character_type()
    if not character_type or character_type.id != condition.character:
        return False
    return manager.progress['character_progression']['special_abilities_used'] >= condition.count


@_conditions.handles(TotalCoinsEarned)
def _eval_total_coins_earned(condition: TotalCoinsEarned, manager: AchievementManager, event: GameplayEvent) -> bool:
    return manager.progress['total_coins_earned'] >= condition.value


_conditions.verify_complete()


# ---------------------------------------------------------------------------
# Progress reporters: (current value, target value)
# ---------------------------------------------------------------------------

_progress = HandlerRegistry('achievement progress', ACHIEVEMENT_CONDITIONS)


@_progress.handles(CorrectAnswers)
def _progress_correct_answers(condition: CorrectAnswers, manager: AchievementManager) -> Tuple[int, int]:
    return manager.progress['session_stats']['correct_answers'], condition.value


@_progress.handles(SessionAccuracy)
def _progress_session_accuracy(condition: SessionAccuracy, manager: AchievementManager) -> Tuple[int, int]:
    return min(manager.session.questions_answered, condition.min_questions), max(condition.min_questions, 1)


@_progress.handles(SustainedAccuracy)
def _progress_sustained_accuracy(condition: SustainedAccuracy, manager: AchievementManager) -> Tuple[int, int]:
    return len(manager.get_recent_answers(condition.count)), condition.count


@_progress.handles(SpeedBurst)
def _progress_speed_burst(condition: SpeedBurst, manager: AchievementManager) -> Tuple[int, int]:
    return 0, 1


@_progress.handles(SingleAnswerSpeed)
def _progress_single_answer_speed(condition: SingleAnswerSpeed, manager: AchievementManager) -> Tuple[int, int]:
    return 0, 1


@_progress.handles(Streak)
def _progress_streak(condition: Streak, manager: AchievementManager) -> Tuple[int, int]:
    return manager.session.current_streak, condition.value


@_progress.handles(SubjectMastery)
def _progress_subject_mastery(condition: SubjectMastery, manager: AchievementManager) -> Tuple[int, int]:
    stats = manager.progress['subject_stats'].get(condition.subject) or {'total': 0}
    return min(stats['total'], condition.count), condition.count


@_progress.handles(WeeksCompleted)
def _progress_weeks_completed(condition: WeeksCompleted, manager: AchievementManager) -> Tuple[int, int]:
    return len(manager.progress['weeks_completed']), condition.value


@_progress.handles(CharacterAbilityUse)
def _progress_character_ability_use(condition: CharacterAbilityUse, manager: AchievementManager) -> Tuple[int, int]:
    character_type = manager.progress_tracker.get_character_type()
    if not character_type or character_type.id != condition.character:
        return 0, condition.count
    return manager.progress['character_progression']['special_abilities_used'], condition.count


@_progress.handles(TotalCoinsEarned)
def _progress_total_coins_earned(condition: TotalCoinsEarned, manager: AchievementManager) -> Tuple[int, int]:
    return manager.progress['total_coins_earned'], condition.value


_progress.verify_complete()
