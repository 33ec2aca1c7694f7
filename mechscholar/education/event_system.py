"""
MechScholar Progression Engine - Event System
Randomly and conditionally triggered bonuses, challenges and timed events
Version: 2.0
"""

import logging
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Type

from .achievement_system import RewardBundle
from .conditions import (
    EVENT_TRIGGERS,
    AbilityUse,
    DayOfWeek,
    GameplayEvent,
    HandlerRegistry,
    QuestionCount,
    RandomChance,
    RollingAccuracy,
    StreakThreshold,
    SubjectAccuracy,
    TimeOfDay,
)
from .progress_tracker import ProgressTracker

logger = logging.getLogger(__name__)

DEFAULT_TRIGGER_COOLDOWN_MS = 30000
DEFAULT_DROP_RATE = 0.1
DEFAULT_HISTORY_LIMIT = 100
HOUR_MS = 60 * 60 * 1000


class EventType(Enum):
    """Event categories, in display order"""
    CHALLENGE = "challenge"
    BONUS = "bonus"
    SPECIAL = "special"
    TIMED = "timed"


EVENT_TYPE_ORDER = {event_type: index for index, event_type in enumerate(EventType)}


# --- Event effect variants ---

@dataclass(frozen=True)
class RewardMultiplier:
    coin_multiplier: float = 1.0
    experience_multiplier: float = 1.0


@dataclass(frozen=True)
class StreakBonus:
    """Pays ``bonus_per_correct`` coins per correct answer until ``streak_target`` answers"""
    bonus_per_correct: int
    streak_target: int


@dataclass(frozen=True)
class DropRateBoost:
    drop_rate: float


@dataclass(frozen=True)
class Challenge:
    questions_required: int
    rewards: RewardBundle
    time_limit_ms: Optional[int] = None
    perfect_required: bool = False
    accuracy_required: Optional[int] = None


@dataclass(frozen=True)
class MysteryReward:
    kind: str  # 'coins', 'experience', 'power_up' or 'cosmetic'
    value: Any
    weight: int


@dataclass(frozen=True)
class MysteryBox:
    possible_rewards: Tuple[MysteryReward, ...]


@dataclass(frozen=True)
class AbilityBoost:
    ability_boost: float
    cooldown_reduction: float


@dataclass(frozen=True)
class WeekendBonus:
    multiplier: float


EVENT_EFFECTS: Tuple[Type, ...] = (
    RewardMultiplier, StreakBonus, DropRateBoost, Challenge, MysteryBox, AbilityBoost, WeekendBonus,
)


@dataclass(frozen=True)
class GameEvent:
    """Event definition"""
    id: str
    name: str
    description: str
    icon: str
    type: EventType
    duration_ms: int
    rarity: str
    effect: Any
    trigger: Any


@dataclass
class EventActivation:
    """A triggered event and its running progress"""
    id: str
    event: GameEvent
    start_time: int
    end_time: int
    progress: Dict[str, int] = field(default_factory=dict)
    completed: bool = False
    failed: bool = False

    def is_expired(self, now_ms: int) -> bool:
        return self.end_time > 0 and now_ms > self.end_time


@dataclass
class EventRecord:
    """History entry for a finished event"""
    id: str
    name: str
    type: str
    outcome: str  # 'completed', 'failed' or 'expired'
    timestamp: int
    progress: Dict[str, int] = field(default_factory=dict)


@dataclass
class EventEffects:
    """Folded snapshot of every live event"""
    coin_multiplier: float = 1.0
    experience_multiplier: float = 1.0
    power_up_drop_rate: float = DEFAULT_DROP_RATE
    character_ability_boost: float = 1.0
    cooldown_reduction: float = 1.0
    special_effects: List[str] = field(default_factory=list)

    def subject_multiplier(self, subject: str) -> float:
        return 1.0


GAME_EVENTS: Dict[str, GameEvent] = {e.id: e for e in [
    # Bonus events
    GameEvent('double_rewards', 'Double Rewards Hour', 'All rewards are doubled for the next 10 minutes!',
              '💰', EventType.BONUS, 600000, 'common',
              RewardMultiplier(2.0, 2.0), RandomChance(0.15)),
    GameEvent('lucky_streak', 'Lucky Streak', 'Next 5 correct answers give bonus rewards!',
              '🍀', EventType.BONUS, -1, 'uncommon',
              StreakBonus(25, 5), StreakThreshold(3)),
    GameEvent('power_up_rain', 'Power-Up Rain', 'Random power-ups appear more frequently!',
              '🌧️', EventType.BONUS, 300000, 'rare',
              DropRateBoost(0.3), QuestionCount(20)),

    # Challenge events
    GameEvent('speed_challenge', 'Speed Challenge', 'Answer 10 questions in under 2 minutes for mega rewards!',
              '⚡', EventType.CHALLENGE, 120000, 'uncommon',
              Challenge(10, RewardBundle(200, 150, 'time_freeze'), time_limit_ms=120000),
              RollingAccuracy(80, 10)),
    GameEvent('perfect_round', 'Perfect Round', 'Get the next 5 questions perfect for special rewards!',
              '🎯', EventType.CHALLENGE, -1, 'rare',
              Challenge(5, RewardBundle(150, 100, 'shield'), perfect_required=True),
              StreakThreshold(5)),
    GameEvent('subject_mastery', 'Subject Mastery Challenge', 'Prove your mastery in a specific subject!',
              '🏆', EventType.CHALLENGE, 900000, 'epic',
              Challenge(15, RewardBundle(300, 250, 'study_boost'), accuracy_required=85),
              SubjectAccuracy(75, 10)),

    # Special events
    GameEvent('mystery_box', 'Mystery Box', 'A mysterious box appears! Answer correctly to open it.',
              '📦', EventType.SPECIAL, 0, 'rare',
              MysteryBox((
                  MysteryReward('coins', 100, 30),
                  MysteryReward('experience', 75, 30),
                  MysteryReward('power_up', 'hint', 20),
                  MysteryReward('power_up', 'double_coins', 12),
                  MysteryReward('cosmetic', 'special', 8),
              )),
              RandomChance(0.08)),
    GameEvent('character_boost', 'Character Boost', 'Your mech feels energized! Abilities are enhanced.',
              '⭐', EventType.SPECIAL, 480000, 'uncommon',
              AbilityBoost(1.5, 0.5), AbilityUse(3)),

    # Time-based events
    GameEvent('morning_bonus', 'Early Bird Bonus', 'Morning learning gives extra rewards!',
              '🌅', EventType.TIMED, 3600000, 'common',
              RewardMultiplier(1.3, 1.2), TimeOfDay(6, 10)),
    GameEvent('weekend_warrior', 'Weekend Warrior', 'Weekend learning earns bonus points!',
              '🎮', EventType.TIMED, 172800000, 'common',
              WeekendBonus(1.25), DayOfWeek((5, 6))),
]}


class EventManager:
    """
    Triggers events from gameplay, advances their progress on each answer and
    folds live events into a reward multiplier snapshot.
    """

    def __init__(self, progress_tracker: ProgressTracker, rng: Optional[random.Random] = None,
                 events: Optional[Dict[str, GameEvent]] = None,
                 trigger_cooldown_ms: int = DEFAULT_TRIGGER_COOLDOWN_MS,
                 base_drop_rate: float = DEFAULT_DROP_RATE,
                 history_limit: int = DEFAULT_HISTORY_LIMIT):
        self.progress_tracker = progress_tracker
        self.clock = progress_tracker.clock
        self.rng = rng or random.Random()
        self.events = events if events is not None else GAME_EVENTS
        self.trigger_cooldown_ms = trigger_cooldown_ms
        self.base_drop_rate = base_drop_rate
        self.history_limit = history_limit

        self.active_events: Dict[str, EventActivation] = {}
        self.event_history: List[EventRecord] = []
        self.event_stats = {
            'events_triggered': 0,
            'challenges_completed': 0,
            'bonuses_earned': 0,
            'last_event_time': None,
        }

        logger.info(f"Event system initialized with {len(self.events)} events")

    # ------------------------------------------------------------------
    # Triggering
    # ------------------------------------------------------------------

    def check_event_triggers(self, event_data: Optional[GameplayEvent] = None) -> List[GameEvent]:
        """Roll every inactive event's trigger, at most once per cooldown window"""
        event_data = event_data or GameplayEvent()
        now = self.clock.now_ms()

        last_event_time = self.event_stats['last_event_time']
        if last_event_time is not None and now - last_event_time < self.trigger_cooldown_ms:
            return []

        triggered = []
        for event in self.events.values():
            if event.id in self.active_events:
                continue
            if self.should_trigger_event(event, event_data):
                self.trigger_event(event)
                triggered.append(event)

        if triggered:
            self.event_stats['last_event_time'] = now
        return triggered

    def should_trigger_event(self, event: GameEvent, event_data: GameplayEvent) -> bool:
        return bool(_triggers.dispatch(event.trigger, self, event_data))

    def trigger_event(self, event: GameEvent) -> EventActivation:
        now = self.clock.now_ms()
        activation = EventActivation(
            id=event.id,
            event=event,
            start_time=now,
            end_time=now + event.duration_ms if event.duration_ms > 0 else -1,
        )

        if isinstance(event.effect, Challenge):
            activation.progress = {
                'questions_answered': 0,
                'correct_answers': 0,
                'time_remaining': event.effect.time_limit_ms or -1,
            }
        elif isinstance(event.effect, StreakBonus):
            activation.progress = {'correct_answers': 0}

        self.active_events[event.id] = activation
        self.event_stats['events_triggered'] += 1

        logger.info(f"Event triggered: {event.name}")
        return activation

    def force_trigger_event(self, event_id: str) -> Optional[EventActivation]:
        event = self.events.get(event_id)
        if event is None:
            return None
        return self.trigger_event(event)

    # ------------------------------------------------------------------
    # Progress
    # ------------------------------------------------------------------

    def update_events(self, event_data: Optional[GameplayEvent] = None) -> Dict[str, List[EventActivation]]:
        """Expire, advance, complete or fail every active event"""
        event_data = event_data or GameplayEvent()
        result: Dict[str, List[EventActivation]] = {'completed': [], 'failed': [], 'expired': []}
        now = self.clock.now_ms()

        for event_id in list(self.active_events):
            activation = self.active_events[event_id]

            if activation.is_expired(now):
                self._finish(activation, 'expired')
                result['expired'].append(activation)
                continue

            outcome = _answer_handlers.dispatch(activation.event.effect, self, activation, event_data)
            if outcome == 'completed':
                self.complete_event(activation)
                result['completed'].append(activation)
            elif outcome == 'failed':
                self.fail_event(activation)
                result['failed'].append(activation)

        return result

    def is_challenge_completed(self, activation: EventActivation) -> bool:
        challenge: Challenge = activation.event.effect
        progress = activation.progress

        if progress['questions_answered'] < challenge.questions_required:
            return False

        if challenge.accuracy_required is not None:
            answered = progress['questions_answered']
            accuracy = progress['correct_answers'] / answered * 100 if answered else 0
            if accuracy < challenge.accuracy_required:
                return False

        if challenge.perfect_required:
            return progress['correct_answers'] == challenge.questions_required

        return True

    def complete_event(self, activation: EventActivation):
        event = activation.event
        activation.completed = True

        if isinstance(event.effect, Challenge):
            self.award_event_rewards(event.effect.rewards)
            self.event_stats['challenges_completed'] += 1

        self._finish(activation, 'completed')
        logger.info(f"Event completed: {event.name}")

    def fail_event(self, activation: EventActivation):
        activation.failed = True
        self._finish(activation, 'failed')
        logger.info(f"Event failed: {activation.event.name}")

    def _finish(self, activation: EventActivation, outcome: str):
        self.active_events.pop(activation.id, None)
        self.event_history.append(EventRecord(
            id=activation.id,
            name=activation.event.name,
            type=activation.event.type.value,
            outcome=outcome,
            timestamp=self.clock.now_ms(),
            progress=dict(activation.progress),
        ))
        if len(self.event_history) > self.history_limit:
            del self.event_history[:len(self.event_history) - self.history_limit]

    def award_event_rewards(self, rewards: RewardBundle):
        if rewards.coins:
            self.progress_tracker.award_coins(rewards.coins, 'event reward')
        if rewards.experience:
            self.progress_tracker.award_character_experience(rewards.experience)
        if rewards.power_up:
            self.progress_tracker.grant_power_up(rewards.power_up)
        self.event_stats['bonuses_earned'] += 1
        self.progress_tracker.save_progress()

    def open_mystery_box(self, box: MysteryBox) -> MysteryReward:
        weights = [reward.weight for reward in box.possible_rewards]
        reward = self.rng.choices(box.possible_rewards, weights=weights, k=1)[0]

        if reward.kind == 'coins':
            self.award_event_rewards(RewardBundle(coins=reward.value))
        elif reward.kind == 'experience':
            self.award_event_rewards(RewardBundle(experience=reward.value))
        elif reward.kind == 'power_up':
            self.award_event_rewards(RewardBundle(power_up=reward.value))
        else:
            self.progress_tracker.grant_item(reward.value, reward.kind)
            self.event_stats['bonuses_earned'] += 1

        logger.info(f"Mystery box opened: {reward.kind} {reward.value}")
        return reward

    # ------------------------------------------------------------------
    # Read-side projections
    # ------------------------------------------------------------------

    def _live_activations(self) -> List[EventActivation]:
        now = self.clock.now_ms()
        return [a for a in self.active_events.values() if not a.is_expired(now)]

    def get_active_effects(self) -> EventEffects:
        effects = EventEffects(power_up_drop_rate=self.base_drop_rate)
        for activation in self._live_activations():
            _effect_folders.dispatch(activation.event.effect, effects, activation)
        return effects

    def get_active_events(self) -> List[Dict[str, Any]]:
        now = self.clock.now_ms()
        active = []
        for activation in self._live_activations():
            event = activation.event
            active.append({
                'id': activation.id,
                'name': event.name,
                'description': event.description,
                'icon': event.icon,
                'type': event.type.value,
                'time_remaining_ms': max(0, activation.end_time - now) if activation.end_time > 0 else -1,
                'progress': dict(activation.progress),
                'rarity': event.rarity,
            })
        active.sort(key=lambda e: EVENT_TYPE_ORDER[EventType(e['type'])])
        return active

    def get_event_history(self, limit: int = 10) -> List[Dict[str, Any]]:
        recent = self.event_history[-limit:] if limit > 0 else []
        return [
            {
                'id': record.id,
                'name': record.name,
                'type': record.type,
                'completed': record.outcome == 'completed',
                'failed': record.outcome == 'failed',
                'outcome': record.outcome,
                'timestamp': record.timestamp,
            }
            for record in reversed(recent)
        ]

    def get_event_stats(self) -> Dict[str, Any]:
        stats = dict(self.event_stats)
        stats['active_events'] = len(self._live_activations())
        stats['success_rate'] = (
            self.event_stats['challenges_completed'] / max(1, self.event_stats['events_triggered']) * 100
        )
        return stats

    def cleanup_expired_events(self) -> List[str]:
        now = self.clock.now_ms()
        expired = [a for a in self.active_events.values() if a.is_expired(now)]
        for activation in expired:
            self._finish(activation, 'expired')
        return [activation.id for activation in expired]

    def get_upcoming_events(self) -> List[Dict[str, Any]]:
        """Time-of-day events that will open later today"""
        current_hour = self.clock.now().hour
        upcoming = []
        for event in self.events.values():
            trigger = event.trigger
            if isinstance(trigger, TimeOfDay) and current_hour < trigger.start_hour:
                upcoming.append({
                    'id': event.id,
                    'name': event.name,
                    'time_until_ms': (trigger.start_hour - current_hour) * HOUR_MS,
                    'type': 'scheduled',
                })
        upcoming.sort(key=lambda e: e['time_until_ms'])
        return upcoming


# ---------------------------------------------------------------------------
# Trigger evaluators
# ---------------------------------------------------------------------------

_triggers = HandlerRegistry('event trigger', EVENT_TRIGGERS)


@_triggers.handles(RandomChance)
def _trigger_random(trigger: RandomChance, manager: EventManager, event: GameplayEvent) -> bool:
    return manager.rng.random() < trigger.chance


@_triggers.handles(StreakThreshold)
def _trigger_streak(trigger: StreakThreshold, manager: EventManager, event: GameplayEvent) -> bool:
    return (event.current_streak or 0) >= trigger.value


@_triggers.handles(QuestionCount)
def _trigger_question_count(trigger: QuestionCount, manager: EventManager, event: GameplayEvent) -> bool:
    return manager.progress_tracker.progress['session_stats']['questions_answered'] >= trigger.value


@_triggers.handles(RollingAccuracy)
def _trigger_rolling_accuracy(trigger: RollingAccuracy, manager: EventManager, event: GameplayEvent) -> bool:
    session = manager.progress_tracker.progress['session_stats']
    answered = session['questions_answered']
    if answered < trigger.questions:
        return False
    return session['correct_answers'] / answered * 100 >= trigger.value


@_triggers.handles(SubjectAccuracy)
def _trigger_subject_accuracy(trigger: SubjectAccuracy, manager: EventManager, event: GameplayEvent) -> bool:
    if not event.subject:
        return False
    stats = None
    if event.subject_stats:
        stats = event.subject_stats.get(event.subject)
    if stats is None:
        stats = manager.progress_tracker.progress['subject_stats'].get(event.subject)
    if not stats or stats['total'] < trigger.questions:
        return False
    return stats['correct'] / stats['total'] * 100 >= trigger.value


@_triggers.handles(AbilityUse)
def _trigger_ability_use(trigger: AbilityUse, manager: EventManager, event: GameplayEvent) -> bool:
    used = manager.progress_tracker.progress['character_progression']['special_abilities_used']
    return used >= trigger.count


@_triggers.handles(TimeOfDay)
def _trigger_time_of_day(trigger: TimeOfDay, manager: EventManager, event: GameplayEvent) -> bool:
    return trigger.start_hour <= manager.clock.now().hour < trigger.end_hour


@_triggers.handles(DayOfWeek)
def _trigger_day_of_week(trigger: DayOfWeek, manager: EventManager, event: GameplayEvent) -> bool:
    return manager.clock.now().weekday() in trigger.days


_triggers.verify_complete()


# ---------------------------------------------------------------------------
# Effect folders
# ---------------------------------------------------------------------------

_effect_folders = HandlerRegistry('event effect', EVENT_EFFECTS)


@_effect_folders.handles(RewardMultiplier)
def _fold_reward_multiplier(effect: RewardMultiplier, effects: EventEffects, activation: EventActivation):
    effects.coin_multiplier *= effect.coin_multiplier
    effects.experience_multiplier *= effect.experience_multiplier


@_effect_folders.handles(StreakBonus)
def _fold_streak_bonus(effect: StreakBonus, effects: EventEffects, activation: EventActivation):
    effects.special_effects.append(activation.id)


@_effect_folders.handles(DropRateBoost)
def _fold_drop_rate(effect: DropRateBoost, effects: EventEffects, activation: EventActivation):
    effects.power_up_drop_rate = max(effects.power_up_drop_rate, effect.drop_rate)


@_effect_folders.handles(Challenge)
def _fold_challenge(effect: Challenge, effects: EventEffects, activation: EventActivation):
    pass


@_effect_folders.handles(MysteryBox)
def _fold_mystery_box(effect: MysteryBox, effects: EventEffects, activation: EventActivation):
    effects.special_effects.append(activation.id)


@_effect_folders.handles(AbilityBoost)
def _fold_ability_boost(effect: AbilityBoost, effects: EventEffects, activation: EventActivation):
    effects.character_ability_boost *= effect.ability_boost
    effects.cooldown_reduction *= effect.cooldown_reduction


@_effect_folders.handles(WeekendBonus)
def _fold_weekend_bonus(effect: WeekendBonus, effects: EventEffects, activation: EventActivation):
    effects.coin_multiplier *= effect.multiplier
    effects.experience_multiplier *= effect.multiplier
    effects.special_effects.append(activation.id)


_effect_folders.verify_complete()


# ---------------------------------------------------------------------------
# Per-update handlers: return 'completed', 'failed' or None
# ---------------------------------------------------------------------------

_answer_handlers = HandlerRegistry('event update', EVENT_EFFECTS)


def _no_progress(effect: Any, manager: EventManager, activation: EventActivation,
                 event: GameplayEvent) -> Optional[str]:
    return None


for _passive in (RewardMultiplier, DropRateBoost, AbilityBoost, WeekendBonus):
    _answer_handlers.handles(_passive)(_no_progress)


@_answer_handlers.handles(Challenge)
def _advance_challenge(effect: Challenge, manager: EventManager, activation: EventActivation,
                       event: GameplayEvent) -> Optional[str]:
    progress = activation.progress
    if event.question_answered:
        progress['questions_answered'] += 1
        if event.is_correct:
            progress['correct_answers'] += 1
        elif effect.perfect_required:
            return 'failed'

    if effect.time_limit_ms:
        progress['time_remaining'] = max(0, activation.end_time - manager.clock.now_ms())

    if manager.is_challenge_completed(activation):
        return 'completed'
    return None


@_answer_handlers.handles(StreakBonus)
def _advance_streak_bonus(effect: StreakBonus, manager: EventManager, activation: EventActivation,
                          event: GameplayEvent) -> Optional[str]:
    if not (event.question_answered and event.is_correct):
        return None
    activation.progress['correct_answers'] += 1
    manager.award_event_rewards(RewardBundle(coins=effect.bonus_per_correct))
    if activation.progress['correct_answers'] >= effect.streak_target:
        return 'completed'
    return None


@_answer_handlers.handles(MysteryBox)
def _advance_mystery_box(effect: MysteryBox, manager: EventManager, activation: EventActivation,
                         event: GameplayEvent) -> Optional[str]:
    if not event.is_correct:
        return None
    reward = manager.open_mystery_box(effect)
    activation.progress = {'reward_kind': reward.kind, 'reward_value': reward.value}
    return 'completed'


_answer_handlers.verify_complete()
