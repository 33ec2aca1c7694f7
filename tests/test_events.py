#!/usr/bin/env python3
"""
Event System Tests for MechScholar
Tests triggers, cooldowns, challenge progress, rewards and effect folding
"""

import unittest
import random
from pathlib import Path
from datetime import datetime

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from mechscholar.education.conditions import GameplayEvent
from mechscholar.education.event_system import GAME_EVENTS, EventManager
from mechscholar.education.progress_tracker import ProgressTracker
from mechscholar.storage.backends import MemoryBackend
from mechscholar.storage.save_manager import SaveManager
from mechscholar.utils.clock import ManualClock


class FixedRandom(random.Random):
    """Random source whose random() always returns the same value"""

    def __init__(self, value):
        super().__init__(0)
        self.value = value

    def random(self):
        return self.value


def answer(is_correct=True, **kwargs):
    return GameplayEvent(question_answered=True, is_correct=is_correct, **kwargs)


def only(*event_ids):
    return {event_id: GAME_EVENTS[event_id] for event_id in event_ids}


class TestEventManager(unittest.TestCase):
    """Test EventManager functionality"""

    def setUp(self):
        """Set up test environment"""
        # Monday noon: outside the morning window and not a weekend
        self.clock = ManualClock(datetime(2024, 1, 1, 12, 0))
        self.tracker = ProgressTracker(SaveManager(MemoryBackend(), clock=self.clock), clock=self.clock)

    def make_manager(self, events=None, rng_value=0.99, **kwargs):
        return EventManager(self.tracker, rng=FixedRandom(rng_value), events=events, **kwargs)

    def test_forced_bonus_expires(self):
        """Test a timed bonus multiplies rewards until it expires"""
        manager = self.make_manager()
        manager.force_trigger_event('double_rewards')

        effects = manager.get_active_effects()
        self.assertEqual(effects.coin_multiplier, 2.0)
        self.assertEqual(effects.experience_multiplier, 2.0)

        self.clock.advance(ms=600001)
        self.assertEqual(manager.get_active_effects().coin_multiplier, 1.0)

        result = manager.update_events()
        self.assertEqual([a.id for a in result['expired']], ['double_rewards'])
        self.assertEqual(manager.get_event_history()[0]['outcome'], 'expired')
        self.assertIsNone(manager.force_trigger_event('no_such_event'))

    def test_perfect_round_completes(self):
        """Test a perfect run pays the challenge rewards"""
        manager = self.make_manager()
        manager.force_trigger_event('perfect_round')

        for _ in range(4):
            result = manager.update_events(answer())
            self.assertEqual(result['completed'], [])

        result = manager.update_events(answer())
        self.assertEqual([a.id for a in result['completed']], ['perfect_round'])
        self.assertEqual(self.tracker.get_coin_balance(), 250)
        self.assertEqual(self.tracker.get_power_up_count('shield'), 1)
        self.assertEqual(manager.get_event_stats()['challenges_completed'], 1)
        self.assertNotIn('perfect_round', manager.active_events)

    def test_perfect_round_fails_on_mistake(self):
        """Test one wrong answer fails a perfect-run challenge"""
        manager = self.make_manager()
        manager.force_trigger_event('perfect_round')
        manager.update_events(answer())

        result = manager.update_events(answer(is_correct=False))
        self.assertEqual([a.id for a in result['failed']], ['perfect_round'])
        self.assertEqual(self.tracker.get_coin_balance(), 100)

        history = manager.get_event_history()
        self.assertTrue(history[0]['failed'])
        self.assertFalse(history[0]['completed'])

    def test_accuracy_challenge(self):
        """Test an accuracy challenge waits until accuracy is met"""
        manager = self.make_manager()
        manager.force_trigger_event('subject_mastery')

        for _ in range(3):
            manager.update_events(answer(is_correct=False))
        for _ in range(12):
            result = manager.update_events(answer())
        self.assertEqual(result['completed'], [])

        # 16 correct of 19 is still short of 85%
        for _ in range(4):
            result = manager.update_events(answer())
        self.assertEqual(result['completed'], [])

        result = manager.update_events(answer())
        self.assertEqual([a.id for a in result['completed']], ['subject_mastery'])
        self.assertEqual(self.tracker.get_power_up_count('study_boost'), 1)

    def test_speed_challenge_times_out(self):
        """Test a timed challenge expires without rewards"""
        manager = self.make_manager()
        manager.force_trigger_event('speed_challenge')
        manager.update_events(answer())

        self.clock.advance(ms=60000)
        manager.update_events(answer())
        self.assertEqual(manager.active_events['speed_challenge'].progress['time_remaining'], 60000)

        self.clock.advance(ms=60001)
        result = manager.update_events(answer())
        self.assertEqual([a.id for a in result['expired']], ['speed_challenge'])
        self.assertEqual(self.tracker.get_coin_balance(), 100)

    def test_lucky_streak_pays_per_correct_answer(self):
        """Test the streak bonus pays each correct answer until its target"""
        manager = self.make_manager()
        manager.force_trigger_event('lucky_streak')

        manager.update_events(answer(is_correct=False))
        self.assertEqual(self.tracker.get_coin_balance(), 100)

        for _ in range(4):
            result = manager.update_events(answer())
        self.assertEqual(result['completed'], [])
        self.assertEqual(self.tracker.get_coin_balance(), 200)

        result = manager.update_events(answer())
        self.assertEqual([a.id for a in result['completed']], ['lucky_streak'])
        self.assertEqual(self.tracker.get_coin_balance(), 225)

    def test_mystery_box_opens_on_correct_answer(self):
        """Test the box waits for a correct answer and then resolves"""
        manager = self.make_manager()
        manager.force_trigger_event('mystery_box')

        self.clock.advance(days=1)
        result = manager.update_events(answer(is_correct=False))
        self.assertEqual(result['completed'], [])
        self.assertIn('mystery_box', manager.active_events)

        result = manager.update_events(answer())
        self.assertEqual([a.id for a in result['completed']], ['mystery_box'])
        self.assertIn(result['completed'][0].progress['reward_kind'],
                      ('coins', 'experience', 'power_up', 'cosmetic'))

    def test_mystery_box_reward_is_weighted(self):
        """Test the lowest roll picks the first reward"""
        manager = self.make_manager(rng_value=0.0)
        manager.force_trigger_event('mystery_box')
        manager.update_events(answer())
        self.assertEqual(self.tracker.get_coin_balance(), 200)

    def test_trigger_cooldown(self):
        """Test only one trigger pass per cooldown window"""
        manager = self.make_manager(only('lucky_streak', 'perfect_round'))

        self.assertEqual(manager.check_event_triggers(answer(current_streak=0)), [])
        triggered = manager.check_event_triggers(answer(current_streak=3))
        self.assertEqual([e.id for e in triggered], ['lucky_streak'])

        self.clock.advance(ms=10000)
        self.assertEqual(manager.check_event_triggers(answer(current_streak=5)), [])

        self.clock.advance(ms=20000)
        triggered = manager.check_event_triggers(answer(current_streak=5))
        self.assertEqual([e.id for e in triggered], ['perfect_round'])

    def test_active_events_not_retriggered(self):
        """Test a running event is skipped by trigger checks"""
        manager = self.make_manager(only('lucky_streak'))
        manager.force_trigger_event('lucky_streak')
        self.assertEqual(manager.check_event_triggers(answer(current_streak=10)), [])

    def test_random_trigger(self):
        """Test chance-based triggers follow the random source"""
        lucky = self.make_manager(only('double_rewards'), rng_value=0.1)
        self.assertEqual([e.id for e in lucky.check_event_triggers(answer())], ['double_rewards'])

        unlucky = self.make_manager(only('double_rewards'), rng_value=0.2)
        self.assertEqual(unlucky.check_event_triggers(answer()), [])

    def test_session_triggers(self):
        """Test triggers driven by ledger counters"""
        session = self.tracker.progress['session_stats']
        session['questions_answered'] = 20
        session['correct_answers'] = 17
        self.tracker.progress['subject_stats']['math'] = {'correct': 8, 'total': 10}
        self.tracker.progress['character_progression']['special_abilities_used'] = 3

        manager = self.make_manager(
            only('power_up_rain', 'speed_challenge', 'subject_mastery', 'character_boost'))
        triggered = {e.id for e in manager.check_event_triggers(answer(subject='math'))}
        self.assertEqual(triggered, {'power_up_rain', 'speed_challenge', 'subject_mastery', 'character_boost'})

        effects = manager.get_active_effects()
        self.assertEqual(effects.power_up_drop_rate, 0.3)
        self.assertEqual(effects.character_ability_boost, 1.5)
        self.assertEqual(effects.cooldown_reduction, 0.5)

    def test_subject_accuracy_needs_enough_questions(self):
        """Test subject triggers ignore thin history"""
        self.tracker.progress['subject_stats']['math'] = {'correct': 5, 'total': 5}
        manager = self.make_manager(only('subject_mastery'))
        self.assertEqual(manager.check_event_triggers(answer(subject='math')), [])
        self.assertEqual(manager.check_event_triggers(answer()), [])

    def test_time_of_day_trigger(self):
        """Test the morning window"""
        self.clock.set(datetime(2024, 1, 1, 7, 30))
        manager = self.make_manager(only('morning_bonus'))
        self.assertEqual([e.id for e in manager.check_event_triggers()], ['morning_bonus'])

        effects = manager.get_active_effects()
        self.assertAlmostEqual(effects.coin_multiplier, 1.3)
        self.assertAlmostEqual(effects.experience_multiplier, 1.2)

    def test_outside_time_window(self):
        """Test no timed events at noon on a weekday"""
        manager = self.make_manager(only('morning_bonus', 'weekend_warrior'))
        self.assertEqual(manager.check_event_triggers(), [])

    def test_weekend_trigger(self):
        """Test the weekend bonus on a Saturday"""
        self.clock.set(datetime(2024, 1, 6, 12, 0))
        manager = self.make_manager(only('weekend_warrior'))
        self.assertEqual([e.id for e in manager.check_event_triggers()], ['weekend_warrior'])

        effects = manager.get_active_effects()
        self.assertEqual(effects.coin_multiplier, 1.25)
        self.assertIn('weekend_warrior', effects.special_effects)

    def test_upcoming_events(self):
        """Test the schedule of later time windows"""
        self.clock.set(datetime(2024, 1, 1, 5, 0))
        manager = self.make_manager()
        upcoming = manager.get_upcoming_events()
        self.assertEqual(upcoming, [{
            'id': 'morning_bonus',
            'name': 'Early Bird Bonus',
            'time_until_ms': 3600000,
            'type': 'scheduled',
        }])

        self.clock.set(datetime(2024, 1, 1, 12, 0))
        self.assertEqual(manager.get_upcoming_events(), [])

    def test_effects_stack(self):
        """Test multipliers from several events multiply"""
        manager = self.make_manager()
        manager.force_trigger_event('double_rewards')
        manager.force_trigger_event('morning_bonus')
        self.assertAlmostEqual(manager.get_active_effects().coin_multiplier, 2.6)
        self.assertEqual(manager.get_active_effects().power_up_drop_rate, 0.1)

    def test_ledger_uses_event_effects(self):
        """Test per-answer rewards include event multipliers"""
        manager = self.make_manager()
        self.tracker.add_effect_source(manager)
        manager.force_trigger_event('double_rewards')

        rewards = self.tracker.record_answer('math', True, 20000, 'medium')
        self.assertEqual(rewards, {'coins': 10, 'experience': 20})

    def test_active_events_ordering(self):
        """Test challenges are listed first"""
        manager = self.make_manager()
        for event_id in ('morning_bonus', 'double_rewards', 'perfect_round'):
            manager.force_trigger_event(event_id)

        types = [event['type'] for event in manager.get_active_events()]
        self.assertEqual(types, ['challenge', 'bonus', 'timed'])

    def test_history_limit(self):
        """Test history is bounded and newest first"""
        manager = self.make_manager(history_limit=2)
        for event_id in ('double_rewards', 'power_up_rain', 'morning_bonus'):
            manager.force_trigger_event(event_id)
        self.clock.advance(days=1)
        manager.cleanup_expired_events()

        history = manager.get_event_history(10)
        self.assertEqual(len(history), 2)
        self.assertEqual([entry['id'] for entry in history], ['morning_bonus', 'power_up_rain'])

    def test_event_stats(self):
        """Test the stats summary"""
        manager = self.make_manager()
        manager.force_trigger_event('perfect_round')
        manager.force_trigger_event('double_rewards')
        for _ in range(5):
            manager.update_events(answer())

        stats = manager.get_event_stats()
        self.assertEqual(stats['events_triggered'], 2)
        self.assertEqual(stats['challenges_completed'], 1)
        self.assertEqual(stats['active_events'], 1)
        self.assertEqual(stats['success_rate'], 50)


if __name__ == '__main__':
    unittest.main()
