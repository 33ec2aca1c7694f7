#!/usr/bin/env python3
"""
Achievement System Tests for MechScholar
Tests unlock conditions, rewards and progress reporting
"""

import unittest
from dataclasses import dataclass
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from mechscholar.education.achievement_system import ACHIEVEMENTS, AchievementManager
from mechscholar.education.conditions import ACHIEVEMENT_CONDITIONS, CorrectAnswers, HandlerRegistry
from mechscholar.education.progress_tracker import ProgressTracker
from mechscholar.storage.backends import MemoryBackend
from mechscholar.storage.save_manager import SaveManager
from mechscholar.utils.clock import ManualClock
from mechscholar.utils.exceptions import CatalogError


def unlocked_ids(achievements):
    return [achievement.id for achievement in achievements]


class TestAchievementManager(unittest.TestCase):
    """Test AchievementManager functionality"""

    def setUp(self):
        """Set up test environment"""
        self.clock = ManualClock()
        self.tracker = ProgressTracker(SaveManager(MemoryBackend(), clock=self.clock), clock=self.clock)
        self.manager = AchievementManager(self.tracker)

    def answer(self, subject='math', is_correct=True, response_time_ms=8000):
        """Report an answer to the ledger and the evaluator, like the engine does"""
        self.tracker.record_answer(subject, is_correct, response_time_ms)
        return unlocked_ids(self.manager.record_answer(subject, is_correct, response_time_ms))

    def test_catalog_shape(self):
        """Test every catalog entry is well formed"""
        self.assertEqual(len(ACHIEVEMENTS), 22)
        for achievement_id, achievement in ACHIEVEMENTS.items():
            self.assertEqual(achievement_id, achievement.id)
            self.assertIsInstance(achievement.condition, ACHIEVEMENT_CONDITIONS)

    def test_first_steps(self):
        """Test the first correct answer unlocks and pays out"""
        self.assertIn('first_steps', self.answer())
        self.assertTrue(self.tracker.has_achievement('first_steps'))
        self.assertEqual(self.tracker.progress['badges'], 1)

    def test_unlock_only_once(self):
        """Test an unlocked achievement cannot pay twice"""
        self.assertTrue(self.manager.unlock_achievement('first_steps'))
        balance = self.tracker.get_coin_balance()

        self.assertFalse(self.manager.unlock_achievement('first_steps'))
        self.assertFalse(self.manager.unlock_achievement('no_such_achievement'))
        self.assertEqual(self.tracker.get_coin_balance(), balance)
        self.assertEqual(self.tracker.progress['achievements'], ['first_steps'])

    def test_unlock_rewards(self):
        """Test coins and power-ups from an unlock"""
        self.assertTrue(self.manager.unlock_achievement('scholar'))
        self.assertEqual(self.tracker.get_coin_balance(), 200)
        self.assertEqual(self.tracker.get_power_up_count('hint'), 1)

    def test_lightning(self):
        """Test a very fast correct answer"""
        self.assertIn('lightning', self.answer(response_time_ms=2000))
        self.assertEqual(self.tracker.get_power_up_count('time_freeze'), 1)

    def test_lightning_needs_correct_answer(self):
        """Test fast wrong answers and missing timings do not count"""
        self.assertNotIn('lightning', self.answer(is_correct=False, response_time_ms=1000))
        self.assertNotIn('lightning', self.answer(response_time_ms=0))

    def test_hot_streak(self):
        """Test five correct answers in a row"""
        unlocked = []
        for _ in range(4):
            unlocked += self.answer()
        self.assertNotIn('hot_streak', unlocked)
        self.assertIn('hot_streak', self.answer())

    def test_streak_resets_on_wrong_answer(self):
        """Test a wrong answer breaks the streak"""
        for _ in range(4):
            self.answer()
        self.answer(is_correct=False)
        self.assertEqual(self.manager.session.current_streak, 0)
        self.assertEqual(self.manager.session.best_streak, 4)
        self.assertNotIn('hot_streak', self.answer())

    def test_speed_demon(self):
        """Test five answers inside thirty seconds"""
        unlocked = []
        for _ in range(5):
            unlocked += self.answer(is_correct=False, response_time_ms=5000)
        self.assertIn('speed_demon', unlocked)

    def test_perfectionist_needs_ten_questions(self):
        """Test a perfect session must be at least ten questions long"""
        unlocked = []
        for _ in range(9):
            unlocked += self.answer()
        self.assertNotIn('perfectionist', unlocked)

        unlocked = self.answer()
        self.assertIn('perfectionist', unlocked)
        self.assertIn('unstoppable', unlocked)
        self.assertIn('quick_learner', unlocked)

    def test_sharpshooter_uses_last_twenty(self):
        """Test sustained accuracy over a rolling window"""
        unlocked = []
        unlocked += self.answer(is_correct=False)
        unlocked += self.answer(is_correct=False)
        for _ in range(17):
            unlocked += self.answer()
        self.assertNotIn('sharpshooter', unlocked)

        self.assertIn('sharpshooter', self.answer())
        self.assertEqual(len(self.manager.get_recent_answers(20)), 20)

    def test_subject_mastery(self):
        """Test lifetime subject accuracy"""
        self.tracker.progress['subject_stats']['math'] = {'correct': 21, 'total': 24}
        self.assertIn('math_wizard', self.answer('math'))

    def test_week_warrior(self):
        """Test week completion achievements"""
        self.tracker.complete_week(1)
        self.assertIn('week_warrior', unlocked_ids(self.manager.check_achievements()))

    def test_character_ability_achievement(self):
        """Test ability achievements only count for their own mech"""
        self.tracker.set_character({'type': 'titan', 'name': 'Rex'})
        for _ in range(10):
            self.tracker.use_special_ability()

        unlocked = unlocked_ids(self.manager.check_achievements())
        self.assertIn('tech_master', unlocked)
        self.assertNotIn('scholarly_wisdom', unlocked)
        self.assertNotIn('mystic_mastery', unlocked)

    def test_coin_collector(self):
        """Test lifetime coin achievements"""
        self.tracker.progress['total_coins_earned'] = 1000
        unlocked = unlocked_ids(self.manager.check_achievements())
        self.assertIn('coin_collector', unlocked)
        self.assertNotIn('treasure_hunter', unlocked)

    def test_achievement_progress(self):
        """Test progress entries and their ordering"""
        for _ in range(3):
            self.answer()

        entries = self.manager.get_achievement_progress()
        self.assertEqual(len(entries), len(ACHIEVEMENTS))

        locked = [entry['is_unlocked'] for entry in entries]
        self.assertEqual(locked, sorted(locked))

        by_id = {entry['id']: entry for entry in entries}
        self.assertTrue(by_id['first_steps']['is_unlocked'])
        self.assertEqual(by_id['hot_streak']['progress'], 3)
        self.assertEqual(by_id['hot_streak']['max_progress'], 5)
        self.assertEqual(by_id['hot_streak']['progress_percent'], 60)

    def test_stats_and_recent(self):
        """Test reporting helpers"""
        self.manager.unlock_achievement('first_steps')
        self.manager.unlock_achievement('hot_streak')

        stats = self.manager.get_achievement_stats()
        self.assertEqual(stats['total_unlocked'], 2)
        self.assertEqual(stats['total_achievements'], 22)
        self.assertEqual(stats['total_points'], 40)
        self.assertEqual(stats['category_stats']['streak'], {'total': 3, 'unlocked': 1})

        recent = unlocked_ids(self.manager.get_recent_achievements(5))
        self.assertEqual(recent, ['hot_streak', 'first_steps'])

        categories = self.manager.get_achievements_by_category()
        self.assertEqual(len(categories['subject']), 4)

    def test_next_achievements(self):
        """Test suggestions only include started achievements"""
        for _ in range(2):
            self.answer()
        suggestions = self.manager.get_next_achievements(3)
        self.assertLessEqual(len(suggestions), 3)
        for entry in suggestions:
            self.assertFalse(entry['is_unlocked'])
            self.assertGreater(entry['progress_percent'], 0)

    def test_reset_session(self):
        """Test session counters clear"""
        self.answer()
        self.manager.reset_session()
        self.assertEqual(self.manager.session.questions_answered, 0)
        self.assertEqual(self.manager.get_recent_answers(5), [])


@dataclass(frozen=True)
class Unregistered:
    value: int


class TestHandlerRegistry(unittest.TestCase):
    """Test the variant handler registry"""

    def test_missing_handler_detected(self):
        registry = HandlerRegistry('test condition', ACHIEVEMENT_CONDITIONS)
        registry.handles(CorrectAnswers)(lambda condition: True)
        with self.assertRaises(CatalogError):
            registry.verify_complete()

    def test_foreign_variant_rejected(self):
        registry = HandlerRegistry('test condition', ACHIEVEMENT_CONDITIONS)
        with self.assertRaises(CatalogError):
            registry.handles(Unregistered)
        with self.assertRaises(CatalogError):
            registry.dispatch(Unregistered(1))

    def test_duplicate_handler_rejected(self):
        registry = HandlerRegistry('test condition', ACHIEVEMENT_CONDITIONS)
        registry.handles(CorrectAnswers)(lambda condition: True)
        with self.assertRaises(CatalogError):
            registry.handles(CorrectAnswers)(lambda condition: False)

    def test_dispatch(self):
        registry = HandlerRegistry('test condition', ACHIEVEMENT_CONDITIONS)
        registry.handles(CorrectAnswers)(lambda condition, extra: condition.value + extra)
        self.assertEqual(registry.dispatch(CorrectAnswers(2), 3), 5)


if __name__ == '__main__':
    unittest.main()
