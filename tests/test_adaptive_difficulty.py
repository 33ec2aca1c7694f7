#!/usr/bin/env python3
"""
Adaptive Difficulty Tests for MechScholar
Tests tier selection, dynamic adjustment and reward calculation
"""

import unittest
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from mechscholar.education.adaptive_difficulty import (
    DIFFICULTY_TIERS,
    TIERS_BY_ID,
    AdaptiveDifficultyManager,
    RecentAnswer,
)
from mechscholar.education.progress_tracker import ProgressTracker
from mechscholar.storage.backends import MemoryBackend
from mechscholar.storage.save_manager import SaveManager
from mechscholar.utils.clock import ManualClock


class TestAdaptiveDifficulty(unittest.TestCase):
    """Test AdaptiveDifficultyManager functionality"""

    def setUp(self):
        """Set up test environment"""
        self.clock = ManualClock()
        self.tracker = ProgressTracker(SaveManager(MemoryBackend(), clock=self.clock), clock=self.clock)
        self.manager = AdaptiveDifficultyManager(self.tracker)

    def set_stats(self, subject, correct, total):
        self.tracker.progress['subject_stats'][subject] = {'correct': correct, 'total': total}

    def test_tier_order(self):
        """Test tiers run from beginner to expert"""
        self.assertEqual([tier.id for tier in DIFFICULTY_TIERS],
                         ['beginner', 'easy', 'medium', 'hard', 'expert'])
        self.assertEqual(TIERS_BY_ID['expert'].multiplier, 2.0)

    def test_no_history_is_easy(self):
        """Test a new subject starts on easy"""
        self.assertEqual(self.manager.get_current_difficulty('math').id, 'easy')
        self.set_stats('math', 0, 0)
        self.assertEqual(self.manager.get_current_difficulty('math').id, 'easy')

    def test_tiers_by_accuracy(self):
        """Test the accuracy thresholds"""
        expected = {9: 'expert', 8: 'hard', 7: 'medium', 5: 'easy', 4: 'beginner'}
        for correct, tier_id in expected.items():
            self.set_stats('math', correct, 10)
            self.assertEqual(self.manager.get_current_difficulty('math').id, tier_id)

    def test_strength_raises_thresholds(self):
        """Test a mech's strong subject needs more accuracy for each tier"""
        self.tracker.set_character({'type': 'titan', 'name': 'Rex'})
        self.set_stats('math', 9, 10)
        self.set_stats('reading', 9, 10)

        self.assertEqual(self.manager.get_current_difficulty('math').id, 'hard')
        self.assertEqual(self.manager.get_current_difficulty('reading').id, 'expert')

    def test_adjust_up(self):
        """Test fast accurate answers move up one tier"""
        self.set_stats('math', 7, 10)
        for _ in range(5):
            self.manager.record_answer('math', True, 5000)
        self.assertEqual(self.manager.adjust_difficulty_dynamic('math').id, 'hard')

    def test_adjust_down(self):
        """Test low accuracy or very slow answers move down one tier"""
        self.set_stats('math', 7, 10)
        wrong = [RecentAnswer(False, 5000)] * 5
        self.assertEqual(self.manager.adjust_difficulty_dynamic('math', wrong).id, 'easy')

        slow = [RecentAnswer(True, 40000)] * 5
        self.assertEqual(self.manager.adjust_difficulty_dynamic('math', slow).id, 'easy')

    def test_adjust_holds(self):
        """Test middling answers and empty windows keep the tier"""
        self.set_stats('math', 7, 10)
        mixed = [RecentAnswer(True, 20000)] * 3 + [RecentAnswer(False, 20000)] * 2
        self.assertEqual(self.manager.adjust_difficulty_dynamic('math', mixed).id, 'medium')
        self.assertEqual(self.manager.adjust_difficulty_dynamic('math', []).id, 'medium')
        self.assertEqual(self.manager.adjust_difficulty_dynamic('math').id, 'medium')

    def test_next_difficulty_clamps(self):
        """Test stepping past either end stays put"""
        self.assertEqual(AdaptiveDifficultyManager.get_next_difficulty('expert', 1).id, 'expert')
        self.assertEqual(AdaptiveDifficultyManager.get_next_difficulty('beginner', -1).id, 'beginner')
        self.assertEqual(AdaptiveDifficultyManager.get_next_difficulty('unknown', 1).id, 'hard')

    def test_rewards(self):
        """Test tier multipliers and the fast-answer bonus"""
        medium = self.manager.calculate_rewards(TIERS_BY_ID['medium'], 20000, True)
        self.assertEqual(medium['coins'], 12)
        self.assertEqual(medium['experience'], 18)
        self.assertEqual(medium['bonus'], 3)
        self.assertEqual(medium['difficulty'], 'Medium')
        self.assertFalse(medium['time_bonus'])

        beginner = self.manager.calculate_rewards(TIERS_BY_ID['beginner'], 5000, True)
        self.assertEqual(beginner['coins'], 12)
        self.assertEqual(beginner['experience'], 18)
        self.assertTrue(beginner['time_bonus'])

    def test_wrong_answer_rewards(self):
        """Test wrong answers earn nothing"""
        rewards = self.manager.calculate_rewards(TIERS_BY_ID['expert'], 1000, False)
        self.assertEqual(rewards['coins'], 0)
        self.assertEqual(rewards['experience'], 0)
        self.assertEqual(rewards['difficulty'], 'Expert')
        self.assertFalse(rewards['time_bonus'])

    def test_character_reward_bonus(self):
        """Test mech coin and experience bonuses"""
        self.tracker.set_character({'type': 'nexus', 'name': 'Ivy'})
        rewards = self.manager.calculate_rewards(TIERS_BY_ID['medium'], 20000, True)
        self.assertEqual(rewards['coins'], 13)
        self.assertEqual(rewards['experience'], 19)

    def test_rolling_window(self):
        """Test only the newest answers are kept per subject"""
        for _ in range(7):
            self.manager.record_answer('math', True, 5000)
        self.manager.record_answer('science', False, 5000)

        self.assertEqual(len(self.manager.get_recent_answers('math')), 5)
        self.assertEqual(len(self.manager.get_recent_answers('science')), 1)
        self.assertEqual(self.manager.get_recent_answers('reading'), [])

    def test_session_summary(self):
        """Test topic tracking and recommendations"""
        self.manager.record_answer('math', True, 4000, 'fractions')
        self.manager.record_answer('math', False, 8000, 'decimals')
        self.manager.record_answer('math', False, 6000, 'decimals')

        summary = self.manager.get_session_summary()
        self.assertEqual(summary['questions_answered'], 3)
        self.assertEqual(summary['accuracy'], 33)
        self.assertEqual(summary['average_response_time_s'], 6)
        self.assertEqual(summary['current_streak'], 0)
        self.assertEqual(summary['best_streak'], 1)
        self.assertEqual(summary['strong_topics'], [{'topic': 'fractions', 'count': 1}])
        self.assertEqual(summary['struggling_topics'], [{'topic': 'decimals', 'count': 2}])
        self.assertEqual([r['action'] for r in summary['recommendations']],
                         ['practice_topic', 'reduce_difficulty'])

    def test_character_recommendation(self):
        """Test the ability reminder for a chosen mech"""
        self.tracker.set_character({'type': 'aria', 'name': 'Sky'})
        for _ in range(10):
            self.manager.record_answer('reading', True, 3000)
        actions = [r['action'] for r in self.manager.get_recommendations()]
        self.assertEqual(actions, ['increase_difficulty', 'use_ability'])

    def test_reset_session(self):
        """Test session state clears"""
        self.manager.record_answer('math', True, 4000, 'fractions')
        self.manager.reset_session()
        self.assertEqual(self.manager.session.questions_answered, 0)
        self.assertEqual(self.manager.get_recent_answers('math'), [])

    def test_difficulty_settings(self):
        """Test the settings projection"""
        settings = self.manager.get_difficulty_settings('math')
        self.assertEqual(settings['current']['id'], 'easy')
        self.assertEqual(len(settings['available']), 5)
        self.assertTrue(settings['can_increase'])
        self.assertTrue(settings['can_decrease'])

        self.set_stats('math', 10, 10)
        settings = self.manager.get_difficulty_settings('math')
        self.assertFalse(settings['can_increase'])


if __name__ == '__main__':
    unittest.main()
