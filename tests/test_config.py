#!/usr/bin/env python3
"""
Configuration Tests for MechScholar
Tests YAML loading, .env overrides and value validation
"""

import unittest
import tempfile
import shutil
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from mechscholar.config import (
    ConfigManager,
    ConfigType,
    get_config_manager,
    reset_config_manager,
)


class TestConfigManager(unittest.TestCase):
    """Test ConfigManager functionality"""

    def setUp(self):
        """Set up test environment"""
        self.test_dir = tempfile.mkdtemp()
        self.test_path = Path(self.test_dir)
        (self.test_path / 'config').mkdir()

    def tearDown(self):
        """Clean up test environment"""
        reset_config_manager()
        shutil.rmtree(self.test_dir)

    def write_yaml(self, text):
        (self.test_path / 'config' / 'engine.yaml').write_text(text, encoding='utf-8')

    def write_env(self, text):
        (self.test_path / '.env').write_text(text, encoding='utf-8')

    def test_defaults(self):
        """Test defaults without any files"""
        config = ConfigManager(self.test_path)
        self.assertEqual(config.get_storage_config().save_key, 'mechscholar_save')
        self.assertEqual(config.get_storage_config().auto_save_interval_ms, 30000)
        self.assertEqual(config.get_event_config().trigger_cooldown_ms, 30000)
        self.assertEqual(config.get_event_config().base_drop_rate, 0.1)
        self.assertEqual(config.get_difficulty_config().rolling_window, 5)
        self.assertEqual(config.get_logging_config().level, 'INFO')

    def test_yaml_sections(self):
        """Test known keys load and unknown keys are ignored"""
        self.write_yaml(
            "storage:\n"
            "  encrypt_saves: true\n"
            "  mystery_setting: 3\n"
            "events:\n"
            "  history_limit: 20\n"
        )
        config = ConfigManager(self.test_path)
        self.assertTrue(config.get_storage_config().encrypt_saves)
        self.assertFalse(hasattr(config.get_storage_config(), 'mystery_setting'))
        self.assertEqual(config.get_event_config().history_limit, 20)
        self.assertEqual(config.get_event_config().trigger_cooldown_ms, 30000)

    def test_malformed_yaml_uses_defaults(self):
        """Test a broken file falls back to defaults"""
        self.write_yaml("storage: [unclosed\n")
        config = ConfigManager(self.test_path)
        self.assertEqual(config.get_storage_config().save_path, 'saves')

        self.write_yaml("- just\n- a list\n")
        config = ConfigManager(self.test_path)
        self.assertEqual(config.get_event_config().history_limit, 100)

    def test_malformed_section_ignored(self):
        """Test a section that is not a mapping keeps its defaults"""
        self.write_yaml("events: 5\ndifficulty:\n  rolling_window: 8\n")
        config = ConfigManager(self.test_path)
        self.assertEqual(config.get_event_config().history_limit, 100)
        self.assertEqual(config.get_difficulty_config().rolling_window, 8)

    def test_env_overrides_yaml(self):
        """Test whitelisted .env values win"""
        self.write_yaml("events:\n  trigger_cooldown_ms: 1000\n")
        self.write_env(
            "# engine overrides\n"
            "MECHSCHOLAR_EVENT_COOLDOWN_MS=5000\n"
            "MECHSCHOLAR_LOG_LEVEL='debug'\n"
            "MECHSCHOLAR_ENCRYPT_SAVES=yes\n"
        )
        config = ConfigManager(self.test_path)
        self.assertEqual(config.get_event_config().trigger_cooldown_ms, 5000)
        self.assertEqual(config.get_logging_config().level, 'DEBUG')
        self.assertTrue(config.get_storage_config().encrypt_saves)

    def test_env_rejects_bad_values(self):
        """Test malformed, dangerous and unknown entries are dropped"""
        self.write_env(
            "MECHSCHOLAR_EVENT_COOLDOWN_MS=soon\n"
            "MECHSCHOLAR_SAVE_PATH=../../etc\n"
            "MECHSCHOLAR_LOG_PATH=logs; rm -rf /\n"
            "SECRET_KEY=hunter2\n"
            "not a setting\n"
        )
        config = ConfigManager(self.test_path)
        self.assertEqual(config.get_event_config().trigger_cooldown_ms, 30000)
        self.assertEqual(config.get_storage_config().save_path, 'saves')
        self.assertEqual(config.get_logging_config().log_path, 'logs')
        self.assertEqual(config.get_status()['env_vars_loaded'], 0)

    def test_get_env_whitelist(self):
        """Test non-whitelisted keys always return the default"""
        config = ConfigManager(self.test_path)
        self.assertEqual(config.get_env('PATH', 'fallback'), 'fallback')

    def test_update_and_save(self):
        """Test changes survive a save and reload"""
        config = ConfigManager(self.test_path)
        config.update_config(ConfigType.EVENTS, {'base_drop_rate': 0.25, 'not_a_field': 1})
        self.assertTrue(config.save_config())

        reloaded = ConfigManager(self.test_path)
        self.assertEqual(reloaded.get_event_config().base_drop_rate, 0.25)
        self.assertTrue(reloaded.get_status()['config_file_present'])

    def test_resolve_path(self):
        """Test relative paths resolve against the base path"""
        config = ConfigManager(self.test_path)
        self.assertEqual(config.resolve_path('logs'), self.test_path / 'logs')
        self.assertEqual(config.resolve_path(str(self.test_path)), self.test_path)

    def test_singleton(self):
        """Test the shared instance and its reset"""
        first = get_config_manager(self.test_path)
        self.assertIs(get_config_manager(), first)

        reset_config_manager()
        self.assertIsNot(get_config_manager(self.test_path), first)


if __name__ == '__main__':
    unittest.main()
