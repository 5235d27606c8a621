import os
import unittest
from unittest import mock

from drone_conformal_reviewer.plugin_config import load_plugin_config


class TestPluginConfig(unittest.TestCase):
    def test_defaults(self):
        with mock.patch.dict(os.environ, {}, clear=True):
            config = load_plugin_config()

        self.assertFalse(config.strict)
        self.assertFalse(config.fixpoint)
        self.assertTrue(config.filter_to_diff)
        self.assertFalse(config.fail_on_error)
        self.assertEqual(config.paths, ["**/*.m"])
        self.assertEqual(config.exclude_patterns, [])
        self.assertEqual(config.analyzer_command, "conformal-analyze --json")
        self.assertEqual(config.analyzer_timeout, 120)
        self.assertIsNone(config.scm_token)
        self.assertEqual(config.log_level, "INFO")

    def test_plugin_settings(self):
        env = {
            "PLUGIN_STRICT": "true",
            "PLUGIN_FIXPOINT": "TRUE",
            "PLUGIN_FILTER_TO_DIFF": "false",
            "PLUGIN_FAIL_ON_ERROR": "true",
            "PLUGIN_PATHS": "src/**/*.m, lib/*.m",
            "PLUGIN_EXCLUDE_PATTERNS": "vendor/,,tests/**",
            "PLUGIN_ANALYZER_COMMAND": "node conformal.js",
            "PLUGIN_ANALYZER_TIMEOUT": "30",
            "PLUGIN_LOG_LEVEL": "debug",
            "GITHUB_TOKEN": "fallback",
        }
        with mock.patch.dict(os.environ, env, clear=True):
            config = load_plugin_config()

        self.assertTrue(config.strict)
        self.assertTrue(config.fixpoint)
        self.assertFalse(config.filter_to_diff)
        self.assertTrue(config.fail_on_error)
        self.assertEqual(config.paths, ["src/**/*.m", "lib/*.m"])
        self.assertEqual(config.exclude_patterns, ["vendor/", "tests/**"])
        self.assertEqual(config.analyzer_command, "node conformal.js")
        self.assertEqual(config.analyzer_timeout, 30)
        self.assertEqual(config.log_level, "DEBUG")
        self.assertEqual(config.scm_token, "fallback")

    def test_plugin_token_wins_over_github_token(self):
        with mock.patch.dict(os.environ, {"PLUGIN_SCM_TOKEN": "plugin", "GITHUB_TOKEN": "gh"}, clear=True):
            self.assertEqual(load_plugin_config().scm_token, "plugin")

    def test_filter_to_diff_only_disabled_by_false(self):
        with mock.patch.dict(os.environ, {"PLUGIN_FILTER_TO_DIFF": "no"}, clear=True):
            self.assertTrue(load_plugin_config().filter_to_diff)

    def test_invalid_log_level(self):
        with mock.patch.dict(os.environ, {"PLUGIN_LOG_LEVEL": "chatty"}, clear=True):
            self.assertEqual(load_plugin_config().log_level, "INFO")

    def test_workspace_falls_back_to_cwd(self):
        with mock.patch.dict(os.environ, {}, clear=True):
            config = load_plugin_config()
        self.assertEqual(config.workspace, os.getcwd())
        config.ci_workspace = "/drone/src"
        self.assertEqual(config.workspace, "/drone/src")

    def test_malformed_analyzer_timeout_is_rejected(self):
        for value in ("abc", "0", "-5", "1.5"):
            with self.subTest(value=value):
                with mock.patch.dict(os.environ, {"PLUGIN_ANALYZER_TIMEOUT": value}, clear=True):
                    with self.assertRaisesRegex(ValueError, "PLUGIN_ANALYZER_TIMEOUT"):
                        load_plugin_config()

    def test_blank_analyzer_timeout_uses_default(self):
        with mock.patch.dict(os.environ, {"PLUGIN_ANALYZER_TIMEOUT": "  "}, clear=True):
            self.assertEqual(load_plugin_config().analyzer_timeout, 120)


if __name__ == '__main__':
    unittest.main()
