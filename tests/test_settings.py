import os
import tempfile
import unittest

from settings import load_settings, DEFAULT_SETTINGS


class TestLoadSettings(unittest.TestCase):
    def _write(self, text):
        fd, path = tempfile.mkstemp(suffix='.yaml')
        with os.fdopen(fd, 'w') as f:
            f.write(text)
        self.addCleanup(os.remove, path)
        return path

    def test_defaults_when_file_missing(self):
        settings = load_settings('/nonexistent/teampulse.yaml', environ={})
        self.assertEqual(settings, DEFAULT_SETTINGS)

    def test_yaml_overrides_defaults(self):
        path = self._write("commit_limit: 25\nrequest_timeout: 3\nunknown_key: ignored\n")
        settings = load_settings(path, environ={})
        self.assertEqual(settings['commit_limit'], 25)
        self.assertEqual(settings['request_timeout'], 3.0)
        self.assertNotIn('unknown_key', settings)
        self.assertEqual(settings['pr_limit'], DEFAULT_SETTINGS['pr_limit'])

    def test_environment_overrides_yaml(self):
        path = self._write("max_retries: 5\n")
        settings = load_settings(path, environ={'TEAMPULSE_MAX_RETRIES': '2', 'GITHUB_TOKEN': 'abc', 'TEAMPULSE_PR_LIMIT': ''})
        self.assertEqual(settings['max_retries'], 2)
        self.assertEqual(settings['github_token'], 'abc')
        self.assertEqual(settings['pr_limit'], DEFAULT_SETTINGS['pr_limit'])

    def test_commit_stats_flag(self):
        self.assertFalse(load_settings('/nonexistent/teampulse.yaml', environ={})['commit_stats'])
        self.assertTrue(load_settings(self._write("commit_stats: true\n"), environ={})['commit_stats'])
        self.assertTrue(load_settings('/nonexistent/teampulse.yaml', environ={'TEAMPULSE_COMMIT_STATS': 'yes'})['commit_stats'])
        with self.assertRaises(ValueError):
            load_settings('/nonexistent/teampulse.yaml', environ={'TEAMPULSE_COMMIT_STATS': 'maybe'})

    def test_non_mapping_file_is_rejected(self):
        path = self._write("- just\n- a list\n")
        with self.assertRaises(ValueError):
            load_settings(path, environ={})

    def test_bad_values_are_rejected(self):
        with self.assertRaises(ValueError):
            load_settings('/nonexistent/teampulse.yaml', environ={'TEAMPULSE_COMMIT_LIMIT': 'many'})
        with self.assertRaises(ValueError):
            load_settings(self._write("commit_limit: [1, 2\n"), environ={})


if __name__ == '__main__':
    unittest.main()
