import os
import unittest
from unittest.mock import patch

from pydantic import ValidationError

from app.config.settings import Settings


class TestConfig(unittest.TestCase):

    def _settings(self, **env):
        """Build a fresh Settings from exactly ``env``, ignoring any .env file."""
        with patch.dict(os.environ, env, clear=True):
            return Settings(_env_file=None)

    def test_auth_optional_defaults_to_false(self):
        """
        Tests that settings.AUTH_OPTIONAL is False by default, as a security measure.
        """
        settings = self._settings()
        self.assertFalse(settings.AUTH_OPTIONAL, "AUTH_OPTIONAL should default to False for security.")

    def test_auth_optional_can_be_overridden(self):
        settings = self._settings(AUTH_OPTIONAL="True")
        self.assertTrue(settings.AUTH_OPTIONAL, "AUTH_OPTIONAL should be True when set by env var.")

    def test_reply_lock_defaults_to_postgres(self):
        settings = self._settings()
        self.assertEqual(settings.REPLY_LOCK_BACKEND, "postgres")
        self.assertTrue(settings.AUTO_REPLY_ENABLED)
        self.assertTrue(settings.NOTIFY_OFFLINE_ONLY)

    def test_delay_bounds_must_be_ordered(self):
        with self.assertRaises(ValidationError):
            self._settings(AUTO_REPLY_MIN_DELAY_MS="3000", AUTO_REPLY_MAX_DELAY_MS="1000")

    def test_negative_delay_is_rejected(self):
        with self.assertRaises(ValidationError):
            self._settings(AUTO_REPLY_MIN_DELAY_MS="-1", AUTO_REPLY_MAX_DELAY_MS="10")

    def test_database_url_is_assembled_from_components(self):
        settings = self._settings(
            POSTGRES_USER="chat",
            POSTGRES_PASSWORD="secret",
            POSTGRES_HOST="db",
            POSTGRES_PORT="5433",
            POSTGRES_DB="broughtby",
        )
        url = str(settings.DATABASE_URL)
        self.assertTrue(url.startswith("postgresql://chat:secret@db:5433/"))
        self.assertTrue(url.endswith("broughtby"))

    def test_database_url_stays_empty_without_components(self):
        settings = self._settings(POSTGRES_USER="chat")
        self.assertIsNone(settings.DATABASE_URL)


if __name__ == '__main__':
    unittest.main()
