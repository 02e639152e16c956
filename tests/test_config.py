"""Tests for application settings."""
import os
import unittest
import tempfile
import shutil
from pathlib import Path
from unittest import mock

from cardflow.config.settings import AppSettings
from cardflow.utils.exceptions import ConfigError

CONFIG_TEXT = """
app:
  name: CardFlow
  version: 0.3.0
logging:
  level: DEBUG
llm:
  model_name: gemini-2.5-flash
  timeout_seconds: 60
  max_retries: 2
  backoff_factor: 1.5
import:
  batch_size: 25
  default_currency: BRL
  default_card_name: Nubank
paths:
  database_file: "{db}"
"""


class TestAppSettings(unittest.TestCase):
    """Test AppSettings loading and validation."""

    def setUp(self):
        """Set up test fixtures."""
        self.test_dir = Path(tempfile.mkdtemp())
        self.config_file = self.test_dir / "config.yaml"

    def tearDown(self):
        """Clean up test fixtures."""
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def write_config(self, db=""):
        self.config_file.write_text(CONFIG_TEXT.format(db=db), encoding="utf-8")

    def test_load_config(self):
        self.write_config(db=str(self.test_dir / "cards.db"))
        with mock.patch.dict(os.environ, {"GEMINI_API_KEY": "test_key"}):
            settings = AppSettings.load(self.config_file)

        self.assertEqual(settings.batch_size, 25)
        self.assertEqual(settings.default_currency, "BRL")
        self.assertEqual(settings.llm_max_retries, 2)
        self.assertFalse(settings.llm_send_pdf_as_text)
        self.assertEqual(settings.database_file, str(self.test_dir / "cards.db"))
        self.assertEqual(settings.gemini_api_key, "test_key")

    def test_default_database_under_home(self):
        self.write_config()
        with mock.patch.dict(os.environ, {"CARDFLOW_HOME": str(self.test_dir)}):
            settings = AppSettings.load(self.config_file)
        self.assertEqual(settings.database_file, str(self.test_dir / "cardflow.db"))

    def test_missing_file(self):
        with self.assertRaises(ConfigError):
            AppSettings.load(self.test_dir / "missing.yaml")

    def test_missing_section(self):
        self.config_file.write_text("app:\n  name: CardFlow\n", encoding="utf-8")
        with self.assertRaises(ConfigError):
            AppSettings.load(self.config_file)

    def test_validate_config_valid(self):
        self.write_config()
        with mock.patch.dict(os.environ, {"GEMINI_API_KEY": "test_key"}):
            settings = AppSettings.load(self.config_file)

        is_valid, message = settings.validate()
        self.assertTrue(is_valid)

    def test_validate_config_invalid(self):
        self.write_config()
        with mock.patch.dict(os.environ, {"GEMINI_API_KEY": "test_key"}):
            settings = AppSettings.load(self.config_file)

        settings.batch_size = 0
        is_valid, message = settings.validate()
        self.assertFalse(is_valid)
        self.assertIn("batch size", message)

        settings.batch_size = 10
        settings.gemini_api_key = None
        is_valid, message = settings.validate()
        self.assertFalse(is_valid)
        self.assertIn("API key", message)

    def test_date_order(self):
        self.write_config()
        settings = AppSettings.load(self.config_file)
        self.assertEqual(settings.date_order, "DMY")
        self.assertTrue(settings.day_first)

        text = CONFIG_TEXT.format(db="").replace("  default_card_name: Nubank\n", "  default_card_name: Nubank\n  date_order: mdy\n")
        self.config_file.write_text(text, encoding="utf-8")
        settings = AppSettings.load(self.config_file)
        self.assertEqual(settings.date_order, "MDY")
        self.assertFalse(settings.day_first)

    def test_validate_rejects_unknown_date_order(self):
        self.write_config()
        with mock.patch.dict(os.environ, {"GEMINI_API_KEY": "test_key"}):
            settings = AppSettings.load(self.config_file)

        settings.date_order = "YMD"
        is_valid, message = settings.validate()
        self.assertFalse(is_valid)
        self.assertIn("Date order", message)


if __name__ == "__main__":
    unittest.main()
