"""Unit tests for logging setup."""

import logging
import shutil
import tempfile
import unittest
from logging.handlers import RotatingFileHandler
from pathlib import Path

from ijlauncher.logging_config import configure_logging


class TestConfigureLogging(unittest.TestCase):

    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())

    def tearDown(self):
        logger = logging.getLogger("ijlauncher")
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_repeated_calls_do_not_duplicate_handlers(self):
        configure_logging()
        logger = configure_logging(logging.DEBUG)

        self.assertEqual(len(logger.handlers), 1)
        self.assertEqual(logger.level, logging.DEBUG)

    def test_log_file(self):
        log_file = self.temp_dir / "logs" / "ijlauncher.log"
        logger = configure_logging(log_file=log_file)

        logging.getLogger("ijlauncher.tasks").info("task started")
        for handler in logger.handlers:
            handler.flush()

        self.assertTrue(any(isinstance(h, RotatingFileHandler) for h in logger.handlers))
        self.assertIn("task started", log_file.read_text(encoding="utf-8"))


if __name__ == '__main__':
    unittest.main()
