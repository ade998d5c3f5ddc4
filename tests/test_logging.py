"""Tests for abbench.logging — logger configuration."""

from __future__ import annotations

import logging
import tempfile
import unittest
from pathlib import Path

from abbench.logging import setup_logging


class TestSetupLogging(unittest.TestCase):
    def tearDown(self) -> None:
        logger = logging.getLogger("abbench")
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()

    def _console(self, logger: logging.Logger) -> logging.Handler:
        return next(h for h in logger.handlers if not isinstance(h, logging.FileHandler))

    def test_default_level(self) -> None:
        logger = setup_logging()
        self.assertEqual(logger.name, "abbench")
        self.assertFalse(logger.propagate)
        self.assertEqual(self._console(logger).level, logging.INFO)

    def test_verbose(self) -> None:
        self.assertEqual(self._console(setup_logging(verbose=True)).level, logging.DEBUG)

    def test_quiet(self) -> None:
        self.assertEqual(self._console(setup_logging(quiet=True)).level, logging.WARNING)

    def test_verbose_wins_over_quiet(self) -> None:
        logger = setup_logging(verbose=True, quiet=True)
        self.assertEqual(self._console(logger).level, logging.DEBUG)

    def test_reconfigure_replaces_handlers(self) -> None:
        setup_logging()
        logger = setup_logging()
        self.assertEqual(len(logger.handlers), 1)

    def test_log_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "run.log"
            logger = setup_logging(quiet=True, log_file=path)
            logger.debug("detail for the file")
            for handler in logger.handlers:
                handler.flush()
            self.assertIn("detail for the file", path.read_text(encoding="utf-8"))


if __name__ == "__main__":
    unittest.main()
