"""Tests for logging setup."""

from __future__ import annotations

import logging
import os
import sys
from unittest.mock import patch

from depsync.core.logging import setup_logging


class TestSetupLogging:
    def test_default_level_is_warning(self):
        with patch.dict(os.environ, {}, clear=False):
            os.environ.pop("DEPSYNC_LOG_LEVEL", None)
            setup_logging()
        assert logging.getLogger("depsync").level == logging.WARNING

    def test_verbose_is_debug(self):
        with patch.dict(os.environ, {}, clear=False):
            os.environ.pop("DEPSYNC_LOG_LEVEL", None)
            setup_logging(verbose=True)
        assert logging.getLogger("depsync").level == logging.DEBUG

    def test_env_level_wins(self):
        with patch.dict(os.environ, {"DEPSYNC_LOG_LEVEL": "error", "DEPSYNC_LOG_FORMAT": "json"}):
            setup_logging(verbose=True)
        assert logging.getLogger("depsync").level == logging.ERROR

    def test_only_depsync_tree_is_configured(self):
        with patch.dict(os.environ, {"DEPSYNC_LOG_FORMAT": "json"}):
            setup_logging()
        depsync_logger = logging.getLogger("depsync")
        assert not depsync_logger.propagate
        assert [type(h) for h in depsync_logger.handlers] == [logging.StreamHandler]
        assert depsync_logger.handlers[0].stream is sys.stderr
