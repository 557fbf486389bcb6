# -*- coding: utf-8 -*-
"""Tests for utils/logging.py"""

import logging

from utils.logging import create_logger, get_logger


def test_level_and_handlers():
    logger = create_logger("debug", "formular.test.level")
    assert logger.level == logging.DEBUG
    assert sorted(h.get_name() for h in logger.handlers) == ["stderr", "stdout"]


def test_repeated_setup_does_not_stack_handlers():
    create_logger("INFO", "formular.test.repeat")
    logger = create_logger("WARNING", "formular.test.repeat")
    assert len(logger.handlers) == 2
    assert logger.level == logging.WARNING


def test_stdout_only_takes_records_below_warning():
    logger = create_logger("DEBUG", "formular.test.split")
    stdout = next(h for h in logger.handlers if h.get_name() == "stdout")
    info = logging.LogRecord("x", logging.INFO, __file__, 1, "hi", None, None)
    error = logging.LogRecord("x", logging.ERROR, __file__, 1, "boom", None, None)
    assert stdout.filter(info)
    assert not stdout.filter(error)


def test_get_logger_returns_named_logger():
    assert get_logger("formular") is logging.getLogger("formular")
