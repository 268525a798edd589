# testing/test_settings.py
"""
Tests for numeric settings read from the environment.
"""

import os
import pytest
from unittest.mock import patch

# Set required environment variables before importing
os.environ.setdefault("TEST_MODE", "True")
os.environ.setdefault("DB_PATH", "test_fieldsched.db")

from config.settings import _number_env, in_test_mode


def test_number_env_reads_value():
    with patch.dict(os.environ, {"PERSIST_TIMEOUT_SECONDS": "2.5"}):
        assert _number_env("PERSIST_TIMEOUT_SECONDS", "15") == 2.5


def test_number_env_uses_default():
    with patch.dict(os.environ, {}, clear=False):
        os.environ.pop("NOTIFY_MAX_RETRIES", None)
        assert _number_env("NOTIFY_MAX_RETRIES", "2", cast=int) == 2


def test_non_numeric_setting_raises_runtime_error():
    with patch.dict(os.environ, {"NOTIFY_MAX_RETRIES": "lots"}):
        with pytest.raises(RuntimeError, match="NOTIFY_MAX_RETRIES"):
            _number_env("NOTIFY_MAX_RETRIES", "2", cast=int)


def test_in_test_mode_reads_env_each_call():
    with patch.dict(os.environ, {"TEST_MODE": "False"}):
        assert in_test_mode() is False
    with patch.dict(os.environ, {"TEST_MODE": "TRUE"}):
        assert in_test_mode() is True
