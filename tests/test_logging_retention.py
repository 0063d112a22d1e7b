import importlib
import logging
import os
from datetime import datetime, timedelta
from logging.handlers import RotatingFileHandler

import pytest


@pytest.fixture
def fresh_logging(monkeypatch):
    """Reload the logging module and drop whatever handlers it installs."""

    before = list(logging.getLogger().handlers)
    level = logging.getLogger().level

    import labinventory.logging as logging_mod

    importlib.reload(logging_mod)
    yield logging_mod

    root = logging.getLogger()
    for handler in root.handlers[:]:
        if handler not in before:
            handler.close()
            root.removeHandler(handler)
    root.setLevel(level)


def test_purge_old_logs(tmp_path, monkeypatch, fresh_logging):
    log_file = tmp_path / "lab.log"
    old_file = log_file.with_name(log_file.name + ".1")
    new_file = log_file.with_name(log_file.name + ".2")

    old_file.write_text("old")
    new_file.write_text("new")

    old_time = (datetime.now() - timedelta(days=8)).timestamp()
    new_time = (datetime.now() - timedelta(days=1)).timestamp()
    os.utime(old_file, (old_time, old_time))
    os.utime(new_file, (new_time, new_time))

    monkeypatch.setenv("LOG_FILE", str(log_file))
    monkeypatch.setenv("LOG_RETENTION_DAYS", "7")

    fresh_logging.configure_logging()

    assert not old_file.exists()
    assert new_file.exists()
    assert any(
        isinstance(h, RotatingFileHandler) for h in logging.getLogger().handlers
    )


def test_configure_logging_is_idempotent(monkeypatch, fresh_logging):
    monkeypatch.delenv("LOG_FILE", raising=False)
    monkeypatch.setenv("LOG_LEVEL", "warning")

    fresh_logging.configure_logging()
    count = len(logging.getLogger().handlers)
    fresh_logging.configure_logging()

    assert len(logging.getLogger().handlers) == count
    assert logging.getLogger().level == logging.WARNING


def test_stock_logs_reach_the_file(tmp_path, monkeypatch, fresh_logging):
    log_file = tmp_path / "stock.log"
    monkeypatch.setenv("LOG_FILE", str(log_file))
    monkeypatch.setenv("LOG_LEVEL", "INFO")

    fresh_logging.configure_logging()
    fresh_logging.get_logger("consumables.services.allocation_service").info(
        "Allocated 1 line(s)"
    )
    fresh_logging.flush_logs()

    assert "[INFO] consumables.services.allocation_service: Allocated 1 line(s)" in (
        log_file.read_text()
    )
