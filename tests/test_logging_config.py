import logging

from core.logging_config import configure_logging


def test_driver_loggers_stay_quiet_at_debug(monkeypatch):
    from core.config import settings

    monkeypatch.setattr(settings, "DEBUG", True)
    configure_logging()

    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("aiosqlite").level == logging.WARNING
    assert not logging.getLogger("aiosqlite").isEnabledFor(logging.DEBUG)
