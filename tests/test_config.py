"""Tests for configuration and logging setup."""
import tempfile
from datetime import datetime, timedelta
from pathlib import Path

import pytest


def test_missing_config_file_gives_defaults():
    from newsfeeds.config import DEFAULTS, load_config

    with tempfile.TemporaryDirectory() as tmpdir:
        config = load_config(Path(tmpdir) / "missing.yaml")

    assert config == DEFAULTS
    assert config is not DEFAULTS


def test_config_file_overrides_defaults():
    from newsfeeds.config import load_config

    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "config.yaml"
        config_path.write_text("search:\n  min_rank: 0.3\nranking:\n  half_life_hours: 12\n")

        config = load_config(config_path)

    assert config["search"]["min_rank"] == 0.3
    assert config["search"]["since_days"] == 7
    assert config["ranking"]["half_life_hours"] == 12


def test_config_must_be_a_mapping():
    from newsfeeds.config import load_config

    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "config.yaml"
        config_path.write_text("- just\n- a list\n")

        with pytest.raises(ValueError):
            load_config(config_path)


def test_shipped_config_loads():
    from newsfeeds.config import get_project_dir, load_config

    config = load_config()

    assert (get_project_dir() / "config" / "config.yaml").exists()
    assert config["search"]["limit"] == 2000


def test_db_path_relative_to_project():
    from newsfeeds.config import get_db_path, get_project_dir

    assert get_db_path({"database": {"path": "data/x.db"}}) == get_project_dir() / "data" / "x.db"
    assert get_db_path({"database": {"path": "/tmp/y.db"}}) == Path("/tmp/y.db")


def test_cleanup_old_logs_removes_expired_files():
    from newsfeeds.logging_config import cleanup_old_logs

    with tempfile.TemporaryDirectory() as tmpdir:
        log_dir = Path(tmpdir)
        old = log_dir / f"newsfeeds-{(datetime.now() - timedelta(days=40)).strftime('%Y-%m-%d')}.log"
        recent = log_dir / f"newsfeeds-{datetime.now().strftime('%Y-%m-%d')}.log"
        other = log_dir / "notes.log"
        for path in (old, recent, other):
            path.write_text("x")

        removed = cleanup_old_logs(log_dir, retention_days=30)

        assert removed == 1
        assert not old.exists()
        assert recent.exists()
        assert other.exists()


def test_setup_logging_writes_newsfeeds_log_file():
    import logging

    from newsfeeds.logging_config import log_file_for, setup_logging

    with tempfile.TemporaryDirectory() as tmpdir:
        log_dir = Path(tmpdir) / "logs"
        logger = setup_logging(log_dir, retention_days=7)
        try:
            setup_logging(log_dir, retention_days=7)
            assert logger.name == "newsfeeds"
            assert len(logger.handlers) == 2
            assert logger.propagate is False

            logging.getLogger("newsfeeds.scheduler").info("3 feeds due, 0 errors")
            for handler in logger.handlers:
                handler.flush()

            log_file = log_file_for(log_dir, datetime.now().date())
            assert log_file.name.startswith("newsfeeds-")
            assert "[INFO] newsfeeds.scheduler: 3 feeds due, 0 errors" in log_file.read_text()
        finally:
            for handler in list(logger.handlers):
                logger.removeHandler(handler)
                handler.close()
            logger.propagate = True
