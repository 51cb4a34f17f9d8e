import logging
import os

from metaproxy.api import logging_config

from conftest import make_settings


def _reset_logger_cache() -> None:
    logging_config._LOGGER_FILE_PATH_CACHED = (
        logging_config._LOGGER_FILE_PATH_SENTINEL
    )


def _drop_file_handlers() -> None:
    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, logging_config._FILE_HANDLER_TAG, False):
            root.removeHandler(handler)
            handler.close()


def test_sanitize_filename_component():
    assert logging_config._sanitize_filename_component(" run 1 ") == "run_1"
    assert logging_config._sanitize_filename_component("..") == ""
    assert logging_config._sanitize_filename_component("a/b") == "a_b"


def test_resolve_dir_relative_and_absolute(tmp_path):
    base = tmp_path / "base"
    assert logging_config._resolve_dir(str(tmp_path), base=base) == tmp_path
    assert logging_config._resolve_dir("logs", base=base) == base / "logs"


def test_build_logger_file_path_disabled(monkeypatch):
    _reset_logger_cache()
    monkeypatch.setenv("LOGGER_FILE_ENABLED", "0")
    assert logging_config._build_logger_file_path() is None
    assert logging_config._build_logger_file_path() is None


def test_build_logger_file_path_explicit(monkeypatch, tmp_path):
    _reset_logger_cache()
    target = tmp_path / "app.log"
    monkeypatch.setenv("LOGGER_FILE_ENABLED", "1")
    monkeypatch.setenv("LOGGER_FILE_PATH", str(target))
    path = logging_config._build_logger_file_path()
    assert path == target.resolve()
    _reset_logger_cache()


def test_build_logger_file_path_dir_prefix(monkeypatch, tmp_path):
    _reset_logger_cache()
    monkeypatch.setenv("LOGGER_FILE_ENABLED", "1")
    monkeypatch.delenv("LOGGER_FILE_PATH", raising=False)
    monkeypatch.setenv("LOGGER_FILE_DIR", str(tmp_path))
    monkeypatch.setenv("LOGGER_FILE_PREFIX", "run*bad")
    monkeypatch.setenv("LOGGER_FILE_TIMESTAMP_FORMAT", "%Y")
    monkeypatch.setenv("LOGGER_FILE_INCLUDE_PID", "0")

    path = logging_config._build_logger_file_path()
    assert path is not None
    assert path.parent == tmp_path.resolve()
    assert path.name.startswith("run_bad_")
    assert path.suffix == ".log"
    assert str(os.getpid()) not in path.name
    _reset_logger_cache()


def test_configure_logging_adds_file_handler(monkeypatch, tmp_path):
    _reset_logger_cache()
    monkeypatch.setenv("LOGGER_FILE_ENABLED", "1")
    monkeypatch.delenv("LOGGER_FILE_PATH", raising=False)
    monkeypatch.setenv("LOGGER_FILE_DIR", str(tmp_path))
    _drop_file_handlers()

    logger = logging_config.configure_logging(make_settings(log_level="DEBUG"))
    assert logger.name == "metaproxy"
    assert logger.level == logging.DEBUG
    assert logging_config._has_our_file_handler(logging.getLogger()) is True

    _drop_file_handlers()
    _reset_logger_cache()


def test_get_logger_is_namespaced():
    assert logging_config.get_logger("store").name == "metaproxy.store"
