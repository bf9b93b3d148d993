import logging
from pathlib import Path

import pytest

from image_assignment_server.config import ServerConfig, configure_logging


def test_defaults():
    config = ServerConfig()
    assert config.data_dir == Path("data")
    assert config.port == 8686
    assert config.completion_policy == "transition"
    assert config.max_content_length == 32 * 1024 * 1024


def test_from_env_overrides():
    config = ServerConfig.from_env(
        {
            "IMAGE_ASSIGNMENT_DATA_DIR": "/tmp/assignments",
            "IMAGE_ASSIGNMENT_PORT": "9000",
            "IMAGE_ASSIGNMENT_DEBUG": "true",
            "IMAGE_ASSIGNMENT_LOG_LEVEL": "debug",
            "IMAGE_ASSIGNMENT_COMPLETION_POLICY": "always",
        }
    )
    assert config.data_dir == Path("/tmp/assignments")
    assert config.port == 9000
    assert config.debug is True
    assert config.log_level == "DEBUG"
    assert config.completion_policy == "always"


def test_from_env_rejects_unknown_policy():
    with pytest.raises(ValueError):
        ServerConfig.from_env({"IMAGE_ASSIGNMENT_COMPLETION_POLICY": "never"})


def test_configure_logging_with_file(tmp_path, monkeypatch):
    root = logging.getLogger()
    monkeypatch.setattr(root, "handlers", [])
    log_file = tmp_path / "logs" / "server.log"

    configure_logging("INFO", log_file)
    logging.getLogger("image_assignment_server.test").info("hello log")
    for handler in root.handlers:
        handler.flush()

    assert "hello log" in log_file.read_text(encoding="utf-8")
    for handler in root.handlers:
        handler.close()
