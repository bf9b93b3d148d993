#!/usr/bin/env python3
"""
Server Configuration

Runtime settings for the assignment server. Defaults can be overridden by
IMAGE_ASSIGNMENT_* environment variables and then by command line flags.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional
import logging

from .submission_recorder import COMPLETION_POLICIES, POLICY_TRANSITION

ENV_PREFIX = "IMAGE_ASSIGNMENT_"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class ServerConfig:
    """Configuration for the assignment server."""

    data_dir: Path = field(default_factory=lambda: Path("data"))
    host: str = "0.0.0.0"
    port: int = 8686
    debug: bool = False
    log_file: Optional[Path] = None
    log_level: str = "INFO"
    completion_policy: str = POLICY_TRANSITION
    # Upper bound for multipart uploads of image lists.
    max_content_length: int = 32 * 1024 * 1024

    def __post_init__(self):
        self.data_dir = Path(self.data_dir)
        if self.log_file is not None:
            self.log_file = Path(self.log_file)
        if self.completion_policy not in COMPLETION_POLICIES:
            raise ValueError(
                f"completion_policy must be one of {COMPLETION_POLICIES}, "
                f"got {self.completion_policy!r}"
            )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ServerConfig":
        """Build a configuration from IMAGE_ASSIGNMENT_* environment variables."""
        environ = os.environ if environ is None else environ

        def get(name: str) -> Optional[str]:
            return environ.get(ENV_PREFIX + name)

        config = cls()
        if get("DATA_DIR"):
            config.data_dir = Path(get("DATA_DIR"))
        if get("HOST"):
            config.host = get("HOST")
        if get("PORT"):
            config.port = int(get("PORT"))
        if get("DEBUG"):
            config.debug = get("DEBUG").lower() in ("1", "true", "yes")
        if get("LOG_FILE"):
            config.log_file = Path(get("LOG_FILE"))
        if get("LOG_LEVEL"):
            config.log_level = get("LOG_LEVEL").upper()
        if get("COMPLETION_POLICY"):
            config.completion_policy = get("COMPLETION_POLICY")
        if get("MAX_CONTENT_LENGTH"):
            config.max_content_length = int(get("MAX_CONTENT_LENGTH"))
        config.__post_init__()
        return config


def configure_logging(level: str = "INFO", log_file: Optional[Path] = None) -> None:
    """Configure root logging, optionally also writing to a log file."""
    handlers = [logging.StreamHandler()]
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
    )
