"""Runtime settings read from the environment (and an optional .env file)."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger("aws_mfa_assume.settings")

CONFIG_DIR = Path.home() / ".config" / "aws-mfa-assume"
DEFAULT_CONFIG_PATH = CONFIG_DIR / "profile.json"
DEFAULT_LOG_DIR = CONFIG_DIR / "logs"
DEFAULT_SESSION_DURATION = 43200  # 12 hours
DEFAULT_SESSION_NAME = "aws-mfa-assume"


def load_env_file(path: Optional[Path] = None) -> bool:
    """Load variables from a .env file in the working directory, if present."""
    env_file = path or Path.cwd() / ".env"
    if env_file.exists():
        load_dotenv(env_file)
        return True
    return False


def _int_from_env(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"Ignoring non-integer {name}={raw!r}")
        return default
    if value <= 0:
        logger.warning(f"Ignoring non-positive {name}={value}")
        return default
    return value


@dataclass
class Settings:
    config_path: Path = DEFAULT_CONFIG_PATH
    log_dir: Path = DEFAULT_LOG_DIR
    default_duration: int = DEFAULT_SESSION_DURATION
    session_name: str = DEFAULT_SESSION_NAME
    # None means the MFA command may run for as long as it likes
    command_timeout: Optional[int] = None

    @classmethod
    def from_env(cls) -> "Settings":
        config_path = os.environ.get("AWS_MFA_ASSUME_CONFIG")
        log_dir = os.environ.get("AWS_MFA_ASSUME_LOG_DIR")
        return cls(
            config_path=Path(config_path).expanduser() if config_path else DEFAULT_CONFIG_PATH,
            log_dir=Path(log_dir).expanduser() if log_dir else DEFAULT_LOG_DIR,
            default_duration=_int_from_env("AWS_MFA_ASSUME_DEFAULT_DURATION", DEFAULT_SESSION_DURATION),
            session_name=os.environ.get("AWS_MFA_ASSUME_SESSION_NAME", "").strip() or DEFAULT_SESSION_NAME,
            command_timeout=_int_from_env("AWS_MFA_ASSUME_COMMAND_TIMEOUT", None),
        )
