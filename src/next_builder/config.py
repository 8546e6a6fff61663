"""
Environment-driven settings.

Values come from the process environment after ``.env`` has been loaded,
the same way the builder picks up its provider API keys.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from .errors import ConfigError


DEFAULT_MAX_CYCLES = 5
DEFAULT_BUILD_COMMAND = "npm run build"
DEFAULT_BUILD_TIMEOUT = 300
DEFAULT_LOG_FILE = "build_errors.log"

TRUE_VALUES = ('1', 'true', 'yes', 'on')
FALSE_VALUES = ('0', 'false', 'no', 'off')


@dataclass
class Settings:
    max_cycles: int = DEFAULT_MAX_CYCLES
    build_command: str = DEFAULT_BUILD_COMMAND
    build_timeout: int = DEFAULT_BUILD_TIMEOUT
    log_file: str = DEFAULT_LOG_FILE
    parallel_validation: bool = True
    anthropic_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None
    openrouter_api_key: Optional[str] = None

    @property
    def has_llm_provider(self) -> bool:
        return bool(self.anthropic_api_key or self.openai_api_key or self.openrouter_api_key)


def _int_setting(name: str, default: int, minimum: int = 1) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")
    if value < minimum:
        raise ConfigError(f"{name} must be at least {minimum}, got {value}")
    return value


def _bool_setting(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in TRUE_VALUES:
        return True
    if value in FALSE_VALUES:
        return False
    raise ConfigError(f"{name} must be a boolean, got {raw!r}")


def load_settings(env_file: Optional[str] = None) -> Settings:
    """
    Load settings from the environment.

    Args:
        env_file: Optional path to a .env file; defaults to searching from the
            current directory

    Raises:
        ConfigError: a variable is set to a value that cannot be interpreted
    """
    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()

    return Settings(
        max_cycles=_int_setting('NEXT_BUILDER_MAX_CYCLES', DEFAULT_MAX_CYCLES),
        build_command=os.getenv('NEXT_BUILDER_BUILD_COMMAND') or DEFAULT_BUILD_COMMAND,
        build_timeout=_int_setting('NEXT_BUILDER_BUILD_TIMEOUT', DEFAULT_BUILD_TIMEOUT),
        log_file=os.getenv('NEXT_BUILDER_LOG_FILE') or DEFAULT_LOG_FILE,
        parallel_validation=_bool_setting('NEXT_BUILDER_PARALLEL_VALIDATION', True),
        anthropic_api_key=os.getenv('ANTHROPIC_API_KEY'),
        openai_api_key=os.getenv('OPENAI_API_KEY'),
        openrouter_api_key=os.getenv('OPENROUTER_API_KEY'),
    )
