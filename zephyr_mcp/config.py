"""
Configuration and logging setup for the Zephyr Scale MCP server.

All configuration values are loaded from environment variables, optionally
read from a .env file in the working directory. This allows deployment-specific
configuration without code changes.
"""

import os
import logging
from datetime import datetime
from typing import NamedTuple, Optional

from dotenv import load_dotenv

from .errors import ConfigError

# Load environment variables from .env file (ZEPHYR_API_KEY, ZEPHYR_BASE_URL, etc.)
load_dotenv()

DEFAULT_SERVER_NAME = "zephyr-scale"

# Name shown to MCP clients in tool listings and logs
MCP_SERVER_NAME = os.getenv("MCP_SERVER_NAME", DEFAULT_SERVER_NAME) or DEFAULT_SERVER_NAME

DEFAULT_TIMEOUT = 30.0

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class Settings(NamedTuple):
    """Validated, read-only server settings."""
    api_key: str
    base_url: str
    timeout: Optional[float] = DEFAULT_TIMEOUT


def load_settings(environ=None) -> Settings:
    """
    Build Settings from the environment.

    Args:
        environ: Mapping to read from (defaults to os.environ)

    Returns:
        Settings: The validated settings

    Raises:
        ConfigError: If ZEPHYR_API_KEY or ZEPHYR_BASE_URL is missing, or
                     ZEPHYR_TIMEOUT is not a number
    """
    if environ is None:
        environ = os.environ

    api_key = environ.get("ZEPHYR_API_KEY", "").strip()
    base_url = environ.get("ZEPHYR_BASE_URL", "").strip()

    if not api_key:
        raise ConfigError("ZEPHYR_API_KEY environment variable is required", code=-32093)
    if not base_url:
        raise ConfigError("ZEPHYR_BASE_URL environment variable is required", code=-32094)

    # ZEPHYR_TIMEOUT=0 disables the timeout entirely
    raw_timeout = environ.get("ZEPHYR_TIMEOUT", "").strip()
    timeout: Optional[float] = DEFAULT_TIMEOUT
    if raw_timeout:
        try:
            timeout = float(raw_timeout)
        except ValueError:
            raise ConfigError(f"ZEPHYR_TIMEOUT must be a number of seconds, got '{raw_timeout}'")
        if timeout <= 0:
            timeout = None

    return Settings(
        api_key=api_key,
        base_url=base_url,
        timeout=timeout,
    )


def _dated_log_file(log_file: str) -> str:
    """Insert today's date before the .log extension: zephyr-mcp.yyyy-mm-dd.log"""
    log_date = datetime.now().strftime("%Y-%m-%d")
    log_dir = os.path.dirname(log_file)
    log_basename = os.path.basename(log_file)

    if log_basename.endswith('.log'):
        return os.path.join(log_dir, f"{log_basename[:-4]}.{log_date}.log")
    return f"{log_file}.{log_date}.log"


def setup_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> logging.Logger:
    """
    Configure the package logger.

    The console handler writes to stderr because stdout is reserved for the
    MCP STDIO transport. If LOG_FILE is set, a date-stamped file handler is
    added as well.

    Args:
        level: Log level name (defaults to LOG_LEVEL env var, then INFO)
        log_file: Log file path (defaults to LOG_FILE env var)

    Returns:
        logging.Logger: The configured 'zephyr_mcp' logger
    """
    level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log_file = log_file if log_file is not None else os.getenv("LOG_FILE")

    logger = logging.getLogger("zephyr_mcp")
    logger.setLevel(getattr(logging, level, logging.INFO))

    # Calling setup twice must not duplicate output
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.DEBUG)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        dated_log_file = _dated_log_file(log_file)
        file_handler = logging.FileHandler(dated_log_file)
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
        logger.info(f"File logging enabled: {dated_log_file}")

    # IMPORTANT: requests/urllib3 log full request details at DEBUG level,
    # which would leak the Authorization header
    logging.getLogger("requests").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    logger.info(f"Logging initialized at {level} level")
    return logger
