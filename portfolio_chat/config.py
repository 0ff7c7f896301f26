"""
Configuration module for the portfolio chat backend and client.

This module centralizes all configuration settings, loading values from
environment variables (and a local ``.env`` file) with sensible defaults.
"""
import os
import sys
import logging
from pathlib import Path

from dotenv import load_dotenv
from loguru import logger

from portfolio_chat.utils.feature_flags import init_feature_flags

# Load environment variables from .env file
load_dotenv()

# OpenAI Configuration
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_ASSISTANT_ID = os.getenv("OPENAI_ASSISTANT_ID")
OPENAI_COMPLETION_MODEL = os.getenv("OPENAI_COMPLETION_MODEL", "gpt-4o")
OPENAI_COMPLETION_TEMPERATURE = float(os.getenv("OPENAI_COMPLETION_TEMPERATURE", "0.7"))
OPENAI_COMPLETION_MAX_TOKENS = int(os.getenv("OPENAI_COMPLETION_MAX_TOKENS", "1000"))

# System prompt inputs for the completion route
PORTFOLIO_OWNER_NAME = os.getenv("PORTFOLIO_OWNER_NAME", "the site owner")
SYSTEM_PROMPT_DOCUMENTATION = os.getenv("SYSTEM_PROMPT_DOCUMENTATION", "")

# Which chat backend the client talks to ("openai" or "gemini")
LLM_PROVIDER = os.getenv("LLM_PROVIDER", "openai")

# Client settings
CHAT_BACKEND_URL = os.getenv("CHAT_BACKEND_URL", "http://localhost:8000")
CHAT_CONNECT_TIMEOUT = float(os.getenv("CHAT_CONNECT_TIMEOUT", "10"))
CHAT_READ_TIMEOUT = float(os.getenv("CHAT_READ_TIMEOUT", "60"))

# Paths
BASE_DIR = Path(__file__).resolve().parent.parent
DATA_DIR = BASE_DIR / "data"
DATABASE_URL = os.getenv("PORTFOLIO_CHAT_DB", f"sqlite:///{DATA_DIR / 'portfolio.db'}")
DURABLE_STORAGE_PATH = Path(
    os.getenv("PORTFOLIO_CHAT_STORAGE", str(Path.home() / ".portfolio_chat" / "storage.json"))
)

# Retention windows used by the maintenance script
SESSION_RETENTION_DAYS = 30
TELEMETRY_RETENTION_DAYS = 90

LOG_LEVEL = os.getenv("PORTFOLIO_CHAT_LOG_LEVEL", "INFO").upper()


def setup_logging() -> None:
    """Configure stdlib logging and the loguru sink once at process start."""
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger.remove()
    logger.add(sys.stderr, level=LOG_LEVEL)


def _check_required_env_vars() -> None:
    """Warn about environment variables the chat routes cannot work without."""
    required_vars = ["OPENAI_API_KEY", "OPENAI_ASSISTANT_ID"]
    missing_vars = [var for var in required_vars if not os.getenv(var)]

    if missing_vars:
        logger.warning(f"Missing environment variables: {', '.join(missing_vars)}")
        logger.warning("Set these variables in your .env file or environment")


# Initialize feature flags
init_feature_flags()

# Check required environment variables on import
_check_required_env_vars()
