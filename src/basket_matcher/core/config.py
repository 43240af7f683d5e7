"""
Runtime configuration for the basket matcher.
Values come from the environment (optionally a .env file) with sane defaults.
"""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

ROOT_DIR = Path(__file__).resolve().parent.parent.parent.parent
load_dotenv(ROOT_DIR / ".env")


def _as_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return int(value)


def _as_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return float(value)


# Ollama configuration
OLLAMA_HOST = os.getenv("OLLAMA_HOST", "http://localhost:11434")
OLLAMA_MODEL = os.getenv("OLLAMA_MODEL", "qwen2.5:7b")

# Collaborator call policy
LLM_TIMEOUT_SECONDS = _as_float("LLM_TIMEOUT_SECONDS", 15.0)
LLM_MAX_RETRIES = _as_int("LLM_MAX_RETRIES", 2)
LLM_INITIAL_BACKOFF = _as_float("LLM_INITIAL_BACKOFF", 1.0)

# Catalog and request limits
CATALOG_PATH = os.getenv("CATALOG_PATH", str(ROOT_DIR / "data" / "products.json"))
MAX_LIST_LENGTH = _as_int("MAX_LIST_LENGTH", 10000)

LOG_LEVEL = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"
