from __future__ import annotations
import logging
import os
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

DB_PATH = Path(os.getenv("REPCOUNTER_DB_PATH", "./repcounter.db"))
LOG_LEVEL = os.getenv("REPCOUNTER_LOG_LEVEL", "INFO")
CAMERA_INDEX = int(os.getenv("REPCOUNTER_CAMERA_INDEX", "0"))
MODEL_COMPLEXITY = int(os.getenv("REPCOUNTER_MODEL_COMPLEXITY", "0"))
HOST = os.getenv("REPCOUNTER_HOST", "127.0.0.1")
PORT = int(os.getenv("REPCOUNTER_PORT", "8000"))


def setup_logging(level: str = LOG_LEVEL):
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
