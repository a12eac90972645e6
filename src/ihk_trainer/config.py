"""Application configuration and logging setup."""
import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from rich.logging import RichHandler

logger = logging.getLogger(__name__)


def load_env_file(env_path: Path | None = None) -> None:
    """Load a .env file from the working directory (or the given path) if present."""
    env_path = env_path or Path.cwd() / ".env"
    if env_path.exists():
        load_dotenv(dotenv_path=env_path)


load_env_file()


def _parse_thresholds(raw: str) -> tuple[int, int]:
    low, mid = (int(part.strip()) for part in raw.split(","))
    if low > mid:
        raise ValueError(f"Invalid difficulty thresholds: {raw!r}")
    return low, mid


class Config:
    """Settings read from the environment at import time."""

    # Gemini via its OpenAI-compatible endpoint
    GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")
    GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")
    GEMINI_BASE_URL = os.getenv(
        "GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta/openai/"
    )
    LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "60"))

    # Exam simulation
    EXAM_TIME_MINUTES = int(os.getenv("EXAM_TIME_MINUTES", "60"))
    EXAM_POINT_WEIGHT = int(os.getenv("EXAM_POINT_WEIGHT", "5"))
    EXAMPLE_EXAM_TIME_LIMIT = 180  # minutes

    # Importer
    DIFFICULTY_THRESHOLDS = _parse_thresholds(os.getenv("IHK_DIFFICULTY_THRESHOLDS", "2,4"))
    FETCH_TIMEOUT_SECONDS = float(os.getenv("FETCH_TIMEOUT_SECONDS", "15"))

    # HTTP API
    API_HOST = os.getenv("API_HOST", "0.0.0.0")
    API_PORT = int(os.getenv("API_PORT", "5000"))

    DEFAULT_USER_ID = 1
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    @classmethod
    def check_credentials(cls) -> bool:
        """Warn (without failing) when the AI features cannot work."""
        if not cls.GEMINI_API_KEY:
            logger.warning(
                "Gemini API key is not configured. AI features will not work. "
                "Set GEMINI_API_KEY in the environment or a .env file."
            )
            return False
        logger.info("Gemini API key is configured. AI features are available.")
        return True


def setup_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=(level or Config.LOG_LEVEL).upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )
