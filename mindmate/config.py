import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Annotated, List, Literal, Optional

from dotenv import load_dotenv
from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

DEFAULT_CRISIS_PHRASES_PATH = ROOT_DIR / 'data' / 'crisis_phrases.json'

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when the service cannot start with the supplied configuration."""


class Settings(BaseSettings):
    """Service settings, read from the environment (names are case-insensitive)."""

    model_config = SettingsConfigDict(extra='ignore')

    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.5-flash"
    llm_timeout_seconds: float = Field(default=10.0, gt=0)
    # Defaults to mongo when MONGO_URL is set
    storage_backend: Optional[Literal['memory', 'mongo']] = None
    mongo_url: str = ""
    db_name: str = "mindmate"
    cors_origins: Annotated[List[str], NoDecode] = ["*"]
    crisis_phrases_path: Path = DEFAULT_CRISIS_PHRASES_PATH
    log_level: str = "INFO"

    @field_validator('cors_origins', mode='before')
    @classmethod
    def _split_origins(cls, v):
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(',') if origin.strip()]
        return v

    @field_validator('log_level')
    @classmethod
    def _known_log_level(cls, v: str) -> str:
        allowed = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of {allowed}")
        return v.upper()

    @model_validator(mode='after')
    def _resolve_backend(self):
        if self.storage_backend is None:
            self.storage_backend = 'mongo' if self.mongo_url else 'memory'
        if self.storage_backend == 'mongo' and not self.mongo_url:
            raise ValueError("STORAGE_BACKEND=mongo requires MONGO_URL")
        return self


def load_settings(**overrides) -> Settings:
    try:
        return Settings(**overrides)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


@lru_cache()
def get_settings() -> Settings:
    return load_settings()


def load_crisis_phrases(path: Path) -> List[str]:
    """Load the crisis phrase list.

    The detector fails open on an empty list, so an empty, missing or
    malformed file is refused here instead of being treated as "no phrases".
    """
    try:
        with open(path, encoding='utf-8') as f:
            data = json.load(f)
    except FileNotFoundError:
        raise ConfigurationError(f"Crisis phrase file not found: {path}")
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Crisis phrase file is not valid JSON: {path} ({e})")

    phrases = data.get('phrases') if isinstance(data, dict) else data
    if not isinstance(phrases, list):
        raise ConfigurationError(f"Crisis phrase file must hold a list of phrases: {path}")

    cleaned = [p.strip().lower() for p in phrases if isinstance(p, str) and p.strip()]
    if not cleaned:
        raise ConfigurationError(f"Crisis phrase list is empty: {path}")

    logger.info(f"Loaded {len(cleaned)} crisis phrases from {path}")
    return cleaned
