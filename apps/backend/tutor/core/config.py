import os
from enum import Enum
from pydantic import BaseModel, ConfigDict
from dotenv import load_dotenv

load_dotenv()

DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"
PLACEHOLDER_API_KEY = "your-openai-api-key-here"
MIN_API_KEY_LENGTH = 10


class Settings(BaseModel):
    env: str = os.getenv("ENV", "development")
    port: int = int(os.getenv("PORT", "8000"))
    allowed_origins: list[str] = os.getenv("ALLOWED_ORIGINS", "http://localhost:5173").split(",")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    openai_api_key: str | None = os.getenv("OPENAI_API_KEY")
    openai_base_url: str = os.getenv("OPENAI_BASE_URL") or DEFAULT_OPENAI_BASE_URL
    openai_model: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    openai_vision_model: str = os.getenv("OPENAI_VISION_MODEL", "gpt-4o")
    openai_chat_model: str = os.getenv("OPENAI_CHAT_MODEL", "gpt-4o-mini")

    batch_delay_ms: int = int(os.getenv("BATCH_DELAY_MS", "2000"))

    # MongoDB Atlas configuration
    mongodb_db: str = os.getenv("MONGO_DB", "storybook_tutor")
    _mongo_user: str | None = os.getenv("MONGO_USER")
    _mongo_pass: str | None = os.getenv("MONGO_PASS")
    _mongo_host: str = os.getenv("MONGO_HOST", "localhost")
    _mongo_app: str = os.getenv("MONGO_APP", "StorybookTutor")
    mongodb_uri: str | None = os.getenv("MONGODB_URI") or (
        f"mongodb+srv://{_mongo_user}:{_mongo_pass}@{_mongo_host}/?retryWrites=true&w=majority&appName={_mongo_app}"
        if _mongo_user and _mongo_pass else None
    )

    # page images
    blob_storage_dir: str = os.getenv("BLOB_STORAGE_DIR", "data/blobs")
    blob_public_base_url: str = os.getenv("BLOB_PUBLIC_BASE_URL", "http://localhost:8000/files")


settings = Settings()


class AIAvailability(str, Enum):
    READY = "ready"
    MISSING = "missing"
    PLACEHOLDER = "placeholder"
    TOO_SHORT = "too_short"

    @property
    def usable(self) -> bool:
        return self is AIAvailability.READY

    @classmethod
    def from_api_key(cls, api_key: str | None) -> "AIAvailability":
        if not api_key or not api_key.strip():
            return cls.MISSING
        if api_key == PLACEHOLDER_API_KEY:
            return cls.PLACEHOLDER
        if len(api_key) < MIN_API_KEY_LENGTH:
            return cls.TOO_SHORT
        return cls.READY


class CallProfile(BaseModel):
    """Resilience and sampling parameters for one kind of outbound AI call."""
    model_config = ConfigDict(frozen=True)

    max_attempts: int = 3
    base_delay_s: float = 1.0
    timeout_s: float = 10.0
    max_tokens: int = 500
    temperature: float = 0.3


class AIConfig(BaseModel):
    """AI settings resolved once per request and passed down explicitly.

    Nothing below the router layer reads environment variables; the gateway,
    orchestrator and batch runner only ever see this value.
    """
    model_config = ConfigDict(frozen=True)

    api_key: str | None = None
    base_url: str = DEFAULT_OPENAI_BASE_URL
    text_model: str = "gpt-4o-mini"
    vision_model: str = "gpt-4o"
    chat_model: str = "gpt-4o-mini"

    text: CallProfile = CallProfile()
    vision: CallProfile = CallProfile(max_attempts=2, timeout_s=30.0, max_tokens=800)
    batch_vision: CallProfile = CallProfile(max_attempts=1, timeout_s=60.0, max_tokens=1000)
    chat: CallProfile = CallProfile(max_attempts=2, timeout_s=15.0, temperature=0.7)
    discussion: CallProfile = CallProfile(max_attempts=2, timeout_s=15.0, max_tokens=300, temperature=0.7)

    # pause between AI-bound pages in a batch run
    batch_delay_s: float = 2.0

    @property
    def availability(self) -> AIAvailability:
        return AIAvailability.from_api_key(self.api_key)

    @classmethod
    def from_settings(cls, s: Settings) -> "AIConfig":
        return cls(
            api_key=s.openai_api_key,
            base_url=s.openai_base_url,
            text_model=s.openai_model,
            vision_model=s.openai_vision_model,
            chat_model=s.openai_chat_model,
            batch_delay_s=s.batch_delay_ms / 1000,
        )
