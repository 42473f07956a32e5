import os
from pydantic import BaseModel, ConfigDict, field_validator
from dotenv import load_dotenv

load_dotenv()  # Load environment variables from .env file

def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")

class Settings(BaseModel):
    # Run validators on env-derived defaults too
    model_config = ConfigDict(validate_default=True)

    # General app settings
    APP_NAME: str = "WebBridge"
    env: str = os.getenv("ENV", "dev")
    debug_mode: bool = _env_bool("DEBUG_MODE")

    # Host & Port settings
    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "8080"))

    # Public address of this service, used for entry pages and capability URLs
    base_url: str = os.getenv("BASE_URL", f"http://localhost:{os.getenv('PORT', '8080')}")

    # CORS origins for the web player
    CORS_ORIGINS: list[str] = [
        "http://localhost:8080",
        "http://127.0.0.1:8080",
    ]

    # Telegram bot settings
    bot_token: str | None = os.getenv("BOT_TOKEN")
    # Audit channel that receives a copy of every media message ("" or "0" disables)
    log_channel_id: str = os.getenv("LOG_CHANNEL_ID", "")

    # Capability token length (characters); longer tokens are harder to enumerate
    hash_length: int = int(os.getenv("HASH_LENGTH", "8"))

    # Upper bound for any best-effort outbound chat message
    notify_timeout: float = float(os.getenv("NOTIFY_TIMEOUT_SECONDS", "10"))

    # /listusers page size
    list_page_size: int = int(os.getenv("LIST_PAGE_SIZE", "10"))

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("hash_length")
    @classmethod
    def _clamp_hash_length(cls, v: int) -> int:
        # sha256 hex digest has 64 characters
        return max(4, min(v, 64))

    @property
    def audit_enabled(self) -> bool:
        return self.log_channel_id not in ("", "0")

settings = Settings()  # Instantiate configuration
