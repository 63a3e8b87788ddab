"""Configuration schema using Pydantic."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings

from remote_emulator.broker.client import DEFAULT_BASE_URL
from remote_emulator.storage.session_store import DEFAULT_SESSION_DIR


class BrokerConfig(BaseModel):
    """Remote broker endpoint and credential."""
    base_url: str = DEFAULT_BASE_URL
    token: str = ""  # Bearer token, legacy env EMULATOR_REMOTE_TOKEN
    timeout_seconds: float | None = None  # None keeps the HTTP client default


class AdbConfig(BaseModel):
    """Local adb tooling."""
    path: str = "adb"  # legacy env ADB_PATH
    public_key_path: str = "~/.android/adbkey.pub"


class SessionConfig(BaseModel):
    """Where the last registration is kept."""
    directory: str = DEFAULT_SESSION_DIR


class RetryConfig(BaseModel):
    """Registration retry policy."""
    attempts: int = Field(default=5, ge=1)
    delay_ms: int = Field(default=2000, ge=0)


class Config(BaseSettings):
    """Root configuration for remote-emulator."""
    broker: BrokerConfig = Field(default_factory=BrokerConfig)
    adb: AdbConfig = Field(default_factory=AdbConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)

    @property
    def has_token(self) -> bool:
        return bool(str(self.broker.token or "").strip())

    model_config = ConfigDict(
        env_prefix="REMOTE_EMULATOR_",
        env_nested_delimiter="__"
    )
