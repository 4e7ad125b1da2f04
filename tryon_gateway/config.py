"""Configuration management for the Try-On gateway."""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RemoteModelConfig(BaseModel):
    """Hosted try-on model settings."""
    model_config = ConfigDict(protected_namespaces=())

    model_id: str = "yisol/IDM-VTON"
    endpoint: int | str = 2  # fn_index, or an api_name such as "/tryon"
    connect_timeout: float = 60.0
    predict_timeout: float = 300.0  # 5 min, the Space can be slow under load
    verbose: bool = True

    @field_validator("endpoint", mode="before")
    @classmethod
    def numeric_endpoint_is_fn_index(cls, value):
        # Env values arrive as strings; "2" means fn_index 2, not api_name "2"
        if isinstance(value, str) and value.strip().isdigit():
            return int(value)
        return value


class RetryConfig(BaseModel):
    """Connection retry policy."""
    max_attempts: int = Field(default=5, ge=1)
    base_delay: float = Field(default=5.0, gt=0)
    max_delay: float = Field(default=60.0, gt=0)


class GenerationDefaults(BaseModel):
    """Defaults applied to optional try-on parameters."""
    message: str = "Processing virtual try-on request"
    use_auto_mask: bool = True
    enhance_result: bool = True
    denoising_steps: int = Field(default=20, ge=20)
    seed: int = Field(default=42, ge=0)


class GatewayConfig(BaseSettings):
    """Main gateway configuration."""

    # Server
    environment: str = "development"
    host: str = "0.0.0.0"
    port: int = 3000
    allowed_origins: list[str] = Field(default_factory=lambda: ["*"])

    # Logging
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Uploads
    max_upload_mb: int = Field(default=10, ge=1)

    # Connection lifecycle
    connect_on_startup: bool = True
    wait_for_initialization: bool = False

    # Sub-configs
    remote: RemoteModelConfig = Field(default_factory=RemoteModelConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    generation: GenerationDefaults = Field(default_factory=GenerationDefaults)

    # Hugging Face (loaded from .env)
    hf_token: str | None = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="",
        env_nested_delimiter="__",
        extra="ignore",
    )

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


def load_config() -> GatewayConfig:
    """Load configuration from environment and defaults."""
    return GatewayConfig()
