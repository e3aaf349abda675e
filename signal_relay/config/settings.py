"""
Relay settings loaded from environment variables.
Uses pydantic-settings for type-safe configuration.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_PASSWORD = "change-me-in-production"


class Settings(BaseSettings):
    """Relay settings with defaults for development."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Shared secret presented in Sec-WebSocket-Protocol
    signaling_password: str = DEFAULT_PASSWORD

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Environment
    environment: str = "development"
    debug: bool = True

    # Comma-separated list of origins allowed to read the health surface
    allowed_origins: str = ""

    # Relay limits
    relay_max_message_size: int = 1024 * 1024  # 1 MiB
    relay_outbox_size: int = 256  # Pending messages per recipient before dropping
    relay_send_timeout: float = 5.0  # Seconds a single send may take
    relay_shutdown_drain_timeout: float = 2.0  # Seconds to flush outboxes on shutdown
    relay_maintenance_interval: float = 30.0  # Seconds between lock pruning passes

    @property
    def password_configured(self) -> bool:
        """Whether the default password has been replaced."""
        return self.signaling_password != DEFAULT_PASSWORD

    @property
    def origins(self) -> list[str]:
        """Parsed allowed_origins, or ["*"] when unset."""
        parsed = [o.strip() for o in self.allowed_origins.split(",") if o.strip()]
        return parsed or ["*"]

    def validate_production_secrets(self) -> list[str]:
        """
        Validate that secrets are properly configured for production.
        Returns a list of validation errors. Empty list means all checks pass.
        """
        errors = []

        weak_secrets = {
            DEFAULT_PASSWORD,
            "secret",
            "password",
            "changeme",
            "default",
        }

        if self.environment == "production":
            if self.signaling_password in weak_secrets or len(self.signaling_password) < 16:
                errors.append(
                    "SIGNALING_PASSWORD must be at least 16 characters and not a default value in production"
                )

            if self.debug:
                errors.append("DEBUG must be False in production")

        return errors


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience export
settings = get_settings()
