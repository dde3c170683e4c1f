# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""Configuration management for the event provenance service."""

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Device Identity
    device_id: str = "camera_001"

    # Database
    database_url: str = "sqlite:///./data/provenance.db"
    store_timeout_seconds: float = 5.0

    # Signing
    signing_key_path: str = "./data/keys/software_signer.pem"
    signer_timeout_seconds: float = 2.0

    # Capture
    capture_dir: str = "./data/captures"
    frame_width: int = 640
    frame_height: int = 480

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 3000
    cors_origins: str = "*"

    # Logging
    log_level: str = "INFO"

    @property
    def signing_key_file(self) -> Optional[str]:
        """Software key location, or None for an ephemeral key."""
        return self.signing_key_path.strip() or None

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins from comma-separated string."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


# Global settings instance
settings = Settings()
