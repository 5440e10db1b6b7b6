"""Configuration management for the PR categorization service."""

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, SecretStr, field_validator


class DatabaseConfig(BaseModel):
    """Persistence settings."""

    path: str = Field(default="~/.prcat/prcat.db", description="Path to SQLite database file")


class GitHubConfig(BaseModel):
    """GitHub App credentials and webhook settings."""

    app_id: str = Field(..., description="GitHub App ID")
    private_key: SecretStr = Field(..., description="PEM-formatted GitHub App private key")
    webhook_secret: Optional[SecretStr] = Field(
        default=None,
        description="Shared secret for X-Hub-Signature-256; unset disables verification",
    )
    webhook_url: Optional[str] = Field(
        default=None, description="Public URL GitHub should deliver webhooks to"
    )
    api_base: str = "https://api.github.com"
    request_timeout: float = Field(default=30.0, gt=0)

    @field_validator("private_key", mode="before")
    @classmethod
    def normalize_private_key(cls, value):
        # Keys pasted into env vars often arrive quoted with escaped newlines
        if isinstance(value, str):
            value = value.strip().strip("\"'")
            value = value.replace("\\n", "\n")
        return value


class ServerConfig(BaseModel):
    """Webhook server settings."""

    host: str = "127.0.0.1"
    port: int = Field(default=8080, ge=1, le=65535)
    max_payload_bytes: int = Field(default=5 * 1024 * 1024, ge=1)


class CategorizationConfig(BaseModel):
    """LLM categorization behavior."""

    max_tokens: int = Field(default=256, ge=1, le=4096)
    temperature: float = Field(default=0.0, ge=0.0, le=1.0)
    max_diff_chars: int = Field(default=20000, ge=100)
    lease_seconds: int = Field(default=300, ge=1, description="In-flight categorization lease")


class Config(BaseModel):
    """Root configuration model."""

    database: DatabaseConfig = DatabaseConfig()
    github: Optional[GitHubConfig] = None
    server: ServerConfig = ServerConfig()
    categorization: CategorizationConfig = CategorizationConfig()


def load_config(config_path: str | Path = "config.yaml") -> Config:
    """Load and validate configuration from YAML file.

    Supports ${VAR_NAME} syntax for environment variable expansion.

    Args:
        config_path: Path to the configuration file.

    Returns:
        Validated Config object.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        ValidationError: If config is invalid.
        ValueError: If referenced environment variable is not set.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(
            f"Config file not found: {path}\n"
            "Copy config.example.yaml to config.yaml and fill in your values."
        )

    with path.open() as f:
        raw_config = yaml.safe_load(f) or {}

    # Expand environment variables in the format ${VAR_NAME}
    def expand_env_vars(obj):
        if isinstance(obj, dict):
            return {k: expand_env_vars(v) for k, v in obj.items()}
        elif isinstance(obj, list):
            return [expand_env_vars(item) for item in obj]
        elif isinstance(obj, str) and obj.startswith("${") and obj.endswith("}"):
            env_var = obj[2:-1]
            value = os.getenv(env_var)
            if value is None:
                raise ValueError(f"Environment variable '{env_var}' is not set")
            return value
        return obj

    raw_config = expand_env_vars(raw_config)

    return Config(**raw_config)
