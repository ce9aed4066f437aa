"""Configuration management."""

import os
from pathlib import Path

from dotenv import dotenv_values
from pydantic import Field
from pydantic_settings import BaseSettings

# Load .env for local runs without overriding values already in the environment
BASE_DIR = Path(__file__).resolve().parent.parent.parent
env_file = BASE_DIR / ".env"

if env_file.exists():
    file_env = dotenv_values(env_file)
    for k, v in file_env.items():
        if k not in os.environ and v is not None:
            os.environ[k] = v


class Settings(BaseSettings):
    """Application settings pulled from environment variables."""

    # API Configuration
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")
    debug: bool = Field(default=False, description="Enable debug mode")

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="Logging format (json or console)")

    # Planet Generation Configuration
    default_subdivisions: int = Field(default=4, ge=0, description="Default icosphere subdivision level")
    max_subdivisions: int = Field(default=7, ge=0, description="Highest subdivision level the API accepts")
    default_radius: float = Field(default=18.0, gt=0, description="Default planet radius")
    default_seed: str = Field(default="Earth42", description="Default planet seed")
    max_stored_planets: int = Field(default=16, ge=1, description="Planets kept in memory by the API")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # .env may hold values for other tools


# Instantiate singleton settings object
settings = Settings()
