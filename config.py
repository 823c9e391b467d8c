"""
Application settings loaded from the environment (or a local `.env` file).
"""
from functools import lru_cache
from typing import List, Optional

from fastapi import Request
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    MONGODB_URI: str = Field("mongodb://localhost:27017", description="MongoDB connection string")
    MONGODB_DATABASE: str = Field("feedback_hub", description="Database holding users and submissions")
    SECRET_KEY: str = Field("", description="HMAC key used to sign session tokens")
    JWT_ALGORITHM: str = Field("HS256", description="Session token signing algorithm")
    TOKEN_TTL_HOURS: int = Field(24, description="Session token lifetime in hours")
    ADMIN_EMAIL: Optional[str] = Field(None, description="Bootstrap superAdmin email")
    ADMIN_PASSWORD: Optional[str] = Field(None, description="Bootstrap superAdmin password")
    CORS_ORIGINS: List[str] = Field(default_factory=lambda: ["http://localhost:8080"])
    LIST_LIMIT: int = Field(500, description="Maximum records returned by a listing")
    SERVER_PORT: int = Field(3001)
    LOG_LEVEL: str = Field("INFO")


@lru_cache
def get_settings() -> Settings:
    return Settings()


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings
