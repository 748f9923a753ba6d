"""
Configuration du client.

Les valeurs viennent de l'environnement (préfixe BOOKSTORE_) ou d'un
fichier .env, avec des valeurs par défaut adaptées au développement local.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="BOOKSTORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    api_url: str = "http://localhost:8080"
    database_uri: str = "sqlite:///bookstore-client.db"
    request_timeout: float = 10.0
    # Délai par défaut d'EventSource, remplacé par le champ retry: du flux
    reconnect_delay: float = 3.0
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    return Settings()
