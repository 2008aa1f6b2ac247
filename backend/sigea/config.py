"""Application settings and validation."""

import logging
import os
from pathlib import Path

DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'sigea.db'}"


class Settings:
    ENV: str
    DATABASE_URL: str
    LOG_LEVEL: str
    SQL_ECHO: bool
    ALLOW_DEV_CORS: bool
    ALLOW_SQLITE: bool

    def __init__(self):
        self.ENV = os.getenv("ENV", "dev").lower()
        self.DATABASE_URL = os.getenv("SIGEA_DATABASE_URL", DEFAULT_DB_URL)
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self.SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() == "true"
        self.ALLOW_DEV_CORS = os.getenv("ALLOW_DEV_CORS", "true").lower() == "true"
        self.ALLOW_SQLITE = os.getenv("ALLOW_SQLITE", "false").lower() == "true"
        self._validate()

    def _validate(self):
        if not isinstance(logging.getLevelName(self.LOG_LEVEL), int):
            raise RuntimeError(f"LOG_LEVEL must be a logging level name, got {self.LOG_LEVEL!r}")
        if self.ENV != "dev" and not self.ALLOW_SQLITE and self.DATABASE_URL == DEFAULT_DB_URL:
            raise RuntimeError("SIGEA_DATABASE_URL must be set in non-dev environments")


settings = Settings()
