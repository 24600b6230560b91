from __future__ import annotations

from pydantic import Field

from stagegate.settings.base import StageGateBaseSettings


class DatabaseSettings(StageGateBaseSettings):
    """
    Database connection settings.
    Loaded from .env file with exact variable name matching.
    """

    database_url: str = Field("sqlite:///./stagegate.db", alias="DB_DATABASE_URL")
    echo_sql: bool = Field(False, alias="DB_ECHO_SQL")
