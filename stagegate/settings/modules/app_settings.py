from __future__ import annotations

from functools import lru_cache

from pydantic import BaseModel, ConfigDict

from stagegate.settings.modules.audit_settings import AuditSettings
from stagegate.settings.modules.database_settings import DatabaseSettings
from stagegate.settings.modules.gate_settings import GateSettings
from stagegate.settings.modules.quality_settings import QualitySettings


class AppSettings(BaseModel):
    """Application settings aggregator."""

    model_config = ConfigDict(arbitrary_types_allowed=True, extra="ignore")

    gate: GateSettings
    quality: QualitySettings
    database: DatabaseSettings
    audit: AuditSettings


@lru_cache()
def get_app_settings() -> AppSettings:
    return AppSettings(
        gate=GateSettings(),
        quality=QualitySettings(),
        database=DatabaseSettings(),
        audit=AuditSettings(),
    )
