from __future__ import annotations

from pydantic import Field

from stagegate.settings.base import StageGateBaseSettings


class AuditSettings(StageGateBaseSettings):
    """
    Audit delivery settings.
    Loaded from .env file with exact variable name matching.
    """

    max_attempts: int = Field(3, ge=1, alias="AUDIT_MAX_ATTEMPTS")
    logger_name: str = Field("stagegate.audit", alias="AUDIT_LOGGER_NAME")
