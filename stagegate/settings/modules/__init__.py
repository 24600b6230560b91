# Settings modules
from .app_settings import AppSettings, get_app_settings
from .audit_settings import AuditSettings
from .database_settings import DatabaseSettings
from .gate_settings import GateSettings
from .quality_settings import QualitySettings

__all__ = [
    "AppSettings",
    "get_app_settings",
    "AuditSettings",
    "DatabaseSettings",
    "GateSettings",
    "QualitySettings",
]
