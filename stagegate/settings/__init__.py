# Settings package
from stagegate.settings.modules import (
    AppSettings,
    AuditSettings,
    DatabaseSettings,
    GateSettings,
    QualitySettings,
    get_app_settings,
)

__all__ = [
    "get_app_settings",
    "AppSettings",
    "AuditSettings",
    "DatabaseSettings",
    "GateSettings",
    "QualitySettings",
]
