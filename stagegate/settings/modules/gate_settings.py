from __future__ import annotations

from pydantic import Field

from stagegate.settings.base import StageGateBaseSettings


class GateSettings(StageGateBaseSettings):
    """
    Approval gate thresholds.
    Loaded from .env file with exact variable name matching.
    """

    # === Routine classification ===
    routine_max_weight: float = Field(5000, alias="GATE_ROUTINE_MAX_WEIGHT")          # kg
    routine_min_balance: float = Field(-10, alias="GATE_ROUTINE_MIN_BALANCE")         # kg
    routine_waste_ratio: float = Field(0.10, alias="GATE_ROUTINE_WASTE_RATIO")

    # === Smart validation ===
    balance_tolerance: float = Field(0.001, alias="GATE_BALANCE_TOLERANCE")
    quality_waste_ratio: float = Field(0.15, alias="GATE_QUALITY_WASTE_RATIO")
    timeline_grace: float = Field(1.2, alias="GATE_TIMELINE_GRACE")
    deadline_buffer_hours: float = Field(2, alias="GATE_DEADLINE_BUFFER_HOURS")
    default_stage_duration: int = Field(60, alias="GATE_DEFAULT_STAGE_DURATION")      # minutes

    # === Cost efficiency ===
    waste_cost_ratio: float = Field(0.05, alias="GATE_WASTE_COST_RATIO")
    labour_cost_ratio: float = Field(0.30, alias="GATE_LABOUR_COST_RATIO")
    hourly_rate: float = Field(50, alias="GATE_HOURLY_RATE")

    # === Smart approval ===
    min_completion_rate: float = Field(0.8, alias="GATE_MIN_COMPLETION_RATE")
    performance_window_days: int = Field(30, alias="GATE_PERFORMANCE_WINDOW_DAYS")
