from __future__ import annotations

from pydantic import Field

from stagegate.settings.base import StageGateBaseSettings


class QualitySettings(StageGateBaseSettings):
    """
    Quality gate tolerances and review thresholds.
    Loaded from .env file with exact variable name matching.
    """

    # Relative dimension tolerances
    length_tolerance: float = Field(0.02, alias="QC_LENGTH_TOLERANCE")
    width_tolerance: float = Field(0.02, alias="QC_WIDTH_TOLERANCE")
    thickness_tolerance: float = Field(0.05, alias="QC_THICKNESS_TOLERANCE")

    pass_score: float = Field(80, alias="QC_PASS_SCORE")
    review_issue_limit: int = Field(2, alias="QC_REVIEW_ISSUE_LIMIT")
    precision_issue_threshold: float = Field(0.8, alias="QC_PRECISION_ISSUE_THRESHOLD")
    precision_review_threshold: float = Field(0.9, alias="QC_PRECISION_REVIEW_THRESHOLD")
    cutting_length_tolerance: float = Field(0.02, alias="QC_CUTTING_LENGTH_TOLERANCE")
    waste_ratio: float = Field(0.15, alias="QC_WASTE_RATIO")
