"""Application commands."""

from .cutting_commands import CuttingResultInput, MeasurementInput
from .sorting_commands import SortingResultInput

__all__ = ["CuttingResultInput", "MeasurementInput", "SortingResultInput"]
