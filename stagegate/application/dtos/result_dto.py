"""Application DTOs returned by every public operation."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class OperationResult(BaseModel):
    """
    Outcome of a workflow or gate operation.

    ``success=False`` is a recoverable business-rule rejection; callers
    read ``message`` (and ``errors`` for validation failures).
    """

    success: bool = Field(..., description="Whether the operation took effect")
    message: str = Field(default="", description="Human-readable outcome")
    data: Optional[Dict[str, Any]] = Field(default=None, description="Operation payload")
    errors: List[str] = Field(default_factory=list, description="Validation errors")

    model_config = {"frozen": True}

    @classmethod
    def ok(cls, message: str, data: Optional[Dict[str, Any]] = None) -> "OperationResult":
        return cls(success=True, message=message, data=data)

    @classmethod
    def fail(cls, message: str, errors: Optional[List[str]] = None) -> "OperationResult":
        return cls(success=False, message=message, errors=errors or [])

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)
