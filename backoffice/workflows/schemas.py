"""Pydantic schemas for workflow actions."""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator


class LineItem(BaseModel):
    description: str = Field(..., min_length=1)
    quantity: float = Field(..., ge=0.01)
    rate: float = Field(..., ge=0)
    amount: float = Field(..., ge=0)

    @field_validator("description", mode="before")
    @classmethod
    def strip_description(cls, value: Any) -> str:
        return str(value or "").strip()


class WorkflowResponse(BaseModel):
    """Uniform envelope returned by every workflow action."""

    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def ok(cls, data: Any, message: str) -> "WorkflowResponse":
        return cls(success=True, data=data, message=message)

    @classmethod
    def fail(cls, error: str, message: Optional[str] = None) -> "WorkflowResponse":
        return cls(success=False, error=error, message=message)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class WorkflowActionRequest(BaseModel):
    """Body posted by workflow callers (n8n) to run one action."""

    action: str = Field(..., min_length=1)
    parameters: Dict[str, Any] = Field(default_factory=dict)
    user_id: Optional[str] = Field(default=None, alias="userId")
    service_account_id: Optional[str] = Field(default=None, alias="serviceAccountId")

    model_config = {"populate_by_name": True}

    @field_validator("parameters", mode="before")
    @classmethod
    def ensure_parameters(cls, value: Any) -> Dict[str, Any]:
        if value is None:
            return {}
        return value
