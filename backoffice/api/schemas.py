"""Pydantic request schemas for the API."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ContextSearchRequest(BaseModel):
    query: str = Field(..., min_length=1)
    entity_types: Optional[List[str]] = Field(default=None, alias="entityTypes")
    limit: int = Field(default=5, ge=1, le=20, alias="topK")
    min_similarity: Optional[float] = Field(default=None, ge=0, le=1, alias="minSimilarity")

    model_config = ConfigDict(populate_by_name=True)


class AutomationToggleRequest(BaseModel):
    enabled: Optional[bool] = None


class AutomationCreateRequest(BaseModel):
    """Either a full definition or ``templateId`` plus optional overrides."""

    template_id: Optional[str] = Field(default=None, alias="templateId")
    name: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    trigger_type: Optional[str] = Field(default=None, alias="triggerType")
    trigger_config: Optional[Dict[str, Any]] = Field(default=None, alias="triggerConfig")
    conditions: Optional[Dict[str, Any]] = None
    actions: Optional[List[Dict[str, Any]]] = None
    enabled: Optional[bool] = None

    model_config = ConfigDict(populate_by_name=True)

    def definition(self) -> Dict[str, Any]:
        payload = self.model_dump(exclude={"template_id"}, exclude_none=True)
        payload.setdefault("enabled", True)
        return payload


class AutomationEventRequest(BaseModel):
    event: str = Field(..., min_length=1)
    data: Dict[str, Any] = Field(default_factory=dict)
