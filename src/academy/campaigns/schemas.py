"""Pydantic request/response models for campaign endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

CampaignStatus = Literal["draft", "active", "paused", "completed"]
CampaignTrigger = Literal["manual", "automated", "scheduled"]


class MessageTemplate(BaseModel):
    text: str = Field(..., min_length=1)
    variables: list[str] = []


class AutomationRules(BaseModel):
    type: str
    conditions: dict[str, Any] = {}
    actions: dict[str, Any] = {}


# --- Requests ---


class CampaignCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    description: str | None = None
    type: str = "custom"
    status: CampaignStatus = "draft"
    trigger: CampaignTrigger = "manual"
    target_audience: dict[str, Any] = {}
    message_template: MessageTemplate
    automation_rules: AutomationRules | None = None


class CampaignUpdateRequest(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=128)
    description: str | None = None
    type: str | None = None
    status: CampaignStatus | None = None
    trigger: CampaignTrigger | None = None
    target_audience: dict[str, Any] | None = None
    message_template: MessageTemplate | None = None
    automation_rules: AutomationRules | None = None


class CampaignFromTemplateRequest(BaseModel):
    template: str
    overrides: dict[str, Any] = {}


# --- Responses ---


class CampaignResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    name: str
    description: str | None = None
    type: str
    status: str
    trigger: str
    target_audience: dict[str, Any] = {}
    message_template: dict[str, Any]
    automation_rules: dict[str, Any] | None = None
    analytics: dict[str, int] = {}
    last_run_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    scheduled: bool = False


class CampaignListResponse(BaseModel):
    campaigns: list[CampaignResponse]
    total: int


class CampaignMessageResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    recipient: str
    student_id: int | None = None
    message_content: str
    status: str
    provider_message_id: str | None = None
    error_message: str | None = None
    sent_at: datetime | None = None
    created_at: datetime


class CampaignMessagesResponse(BaseModel):
    messages: list[CampaignMessageResponse]


class CampaignAnalyticsResponse(BaseModel):
    campaign_id: int
    sent: int
    delivered: int
    read: int
    failed: int
    delivery_rate: int
    read_rate: int


class CampaignRunResponse(BaseModel):
    campaign_id: int
    matched: int


class CampaignTemplateResponse(BaseModel):
    key: str
    name: str
    type: str
    message_template: dict[str, Any]
    automation_rules: dict[str, Any]


class CampaignTemplatesResponse(BaseModel):
    templates: list[CampaignTemplateResponse]
