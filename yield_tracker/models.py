from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from yield_tracker.tokens import SupportedToken


Category = Literal["farming", "lending", "staking"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class YieldRecord(BaseModel):
    protocol: str
    token: SupportedToken
    apy: float = Field(..., ge=0.0, description="Annual percentage yield in % (12.5 means 12.5%)")
    tvl: float = Field(..., ge=0.0, description="Total value locked in USD")
    pool_identifier: str
    category: Category
    observed_at: datetime = Field(default_factory=utcnow)

    @field_validator("apy", "tvl")
    @classmethod
    def _finite(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError("must be a finite number")
        return v


class Opportunity(BaseModel):
    token: SupportedToken
    favored_protocol: str
    favored_apy: float
    best_competitor_protocol: str
    best_competitor_apy: float
    advantage: float = Field(..., description="favored_apy - best_competitor_apy, in percentage points")
    score: float = Field(..., ge=1.0, le=5.0)
    tvl_difference: float


class OpportunityStats(BaseModel):
    total_opportunities: int
    favored_advantages: int
    average_advantage: float
    best_advantage: float


class ProtocolInfo(BaseModel):
    name: str
    color: str
    website: str
    description: str = ""


class YieldAlert(BaseModel):
    id: str
    user_id: int
    token: SupportedToken
    min_apy: float = Field(..., gt=0.0, le=100.0)
    protocol: Optional[str] = None
    active: bool = True
    created_at: datetime = Field(default_factory=utcnow)


class TelegramUser(BaseModel):
    id: int
    username: Optional[str] = None
    first_name: str = ""
    last_name: Optional[str] = None
    alerts: List[YieldAlert] = Field(default_factory=list)


class AlertNotification(BaseModel):
    alert: YieldAlert
    best_protocol: str
    best_apy: float
    favored_protocol: str
    favored_apy: Optional[float] = None

    @property
    def favored_meets_threshold(self) -> bool:
        return self.favored_apy is not None and self.favored_apy >= self.alert.min_apy


class WebhookRequest(BaseModel):
    webhook_url: str


class ServiceStatus(BaseModel):
    last_refresh_at: Optional[int]
    sources: List[str]
    cache_entries: int
    favored_protocol: str
    alerts_enabled: bool
    active_alerts: int
    extra: Dict[str, Any] = Field(default_factory=dict)
