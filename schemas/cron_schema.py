# cron_schema.py
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime


# ---------------------------
# Shared
# ---------------------------
class ItemError(BaseModel):
    id: int
    error: str


class MarkingError(ItemError):
    type: str = Field(..., description="'subscription', 'addon' or 'system'")


# ---------------------------
# Resource handlers
# ---------------------------
class HandlerResult(BaseModel):
    success: bool
    resources_affected: Dict[str, int] = Field(default_factory=dict)
    details: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


# ---------------------------
# Expiration processing
# ---------------------------
class ExpiredAddonResult(BaseModel):
    addon_id: int
    addon_type: str
    user_id: int
    workspace_id: Optional[int] = None
    success: bool
    resources_affected: Dict[str, int] = Field(default_factory=dict)
    details: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    notification_sent: bool = False


class AddonExpirationSummary(BaseModel):
    success: bool
    total_expired: int = 0
    total_processed: int = 0
    total_failed: int = 0
    results: List[ExpiredAddonResult] = Field(default_factory=list)
    errors: List[ItemError] = Field(default_factory=list)
    execution_time_ms: int = 0


# ---------------------------
# Warning emails
# ---------------------------
class EmailReminderResult(BaseModel):
    addon_id: int
    addon_type: str
    user_id: int
    user_email: Optional[str] = None
    days_until_expiration: int
    reminder_type: Optional[str] = None
    email_sent: bool
    error: Optional[str] = None


class EmailReminderSummary(BaseModel):
    success: bool
    total_eligible: int = 0
    day7_sent: int = 0
    day3_sent: int = 0
    day1_sent: int = 0
    total_failed: int = 0
    results: List[EmailReminderResult] = Field(default_factory=list)
    errors: List[ItemError] = Field(default_factory=list)
    execution_time_ms: int = 0

    @property
    def total_sent(self) -> int:
        return self.day7_sent + self.day3_sent + self.day1_sent


# ---------------------------
# Expiration marking
# ---------------------------
class ExpiredSubscriptionResult(BaseModel):
    subscription_id: int
    user_id: Optional[int] = None
    plan_type: str
    previous_status: str
    end_date: Optional[datetime] = None
    success: bool
    error: Optional[str] = None


class ExpiredAddonMarkResult(BaseModel):
    addon_id: int
    addon_type: str
    user_id: int
    workspace_id: Optional[int] = None
    previous_status: str
    end_date: Optional[datetime] = None
    success: bool
    error: Optional[str] = None


class SubscriptionMarkingGroup(BaseModel):
    total_marked: int = 0
    results: List[ExpiredSubscriptionResult] = Field(default_factory=list)


class AddonMarkingGroup(BaseModel):
    total_marked: int = 0
    results: List[ExpiredAddonMarkResult] = Field(default_factory=list)


class ExpirationMarkingSummary(BaseModel):
    success: bool
    subscriptions: SubscriptionMarkingGroup = Field(default_factory=SubscriptionMarkingGroup)
    addons: AddonMarkingGroup = Field(default_factory=AddonMarkingGroup)
    errors: List[MarkingError] = Field(default_factory=list)
    execution_time_ms: int = 0


# ---------------------------
# Full cron run
# ---------------------------
class ExpirationJobReport(BaseModel):
    success: bool
    marking: ExpirationMarkingSummary
    warnings: EmailReminderSummary
    expiration: AddonExpirationSummary
    execution_time_ms: int = 0
