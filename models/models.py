# models/models.py
from typing import Optional, List, Dict, Any
from datetime import datetime, timezone
from enum import Enum
from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import Column, DateTime, JSON
from pydantic import BaseModel


def utc_now() -> datetime:
    """Naive UTC timestamp, the format every datetime column is stored in."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def utc_column(**kwargs: Any) -> Column:
    """
    Plain DateTime column holding utc_now() values.

    Declared explicitly so every table keeps naive UTC storage whatever type
    SQLModel would infer for a bare datetime field. Each call returns a new
    Column; one Column cannot be shared between tables.
    """
    return Column(DateTime(timezone=False), **kwargs)


# ============================================================
# ENUMS
# ============================================================
class PlanTier(str, Enum):
    NO_PLAN = "no_plan"
    WORKSPACE_MEMBER = "workspace_member"
    FREE = "free"
    BUSINESS = "business"
    AGENCY = "agency"
    OLD_MEMBER = "old_member"
    ADMIN = "admin"


class AddOnType(str, Enum):
    EXTRA_WORKSPACE = "extra_workspace"
    EXTRA_FUNNEL = "extra_funnel"
    EXTRA_PAGE = "extra_page"
    EXTRA_SUBDOMAIN = "extra_subdomain"
    EXTRA_CUSTOM_DOMAIN = "extra_custom_domain"
    EXTRA_ADMIN_SEAT = "extra_admin_seat"


class AddOnStatus(str, Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"
    PAST_DUE = "past_due"
    EXPIRED = "expired"


class WorkspaceStatus(str, Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"


class FunnelStatus(str, Enum):
    LIVE = "live"
    ARCHIVED = "archived"


class DomainType(str, Enum):
    SUBDOMAIN = "subdomain"
    CUSTOM_DOMAIN = "custom_domain"


class MemberRole(str, Enum):
    ADMIN = "admin"
    EDITOR = "editor"
    VIEWER = "viewer"


class MemberStatus(str, Enum):
    ACTIVE = "active"
    INVITED = "invited"
    REMOVED = "removed"


# Statuses that still grant quota while the end date has not passed
IN_FORCE_ADDON_STATUSES = (AddOnStatus.ACTIVE.value, AddOnStatus.CANCELLED.value)


# ============================================================
# REMINDER STATE (stored as JSON on the add-on)
# ============================================================
class ExpirationReminders(BaseModel):
    """
    Per add-on reminder flags.

    Updates are read-modify-write through AddOn.get_reminders / set_reminders
    and assume a single writer per add-on.
    """
    day7: bool = False
    day3: bool = False
    day1: bool = False
    resources_processed: bool = False


# ============================================================
# USER
# ============================================================
class User(SQLModel, table=True):
    __tablename__ = "user"

    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(index=True, max_length=255, nullable=False)
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    plan: str = Field(default=PlanTier.FREE.value, max_length=30)
    created_at: datetime = Field(default_factory=utc_now, sa_column=utc_column(nullable=False))

    add_ons: List["AddOn"] = Relationship(back_populates="user")


# ============================================================
# SUBSCRIPTION
# ============================================================
class Subscription(SQLModel, table=True):
    __tablename__ = "subscription"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: Optional[int] = Field(default=None, foreign_key="user.id", index=True)
    subscription_type: Optional[str] = Field(default=None, max_length=50)
    status: str = Field(default=SubscriptionStatus.ACTIVE.value, max_length=20, index=True)
    starts_at: datetime = Field(default_factory=utc_now, sa_column=utc_column(nullable=False))
    ends_at: Optional[datetime] = Field(default=None, sa_column=utc_column(index=True))
    created_at: datetime = Field(default_factory=utc_now, sa_column=utc_column(nullable=False))
    updated_at: datetime = Field(default_factory=utc_now, sa_column=utc_column(nullable=False))


# ============================================================
# ADD-ON
# ============================================================
class AddOn(SQLModel, table=True):
    __tablename__ = "add_on"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", nullable=False, index=True)
    # Null for user-level add-ons (extra workspaces)
    workspace_id: Optional[int] = Field(default=None, foreign_key="workspace.id", index=True)

    type: str = Field(max_length=40, index=True)
    quantity: int = Field(default=1, ge=1)
    status: str = Field(default=AddOnStatus.ACTIVE.value, max_length=20, index=True)
    start_date: datetime = Field(default_factory=utc_now, sa_column=utc_column(nullable=False))
    end_date: Optional[datetime] = Field(default=None, sa_column=utc_column(index=True))

    expiration_reminders: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON))

    created_at: datetime = Field(default_factory=utc_now, sa_column=utc_column(nullable=False))
    updated_at: datetime = Field(default_factory=utc_now, sa_column=utc_column(nullable=False))

    user: Optional["User"] = Relationship(back_populates="add_ons")

    def get_reminders(self) -> ExpirationReminders:
        return ExpirationReminders.model_validate(self.expiration_reminders or {})

    def set_reminders(self, reminders: ExpirationReminders) -> None:
        # Assign a fresh dict so the JSON column is flagged dirty
        self.expiration_reminders = reminders.model_dump()


# ============================================================
# WORKSPACE
# ============================================================
class Workspace(SQLModel, table=True):
    __tablename__ = "workspace"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(max_length=100)
    owner_id: int = Field(foreign_key="user.id", nullable=False, index=True)
    plan_type: str = Field(default=PlanTier.FREE.value, max_length=30)
    is_protected: bool = Field(default=False)
    status: str = Field(default=WorkspaceStatus.ACTIVE.value, max_length=20, index=True)
    created_at: datetime = Field(default_factory=utc_now, sa_column=utc_column(nullable=False))


# ============================================================
# FUNNEL (website)
# ============================================================
class Funnel(SQLModel, table=True):
    __tablename__ = "funnel"

    id: Optional[int] = Field(default=None, primary_key=True)
    workspace_id: int = Field(foreign_key="workspace.id", nullable=False, index=True)
    name: str = Field(max_length=200)
    status: str = Field(default=FunnelStatus.LIVE.value, max_length=20, index=True)
    created_at: datetime = Field(default_factory=utc_now, sa_column=utc_column(nullable=False))


# ============================================================
# DOMAIN
# ============================================================
class Domain(SQLModel, table=True):
    __tablename__ = "domain"

    id: Optional[int] = Field(default=None, primary_key=True)
    workspace_id: int = Field(foreign_key="workspace.id", nullable=False, index=True)
    hostname: str = Field(max_length=255, index=True)
    type: str = Field(default=DomainType.SUBDOMAIN.value, max_length=20, index=True)
    created_by: Optional[int] = Field(default=None, foreign_key="user.id")

    cloudflare_zone_id: Optional[str] = Field(default=None, max_length=64)
    cloudflare_record_id: Optional[str] = Field(default=None, max_length=64)
    cloudflare_hostname_id: Optional[str] = Field(default=None, max_length=64)

    created_at: datetime = Field(default_factory=utc_now, sa_column=utc_column(nullable=False))


# ============================================================
# PAGE
# ============================================================
class Page(SQLModel, table=True):
    __tablename__ = "page"

    id: Optional[int] = Field(default=None, primary_key=True)
    funnel_id: int = Field(foreign_key="funnel.id", nullable=False, index=True)
    name: str = Field(max_length=200)
    # Non-null means the page is publicly reachable
    linking_id: Optional[str] = Field(default=None, max_length=100, index=True)
    created_at: datetime = Field(default_factory=utc_now, sa_column=utc_column(nullable=False))


# ============================================================
# WORKSPACE MEMBER (owner rows never count against seats)
# ============================================================
class WorkspaceMember(SQLModel, table=True):
    __tablename__ = "workspace_member"

    id: Optional[int] = Field(default=None, primary_key=True)
    workspace_id: int = Field(foreign_key="workspace.id", nullable=False, index=True)
    user_id: int = Field(foreign_key="user.id", nullable=False, index=True)
    role: str = Field(default=MemberRole.ADMIN.value, max_length=20)
    status: str = Field(default=MemberStatus.ACTIVE.value, max_length=20, index=True)
    joined_at: datetime = Field(default_factory=utc_now, sa_column=utc_column(nullable=False))
