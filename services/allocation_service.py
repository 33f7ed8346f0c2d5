# ================================================================
# services/allocation_service.py — Resource allocation calculator
# ================================================================
"""
Single source of truth for resource limits.

Every limit is the base quota of the plan tier plus the quantity of each add-on
of the matching type that is still in force. All functions here are pure: they
never touch the database and never raise for unknown plans.
"""
from datetime import datetime
from typing import Dict, Iterable, Optional, Protocol

from models.models import AddOnType, PlanTier, IN_FORCE_ADDON_STATUSES, utc_now

# Seats, websites and pages for the internal admin tier are effectively unlimited
UNLIMITED = 10000

# A protected (migrated legacy) workspace always keeps one custom domain
PROTECTED_CUSTOM_DOMAIN_BASE = 1


class AddOnLike(Protocol):
    type: str
    quantity: int
    status: str
    end_date: Optional[datetime]


# ------------------------
# BASE QUOTAS PER TIER
# ------------------------
BASE_ALLOCATIONS: Dict[AddOnType, Dict[PlanTier, int]] = {
    # Workspaces are counted per user, everything else per workspace
    AddOnType.EXTRA_WORKSPACE: {
        PlanTier.NO_PLAN: 0,
        PlanTier.WORKSPACE_MEMBER: 0,
        PlanTier.FREE: 1,
        PlanTier.BUSINESS: 3,
        PlanTier.AGENCY: 100,
        PlanTier.ADMIN: UNLIMITED,
    },
    AddOnType.EXTRA_FUNNEL: {
        PlanTier.FREE: 1,
        PlanTier.BUSINESS: 1,
        PlanTier.AGENCY: 10,
        PlanTier.ADMIN: UNLIMITED,
    },
    # Pages are counted per funnel
    AddOnType.EXTRA_PAGE: {
        PlanTier.NO_PLAN: 0,
        PlanTier.WORKSPACE_MEMBER: 0,
        PlanTier.FREE: 100,
        PlanTier.BUSINESS: 100,
        PlanTier.AGENCY: 100,
        PlanTier.OLD_MEMBER: 100,
        PlanTier.ADMIN: UNLIMITED,
    },
    AddOnType.EXTRA_SUBDOMAIN: {
        PlanTier.FREE: 1,
        PlanTier.BUSINESS: 1,
        PlanTier.AGENCY: 1,
        PlanTier.ADMIN: UNLIMITED,
    },
    AddOnType.EXTRA_CUSTOM_DOMAIN: {
        PlanTier.NO_PLAN: 0,
        PlanTier.WORKSPACE_MEMBER: 0,
        PlanTier.FREE: 0,
        PlanTier.BUSINESS: 1,
        PlanTier.AGENCY: 0,
        PlanTier.ADMIN: UNLIMITED,
    },
    AddOnType.EXTRA_ADMIN_SEAT: {
        PlanTier.NO_PLAN: 0,
        PlanTier.WORKSPACE_MEMBER: 0,
        PlanTier.FREE: 1,
        PlanTier.BUSINESS: 2,
        PlanTier.AGENCY: 1,
        PlanTier.ADMIN: UNLIMITED,
    },
}

LOWEST_TIER = PlanTier.FREE


def _resolve_tier(plan: Optional[str]) -> PlanTier:
    try:
        return PlanTier(plan)
    except ValueError:
        return LOWEST_TIER


def is_addon_in_force(addon: AddOnLike, now: Optional[datetime] = None) -> bool:
    """Active or cancelled add-ons keep granting quota until their end date passes."""
    now = now or utc_now()
    if addon.status not in IN_FORCE_ADDON_STATUSES:
        return False
    return addon.end_date is None or addon.end_date > now


def get_base_allocation(resource_type: AddOnType, plan: Optional[str], is_protected: bool = False) -> int:
    """Base quota for a tier, without add-ons. Unknown tiers get the lowest tier's quota."""
    table = BASE_ALLOCATIONS[resource_type]
    tier = _resolve_tier(plan)
    base = table.get(tier, table[LOWEST_TIER])

    if resource_type == AddOnType.EXTRA_CUSTOM_DOMAIN and is_protected:
        base = max(base, PROTECTED_CUSTOM_DOMAIN_BASE)
    return base


def calculate_total_allocation(
    resource_type: AddOnType,
    plan: Optional[str],
    add_ons: Iterable[AddOnLike] = (),
    is_protected: bool = False,
    now: Optional[datetime] = None,
) -> int:
    """
    Total allowed count for one resource type.

    Add-ons of other types, or ones no longer in force, are ignored, so callers
    can pass an unfiltered list.
    """
    now = now or utc_now()
    total = get_base_allocation(resource_type, plan, is_protected)

    extra = sum(
        addon.quantity
        for addon in add_ons
        if addon.type == resource_type.value and is_addon_in_force(addon, now)
    )
    return total + extra


# ------------------------
# Per-resource shortcuts
# ------------------------
def calculate_workspace_allocation(plan, add_ons=(), now=None) -> int:
    return calculate_total_allocation(AddOnType.EXTRA_WORKSPACE, plan, add_ons, now=now)


def calculate_funnel_allocation(plan, add_ons=(), now=None) -> int:
    return calculate_total_allocation(AddOnType.EXTRA_FUNNEL, plan, add_ons, now=now)


def calculate_page_allocation(plan, add_ons=(), now=None) -> int:
    return calculate_total_allocation(AddOnType.EXTRA_PAGE, plan, add_ons, now=now)


def calculate_subdomain_allocation(plan, add_ons=(), now=None) -> int:
    return calculate_total_allocation(AddOnType.EXTRA_SUBDOMAIN, plan, add_ons, now=now)


def calculate_custom_domain_allocation(plan, add_ons=(), is_protected: bool = False, now=None) -> int:
    return calculate_total_allocation(AddOnType.EXTRA_CUSTOM_DOMAIN, plan, add_ons, is_protected, now)


def calculate_member_allocation(plan, add_ons=(), now=None) -> int:
    return calculate_total_allocation(AddOnType.EXTRA_ADMIN_SEAT, plan, add_ons, now=now)


# ------------------------
# Usage helpers
# ------------------------
def get_remaining_slots(current_count: int, allowed: int) -> int:
    return max(0, allowed - current_count)


def can_create(current_count: int, allowed: int) -> bool:
    return current_count < allowed


def get_allocation_summary(
    resource_type: AddOnType,
    current_count: int,
    plan: Optional[str],
    add_ons: Iterable[AddOnLike] = (),
    is_protected: bool = False,
    now: Optional[datetime] = None,
) -> Dict[str, object]:
    base = get_base_allocation(resource_type, plan, is_protected)
    total = calculate_total_allocation(resource_type, plan, add_ons, is_protected, now)
    return {
        "base_allocation": base,
        "extra_from_addons": total - base,
        "total_allocation": total,
        "current_usage": current_count,
        "remaining_slots": get_remaining_slots(current_count, total),
        "can_create_more": can_create(current_count, total),
    }
