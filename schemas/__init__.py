from .cron_schema import (
    ItemError, MarkingError,
    HandlerResult,
    ExpiredAddonResult, AddonExpirationSummary,
    EmailReminderResult, EmailReminderSummary,
    ExpiredSubscriptionResult, ExpiredAddonMarkResult,
    SubscriptionMarkingGroup, AddonMarkingGroup, ExpirationMarkingSummary,
    ExpirationJobReport,
)

__all__ = [
    # Shared
    "ItemError", "MarkingError",

    # Handlers
    "HandlerResult",

    # Expiration processing
    "ExpiredAddonResult", "AddonExpirationSummary",

    # Warning emails
    "EmailReminderResult", "EmailReminderSummary",

    # Expiration marking
    "ExpiredSubscriptionResult", "ExpiredAddonMarkResult",
    "SubscriptionMarkingGroup", "AddonMarkingGroup", "ExpirationMarkingSummary",

    # Full run
    "ExpirationJobReport",
]
