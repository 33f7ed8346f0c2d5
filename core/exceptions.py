"""
Add-on expiration exceptions.

Errors raised while reconciling expired add-ons. Each carries a context dict so
the per-item result can report what was being looked up.
"""

from typing import Any, Dict, Optional


class AddonExpirationError(Exception):
    """Base error for the expiration jobs."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
        }


class ResourceLookupError(AddonExpirationError):
    """The user or workspace an add-on points at could not be resolved."""

    def __init__(self, resource: str, resource_id: Any):
        super().__init__(
            f"{resource} {resource_id} not found",
            context={"resource": resource, "resource_id": resource_id},
        )


class UnsupportedAddOnTypeError(AddonExpirationError):
    """No handler is registered for the add-on type."""

    def __init__(self, addon_type: str):
        super().__init__(f"Unknown add-on type: {addon_type}", context={"addon_type": addon_type})


class DomainDeletionError(AddonExpirationError):
    """A domain row could not be deleted."""

    def __init__(self, message: str, domain_id: Optional[int] = None):
        super().__init__(message, context={"domain_id": domain_id} if domain_id is not None else {})
        self.domain_id = domain_id
