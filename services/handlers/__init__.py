# ================================================================
# services/handlers — Add-on type → expiration handler
# ================================================================
from datetime import datetime
from typing import Dict, Optional, Type

from sqlmodel import Session

from models.models import AddOnType
from services.cache_service import CacheService
from services.domain_service import DomainService
from services.handlers.base import ExpirationHandler
from services.handlers.domain_handler import DomainExpirationHandler
from services.handlers.funnel_handler import FunnelExpirationHandler
from services.handlers.member_handler import MemberExpirationHandler
from services.handlers.page_handler import PageExpirationHandler
from services.handlers.workspace_handler import WorkspaceExpirationHandler

HANDLER_CLASSES: Dict[AddOnType, Type[ExpirationHandler]] = {
    AddOnType.EXTRA_WORKSPACE: WorkspaceExpirationHandler,
    AddOnType.EXTRA_FUNNEL: FunnelExpirationHandler,
    AddOnType.EXTRA_PAGE: PageExpirationHandler,
    AddOnType.EXTRA_SUBDOMAIN: DomainExpirationHandler,
    AddOnType.EXTRA_CUSTOM_DOMAIN: DomainExpirationHandler,
    AddOnType.EXTRA_ADMIN_SEAT: MemberExpirationHandler,
}


def build_handler_registry(
    session: Session,
    cache_service: Optional[CacheService] = None,
    domain_service: Optional[DomainService] = None,
    now: Optional[datetime] = None,
) -> Dict[str, ExpirationHandler]:
    """One handler instance per add-on type value, sharing the same collaborators."""
    return {
        addon_type.value: handler_class(session, cache_service, domain_service, now)
        for addon_type, handler_class in HANDLER_CLASSES.items()
    }


__all__ = [
    "ExpirationHandler",
    "HANDLER_CLASSES",
    "build_handler_registry",
    "DomainExpirationHandler",
    "FunnelExpirationHandler",
    "MemberExpirationHandler",
    "PageExpirationHandler",
    "WorkspaceExpirationHandler",
]
