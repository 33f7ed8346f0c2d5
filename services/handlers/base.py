# ================================================================
# services/handlers/base.py — Common contract for expiration handlers
# ================================================================
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlmodel import Session, select, col, or_

from core.exceptions import AddonExpirationError, ResourceLookupError
from models.models import AddOn, Workspace, IN_FORCE_ADDON_STATUSES, utc_now
from schemas.cron_schema import HandlerResult
from services.cache_service import CacheService
from services.domain_service import DomainService

logger = logging.getLogger(__name__)


class ExpirationHandler(ABC):
    """
    Brings one resource type back within quota after an add-on expires.

    `handle` never raises: lookup errors and unexpected exceptions become a
    failed HandlerResult for this add-on only.
    """

    # Key used in resources_affected and logs
    resource_key: str = "resources"

    def __init__(
        self,
        session: Session,
        cache_service: Optional[CacheService] = None,
        domain_service: Optional[DomainService] = None,
        now: Optional[datetime] = None,
    ):
        self.session = session
        self.cache_service = cache_service or CacheService()
        self.domain_service = domain_service
        self.now = now or utc_now()

    @property
    def name(self) -> str:
        return self.__class__.__name__

    def handle(self, addon: AddOn) -> HandlerResult:
        try:
            return self._process(addon)
        except AddonExpirationError as e:
            logger.error(f"❌ [{self.name}] Add-on {addon.id}: {e.message}")
            self.session.rollback()
            return HandlerResult(success=False, error=e.message, details=e.context or None)
        except Exception as e:
            logger.exception(f"❌ [{self.name}] Failed to handle add-on {addon.id}: {e}")
            self.session.rollback()
            return HandlerResult(success=False, error=str(e))

    @abstractmethod
    def _process(self, addon: AddOn) -> HandlerResult:
        raise NotImplementedError

    # ------------------------
    # Shared lookups
    # ------------------------
    def _require_workspace(self, addon: AddOn) -> Workspace:
        if addon.workspace_id is None:
            raise AddonExpirationError(
                f"No workspace linked to this {addon.type} add-on",
                context={"addon_id": addon.id},
            )
        workspace = self.session.get(Workspace, addon.workspace_id)
        if not workspace:
            raise ResourceLookupError("Workspace", addon.workspace_id)
        return workspace

    def _other_addons_in_force(self, addon: AddOn, workspace_id: Optional[int] = None) -> List[AddOn]:
        """
        Add-ons of the same type and scope that still grant quota, excluding the
        one being reconciled. User-level scope when workspace_id is None.
        """
        statement = select(AddOn).where(
            AddOn.type == addon.type,
            col(AddOn.status).in_(IN_FORCE_ADDON_STATUSES),
            AddOn.id != addon.id,
            or_(col(AddOn.end_date).is_(None), col(AddOn.end_date) > self.now),
        )
        if workspace_id is None:
            statement = statement.where(AddOn.user_id == addon.user_id)
        else:
            statement = statement.where(AddOn.workspace_id == workspace_id)
        return list(self.session.exec(statement).all())

    # ------------------------
    # Result builders
    # ------------------------
    def _nothing_to_do(self, allowed: int, current: int, **details: Any) -> HandlerResult:
        logger.info(f"[{self.name}] No excess {self.resource_key} (allowed {allowed}, current {current})")
        return HandlerResult(
            success=True,
            resources_affected={self.resource_key: 0},
            details={"allowed": allowed, "current": current, "excess": 0, **details},
        )

    @staticmethod
    def _excess(current: int, allowed: int) -> int:
        return max(0, current - allowed)


def newest(items: List[Any], count: int) -> List[Any]:
    """The last `count` items of an oldest-first list, newest first."""
    if count <= 0:
        return []
    return list(reversed(items[-count:]))


def collect_errors(errors: List[str]) -> Dict[str, Any]:
    return {"errors": errors} if errors else {}
