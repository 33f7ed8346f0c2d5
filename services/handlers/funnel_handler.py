# ================================================================
# services/handlers/funnel_handler.py — EXTRA_FUNNEL expiry
# ================================================================
import logging

from sqlmodel import select, col

from models.models import AddOn, Funnel, FunnelStatus
from schemas.cron_schema import HandlerResult
from services.allocation_service import calculate_funnel_allocation
from services.handlers.base import ExpirationHandler, newest

logger = logging.getLogger(__name__)


class FunnelExpirationHandler(ExpirationHandler):
    """Archives the newest live funnels beyond the allowance; the oldest stay live."""

    resource_key = "funnels"

    def _process(self, addon: AddOn) -> HandlerResult:
        workspace = self._require_workspace(addon)
        workspace_id = workspace.id

        other_addons = self._other_addons_in_force(addon, workspace_id)
        allowed = calculate_funnel_allocation(workspace.plan_type, other_addons, now=self.now)

        funnels = self.session.exec(
            select(Funnel)
            .where(Funnel.workspace_id == workspace_id, Funnel.status != FunnelStatus.ARCHIVED.value)
            .order_by(col(Funnel.created_at).asc(), col(Funnel.id).asc())
        ).all()

        current = len(funnels)
        excess = self._excess(current, allowed)
        if excess == 0:
            return self._nothing_to_do(allowed, current, workspace_id=workspace_id)

        to_archive = newest(list(funnels), excess)
        archived = [{"id": f.id, "name": f.name, "previous_status": f.status} for f in to_archive]

        for funnel in to_archive:
            funnel.status = FunnelStatus.ARCHIVED.value
            self.session.add(funnel)
        self.session.commit()

        logger.info(f"✅ Archived {len(archived)} excess funnel(s) for workspace {workspace_id}")
        for funnel in archived:
            logger.info(f"   - Archived: {funnel['name']} (ID: {funnel['id']}, previous status: {funnel['previous_status']})")

        self.cache_service.invalidate_workspace_funnels(workspace_id)
        for funnel in archived:
            self.cache_service.invalidate_funnel_cache(funnel["id"])

        return HandlerResult(
            success=True,
            resources_affected={"funnels": len(archived)},
            details={
                "workspace_id": workspace_id,
                "allowed": allowed,
                "current": current,
                "excess": excess,
                "archived": len(archived),
                "archived_funnel_ids": [f["id"] for f in archived],
                "archived_funnels": archived,
            },
        )
