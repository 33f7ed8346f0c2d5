# ================================================================
# services/handlers/workspace_handler.py — EXTRA_WORKSPACE expiry
# ================================================================
import logging
from typing import List

from sqlmodel import select, col

from core.database import transaction_scope
from core.exceptions import ResourceLookupError
from models.models import AddOn, Funnel, FunnelStatus, User, Workspace, WorkspaceStatus
from schemas.cron_schema import HandlerResult
from services.allocation_service import calculate_workspace_allocation
from services.handlers.base import ExpirationHandler, newest, collect_errors

logger = logging.getLogger(__name__)


class WorkspaceExpirationHandler(ExpirationHandler):
    """
    Extra-workspace add-ons are user-level. When one expires, the user's newest
    workspaces beyond the recomputed allowance are suspended and their funnels
    archived, each workspace in its own transaction.
    """

    resource_key = "workspaces"

    def _process(self, addon: AddOn) -> HandlerResult:
        logger.info(f"[{self.name}] Processing add-on {addon.id} for user {addon.user_id}")

        user = self.session.get(User, addon.user_id)
        if not user:
            raise ResourceLookupError("User", addon.user_id)

        other_addons = self._other_addons_in_force(addon)
        allowed = calculate_workspace_allocation(user.plan, other_addons, now=self.now)

        workspaces = self.session.exec(
            select(Workspace)
            .where(
                Workspace.owner_id == addon.user_id,
                Workspace.status != WorkspaceStatus.SUSPENDED.value,
            )
            .order_by(col(Workspace.created_at).asc(), col(Workspace.id).asc())
        ).all()

        current = len(workspaces)
        excess = self._excess(current, allowed)
        if excess == 0:
            result = self._nothing_to_do(allowed, current, user_id=addon.user_id)
            result.resources_affected["funnels"] = 0
            return result

        to_suspend = newest(list(workspaces), excess)
        logger.info(
            f"[{self.name}] Suspending {excess} workspace(s) for user {addon.user_id}: "
            f"{', '.join(str(w.id) for w in to_suspend)}"
        )

        suspended_ids: List[int] = []
        funnels_archived = 0
        errors: List[str] = []

        for workspace in to_suspend:
            workspace_id = workspace.id
            try:
                archived = self._suspend_workspace(workspace)
                suspended_ids.append(workspace_id)
                funnels_archived += archived
                logger.info(f"✅ Suspended workspace {workspace_id}: {archived} funnel(s) archived")
            except Exception as e:
                errors.append(f"Failed to suspend workspace {workspace_id}: {e}")
                logger.error(f"❌ Failed to suspend workspace {workspace_id}: {e}")

        self._invalidate_caches(addon.user_id, suspended_ids)

        return HandlerResult(
            success=not errors,
            resources_affected={"workspaces": len(suspended_ids), "funnels": funnels_archived},
            details={
                "user_id": addon.user_id,
                "allowed": allowed,
                "current": current,
                "excess": excess,
                "workspace_ids": suspended_ids,
                "funnels_affected": funnels_archived,
                **collect_errors(errors),
            },
            error="; ".join(errors) if errors else None,
        )

    def _suspend_workspace(self, workspace: Workspace) -> int:
        """Suspend the workspace and archive its funnels as one unit of work."""
        with transaction_scope(self.session):
            workspace.status = WorkspaceStatus.SUSPENDED.value
            self.session.add(workspace)

            funnels = self.session.exec(
                select(Funnel).where(
                    Funnel.workspace_id == workspace.id,
                    Funnel.status != FunnelStatus.ARCHIVED.value,
                )
            ).all()
            for funnel in funnels:
                funnel.status = FunnelStatus.ARCHIVED.value
                self.session.add(funnel)
            return len(funnels)

    def _invalidate_caches(self, user_id: int, workspace_ids: List[int]) -> None:
        if not workspace_ids:
            return
        self.cache_service.invalidate_user_workspaces_cache(user_id)
        for workspace_id in workspace_ids:
            self.cache_service.invalidate_workspace_cache(workspace_id)
            self.cache_service.invalidate_workspace_funnels(workspace_id)
