# ================================================================
# services/handlers/page_handler.py — EXTRA_PAGE expiry
# ================================================================
import logging
from typing import Any, Dict, List

from sqlmodel import select, col

from models.models import AddOn, Funnel, Page
from schemas.cron_schema import HandlerResult
from services.allocation_service import calculate_page_allocation
from services.handlers.base import ExpirationHandler, newest, collect_errors

logger = logging.getLogger(__name__)


class PageExpirationHandler(ExpirationHandler):
    """
    The page allowance applies per funnel. In every funnel of the workspace the
    oldest linked pages keep their linking id and the newest excess ones lose it.
    Page content is never deleted.
    """

    resource_key = "pages"

    def _process(self, addon: AddOn) -> HandlerResult:
        workspace = self._require_workspace(addon)
        workspace_id = workspace.id

        other_addons = self._other_addons_in_force(addon, workspace_id)
        allowed = calculate_page_allocation(workspace.plan_type, other_addons, now=self.now)

        funnels = self.session.exec(
            select(Funnel).where(Funnel.workspace_id == workspace_id).order_by(col(Funnel.id).asc())
        ).all()
        funnel_refs = [(f.id, f.name) for f in funnels]

        if not funnel_refs:
            logger.info(f"[{self.name}] No funnels in workspace {workspace_id}")
            return HandlerResult(
                success=True,
                resources_affected={"pages": 0},
                details={"workspace_id": workspace_id, "message": "No funnels to process"},
            )

        total_cleared = 0
        funnel_details: List[Dict[str, Any]] = []
        errors: List[str] = []

        for funnel_id, funnel_name in funnel_refs:
            try:
                cleared = self._unlink_excess_pages(funnel_id, allowed)
            except Exception as e:
                self.session.rollback()
                errors.append(f"Failed to unlink pages in funnel {funnel_id}: {e}")
                logger.error(f"❌ Failed to unlink pages in funnel {funnel_id}: {e}")
                continue

            if cleared:
                total_cleared += cleared
                funnel_details.append({"funnel_id": funnel_id, "funnel_name": funnel_name, "pages_cleared": cleared})
                self.cache_service.invalidate_funnel_cache(funnel_id)
                logger.info(f"✅ Cleared linking id for {cleared} page(s) in funnel {funnel_name} (ID: {funnel_id})")

        logger.info(
            f"[{self.name}] Total pages cleared: {total_cleared} across {len(funnel_details)} funnel(s) "
            f"in workspace {workspace_id}"
        )

        return HandlerResult(
            success=not errors,
            resources_affected={"pages": total_cleared},
            details={
                "workspace_id": workspace_id,
                "allowed_pages_per_funnel": allowed,
                "funnels_processed": len(funnel_refs),
                "funnels_affected": len(funnel_details),
                "funnel_details": funnel_details,
                **collect_errors(errors),
            },
            error="; ".join(errors) if errors else None,
        )

    def _unlink_excess_pages(self, funnel_id: int, allowed: int) -> int:
        pages = self.session.exec(
            select(Page)
            .where(Page.funnel_id == funnel_id, col(Page.linking_id).is_not(None))
            .order_by(col(Page.created_at).asc(), col(Page.id).asc())
        ).all()

        excess = self._excess(len(pages), allowed)
        if excess == 0:
            return 0

        for page in newest(list(pages), excess):
            page.linking_id = None
            self.session.add(page)
        self.session.commit()
        return excess
