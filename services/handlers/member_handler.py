# ================================================================
# services/handlers/member_handler.py — EXTRA_ADMIN_SEAT expiry
# ================================================================
import logging
from typing import Any, Dict, List

from sqlmodel import select, col

from models.models import AddOn, MemberStatus, WorkspaceMember
from schemas.cron_schema import HandlerResult
from services.allocation_service import calculate_member_allocation
from services.handlers.base import ExpirationHandler, newest, collect_errors

logger = logging.getLogger(__name__)


class MemberExpirationHandler(ExpirationHandler):
    """
    Removes the most recently joined members beyond the seat allowance.

    The owner is filtered out of the candidate query, so it can never be picked
    even if a member row exists for it.
    """

    resource_key = "members"

    def _process(self, addon: AddOn) -> HandlerResult:
        workspace = self._require_workspace(addon)
        workspace_id = workspace.id
        owner_id = workspace.owner_id

        other_addons = self._other_addons_in_force(addon, workspace_id)
        allowed = calculate_member_allocation(workspace.plan_type, other_addons, now=self.now)

        members = self.session.exec(
            select(WorkspaceMember)
            .where(
                WorkspaceMember.workspace_id == workspace_id,
                WorkspaceMember.user_id != owner_id,
                WorkspaceMember.status == MemberStatus.ACTIVE.value,
            )
            .order_by(col(WorkspaceMember.joined_at).asc(), col(WorkspaceMember.id).asc())
        ).all()

        current = len(members)
        excess = self._excess(current, allowed)
        if excess == 0:
            return self._nothing_to_do(allowed, current, workspace_id=workspace_id)

        targets = [
            {"id": m.id, "user_id": m.user_id, "role": m.role}
            for m in newest(list(members), excess)
        ]

        removed: List[Dict[str, Any]] = []
        errors: List[str] = []

        for target in targets:
            try:
                member = self.session.get(WorkspaceMember, target["id"])
                if member is not None:
                    self.session.delete(member)
                    self.session.commit()
                removed.append(target)
                logger.info(f"   - Removed: user {target['user_id']} (member {target['id']}, role: {target['role']})")
            except Exception as e:
                self.session.rollback()
                errors.append(f"Failed to remove member {target['id']}: {e}")
                logger.error(f"❌ Failed to remove member {target['id']}: {e}")

        logger.info(f"✅ Removed {len(removed)} excess member(s) from workspace {workspace_id}")

        return HandlerResult(
            success=not errors,
            resources_affected={"members": len(removed)},
            details={
                "workspace_id": workspace_id,
                "allowed": allowed,
                "current": current,
                "excess": excess,
                "removed": len(removed),
                "removed_user_ids": [t["user_id"] for t in removed],
                "removed_members": removed,
                **collect_errors(errors),
            },
            error="; ".join(errors) if errors else None,
        )
