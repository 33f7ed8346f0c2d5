# ================================================================
# services/handlers/domain_handler.py — EXTRA_SUBDOMAIN / EXTRA_CUSTOM_DOMAIN expiry
# ================================================================
import logging
from typing import List

from sqlmodel import select, col

from models.models import AddOn, AddOnType, Domain, DomainType
from schemas.cron_schema import HandlerResult
from services.allocation_service import calculate_subdomain_allocation, calculate_custom_domain_allocation
from services.domain_service import DomainService
from services.handlers.base import ExpirationHandler, newest, collect_errors

logger = logging.getLogger(__name__)


class DomainExpirationHandler(ExpirationHandler):
    """
    Deletes the newest subdomains or custom domains beyond the allowance.

    Each deletion goes through DomainService (which also removes the Cloudflare
    record) and commits on its own; a failed domain does not stop the rest.
    """

    resource_key = "domains"

    def _process(self, addon: AddOn) -> HandlerResult:
        workspace = self._require_workspace(addon)

        if addon.type == AddOnType.EXTRA_SUBDOMAIN.value:
            domain_type = DomainType.SUBDOMAIN.value
        else:
            domain_type = DomainType.CUSTOM_DOMAIN.value

        other_addons = self._other_addons_in_force(addon, workspace.id)
        if domain_type == DomainType.SUBDOMAIN.value:
            allowed = calculate_subdomain_allocation(workspace.plan_type, other_addons, now=self.now)
        else:
            allowed = calculate_custom_domain_allocation(
                workspace.plan_type, other_addons, is_protected=workspace.is_protected, now=self.now
            )

        domains = self.session.exec(
            select(Domain)
            .where(Domain.workspace_id == workspace.id, Domain.type == domain_type)
            .order_by(col(Domain.created_at).asc(), col(Domain.id).asc())
        ).all()

        current = len(domains)
        excess = self._excess(current, allowed)
        if excess == 0:
            return self._nothing_to_do(allowed, current, workspace_id=workspace.id, domain_type=domain_type)

        owner_id = workspace.owner_id
        workspace_id = workspace.id
        targets = [(d.id, d.hostname) for d in newest(list(domains), excess)]

        deleted_ids: List[int] = []
        errors: List[str] = []

        domain_service = self.domain_service or DomainService(self.session)
        try:
            for domain_id, hostname in targets:
                try:
                    domain_service.delete(owner_id, domain_id)
                    deleted_ids.append(domain_id)
                    logger.info(f"✅ Deleted {domain_type} {hostname} (ID: {domain_id})")
                except Exception as e:
                    errors.append(f"Failed to delete domain {domain_id}: {e}")
                    logger.error(f"❌ Failed to delete domain {domain_id}: {e}")
        finally:
            if domain_service is not self.domain_service:
                domain_service.close()

        logger.info(
            f"[{self.name}] Deleted {len(deleted_ids)}/{excess} excess {domain_type} domains "
            f"for workspace {workspace_id}"
        )

        return HandlerResult(
            success=not errors,
            resources_affected={"domains": len(deleted_ids)},
            details={
                "workspace_id": workspace_id,
                "domain_type": domain_type,
                "allowed": allowed,
                "current": current,
                "excess": excess,
                "deleted": len(deleted_ids),
                "failed": len(errors),
                "deleted_domain_ids": deleted_ids,
                **collect_errors(errors),
            },
            error="; ".join(errors) if errors else None,
        )
