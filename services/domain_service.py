# ================================================================
# services/domain_service.py — Domain deletion with Cloudflare cleanup
# ================================================================
import logging
from typing import Any, Dict, Optional

import httpx
from sqlmodel import Session

from core.config import settings
from core.exceptions import DomainDeletionError
from models.models import Domain, DomainType, Workspace

logger = logging.getLogger(__name__)


class CloudflareClient:
    """Minimal Cloudflare v4 client for tearing down hostnames and DNS records."""

    def __init__(
        self,
        api_token: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.Client] = None,
    ):
        self.api_token = api_token if api_token is not None else settings.CLOUDFLARE_API_TOKEN
        self.base_url = (base_url or settings.CLOUDFLARE_API_BASE_URL).rstrip("/")
        # Only a client built here is closed by close()
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.Client(
            timeout=timeout or settings.CLOUDFLARE_TIMEOUT_SECONDS
        )

    def close(self) -> None:
        if self._owns_client:
            self.http_client.close()

    @property
    def enabled(self) -> bool:
        return bool(self.api_token)

    def _delete(self, path: str) -> bool:
        response = self.http_client.delete(
            f"{self.base_url}{path}",
            headers={"Authorization": f"Bearer {self.api_token}"},
        )
        if response.status_code == 404:
            # Already gone on Cloudflare's side
            return True
        response.raise_for_status()
        return bool(response.json().get("success", False))

    def delete_custom_hostname(self, zone_id: str, hostname_id: str) -> bool:
        return self._delete(f"/zones/{zone_id}/custom_hostnames/{hostname_id}")

    def delete_dns_record(self, zone_id: str, record_id: str) -> bool:
        return self._delete(f"/zones/{zone_id}/dns_records/{record_id}")


class DomainService:
    """
    Deletes a domain row after a best-effort Cloudflare teardown.

    Cloudflare failures are logged and do not stop the row from being deleted.
    A missing or foreign domain, or a failed row delete, raises DomainDeletionError.
    """

    def __init__(self, session: Session, cloudflare: Optional[CloudflareClient] = None):
        self.session = session
        self._owns_cloudflare = cloudflare is None
        self.cloudflare = cloudflare or CloudflareClient()

    def close(self) -> None:
        if self._owns_cloudflare:
            self.cloudflare.close()

    def delete(self, owner_id: int, domain_id: int) -> Dict[str, Any]:
        domain = self.session.get(Domain, domain_id)
        if not domain:
            raise DomainDeletionError(f"Domain {domain_id} not found", domain_id=domain_id)

        workspace = self.session.get(Workspace, domain.workspace_id)
        owns_workspace = workspace is not None and workspace.owner_id == owner_id
        if not owns_workspace and domain.created_by != owner_id:
            raise DomainDeletionError(f"Domain {domain_id} not owned by user {owner_id}", domain_id=domain_id)

        hostname = domain.hostname
        logger.info(f"🗑️ Starting deletion for {hostname}")

        custom_hostname_deleted = False
        dns_record_deleted = False

        if not self.cloudflare.enabled:
            logger.warning(f"⚠️ Cloudflare not configured — skipping DNS cleanup for {hostname}")
        elif domain.type == DomainType.CUSTOM_DOMAIN.value and domain.cloudflare_hostname_id:
            try:
                custom_hostname_deleted = self.cloudflare.delete_custom_hostname(
                    domain.cloudflare_zone_id or "", domain.cloudflare_hostname_id
                )
            except (httpx.HTTPError, ValueError) as e:
                logger.warning(f"⚠️ Failed to delete custom hostname for {hostname}: {e}")
        elif domain.type == DomainType.SUBDOMAIN.value and domain.cloudflare_record_id:
            try:
                dns_record_deleted = self.cloudflare.delete_dns_record(
                    domain.cloudflare_zone_id or "", domain.cloudflare_record_id
                )
            except (httpx.HTTPError, ValueError) as e:
                logger.warning(f"⚠️ Failed to delete A record for {hostname}: {e}")

        try:
            self.session.delete(domain)
            self.session.commit()
        except Exception as e:
            self.session.rollback()
            raise DomainDeletionError(f"Failed to delete domain {domain_id}: {e}", domain_id=domain_id) from e

        logger.info(f"✅ Deleted domain {hostname} from database")
        return {
            "hostname": hostname,
            "custom_hostname_deleted": custom_hostname_deleted,
            "dns_record_deleted": dns_record_deleted,
        }
