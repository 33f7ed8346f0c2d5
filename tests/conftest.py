"""
Shared fixtures: in-memory database, row factories and recording collaborators.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from core.exceptions import DomainDeletionError
from models.models import (
    AddOn,
    AddOnStatus,
    Domain,
    DomainType,
    Funnel,
    FunnelStatus,
    MemberRole,
    MemberStatus,
    Page,
    PlanTier,
    Subscription,
    SubscriptionStatus,
    User,
    Workspace,
    WorkspaceMember,
)
from services.cache_service import CacheService

FIXED_NOW = datetime(2026, 3, 15, 12, 0, 0)


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


# ------------------------
# Row factories
# ------------------------
class Factory:
    def __init__(self, session: Session, now: datetime):
        self.session = session
        self.now = now
        self._seq = 0

    def _save(self, obj):
        self.session.add(obj)
        self.session.commit()
        self.session.refresh(obj)
        return obj

    def _next(self) -> int:
        self._seq += 1
        return self._seq

    def user(self, plan: PlanTier = PlanTier.FREE, email: Optional[str] = None, first_name: str = "Test") -> User:
        n = self._next()
        return self._save(User(email=email or f"user{n}@example.com", first_name=first_name, plan=plan.value))

    def workspace(
        self,
        owner: User,
        plan: PlanTier = PlanTier.FREE,
        is_protected: bool = False,
        created_at: Optional[datetime] = None,
    ) -> Workspace:
        n = self._next()
        return self._save(
            Workspace(
                name=f"Workspace {n}",
                owner_id=owner.id,
                plan_type=plan.value,
                is_protected=is_protected,
                created_at=created_at or self.now - timedelta(days=30),
            )
        )

    def funnel(
        self,
        workspace: Workspace,
        created_at: Optional[datetime] = None,
        status: FunnelStatus = FunnelStatus.LIVE,
    ) -> Funnel:
        n = self._next()
        return self._save(
            Funnel(
                workspace_id=workspace.id,
                name=f"Funnel {n}",
                status=status.value,
                created_at=created_at or self.now - timedelta(days=20),
            )
        )

    def page(self, funnel: Funnel, created_at: datetime, linking_id: Optional[str] = "auto") -> Page:
        n = self._next()
        return self._save(
            Page(
                funnel_id=funnel.id,
                name=f"Page {n}",
                linking_id=f"link-{n}" if linking_id == "auto" else linking_id,
                created_at=created_at,
            )
        )

    def domain(
        self,
        workspace: Workspace,
        created_at: datetime,
        domain_type: DomainType = DomainType.SUBDOMAIN,
        **kwargs: Any,
    ) -> Domain:
        n = self._next()
        return self._save(
            Domain(
                workspace_id=workspace.id,
                hostname=kwargs.pop("hostname", f"site{n}.example.com"),
                type=domain_type.value,
                created_by=kwargs.pop("created_by", workspace.owner_id),
                created_at=created_at,
                **kwargs,
            )
        )

    def member(
        self,
        workspace: Workspace,
        user: User,
        joined_at: datetime,
        status: MemberStatus = MemberStatus.ACTIVE,
    ) -> WorkspaceMember:
        return self._save(
            WorkspaceMember(
                workspace_id=workspace.id,
                user_id=user.id,
                role=MemberRole.ADMIN.value,
                status=status.value,
                joined_at=joined_at,
            )
        )

    def addon(
        self,
        user: User,
        addon_type: str,
        workspace: Optional[Workspace] = None,
        quantity: int = 1,
        status: AddOnStatus = AddOnStatus.EXPIRED,
        end_date: Optional[datetime] = None,
        reminders: Optional[Dict[str, bool]] = None,
    ) -> AddOn:
        return self._save(
            AddOn(
                user_id=user.id,
                workspace_id=workspace.id if workspace else None,
                type=addon_type,
                quantity=quantity,
                status=status.value,
                start_date=self.now - timedelta(days=30),
                end_date=end_date,
                expiration_reminders=reminders,
            )
        )

    def subscription(
        self,
        user: User,
        ends_at: Optional[datetime],
        status: SubscriptionStatus = SubscriptionStatus.ACTIVE,
    ) -> Subscription:
        return self._save(
            Subscription(
                user_id=user.id,
                subscription_type=PlanTier.BUSINESS.value,
                status=status.value,
                starts_at=self.now - timedelta(days=365),
                ends_at=ends_at,
            )
        )


@pytest.fixture
def factory(session, now) -> Factory:
    return Factory(session, now)


# ------------------------
# Recording collaborators
# ------------------------
class RecordingEmailService:
    def __init__(self, fail_for: Optional[List[str]] = None):
        self.sent: List[Dict[str, Any]] = []
        self.fail_for = set(fail_for or [])

    def send(self, to_email: str, template_id: str, data: Dict[str, Any]) -> bool:
        if to_email in self.fail_for:
            return False
        self.sent.append({"to": to_email, "template_id": template_id, "data": data})
        return True

    def templates(self) -> List[str]:
        return [mail["template_id"] for mail in self.sent]


class RecordingCacheService(CacheService):
    def __init__(self):
        super().__init__(client=None)
        self.keys: List[str] = []
        self.patterns: List[str] = []

    def invalidate(self, key: str) -> bool:
        self.keys.append(key)
        return True

    def invalidate_pattern(self, pattern: str) -> bool:
        self.patterns.append(pattern)
        return True


class FakeDomainService:
    """Deletes rows directly; ids in `fail_for` raise DomainDeletionError."""

    def __init__(self, session: Session, fail_for: Optional[List[int]] = None):
        self.session = session
        self.fail_for = set(fail_for or [])
        self.calls: List[tuple] = []

    def delete(self, owner_id: int, domain_id: int) -> Dict[str, Any]:
        self.calls.append((owner_id, domain_id))
        if domain_id in self.fail_for:
            raise DomainDeletionError(f"Cloudflare exploded for {domain_id}", domain_id=domain_id)
        domain = self.session.get(Domain, domain_id)
        hostname = domain.hostname
        self.session.delete(domain)
        self.session.commit()
        return {"hostname": hostname, "custom_hostname_deleted": False, "dns_record_deleted": False}


@pytest.fixture
def email_service() -> RecordingEmailService:
    return RecordingEmailService()


@pytest.fixture
def cache_service() -> RecordingCacheService:
    return RecordingCacheService()


@pytest.fixture
def domain_service(session) -> FakeDomainService:
    return FakeDomainService(session)
