# scripts/seed.py

import os
import sys
import argparse
from datetime import timedelta

from dotenv import load_dotenv
from sqlmodel import Session, select

# Ensure root path for relative imports
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.database import engine, create_db_and_tables
from models.models import (
    AddOn,
    AddOnStatus,
    AddOnType,
    Domain,
    DomainType,
    Funnel,
    MemberRole,
    Page,
    PlanTier,
    Subscription,
    SubscriptionStatus,
    User,
    Workspace,
    WorkspaceMember,
    utc_now,
)

# ✅ Load environment variables
load_dotenv()


def _get_or_create_user(session: Session, email: str, first_name: str, plan: PlanTier) -> User:
    user = session.exec(select(User).where(User.email == email)).first()
    if not user:
        user = User(email=email, first_name=first_name, plan=plan.value)
        session.add(user)
        session.commit()
        session.refresh(user)
        print(f"✅ Added user {email}")
    return user


def seed_dev_data():
    """Seed development database with a demo owner whose add-ons are about to run out."""
    print("🌱 Seeding development data...")
    now = utc_now()

    with Session(engine) as session:
        # -----------------------------
        # 👑 Demo owner (Business plan)
        # -----------------------------
        owner = _get_or_create_user(session, "owner@demo.com", "Demo", PlanTier.BUSINESS)

        if session.exec(select(Workspace).where(Workspace.owner_id == owner.id)).first():
            print("ℹ️ Demo workspace already exists, skipping.")
            return

        session.add(
            Subscription(
                user_id=owner.id,
                subscription_type=PlanTier.BUSINESS.value,
                status=SubscriptionStatus.ACTIVE.value,
                starts_at=now - timedelta(days=30),
                ends_at=now + timedelta(days=335),
            )
        )

        # -----------------------------
        # 🏢 Workspace with 3 funnels
        # -----------------------------
        workspace = Workspace(name="Demo Workspace", owner_id=owner.id, plan_type=PlanTier.BUSINESS.value)
        session.add(workspace)
        session.commit()
        session.refresh(workspace)

        for i in range(3):
            funnel = Funnel(
                workspace_id=workspace.id,
                name=f"Demo Website {i + 1}",
                created_at=now - timedelta(days=20 - i),
            )
            session.add(funnel)
            session.commit()
            session.refresh(funnel)

            for p in range(5):
                session.add(
                    Page(
                        funnel_id=funnel.id,
                        name=f"Page {p + 1}",
                        linking_id=f"demo-{funnel.id}-{p + 1}",
                        created_at=now - timedelta(days=20 - i, minutes=10 - p),
                    )
                )
        print("✅ Added Demo Workspace with 3 websites")

        # -----------------------------
        # 🌐 Subdomains
        # -----------------------------
        for i in range(3):
            session.add(
                Domain(
                    workspace_id=workspace.id,
                    hostname=f"demo{i + 1}.pagecraft.site",
                    type=DomainType.SUBDOMAIN.value,
                    created_by=owner.id,
                    created_at=now - timedelta(days=10 - i),
                )
            )

        # -----------------------------
        # 👥 Admin members
        # -----------------------------
        for i, email in enumerate(["admin1@demo.com", "admin2@demo.com", "admin3@demo.com"]):
            member = _get_or_create_user(session, email, email.split("@")[0].capitalize(), PlanTier.WORKSPACE_MEMBER)
            session.add(
                WorkspaceMember(
                    workspace_id=workspace.id,
                    user_id=member.id,
                    role=MemberRole.ADMIN.value,
                    joined_at=now - timedelta(days=15 - i),
                )
            )

        # -----------------------------
        # 🧩 Add-ons
        # -----------------------------
        session.add_all(
            [
                # Ran out yesterday: marked then reconciled on the next run
                AddOn(
                    user_id=owner.id,
                    workspace_id=workspace.id,
                    type=AddOnType.EXTRA_SUBDOMAIN.value,
                    quantity=2,
                    status=AddOnStatus.CANCELLED.value,
                    start_date=now - timedelta(days=31),
                    end_date=now - timedelta(days=1),
                ),
                AddOn(
                    user_id=owner.id,
                    workspace_id=workspace.id,
                    type=AddOnType.EXTRA_ADMIN_SEAT.value,
                    quantity=1,
                    status=AddOnStatus.CANCELLED.value,
                    start_date=now - timedelta(days=31),
                    end_date=now - timedelta(days=1),
                ),
                # Gets the 7-day warning
                AddOn(
                    user_id=owner.id,
                    workspace_id=workspace.id,
                    type=AddOnType.EXTRA_FUNNEL.value,
                    quantity=2,
                    status=AddOnStatus.CANCELLED.value,
                    start_date=now - timedelta(days=23),
                    end_date=now + timedelta(days=7),
                ),
            ]
        )
        session.commit()
        print("✅ Added subdomains, members and add-ons")
        print("🌱 Development data seeding complete.")


def seed_staging_data():
    """Seed staging database with minimal safe data."""
    print("🌱 Seeding staging data...")

    with Session(engine) as session:
        _get_or_create_user(session, "staging-owner@pagecraft.app", "Staging", PlanTier.FREE)
        print("🌱 Staging data seeding complete.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the Pagecraft database.")
    parser.add_argument(
        "--env",
        choices=["dev", "staging"],
        default="dev",
        help="Select environment to seed (dev or staging)",
    )
    args = parser.parse_args()

    create_db_and_tables()

    if args.env == "dev":
        seed_dev_data()
    elif args.env == "staging":
        seed_staging_data()
