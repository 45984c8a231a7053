#!/usr/bin/env python3
"""
Seed Data Script for PsicoZen

Creates a small demo tenant with:
- The four system roles (super_admin, admin, gestor, colaborador)
- 1 Company (Acme Saúde) with 1 team (Backend)
- 4 Users: a platform super admin, an admin, a manager, a contributor
- Default emotion categories
- A few check-ins, one of which raises a critical alert

Run with: python seed_data.py
"""

import asyncio

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from psicozen.core.config import get_settings
from psicozen.models import Base, OrganizationType, SystemRole, User
from psicozen.services.alert_engine import AlertEngine
from psicozen.services.notifications import LoggingEmailSender
from psicozen.services.organizations import OrganizationService
from psicozen.services.roles import RoleDirectory
from psicozen.services.submissions import SubmissionService, SubmitInput

settings = get_settings()

DEFAULT_CATEGORIES = [
    ("Trabalho", "Carga de trabalho, prazos, reuniões"),
    ("Relacionamentos", "Colegas, liderança, clientes"),
    ("Saúde", "Sono, energia, bem-estar físico"),
    ("Pessoal", "Família, finanças, vida fora do trabalho"),
]


async def seed_database():
    """Main seeding function."""
    engine = create_async_engine(settings.database_url_async, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with async_session() as session:
        print("🌱 Starting database seed...")

        result = await session.execute(text("SELECT COUNT(*) FROM organizations"))
        count = result.scalar()
        if count and count > 0:
            print("⚠️  Database already has data. Clearing existing data...")
            await clear_database(session)

        # =================================================================
        # ROLES
        # =================================================================
        print("\n🔑 Creating system roles...")
        directory = RoleDirectory(session)
        for role in await directory.ensure_system_roles():
            print(f"   ✓ {role.name} (level {role.hierarchy_level})")

        # =================================================================
        # ORGANIZATIONS
        # =================================================================
        print("\n📦 Creating organizations...")
        organizations = OrganizationService(session)
        company = await organizations.create_organization(
            name="Acme Saúde",
            type=OrganizationType.COMPANY,
            settings={"alert_threshold": 6, "anonymity_default": False},
        )
        team = await organizations.create_organization(
            name="Acme Backend",
            type=OrganizationType.TEAM,
            parent_id=company.id,
        )
        print(f"   ✓ {company.name} ({company.slug})")
        print(f"   ✓ {team.name} ({team.slug}), child of {company.slug}")

        # =================================================================
        # USERS
        # =================================================================
        print("\n👥 Creating users...")
        root = User(email="root@psicozen.app", first_name="Paula", last_name="Root")
        admin = User(email="ana@acme.com.br", first_name="Ana", last_name="Souza")
        manager = User(email="bruno@acme.com.br", first_name="Bruno", last_name="Lima")
        contributor = User(email="carla@acme.com.br", first_name="Carla", last_name="Dias")
        session.add_all([root, admin, manager, contributor])
        await session.flush()

        await directory.grant_role(root.id, SystemRole.SUPER_ADMIN.value)
        await directory.grant_role(admin.id, SystemRole.ADMIN.value, company.id, assigned_by=root.id)
        await directory.grant_role(manager.id, SystemRole.GESTOR.value, company.id, assigned_by=admin.id)
        await directory.grant_role(
            contributor.id, SystemRole.COLABORADOR.value, company.id, assigned_by=admin.id
        )
        for user in (root, admin, manager, contributor):
            print(f"   ✓ {user.full_name} <{user.email}>")

        # =================================================================
        # CATEGORIES & SUBMISSIONS
        # =================================================================
        print("\n📝 Creating categories and check-ins...")
        submissions = SubmissionService(
            session,
            alert_engine=AlertEngine(session, email_sender=LoggingEmailSender()),
        )
        categories = [
            await submissions.create_category(name, description, display_order=i)
            for i, (name, description) in enumerate(DEFAULT_CATEGORIES)
        ]

        work = categories[0]
        await submissions.submit(company.id, contributor.id, SubmitInput(
            emotion_level=2, category_id=work.id, team="Backend",
        ))
        await submissions.submit(company.id, manager.id, SubmitInput(
            emotion_level=6, category_id=categories[2].id, department="Engenharia",
        ))
        result = await submissions.submit(company.id, contributor.id, SubmitInput(
            emotion_level=9,
            category_id=work.id,
            is_anonymous=True,
            comment="Prazo muito apertado nesta sprint",
            team="Backend",
        ))
        print(f"   ✓ {len(categories)} categories, 3 check-ins")
        if result.alert:
            print(f"   ✓ Alert raised: [{result.alert.severity}] {result.alert.message}")

        await session.commit()

    await engine.dispose()

    print("\n" + "=" * 60)
    print("✅ DATABASE SEEDED SUCCESSFULLY!")
    print("=" * 60)
    print(f"""
📊 Summary:
   • Organizations: {company.name} > {team.name}
   • Users: Paula (super_admin), Ana (admin), Bruno (gestor), Carla (colaborador)
   • Alerts: 1 critical (level 9), 1 medium (level 6)

🌐 API docs at: http://localhost:8000{settings.api_prefix}/docs
""")


async def clear_database(session: AsyncSession):
    """Clear all data from the database (in correct order for FK constraints)."""
    tables = [
        "audit_log",
        "emociograma_alerts",
        "emociograma_submissions",
        "emotion_categories",
        "user_roles",
        "roles",
        "users",
        "organizations",
    ]

    for table in tables:
        await session.execute(text(f"DELETE FROM {table}"))

    await session.commit()
    print("   ✓ Cleared existing data")


if __name__ == "__main__":
    asyncio.run(seed_database())
