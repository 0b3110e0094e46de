"""
Sample data for ERMS.

Creates the schema, the three roles, a set of departments, an administrator
(SEED_ADMIN_EMAIL / SEED_ADMIN_PASSWORD), managers and employees with
realistic names, and projects with tasks spread over every status.

    python -m erms.scripts.seed_data [--clear] [--install-procedures]
"""
import argparse
import asyncio
import random
from datetime import date, timedelta

from faker import Faker
from sqlalchemy import delete

from erms.config import settings
from erms.database import AsyncSessionLocal, Base, engine
from erms.models.department import Department
from erms.models.project import Project
from erms.models.task import COMPLETED, IN_PROGRESS, NOT_STARTED, OVERDUE, TASK_PRIORITIES, ProjectTask
from erms.models.user import Role, User, user_roles
from erms.permissions import ADMIN, EMPLOYEE, MANAGER, ROLES
from erms.services import identity
from erms.services.procedures import install_procedures

fake = Faker()

DEPARTMENTS = ["Engineering", "Marketing", "Operations", "Human Resources", "Finance", "Product"]

PROJECT_TEMPLATES = [
    ("Customer Portal Rebuild", "Replace the legacy self-service portal with a modern web app"),
    ("Data Warehouse Migration", "Move reporting workloads to the new PostgreSQL warehouse"),
    ("Q3 Brand Campaign", "Multi-channel campaign for the autumn product line"),
    ("Office Network Upgrade", "Roll out zero-trust networking across all sites"),
    ("Annual Budget Planning", "Prepare departmental budgets and forecasts"),
    ("Onboarding Program Refresh", "Redesign the first-month experience for new hires"),
    ("Mobile App Launch", "Ship the first public release of the field-staff app"),
    ("Vendor Consolidation", "Reduce the supplier list and renegotiate contracts"),
]

TASK_TEMPLATES = [
    ("Gather requirements", "Interview stakeholders and document scope"),
    ("Draft project plan", "Break the work into milestones with owners"),
    ("Design review", "Walk through the proposed design with the team"),
    ("Implementation", "Build the agreed deliverables"),
    ("Testing and QA", "Verify the deliverables against the acceptance criteria"),
    ("Stakeholder demo", "Present progress to the sponsors"),
    ("Documentation", "Write user and operations documentation"),
    ("Go-live checklist", "Prepare cut-over steps and rollback plan"),
]

# Roughly matches a healthy portfolio: most work done or underway
STATUS_MIX = [COMPLETED] * 8 + [IN_PROGRESS] * 5 + [NOT_STARTED] * 5 + [OVERDUE] * 2


async def clear_existing_data(db):
    print("🗑️  Clearing existing data...")
    await db.execute(delete(ProjectTask))
    await db.execute(delete(Project))
    await db.execute(delete(user_roles))
    await db.execute(delete(User))
    await db.execute(delete(Department))
    await db.execute(delete(Role))
    await db.commit()
    print("✅ Existing data cleared")


async def create_departments(db):
    print(f"🏢 Creating {len(DEPARTMENTS)} departments...")
    departments = [Department(department_name=name) for name in DEPARTMENTS]
    db.add_all(departments)
    await db.commit()
    print(f"✅ Created {len(departments)} departments")
    return departments


async def create_account(db, email, password, first_name, last_name, department, roles):
    user = User(
        user_name=email,
        email=email,
        email_confirmed=True,
        first_name=first_name,
        last_name=last_name,
        hire_date=fake.date_between(start_date="-8y", end_date="-30d"),
        department_id=department.department_id,
    )
    result = await identity.create_user(db, user, password)
    result.raise_for_errors()
    (await identity.add_to_roles(db, user, roles)).raise_for_errors()
    return user


async def create_people(db, departments, managers=4, employees=14):
    print(f"👥 Creating 1 admin, {managers} managers and {employees} employees...")
    admin = await create_account(
        db, settings.SEED_ADMIN_EMAIL, settings.SEED_ADMIN_PASSWORD,
        "System", "Administrator", departments[0], [ADMIN]
    )

    used_emails = {settings.SEED_ADMIN_EMAIL.lower()}
    people = {MANAGER: [], EMPLOYEE: []}
    for role, count in ((MANAGER, managers), (EMPLOYEE, employees)):
        for _ in range(count):
            while True:
                first_name, last_name = fake.first_name(), fake.last_name()
                email = f"{first_name}.{last_name}@example.com".lower()
                if email not in used_emails:
                    used_emails.add(email)
                    break
            user = await create_account(
                db, email, "Passw0rd!", first_name, last_name, random.choice(departments), [role]
            )
            people[role].append(user)

    print(f"✅ Created {1 + managers + employees} users (default password for samples: Passw0rd!)")
    return admin, people[MANAGER], people[EMPLOYEE]


async def create_projects_and_tasks(db, managers, employees):
    print("📝 Creating projects and tasks...")
    today = date.today()
    projects = []
    for name, description in PROJECT_TEMPLATES:
        start = today - timedelta(days=random.randint(10, 180))
        projects.append(Project(
            project_name=name,
            description=description,
            start_date=start,
            end_date=start + timedelta(days=random.randint(60, 240)) if random.random() < 0.8 else None,
            manager_id=random.choice(managers).id,
        ))
    db.add_all(projects)
    await db.commit()

    tasks = []
    for project in projects:
        for task_name, task_description in random.sample(TASK_TEMPLATES, k=random.randint(3, 6)):
            status = random.choice(STATUS_MIX)
            if status in (COMPLETED, OVERDUE):
                due = today - timedelta(days=random.randint(1, 30))
            else:
                due = today + timedelta(days=random.randint(0, 45))
            tasks.append(ProjectTask(
                project_id=project.project_id,
                assignee_id=random.choice(employees).id,
                task_name=task_name,
                description=task_description,
                due_date=due,
                priority=random.choice(TASK_PRIORITIES),
                status=status,
            ))
    db.add_all(tasks)
    await db.commit()
    print(f"✅ Created {len(projects)} projects with {len(tasks)} tasks")
    return projects, tasks


async def main(clear: bool = False, procedures: bool = False):
    print("\n" + "=" * 60)
    print("🚀 ERMS SAMPLE DATA")
    print("=" * 60 + "\n")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        try:
            if clear:
                await clear_existing_data(db)

            await identity.ensure_roles(db, ROLES)
            print("✅ Roles verified")

            if await identity.find_by_email(db, settings.SEED_ADMIN_EMAIL):
                print("ℹ️  Administrator already exists, skipping sample data (use --clear to rebuild)")
            else:
                departments = await create_departments(db)
                _, managers, employees = await create_people(db, departments)
                projects, tasks = await create_projects_and_tasks(db, managers, employees)
                print(f"\n📊 Summary: {len(departments)} departments, {len(projects)} projects, {len(tasks)} tasks")

            if procedures:
                if engine.dialect.name != "postgresql":
                    print(f"⚠️  Skipping procedures: {engine.dialect.name} is not PostgreSQL")
                else:
                    count = await install_procedures(db)
                    print(f"✅ Installed {count} reporting procedure(s)")
        except Exception as e:
            print(f"\n❌ ERROR: {e}")
            await db.rollback()
            raise

    await engine.dispose()
    print("\n✨ Done\n")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Seed the ERMS database with sample data.")
    parser.add_argument("--clear", action="store_true", help="delete all existing rows first")
    parser.add_argument(
        "--install-procedures", action="store_true",
        help="create the PostgreSQL reporting functions from erms/sql/procedures.sql"
    )
    return parser.parse_args(argv)


if __name__ == "__main__":
    args = parse_args()
    asyncio.run(main(clear=args.clear, procedures=args.install_procedures))
