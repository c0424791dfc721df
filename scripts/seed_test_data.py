"""
Seed test data for rebate testing.

Usage:
    python scripts/seed_test_data.py

Or with custom DATABASE_URL:
    DATABASE_URL="postgresql://..." python scripts/seed_test_data.py

This script creates:
- A test agency with a douyin rate
- Two agency talents (one sync, one independent) and one individual talent
- A customer relation with an override on the individual talent
"""

import asyncio
import os
import sys
from decimal import Decimal

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agentworks.db import engine, get_db_context
from agentworks.models import (
    INDIVIDUAL_AGENCY_ID,
    Agency,
    CustomerTalent,
    CustomerTalentStatus,
    Platform,
    RebateMode,
    Talent,
)
from agentworks.services.customer_rebate import update_customer_rebate
from agentworks.services.rebate_sync import update_agency_rebate
from agentworks.services.rebate_transition import apply_rate_change


# ===== TEST DATA =====

TEST_AGENCY = {"id": "agency_test_001", "name": "Test Agency"}

TEST_TALENTS = [
    {"one_id": "talent_test_001", "name": "Sync Talent", "agency_id": "agency_test_001", "rebate_mode": None},
    {"one_id": "talent_test_002", "name": "Independent Talent", "agency_id": "agency_test_001",
     "rebate_mode": RebateMode.INDEPENDENT},
    {"one_id": "talent_test_003", "name": "Individual Talent", "agency_id": INDIVIDUAL_AGENCY_ID,
     "rebate_mode": None},
]

TEST_CUSTOMER_ID = "customer_test_001"


async def create_test_agency(db: AsyncSession) -> Agency:
    agency = await db.get(Agency, TEST_AGENCY["id"])
    if agency:
        print(f"Test agency already exists ({agency.id})")
        return agency

    agency = Agency(**TEST_AGENCY)
    db.add(agency)
    await db.flush()
    print(f"Created test agency: {agency.name}")
    return agency


async def create_test_talent(db: AsyncSession, platform: Platform, **fields) -> Talent:
    result = await db.execute(
        select(Talent).where(
            Talent.one_id == fields["one_id"],
            Talent.platform == platform.value,
        )
    )
    talent = result.scalar_one_or_none()
    if talent:
        print(f"Talent already exists: {talent.one_id}")
        return talent

    talent = Talent(platform=platform.value, **fields)
    db.add(talent)
    await db.flush()
    print(f"Created talent: {talent.one_id} ({talent.name})")
    return talent


async def create_test_relation(db: AsyncSession, one_id: str, platform: Platform) -> CustomerTalent:
    result = await db.execute(
        select(CustomerTalent).where(
            CustomerTalent.customer_id == TEST_CUSTOMER_ID,
            CustomerTalent.one_id == one_id,
            CustomerTalent.platform == platform.value,
        )
    )
    relation = result.scalar_one_or_none()
    if relation:
        return relation

    relation = CustomerTalent(
        customer_id=TEST_CUSTOMER_ID,
        one_id=one_id,
        platform=platform.value,
        status=CustomerTalentStatus.ACTIVE,
    )
    db.add(relation)
    await db.flush()
    print(f"Created customer relation: {TEST_CUSTOMER_ID} -> {one_id}")
    return relation


async def seed_all():
    platform = Platform.DOUYIN

    print("\nConnecting to database...")

    async with get_db_context() as db:
        print("\n=== Creating test data ===\n")

        await create_test_agency(db)
        for fields in TEST_TALENTS:
            await create_test_talent(db, platform, **fields)

        print("\n--- Agency rate with sync ---")
        result = await update_agency_rebate(
            db,
            TEST_AGENCY["id"],
            platform,
            Decimal("15.00"),
            updated_by="seed",
            sync_to_talents=True,
        )
        print(f"{result.message}; synced {result.sync_result.talents_updated} talents")

        print("\n--- Independent and individual rates ---")
        for one_id, rate in (("talent_test_002", "18.50"), ("talent_test_003", "12.00")):
            change = await apply_rate_change(db, "talent", one_id, platform, rate, created_by="seed")
            print(f"{one_id}: {change.message}")

        print("\n--- Customer override ---")
        await create_test_relation(db, "talent_test_003", platform)
        detail = await update_customer_rebate(
            db,
            TEST_CUSTOMER_ID,
            "talent_test_003",
            platform,
            enabled=True,
            rate="20",
            notes="Seeded override",
            updated_by="seed",
        )
        print(f"Customer override for talent_test_003: {detail.customer_rebate.rate}%")

    await engine.dispose()

    print("\n" + "=" * 50)
    print("TEST DATA CREATED SUCCESSFULLY!")
    print("=" * 50)


if __name__ == "__main__":
    asyncio.run(seed_all())
