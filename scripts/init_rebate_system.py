"""
Initialize the rebate system on an existing database.

Usage:
    python scripts/init_rebate_system.py

Or with custom DATABASE_URL:
    DATABASE_URL="postgresql://..." python scripts/init_rebate_system.py

Run after `alembic upgrade head`. This script:
- Gives every talent without a currentRebate the system default rate
- Prints ledger and talent counts for verification
"""

import asyncio
import os
import sys

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import func, select

from agentworks.db import engine, get_db_context
from agentworks.models import RebateConfig, Talent
from agentworks.services.rebate_transition import backfill_default_rebates


async def init_rebate_system():
    print("=" * 40)
    print("Rebate system initialization")
    print("=" * 40)

    async with get_db_context() as db:
        print("\n[1/2] Backfilling default rebate on talents...")
        updated = await backfill_default_rebates(db)
        print(f"  Updated {updated} talents")

        print("\n[2/2] Verifying...")
        configs = await db.scalar(select(func.count()).select_from(RebateConfig))
        talents = await db.scalar(select(func.count()).select_from(Talent))
        with_rebate = await db.scalar(
            select(func.count())
            .select_from(Talent)
            .where(Talent.current_rebate_rate.is_not(None))
        )
        print(f"  rebate_configs records: {configs}")
        print(f"  talents: {talents} ({with_rebate} with a rebate)")

    await engine.dispose()
    print("\nDone!")


if __name__ == "__main__":
    asyncio.run(init_rebate_system())
