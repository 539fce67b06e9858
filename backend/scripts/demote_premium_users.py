"""把所有 PREMIUM 用户降级为 FREE（例如清理测试支付产生的升级）"""

import asyncio
import os
import sys
from sqlalchemy import func, select, update

# Add the parent directory to sys.path to import aluda modules
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from aluda.core.database import async_session_maker, close_db
from aluda.models.user import User, UserPlan


async def demote_all_premium(session) -> int:
    result = await session.execute(
        select(User.id, User.email, User.created_at).where(User.plan == UserPlan.PREMIUM)
    )
    before = result.all()
    print(f"Found {len(before)} PREMIUM users")
    for user_id, email, created_at in before[:25]:
        print(f" - {email or user_id} (since {created_at.isoformat()})")
    if len(before) > 25:
        print(" ... (truncated)")

    result = await session.execute(
        update(User).where(User.plan == UserPlan.PREMIUM).values(plan=UserPlan.FREE)
    )
    demoted = result.rowcount
    await session.commit()
    print(f"Demoted {demoted} users to FREE")

    result = await session.execute(
        select(func.count(User.id)).where(User.plan == UserPlan.PREMIUM)
    )
    print(f"Remaining PREMIUM users: {result.scalar()}")
    return demoted


async def main():
    try:
        async with async_session_maker() as session:
            await demote_all_premium(session)
        print("Done.")
    finally:
        await close_db()


if __name__ == "__main__":
    asyncio.run(main())
